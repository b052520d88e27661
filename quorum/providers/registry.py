"""Model registry and TOML configuration loader.

Loads model definitions from models.toml and engine, board and Slack
settings from defaults.toml.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from quorum.schemas.config import BoardConfig, EngineConfig, ModelConfig, SlackConfig

# Default config directory relative to the quorum package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def _read_toml(path: Path, kind: str) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"{kind} not found: {path}")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_models(config_path: Path | None = None) -> dict[str, ModelConfig]:
    """Load the model registry from a TOML file.

    Args:
        config_path: Path to models.toml. Defaults to quorum/config/models.toml.

    Returns:
        Dictionary mapping model keys to ModelConfig instances.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML structure is invalid.
    """
    path = config_path or _CONFIG_DIR / "models.toml"
    raw = _read_toml(path, "Model registry")

    models_section = raw.get("models")
    if not models_section or not isinstance(models_section, dict):
        raise ValueError(f"No [models] section found in {path}")

    return {
        key: ModelConfig(**entry)
        for key, entry in models_section.items()
        if isinstance(entry, dict)
    }


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine tunables from the ``[engine]`` section of defaults.toml.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    raw = _read_toml(path, "Engine config")
    return EngineConfig(**raw.get("engine", {}))


def load_board_config(config_path: Path | None = None) -> BoardConfig:
    """Load issue-tracker settings from the ``[board]`` section."""
    path = config_path or _CONFIG_DIR / "defaults.toml"
    raw = _read_toml(path, "Engine config")
    return BoardConfig(**raw.get("board", {}))


def load_slack_config(config_path: Path | None = None) -> SlackConfig:
    """Load Slack transport settings from the ``[slack]`` section."""
    path = config_path or _CONFIG_DIR / "defaults.toml"
    raw = _read_toml(path, "Engine config")
    return SlackConfig(**raw.get("slack", {}))
