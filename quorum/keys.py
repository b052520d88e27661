"""Credential loading for Quorum.

Model API keys and the Slack bot token are read from the environment.
Missing values are filled from these files, in priority order:
  1. Environment variables (highest, already set in the shell)
  2. ~/.quorum/keys.env
  3. .env in the current directory
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

QUORUM_HOME = Path.home() / ".quorum"
KEYS_FILE = QUORUM_HOME / "keys.env"


def load_keys_env(files: list[Path] | None = None) -> list[Path]:
    """Load KEY=VALUE files into os.environ without overwriting set vars.

    Returns:
        The files that were found and read.
    """
    loaded = []
    for env_file in files if files is not None else [KEYS_FILE, Path.cwd() / ".env"]:
        if env_file.is_file():
            _load_env_file(env_file)
            loaded.append(env_file)
    return loaded


def _load_env_file(path: Path) -> None:
    """Parse a simple KEY=VALUE .env file and set vars that aren't already set."""
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export "):].strip()
            value = value.strip().strip("'\"")
            if key and not os.environ.get(key):
                os.environ[key] = value
                logger.debug("Loaded %s from %s", key, path)
    except OSError:
        logger.debug("Could not read %s", path)


def missing_keys(env_vars: list[str]) -> list[str]:
    """Return the env var names from ``env_vars`` that are unset or empty."""
    return [name for name in env_vars if not os.environ.get(name)]
