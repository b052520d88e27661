"""Engine, model, board and transport configuration schemas.

Loaded from the TOML files in quorum/config/ by quorum.providers.registry.
Role markers and persona names are configuration, not protocol.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class ModelConfig(BaseModel):
    """Configuration for a single LLM model in the registry."""

    provider: str = Field(description="Provider identifier (e.g. 'anthropic', 'openai')")
    model: str = Field(description="LiteLLM model identifier")
    display_name: str = Field(description="Human-friendly model name for CLI output")
    api_key_env: str = Field(description="Environment variable name holding the API key")
    api_base: str = Field(default="", description="Custom API base URL (empty = provider default)")
    max_tokens: int = Field(default=1024, gt=0, description="Default completion token cap")


class EngineConfig(BaseModel):
    """Tunables for the deliberation consensus engine."""

    max_rounds: int = Field(default=2, ge=1, description="Upper bound on deliberation rounds")
    max_agent_thread_replies: int = Field(
        default=4, ge=1, description="Reply budget before forced human escalation"
    )
    min_replies_for_another_round: int = Field(
        default=3, ge=0, description="Replies that must remain to run another round"
    )
    history_limit: int = Field(default=20, gt=0, description="Thread messages fetched per read")
    human_delay_min: float = Field(default=20.0, ge=0.0, description="Seconds")
    human_delay_max: float = Field(default=60.0, ge=0.0, description="Seconds")
    context_char_limit: int = Field(default=2000, gt=0)
    max_contributions_per_round: int = Field(default=2, ge=0)
    lead_role_tokens: list[str] = Field(
        default_factory=lambda: ["pm", "lead"],
        description="Whole-word role markers for lead personas",
    )
    lead_role_phrases: list[str] = Field(
        default_factory=lambda: [
            "tech lead", "product manager", "director", "architect", "manager", "product",
        ],
        description="Substring role markers for lead personas",
    )
    lead_fallback_name: str = Field(default="", description="Lead persona name fallback")
    executor_name: str = Field(default="", description="Implementer persona name")
    executor_role_markers: list[str] = Field(
        default_factory=lambda: ["implementer", "executor", "developer"],
    )
    default_model: str = Field(default="", description="Model key for personas without one")
    ai_timeout: int = Field(default=120, gt=0, description="Seconds per AI call")
    db_path: str = Field(default="~/.quorum/quorum.db")

    @model_validator(mode="after")
    def _check_delay_range(self) -> EngineConfig:
        if self.human_delay_max < self.human_delay_min:
            raise ValueError("human_delay_max must be >= human_delay_min")
        return self


class BoardConfig(BaseModel):
    """Issue-tracker adapter settings (GitHub via the gh CLI)."""

    ready_label: str = Field(default="ready")
    draft_label: str = Field(default="draft")
    gh_timeout: int = Field(default=15, gt=0, description="Seconds per gh invocation")


class SlackConfig(BaseModel):
    """Slack Web API transport settings."""

    token_env: str = Field(default="SLACK_BOT_TOKEN")
    api_base: str = Field(default="https://slack.com/api")
    timeout: int = Field(default=30, gt=0)
