"""Quorum schema definitions.

All Pydantic v2 models used by the consensus engine, stores and adapters.
"""

from quorum.schemas.config import BoardConfig, EngineConfig, ModelConfig, SlackConfig
from quorum.schemas.discussion import (
    ConsensusOutcome,
    Discussion,
    DiscussionStatus,
    Persona,
    ThreadMessage,
    Trigger,
    TriggerType,
)
from quorum.schemas.verdict import (
    Approve,
    Changes,
    Close,
    Draft,
    Human,
    MainVerdict,
    Ready,
    SideEffectResult,
    TriageVerdict,
    Verdict,
)

__all__ = [
    "Approve",
    "BoardConfig",
    "Changes",
    "Close",
    "ConsensusOutcome",
    "Discussion",
    "DiscussionStatus",
    "Draft",
    "EngineConfig",
    "Human",
    "MainVerdict",
    "ModelConfig",
    "Persona",
    "Ready",
    "SideEffectResult",
    "SlackConfig",
    "ThreadMessage",
    "TriageVerdict",
    "Trigger",
    "TriggerType",
    "Verdict",
]
