"""Discussion, persona, trigger and thread-message schemas.

Defines the persisted Discussion record that tracks one deliberation
thread, the Persona roster entries that speak in it, the Trigger that
opened it, and the read-only ThreadMessage view of the conversation.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class TriggerType(StrEnum):
    """Event kinds that can open a discussion."""

    PR_REVIEW = "pr_review"
    CODE_WATCH = "code_watch"
    ISSUE_REVIEW = "issue_review"
    BUILD_FAILURE = "build_failure"
    PRD_KICKOFF = "prd_kickoff"


class DiscussionStatus(StrEnum):
    """Lifecycle state of a discussion.

    ACTIVE: Deliberation is in progress.
    CONSENSUS: The lead persona resolved the discussion.
    BLOCKED: A human decision is required.
    """

    ACTIVE = "active"
    CONSENSUS = "consensus"
    BLOCKED = "blocked"


class ConsensusOutcome(StrEnum):
    """Final result recorded when a discussion leaves ACTIVE."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    HUMAN_NEEDED = "human_needed"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Persona(BaseModel):
    """An AI teammate that can speak in a discussion thread."""

    id: str = Field(description="Unique persona identifier")
    name: str = Field(description="Display name used when posting")
    role: str = Field(description="Free-text role label, e.g. 'Tech Lead'")
    is_active: bool = Field(default=True, description="Whether the persona takes part")
    model: str = Field(
        default="", description="Model registry key voicing this persona (empty = default)"
    )


class Trigger(BaseModel):
    """The event descriptor that caused a discussion to be opened."""

    type: TriggerType = Field(description="Kind of triggering event")
    project_path: str = Field(description="Owning project or workspace path")
    ref: str = Field(description="Trigger reference, e.g. PR number or owner/repo#42")
    context: str = Field(default="", description="Free-text context for the personas")
    pr_url: str | None = Field(default=None, description="Pull request URL, if any")


class ThreadMessage(BaseModel):
    """A single message read back from the conversation transport."""

    timestamp: str = Field(description="Transport-level message timestamp")
    channel: str = Field(description="Channel the message lives in")
    text: str = Field(default="", description="Message body")
    author: str = Field(default="", description="Display name of the sender")


class Discussion(BaseModel):
    """The persisted unit of one deliberation and its resolution state."""

    id: str = Field(description="Unique discussion identifier")
    project_path: str = Field(description="Owning project or workspace path")
    trigger_type: TriggerType = Field(description="Kind of event that opened it")
    trigger_ref: str = Field(description="Trigger reference, shape depends on trigger_type")
    channel_id: str = Field(description="Transport channel holding the thread")
    thread_ts: str = Field(description="Transport thread identifier")
    status: DiscussionStatus = Field(default=DiscussionStatus.ACTIVE)
    round: int = Field(default=1, ge=1, description="Current deliberation round")
    participants: list[str] = Field(
        default_factory=list, description="Persona ids that posted, in join order"
    )
    consensus_result: ConsensusOutcome | None = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == DiscussionStatus.ACTIVE
