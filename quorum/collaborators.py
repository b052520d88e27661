"""Collaborator interfaces consumed by the consensus engine.

The evaluator talks to the outside world only through these abstract
classes, injected through its constructor. Concrete adapters live in
quorum.transport, quorum.persistence and quorum.board.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Literal

from quorum.schemas.discussion import (
    ConsensusOutcome,
    Discussion,
    DiscussionStatus,
    Persona,
    ThreadMessage,
    Trigger,
)
from quorum.schemas.verdict import SideEffectResult

IssueStatusVerdict = Literal["ready", "close"]


class ConversationTransport(ABC):
    """Posts messages into threads and reads thread history."""

    @abstractmethod
    async def post_message(
        self,
        channel: str,
        text: str,
        persona: Persona,
        thread_id: str | None = None,
    ) -> str:
        """Post ``text`` as ``persona`` and return the new message reference."""

    @abstractmethod
    async def get_thread_history(
        self, channel: str, thread_id: str, limit: int,
    ) -> list[ThreadMessage]:
        """Return up to ``limit`` messages of the thread, oldest first.

        Longer threads keep the opening message plus the most recent replies.
        """


class DiscussionStore(ABC):
    """Persistence for Discussion records."""

    @abstractmethod
    async def get_by_id(self, discussion_id: str) -> Discussion | None:
        ...

    @abstractmethod
    async def update_status(
        self,
        discussion_id: str,
        status: DiscussionStatus,
        consensus_result: ConsensusOutcome | None,
    ) -> None:
        """Write status and consensus result together in one update."""

    @abstractmethod
    async def update_round(self, discussion_id: str, round_number: int) -> None:
        ...

    @abstractmethod
    async def add_participant(self, discussion_id: str, persona_id: str) -> None:
        """Append a persona id unless it is already a participant."""


class PersonaStore(ABC):
    """Read access to the persona roster."""

    @abstractmethod
    async def get_active_personas(self) -> list[Persona]:
        ...


class BoardActions(ABC):
    """Issue-tracker side effects fired after a verdict.

    Implementations report their outcome as a SideEffectResult; the
    evaluator still wraps every call so a raised exception is logged
    and swallowed.
    """

    @abstractmethod
    async def update_issue_status(
        self, verdict: IssueStatusVerdict, discussion_id: str, trigger: Trigger,
    ) -> SideEffectResult:
        ...

    @abstractmethod
    async def open_issue_from_finding(
        self, discussion_id: str, trigger: Trigger,
    ) -> SideEffectResult:
        ...


class ConsensusCallbacks(ABC):
    """Operations the main flow invokes without knowing how they work."""

    @abstractmethod
    async def run_contribution_round(
        self,
        discussion_id: str,
        reviewers: Sequence[Persona],
        trigger: Trigger,
        change_context: str,
    ) -> None:
        """Gather another round of reviewer replies in the thread."""

    @abstractmethod
    async def trigger_refinement(
        self, discussion_id: str, changes_summary: str, trigger_ref: str,
    ) -> SideEffectResult | None:
        """Send the work back for refinement with the requested changes."""
