"""Shared fixtures: in-memory stores and mocked collaborators."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from quorum.collaborators import (
    BoardActions,
    ConsensusCallbacks,
    ConversationTransport,
    DiscussionStore,
    PersonaStore,
)
from quorum.providers.base import AIResponder
from quorum.schemas.config import EngineConfig
from quorum.schemas.discussion import (
    ConsensusOutcome,
    Discussion,
    DiscussionStatus,
    Persona,
    ThreadMessage,
    Trigger,
    TriggerType,
)
from quorum.schemas.verdict import SideEffectResult


class InMemoryDiscussionStore(DiscussionStore):
    """DiscussionStore with the same write rules as the SQLite store."""

    def __init__(self) -> None:
        self.records: dict[str, Discussion] = {}
        self.status_writes: list[tuple[str, DiscussionStatus, ConsensusOutcome | None]] = []
        self.round_writes: list[tuple[str, int]] = []

    def put(self, discussion: Discussion) -> Discussion:
        self.records[discussion.id] = discussion
        return discussion

    async def get_by_id(self, discussion_id: str) -> Discussion | None:
        record = self.records.get(discussion_id)
        return record.model_copy(deep=True) if record else None

    async def update_status(self, discussion_id, status, consensus_result) -> None:
        self.status_writes.append((discussion_id, status, consensus_result))
        record = self.records.get(discussion_id)
        if record is not None and record.is_active:
            self.records[discussion_id] = record.model_copy(
                update={"status": status, "consensus_result": consensus_result},
            )

    async def update_round(self, discussion_id, round_number) -> None:
        self.round_writes.append((discussion_id, round_number))
        record = self.records.get(discussion_id)
        if record is not None and round_number > record.round:
            self.records[discussion_id] = record.model_copy(update={"round": round_number})

    async def add_participant(self, discussion_id, persona_id) -> None:
        record = self.records.get(discussion_id)
        if record is not None and persona_id not in record.participants:
            self.records[discussion_id] = record.model_copy(
                update={"participants": [*record.participants, persona_id]},
            )


class InMemoryPersonaStore(PersonaStore):
    def __init__(self, personas: list[Persona]) -> None:
        self.personas = personas

    async def get_active_personas(self) -> list[Persona]:
        return [p for p in self.personas if p.is_active]


# ── Factories ─────────────────────────────────────────────────


def make_team() -> list[Persona]:
    return [
        Persona(id="dev", name="Dev", role="Implementer"),
        Persona(id="maya", name="Maya", role="Tech Lead"),
        Persona(id="priya", name="Priya", role="QA Engineer"),
        Persona(id="sam", name="Sam", role="Security Reviewer"),
    ]


def make_discussion(**overrides) -> Discussion:
    defaults = {
        "id": "d1",
        "project_path": "/work/api",
        "trigger_type": TriggerType.PR_REVIEW,
        "trigger_ref": "42",
        "channel_id": "C123",
        "thread_ts": "1700000000.000100",
    }
    defaults.update(overrides)
    return Discussion(**defaults)


def make_trigger(**overrides) -> Trigger:
    defaults = {
        "type": TriggerType.PR_REVIEW,
        "project_path": "/work/api",
        "ref": "42",
        "context": "PR #42 adds a retry wrapper",
    }
    defaults.update(overrides)
    return Trigger(**defaults)


def make_history(count: int, channel: str = "C123") -> list[ThreadMessage]:
    authors = ["Dev", "Maya", "Priya", "Sam"]
    return [
        ThreadMessage(
            timestamp=f"1700000000.{i:06d}",
            channel=channel,
            text=f"Message {i} about the retry wrapper",
            author=authors[i % len(authors)],
        )
        for i in range(count)
    ]


# ── Fixtures ──────────────────────────────────────────────────


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def team() -> list[Persona]:
    return make_team()


@pytest.fixture
def discussions() -> InMemoryDiscussionStore:
    return InMemoryDiscussionStore()


@pytest.fixture
def personas(team) -> InMemoryPersonaStore:
    return InMemoryPersonaStore(team)


@pytest.fixture
def transport() -> AsyncMock:
    mock = AsyncMock(spec=ConversationTransport)
    mock.get_thread_history.return_value = make_history(1)
    mock.post_message.return_value = "1700000001.000000"
    return mock


@pytest.fixture
def responder() -> AsyncMock:
    return AsyncMock(spec=AIResponder)


@pytest.fixture
def board() -> AsyncMock:
    mock = AsyncMock(spec=BoardActions)
    mock.update_issue_status.return_value = SideEffectResult(name="issue_status", ok=True)
    mock.open_issue_from_finding.return_value = SideEffectResult(name="open_issue", ok=True)
    return mock


@pytest.fixture
def callbacks() -> AsyncMock:
    mock = AsyncMock(spec=ConsensusCallbacks)
    mock.run_contribution_round.return_value = None
    mock.trigger_refinement.return_value = None
    return mock
