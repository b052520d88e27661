"""GitHub board actions driven through the gh CLI.

Implements the BoardActions side effects the evaluator fires after a
verdict: label or close a triaged issue, and open a new issue from an
approved code-watch finding. Every outcome is reported back as a
SideEffectResult and announced in the discussion thread by the
executor persona.
"""

from __future__ import annotations

import logging
import re

from quorum.board.gh import GhCli, GhCommandError
from quorum.board.refs import parse_issue_ref
from quorum.collaborators import (
    BoardActions,
    ConversationTransport,
    DiscussionStore,
    IssueStatusVerdict,
    PersonaStore,
)
from quorum.personas import find_executor, find_lead
from quorum.prompts import render_prompt
from quorum.providers.base import AIResponder
from quorum.schemas.config import BoardConfig, EngineConfig
from quorum.schemas.discussion import Discussion, Persona, Trigger
from quorum.schemas.verdict import SideEffectResult

logger = logging.getLogger(__name__)

_SIGNAL_RE = re.compile(r"^Signal: (.+)$", re.MULTILINE)
_LOCATION_RE = re.compile(r"^Location: (.+)$", re.MULTILINE)

WRITEUP_EXCERPT_CHARS = 600


def build_issue_title(context: str) -> str:
    """Build ``fix: <signal> at <location>`` from a code-watch context."""
    signal = _SIGNAL_RE.search(context)
    location = _LOCATION_RE.search(context)
    return (
        f"fix: {signal.group(1).strip() if signal else 'code signal'}"
        f" at {location.group(1).strip() if location else 'unknown location'}"
    )


class GitHubBoardActions(BoardActions):
    """BoardActions backed by ``gh issue`` commands."""

    def __init__(
        self,
        transport: ConversationTransport,
        discussions: DiscussionStore,
        personas: PersonaStore,
        responder: AIResponder,
        config: BoardConfig | None = None,
        engine_config: EngineConfig | None = None,
    ) -> None:
        self._transport = transport
        self._discussions = discussions
        self._personas = personas
        self._responder = responder
        self._config = config or BoardConfig()
        self._engine_config = engine_config or EngineConfig()

    def _gh(self, trigger: Trigger) -> GhCli:
        return GhCli(trigger.project_path or None, timeout=self._config.gh_timeout)

    async def _speaker(self) -> Persona | None:
        personas = await self._personas.get_active_personas()
        return (
            find_executor(personas, self._engine_config)
            or find_lead(personas, self._engine_config)
            or next(iter(personas), None)
        )

    async def _announce(self, discussion: Discussion, persona: Persona, text: str) -> None:
        await self._transport.post_message(
            discussion.channel_id, text, persona, discussion.thread_ts,
        )

    # ── Issue triage ──────────────────────────────────────────

    async def update_issue_status(
        self, verdict: IssueStatusVerdict, discussion_id: str, trigger: Trigger,
    ) -> SideEffectResult:
        name = f"issue_status:{verdict}"
        discussion = await self._discussions.get_by_id(discussion_id)
        if discussion is None:
            return SideEffectResult(name=name, ok=False, detail="discussion not found")

        issue = parse_issue_ref(trigger.ref)
        if issue is None:
            return SideEffectResult(
                name=name, ok=False, detail=f"unexpected issue ref {trigger.ref!r}",
            )

        speaker = await self._speaker()
        if speaker is None:
            return SideEffectResult(name=name, ok=False, detail="no active persona")

        gh = self._gh(trigger)
        number = str(issue.number)
        try:
            if verdict == "ready":
                await gh.run(
                    "issue", "edit", number,
                    "-R", issue.repo_slug,
                    "--add-label", self._config.ready_label,
                    "--remove-label", self._config.draft_label,
                )
                message = f"Moved #{issue.number} to Ready."
            else:
                await gh.run("issue", "close", number, "-R", issue.repo_slug)
                message = f"Closed #{issue.number}."
        except GhCommandError as e:
            return SideEffectResult(name=name, ok=False, detail=str(e))

        await self._announce(discussion, speaker, message)
        return SideEffectResult(name=name, ok=True, detail=str(issue))

    # ── Issue opener ──────────────────────────────────────────

    async def open_issue_from_finding(
        self, discussion_id: str, trigger: Trigger,
    ) -> SideEffectResult:
        """Write up an approved code-watch finding and open it as an issue.

        When issue creation fails the write-up is posted into the thread
        instead, so the finding is not lost.
        """
        name = "open_issue"
        discussion = await self._discussions.get_by_id(discussion_id)
        if discussion is None:
            return SideEffectResult(name=name, ok=False, detail="discussion not found")

        personas = await self._personas.get_active_personas()
        author = find_executor(personas, self._engine_config)
        if author is None:
            return SideEffectResult(name=name, ok=False, detail="no executor persona")

        await self._announce(discussion, author, "Agreed. Writing up an issue for this.")

        title = build_issue_title(trigger.context)
        prompt = render_prompt("issue_body", persona=author, context=trigger.context)
        body = (await self._responder.respond(author, prompt)).strip()

        try:
            url = await self._gh(trigger).run(
                "issue", "create", "--title", title, "--body", body,
            )
        except GhCommandError as e:
            logger.warning("Issue creation failed for %s: %s", discussion_id, e)
            await self._announce(
                discussion,
                author,
                "Couldn't open the issue automatically. Here's the writeup:\n\n"
                + body[:WRITEUP_EXCERPT_CHARS],
            )
            return SideEffectResult(name=name, ok=False, detail=str(e))

        await self._announce(discussion, author, f"Opened {title}: {url}")
        return SideEffectResult(name=name, ok=True, detail=url)
