"""Contribution rounds and PR refinement hand-off.

DeliberationCallbacks is the default ConsensusCallbacks implementation:
between evaluation rounds it asks a few reviewer personas for one short
reply each, and once changes are requested on a pull request it sends
the PR back with a ``gh pr review --request-changes``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence

from quorum.board.gh import GhCli
from quorum.collaborators import (
    ConsensusCallbacks,
    ConversationTransport,
    DiscussionStore,
    PersonaStore,
)
from quorum.consensus.humanizer import humanize, is_skip_message, normalize_text
from quorum.consensus.thread import count_thread_replies, format_thread_history
from quorum.personas import find_lead
from quorum.prompts import render_prompt
from quorum.providers.base import AIResponder
from quorum.schemas.config import BoardConfig, EngineConfig
from quorum.schemas.discussion import Persona, Trigger
from quorum.schemas.verdict import SideEffectResult

logger = logging.getLogger(__name__)


def choose_contributors(
    reviewers: Sequence[Persona],
    max_count: int,
    lead: Persona | None,
) -> list[Persona]:
    """Pick who speaks this round, preferring non-lead reviewers.

    The lead is kept in the pool when fewer than two other reviewers
    are available.
    """
    if max_count <= 0:
        return []
    if lead is None:
        return list(reviewers[:max_count])
    non_lead = [p for p in reviewers if p.id != lead.id]
    candidates = non_lead if len(non_lead) >= 2 else list(reviewers)
    return candidates[:max_count]


class DeliberationCallbacks(ConsensusCallbacks):
    """Runs contribution rounds and PR refinement for the evaluator."""

    def __init__(
        self,
        responder: AIResponder,
        transport: ConversationTransport,
        discussions: DiscussionStore,
        personas: PersonaStore,
        config: EngineConfig | None = None,
        board_config: BoardConfig | None = None,
    ) -> None:
        self._responder = responder
        self._transport = transport
        self._discussions = discussions
        self._personas = personas
        self._config = config or EngineConfig()
        self._board_config = board_config or BoardConfig()

    def _human_delay(self) -> float:
        return random.uniform(self._config.human_delay_min, self._config.human_delay_max)

    async def run_contribution_round(
        self,
        discussion_id: str,
        reviewers: Sequence[Persona],
        trigger: Trigger,
        change_context: str,
    ) -> None:
        """Collect at most one new reply from each chosen reviewer.

        The round stays inside the thread's reply budget, leaving one
        reply for the lead's next verdict. SKIP replies, failed AI calls
        and replies that repeat an earlier message are dropped.
        """
        discussion = await self._discussions.get_by_id(discussion_id)
        if discussion is None or not discussion.is_active:
            return

        history = await self._transport.get_thread_history(
            discussion.channel_id, discussion.thread_ts, self._config.history_limit,
        )
        budget = max(
            0,
            self._config.max_agent_thread_replies - count_thread_replies(history) - 1,
        )
        if budget <= 0:
            logger.info("No reply budget left for a contribution round on %s", discussion_id)
            return

        lead = find_lead(await self._personas.get_active_personas(), self._config)
        contributors = choose_contributors(
            reviewers, min(self._config.max_contributions_per_round, budget), lead,
        )
        seen = {normalize_text(m.text) for m in history if m.text}
        history_text = format_thread_history(history)
        context = trigger.context[: self._config.context_char_limit]
        posted = 0

        for persona in contributors:
            if posted >= budget:
                break
            current = await self._discussions.get_by_id(discussion_id)
            if current is None or not current.is_active:
                break

            prompt = render_prompt(
                "contribution",
                persona=persona,
                trigger=trigger,
                round=current.round,
                max_rounds=self._config.max_rounds,
                is_final_round=current.round >= self._config.max_rounds,
                context=context,
                change_context=change_context,
                history=history_text,
            )
            try:
                raw = await self._responder.respond(persona, prompt)
            except Exception as e:
                logger.warning(
                    "AI contribution failed for %s on %s: %s", persona.name, discussion_id, e,
                )
                continue

            message = humanize(
                raw, allow_emoji=True, allow_non_facial_emoji=False, max_sentences=2,
            )
            if not message or is_skip_message(message):
                continue
            normalized = normalize_text(message)
            if not normalized or normalized in seen:
                logger.debug("Dropping repeated contribution from %s", persona.name)
                continue

            if posted:
                await asyncio.sleep(self._human_delay())
            await self._transport.post_message(
                current.channel_id, message, persona, current.thread_ts,
            )
            await self._discussions.add_participant(discussion_id, persona.id)
            seen.add(normalized)
            history_text = (
                f"{history_text}\n{persona.name}: {message}" if history_text
                else f"{persona.name}: {message}"
            )
            posted += 1
            logger.info(
                "%s contributed to %s (round %d, trigger=%s)",
                persona.name, discussion_id, current.round, trigger.type.value,
            )

    async def trigger_refinement(
        self, discussion_id: str, changes_summary: str, trigger_ref: str,
    ) -> SideEffectResult:
        """Send the pull request back with the requested changes."""
        name = "refinement"
        discussion = await self._discussions.get_by_id(discussion_id)
        if discussion is None:
            return SideEffectResult(name=name, ok=False, detail="discussion not found")

        pr_number = trigger_ref.strip().lstrip("#")
        personas = await self._personas.get_active_personas()
        lead = find_lead(personas, self._config) or next(iter(personas), None)
        if lead is not None:
            await self._transport.post_message(
                discussion.channel_id,
                f"Sending PR #{pr_number} back through with the notes.",
                lead,
                discussion.thread_ts,
            )
            await asyncio.sleep(self._human_delay())

        body = changes_summary or "Changes requested in the review thread."
        gh = GhCli(discussion.project_path or None, timeout=self._board_config.gh_timeout)
        await gh.run("pr", "review", pr_number, "--request-changes", "-b", body)
        logger.info("Requested changes on PR #%s for %s", pr_number, discussion_id)
        return SideEffectResult(name=name, ok=True, detail=f"PR #{pr_number}")
