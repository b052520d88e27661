"""Deliberation consensus evaluator.

Drives a discussion to a verdict. The main flow is a round-bounded loop:
read the discussion, ask the lead persona for APPROVE / CHANGES / HUMAN,
and either run another contribution round or commit a terminal state.
Issue-review discussions take a single-shot READY / CLOSE / DRAFT path
instead. Upstream AI failures degrade to a fixed fallback verdict, failed
posts and side effects are logged, and anything else is logged at the
entry point, so neither evaluate method raises.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence

from quorum.board.refs import parse_issue_ref
from quorum.collaborators import (
    BoardActions,
    ConsensusCallbacks,
    ConversationTransport,
    DiscussionStore,
    PersonaStore,
)
from quorum.consensus.humanizer import humanize, is_skip_message
from quorum.consensus.side_effects import fire_and_forget
from quorum.consensus.thread import count_thread_replies, format_thread_history
from quorum.consensus.verdicts import MAIN_GRAMMAR, TRIAGE_GRAMMAR, parse_verdict
from quorum.personas import find_executor, find_lead, participating_personas
from quorum.prompts import render_prompt
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
from quorum.schemas.verdict import Approve, Changes, Close, Ready

logger = logging.getLogger(__name__)

MAIN_FALLBACK_REPLY = "HUMAN: AI evaluation failed — needs manual review"
TRIAGE_FALLBACK_REPLY = "DRAFT: AI evaluation failed — leaving in Draft for manual review"

DEFAULT_APPROVE_MESSAGE = "Clean, ship it."
DEFAULT_ONE_MORE_PASS_MESSAGE = "Need one more pass on a couple items."
DEFAULT_CHANGES_MESSAGE = "Need changes before merge. Please address the thread notes."
DEFAULT_HUMAN_MESSAGE = "Need a human decision on this one."
DEFAULT_READY_MESSAGE = "Looks good — moving to Ready."
DEFAULT_CLOSE_MESSAGE = "Closing this — not worth tracking."
DEFAULT_DRAFT_MESSAGE = "Leaving in Draft — needs more context."


class ConsensusEvaluator:
    """Round-bounded consensus engine for one discussion at a time.

    All collaborators are injected. Callers must not run two evaluations
    of the same discussion id concurrently (see DiscussionLocks).
    """

    def __init__(
        self,
        responder: AIResponder,
        transport: ConversationTransport,
        discussions: DiscussionStore,
        personas: PersonaStore,
        board: BoardActions,
        config: EngineConfig | None = None,
    ) -> None:
        self._responder = responder
        self._transport = transport
        self._discussions = discussions
        self._personas = personas
        self._board = board
        self._config = config or EngineConfig()

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ── Main flow ─────────────────────────────────────────────

    async def evaluate_consensus(
        self,
        discussion_id: str,
        trigger: Trigger,
        callbacks: ConsensusCallbacks,
    ) -> None:
        """Evaluate whether the discussion has reached consensus.

        Loops at most ``max_rounds`` times. The discussion is re-read at
        the top of every pass, so a status change made elsewhere (a human
        closing the thread) ends the loop on the next pass.
        """
        try:
            await self._evaluate_consensus(discussion_id, trigger, callbacks)
        except Exception:
            logger.exception("Consensus evaluation failed for discussion %s", discussion_id)

    async def _evaluate_consensus(
        self,
        discussion_id: str,
        trigger: Trigger,
        callbacks: ConsensusCallbacks,
    ) -> None:
        while True:
            discussion = await self._discussions.get_by_id(discussion_id)
            if discussion is None or not discussion.is_active:
                return

            if trigger.type == TriggerType.ISSUE_REVIEW:
                await self._evaluate_issue_review(discussion_id, trigger)
                return

            personas = await self._personas.get_active_personas()
            lead = find_lead(personas, self._config)
            if lead is None:
                logger.info(
                    "No lead persona for discussion %s, auto-approving", discussion_id,
                )
                await self._resolve(
                    discussion, DiscussionStatus.CONSENSUS, ConsensusOutcome.APPROVED,
                )
                return

            history = await self._history(discussion)
            if history is None:
                # unreadable thread escalates like a failed AI call
                replies_left = 0
                reply = MAIN_FALLBACK_REPLY
            else:
                replies_left = (
                    self._config.max_agent_thread_replies - count_thread_replies(history)
                )
                if replies_left <= 0:
                    logger.info(
                        "Reply budget exhausted for discussion %s, escalating to a human",
                        discussion_id,
                    )
                    await self._resolve(
                        discussion, DiscussionStatus.BLOCKED, ConsensusOutcome.HUMAN_NEEDED,
                    )
                    return

                prompt = render_prompt(
                    "consensus",
                    persona=lead,
                    history=format_thread_history(history),
                    round=discussion.round,
                    max_rounds=self._config.max_rounds,
                )
                reply = await self._ask(lead, prompt, MAIN_FALLBACK_REPLY, discussion_id)
            verdict = parse_verdict(reply, MAIN_GRAMMAR)

            if isinstance(verdict, Approve):
                await self._post(
                    discussion,
                    lead,
                    humanize(
                        verdict.message or DEFAULT_APPROVE_MESSAGE,
                        allow_emoji=False, max_sentences=1,
                    ),
                )
                await self._resolve(
                    discussion, DiscussionStatus.CONSENSUS, ConsensusOutcome.APPROVED,
                )
                if trigger.type == TriggerType.CODE_WATCH:
                    await fire_and_forget(
                        "open_issue",
                        lambda: self._board.open_issue_from_finding(discussion_id, trigger),
                        discussion_id,
                    )
                return

            if isinstance(verdict, Changes) and self._can_run_another_round(
                discussion, replies_left,
            ):
                await self._post(
                    discussion,
                    lead,
                    humanize(
                        verdict.message or DEFAULT_ONE_MORE_PASS_MESSAGE,
                        allow_emoji=False, max_sentences=1,
                    ),
                )
                await asyncio.sleep(self._human_delay())

                next_round = discussion.round + 1
                await self._discussions.update_round(discussion_id, next_round)
                logger.info(
                    "Discussion %s needs changes, starting round %d/%d",
                    discussion_id, next_round, self._config.max_rounds,
                )

                reviewers = self._select_reviewers(discussion, trigger, personas)
                try:
                    await callbacks.run_contribution_round(
                        discussion_id, reviewers, trigger, verdict.message,
                    )
                except Exception as e:
                    # round already bumped, so max_rounds still bounds the loop
                    logger.warning(
                        "Contribution round %d failed for discussion %s: %s",
                        next_round, discussion_id, e,
                    )
                continue

            if isinstance(verdict, Changes):
                summary = verdict.message
                await self._post(
                    discussion,
                    lead,
                    humanize(
                        f"Need changes before merge: {summary}"
                        if summary else DEFAULT_CHANGES_MESSAGE,
                        allow_emoji=False, max_sentences=2,
                    ),
                )
                await self._resolve(
                    discussion,
                    DiscussionStatus.CONSENSUS,
                    ConsensusOutcome.CHANGES_REQUESTED,
                )
                if trigger.type == TriggerType.PR_REVIEW:
                    await fire_and_forget(
                        "refinement",
                        lambda: callbacks.trigger_refinement(
                            discussion_id, summary, discussion.trigger_ref,
                        ),
                        discussion_id,
                    )
                return

            # HUMAN, including unrecognized replies
            reason = verdict.message
            await self._post(
                discussion,
                lead,
                humanize(
                    f"Need a human decision: {reason}" if reason else DEFAULT_HUMAN_MESSAGE,
                    allow_emoji=False, max_sentences=1,
                ),
            )
            await self._resolve(
                discussion, DiscussionStatus.BLOCKED, ConsensusOutcome.HUMAN_NEEDED,
            )
            return

    # ── Issue triage flow ─────────────────────────────────────

    async def evaluate_issue_review_consensus(
        self, discussion_id: str, trigger: Trigger,
    ) -> None:
        """Make the single-shot triage call for an issue_review discussion.

        No round loop and no round change. ``approved`` here only means
        the triage discussion is resolved; the READY / CLOSE outcome is
        carried by the board side effect.
        """
        try:
            await self._evaluate_issue_review(discussion_id, trigger)
        except Exception:
            logger.exception("Issue review evaluation failed for discussion %s", discussion_id)

    async def _evaluate_issue_review(self, discussion_id: str, trigger: Trigger) -> None:
        discussion = await self._discussions.get_by_id(discussion_id)
        if discussion is None or not discussion.is_active:
            return

        issue = parse_issue_ref(trigger.ref)
        if issue is None:
            logger.warning(
                "Issue review %s has unexpected trigger ref %r, expected owner/repo#number",
                discussion_id, trigger.ref,
            )
            return

        personas = await self._personas.get_active_personas()
        lead = find_lead(personas, self._config)
        if lead is None:
            logger.info(
                "No lead persona for issue review %s, auto-approving", discussion_id,
            )
            await self._resolve(
                discussion, DiscussionStatus.CONSENSUS, ConsensusOutcome.APPROVED,
            )
            return

        history = await self._history(discussion)
        if history is None:
            reply = TRIAGE_FALLBACK_REPLY
        else:
            prompt = render_prompt(
                "issue_review",
                persona=lead,
                ref=str(issue),
                history=format_thread_history(history),
            )
            reply = await self._ask(lead, prompt, TRIAGE_FALLBACK_REPLY, discussion_id)
        verdict = parse_verdict(reply, TRIAGE_GRAMMAR)

        if isinstance(verdict, Ready):
            default, board_verdict = DEFAULT_READY_MESSAGE, "ready"
        elif isinstance(verdict, Close):
            default, board_verdict = DEFAULT_CLOSE_MESSAGE, "close"
        else:
            default, board_verdict = DEFAULT_DRAFT_MESSAGE, None

        await self._post(
            discussion,
            lead,
            humanize(verdict.message or default, allow_emoji=False, max_sentences=1),
        )
        await self._resolve(
            discussion, DiscussionStatus.CONSENSUS, ConsensusOutcome.APPROVED,
        )
        logger.info("Issue %s triaged as %s", issue, verdict.tag)

        if board_verdict is not None:
            await fire_and_forget(
                f"issue_status:{board_verdict}",
                lambda: self._board.update_issue_status(board_verdict, discussion_id, trigger),
                discussion_id,
            )

    # ── Helpers ───────────────────────────────────────────────

    async def _ask(
        self, persona: Persona, prompt: str, fallback: str, discussion_id: str,
    ) -> str:
        """Ask the persona for a verdict, degrading to ``fallback`` on failure."""
        logger.debug(
            "Consensus prompt for %s: %d chars", discussion_id, len(prompt),
        )
        try:
            return await self._responder.respond(persona, prompt)
        except Exception as e:
            logger.warning(
                "AI consensus evaluation failed for discussion %s: %s", discussion_id, e,
            )
            return fallback

    async def _history(self, discussion: Discussion) -> list[ThreadMessage] | None:
        """Fetch recent thread messages, or None when the transport fails."""
        try:
            return await self._transport.get_thread_history(
                discussion.channel_id, discussion.thread_ts, self._config.history_limit,
            )
        except Exception as e:
            logger.warning(
                "Reading thread history failed for discussion %s: %s", discussion.id, e,
            )
            return None

    async def _post(self, discussion: Discussion, persona: Persona, text: str) -> None:
        if not text or is_skip_message(text):
            logger.debug("Skipping post for discussion %s", discussion.id)
            return
        try:
            await self._transport.post_message(
                discussion.channel_id, text, persona, discussion.thread_ts,
            )
        except Exception as e:
            logger.warning("Posting to discussion %s failed: %s", discussion.id, e)

    async def _resolve(
        self,
        discussion: Discussion,
        status: DiscussionStatus,
        outcome: ConsensusOutcome,
    ) -> None:
        await self._discussions.update_status(discussion.id, status, outcome)
        logger.info(
            "Consensus reached for %s: %s/%s (trigger=%s)",
            discussion.id, status.value, outcome.value, discussion.trigger_type.value,
        )

    def _can_run_another_round(self, discussion: Discussion, replies_left: int) -> bool:
        return (
            discussion.round < self._config.max_rounds
            and replies_left >= self._config.min_replies_for_another_round
        )

    def _human_delay(self) -> float:
        return random.uniform(self._config.human_delay_min, self._config.human_delay_max)

    def _select_reviewers(
        self,
        discussion: Discussion,
        trigger: Trigger,
        personas: Sequence[Persona],
    ) -> list[Persona]:
        """Current participants minus the executor.

        Falls back to the trigger-type roster when nobody has posted yet.
        """
        by_id = {p.id: p for p in personas}
        reviewers = [by_id[pid] for pid in discussion.participants if pid in by_id]
        if not reviewers:
            reviewers = participating_personas(trigger.type, personas, self._config)

        executor = find_executor(personas, self._config)
        if executor is not None:
            reviewers = [p for p in reviewers if p.id != executor.id]
        return reviewers
