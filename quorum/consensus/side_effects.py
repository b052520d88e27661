"""Fire-and-forget wrapper for side effects that follow a verdict.

A side effect (board update, issue opener, refinement request) runs only
after the discussion's state transition is committed. Its outcome is
logged and returned, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from quorum.schemas.verdict import SideEffectResult

logger = logging.getLogger(__name__)


async def fire_and_forget(
    name: str,
    call: Callable[[], Awaitable[SideEffectResult | None]],
    discussion_id: str,
) -> SideEffectResult:
    """Await a side effect, converting any failure into a logged result.

    Args:
        name: Label for logs and the returned result.
        call: Zero-argument factory for the side-effect awaitable. It
              may return a SideEffectResult, or None for callbacks
              that report nothing.
        discussion_id: Discussion the side effect belongs to.

    Returns:
        SideEffectResult describing the outcome.
    """
    try:
        outcome = await call()
    except Exception as e:
        logger.warning(
            "Side effect %s failed for discussion %s: %s", name, discussion_id, e,
        )
        return SideEffectResult(name=name, ok=False, detail=str(e)[:200])

    if outcome is None:
        outcome = SideEffectResult(name=name, ok=True)

    if outcome.ok:
        logger.info(
            "Side effect %s completed for discussion %s", name, discussion_id,
        )
    else:
        logger.warning(
            "Side effect %s reported failure for discussion %s: %s",
            name, discussion_id, outcome.detail,
        )
    return outcome
