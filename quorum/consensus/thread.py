"""Thread history helpers shared by the evaluator and contribution rounds."""

from __future__ import annotations

import re
from collections.abc import Sequence

from quorum.schemas.discussion import ThreadMessage


def format_thread_history(messages: Sequence[ThreadMessage]) -> str:
    """Render thread messages as ``Speaker: body`` lines for prompts."""
    lines = []
    for message in messages:
        body = re.sub(r"\s+", " ", message.text).strip()
        if not body:
            continue
        speaker = message.author.strip() or "Teammate"
        lines.append(f"{speaker}: {body}")
    return "\n".join(lines)


def count_thread_replies(messages: Sequence[ThreadMessage]) -> int:
    """Replies in a thread; the opening message is not a reply."""
    return max(0, len(messages) - 1)
