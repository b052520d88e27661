"""Text humanization for persona replies.

Post-processes AI-authored text so it reads like a terse teammate
message: strips markdown scaffolding and canned assistant openers,
drops repeated sentences, enforces an emoji policy, and caps length.
The SKIP sentinel survives untouched so callers can suppress a post.
"""

from __future__ import annotations

import re

SKIP = "SKIP"

# Pictographic code points (the practical subset of Extended_Pictographic)
_EMOJI_RE = re.compile(
    "["
    "\U0001F000-\U0001FAFF"
    "\u2600-\u27BF"
    "\u2300-\u23FF"
    "\u2B00-\u2BFF"
    "\u3030\u303D\u3297\u3299"
    "\u203C\u2049\u2122\u2139\u2194-\u2199\u21A9\u21AA"
    "]"
)
_FACIAL_EMOJI_RE = re.compile(
    "[\U0001F600-\U0001F64F\U0001F910-\U0001F92F\U0001F970-\U0001F97A]"
)
# Variation selector / zero-width joiner left behind by removed emoji
_EMOJI_GLUE_RE = re.compile("[\uFE0F\u200D]")

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")

# Only strip when followed by generic continuation, not substantive content.
_CANNED_PREFIXES = [
    re.compile(r"^great question[,.! ]+(?=(?:i|we|let|the|this|here|so)\b)", re.IGNORECASE),
    re.compile(r"^of course[,.! ]+(?=(?:i|we|let|the|this|here|so)\b)", re.IGNORECASE),
    re.compile(r"^certainly[,.! ]+(?=(?:i|we|let|the|this|here|so)\b)", re.IGNORECASE),
    re.compile(r"^you['’]re absolutely right[,.! ]+", re.IGNORECASE),
    re.compile(r"^i hope this helps[,.! ]*", re.IGNORECASE),
]


def is_skip_message(text: str) -> bool:
    """Check whether the text is the SKIP sentinel."""
    return text.strip().upper() == SKIP


def normalize_text(text: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace (for comparison)."""
    lowered = re.sub(r"[^a-z0-9\s]", " ", text.lower())
    return re.sub(r"\s+", " ", lowered).strip()


def _split_sentences(text: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_SPLIT_RE.split(text) if part.strip()]


def dedupe_repeated_sentences(text: str) -> str:
    """Remove sentences that repeat an earlier one."""
    parts = _split_sentences(text)
    if len(parts) <= 1:
        return text

    unique: list[str] = []
    seen: set[str] = set()
    for part in parts:
        normalized = normalize_text(part)
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        unique.append(part)
    return " ".join(unique)


def apply_emoji_policy(text: str, allow_emoji: bool, allow_non_facial_emoji: bool) -> str:
    """Strip all emoji, or keep a single one (facial preferred)."""
    if not allow_emoji:
        return _EMOJI_GLUE_RE.sub("", _EMOJI_RE.sub("", text))

    emojis = _EMOJI_RE.findall(text)
    if not emojis:
        return text

    chosen = next((e for e in emojis if _FACIAL_EMOJI_RE.match(e)), None)
    if chosen is None and allow_non_facial_emoji:
        chosen = emojis[0]
    if chosen is None:
        return _EMOJI_GLUE_RE.sub("", _EMOJI_RE.sub("", text))

    kept = False

    def _keep_first(match: re.Match[str]) -> str:
        nonlocal kept
        if not kept and match.group(0) == chosen:
            kept = True
            return chosen
        return ""

    return _EMOJI_RE.sub(_keep_first, text)


def limit_emoji_count(text: str, max_emojis: int) -> str:
    """Keep only the first ``max_emojis`` emoji in the text."""
    seen = 0

    def _limit(match: re.Match[str]) -> str:
        nonlocal seen
        seen += 1
        return match.group(0) if seen <= max_emojis else ""

    return _EMOJI_RE.sub(_limit, text)


def trim_to_sentences(text: str, max_sentences: int) -> str:
    """Trim text to at most ``max_sentences`` sentences."""
    parts = _split_sentences(text)
    if len(parts) <= max_sentences:
        return text.strip()
    return " ".join(parts[:max_sentences]).strip()


def _strip_canned_openers(text: str) -> str:
    while True:
        before = text
        for pattern in _CANNED_PREFIXES:
            text = pattern.sub("", text).strip()
        if text == before:
            return text


def _humanize_once(
    raw: str,
    allow_emoji: bool,
    allow_non_facial_emoji: bool,
    max_sentences: int | None,
    max_chars: int | None,
) -> str:
    text = raw.strip()
    if not text:
        return text
    if is_skip_message(text):
        return SKIP

    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*[-*]\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"\*\*(.*?)\*\*", r"\1", text)
    text = re.sub(r"\s+", " ", text).strip()

    text = _strip_canned_openers(text)
    text = dedupe_repeated_sentences(text)
    text = apply_emoji_policy(text, allow_emoji, allow_non_facial_emoji)
    text = limit_emoji_count(text, 1)
    text = re.sub(r"\s+", " ", text).strip()

    if max_sentences is not None:
        text = trim_to_sentences(text, max_sentences)

    if max_chars is not None and len(text) > max_chars:
        text = f"{text[: max_chars - 3].rstrip()}..."

    return text


def humanize(
    raw: str,
    *,
    allow_emoji: bool = True,
    allow_non_facial_emoji: bool = True,
    max_sentences: int | None = None,
    max_chars: int | None = None,
) -> str:
    """Shape an AI reply into a short, natural thread message.

    Deterministic and idempotent: humanizing an already humanized
    message returns it unchanged. A SKIP reply comes back as exactly
    ``SKIP``.

    One cleanup pass can expose new markup (``"- - item"`` or an opener
    in front of a heading), so passes repeat until the text is stable.
    After the first pass every change only deletes characters, which
    bounds the loop.
    """
    text = _humanize_once(raw, allow_emoji, allow_non_facial_emoji, max_sentences, max_chars)
    while True:
        again = _humanize_once(
            text, allow_emoji, allow_non_facial_emoji, max_sentences, max_chars,
        )
        if again == text:
            return text
        text = again
