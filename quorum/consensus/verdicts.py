"""Verdict grammar parsing.

Each flow has a closed grammar of colon-terminated leading tags. The
parser matches the tag literally (case-sensitive) and falls back to the
grammar's designated variant for anything it does not recognize, so a
malformed reply can never silently approve.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from quorum.schemas.verdict import (
    Approve,
    Changes,
    Close,
    Draft,
    Human,
    Ready,
    Verdict,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerdictGrammar:
    """A closed set of verdict variants plus the fallback for bad input."""

    name: str
    variants: tuple[type[Verdict], ...]
    fallback: type[Verdict]
    _pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        tags = "|".join(re.escape(tag) for tag in self.tags)
        object.__setattr__(
            self, "_pattern", re.compile(rf"^({tags}):\s*(.*)$", re.DOTALL),
        )

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(_tag_of(v) for v in self.variants)

    def variant_for(self, tag: str) -> type[Verdict]:
        for variant in self.variants:
            if _tag_of(variant) == tag:
                return variant
        return self.fallback

    def match(self, text: str) -> re.Match[str] | None:
        return self._pattern.match(text)


def _tag_of(variant: type[Verdict]) -> str:
    return variant.model_fields["tag"].default


MAIN_GRAMMAR = VerdictGrammar(
    name="main", variants=(Approve, Changes, Human), fallback=Human,
)
TRIAGE_GRAMMAR = VerdictGrammar(
    name="triage", variants=(Ready, Close, Draft), fallback=Draft,
)


def parse_verdict(text: str, grammar: VerdictGrammar) -> Verdict:
    """Parse an AI reply into one tagged variant of ``grammar``.

    Leading whitespace is ignored; the tag must be followed by a colon.
    The message body is the remainder with surrounding whitespace
    stripped. Unmatched input yields the fallback variant carrying the
    whole trimmed reply as its message.
    """
    stripped = (text or "").strip()
    match = grammar.match(stripped)
    if match:
        variant = grammar.variant_for(match.group(1))
        return variant(message=match.group(2).strip())

    logger.warning(
        "Could not parse %s verdict (%d chars), defaulting to %s",
        grammar.name, len(stripped), _tag_of(grammar.fallback),
    )
    return grammar.fallback(message=stripped)
