"""Tagged verdict variants and side-effect results.

The lead persona's reply is parsed into exactly one variant of a closed
union per flow: Approve | Changes | Human for the main deliberation
loop, and Ready | Close | Draft for issue triage.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class Verdict(BaseModel):
    """Base for all tagged verdict variants."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(default="", description="Body text following the tag")


class Approve(Verdict):
    """The discussion is done; ship it."""

    tag: Literal["APPROVE"] = "APPROVE"


class Changes(Verdict):
    """Something specific still needs work."""

    tag: Literal["CHANGES"] = "CHANGES"


class Human(Verdict):
    """A human has to make the call."""

    tag: Literal["HUMAN"] = "HUMAN"


class Ready(Verdict):
    """Issue is valid and prioritized; move it to Ready."""

    tag: Literal["READY"] = "READY"


class Close(Verdict):
    """Issue is invalid, a duplicate, or won't be fixed."""

    tag: Literal["CLOSE"] = "CLOSE"


class Draft(Verdict):
    """Issue is valid but needs more context or is low priority."""

    tag: Literal["DRAFT"] = "DRAFT"


MainVerdict = Annotated[Approve | Changes | Human, Field(discriminator="tag")]
TriageVerdict = Annotated[Ready | Close | Draft, Field(discriminator="tag")]


class SideEffectResult(BaseModel):
    """Outcome of a fire-and-forget side effect.

    Side effects never alter a committed state transition; the evaluator
    only logs this result.
    """

    name: str = Field(description="Side effect that ran, e.g. 'issue_status:ready'")
    ok: bool = Field(description="Whether the side effect completed")
    detail: str = Field(default="", description="Short success note or failure reason")
