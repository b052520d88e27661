"""Issue reference parsing for ``owner/repo#number`` trigger refs."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

_ISSUE_REF_RE = re.compile(r"^([^/\s]+)/([^#\s]+)#(\d+)$")


class IssueRef(BaseModel):
    """A GitHub issue addressed as ``owner/repo#number``."""

    owner: str
    repo: str
    number: int = Field(gt=0)

    @property
    def repo_slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return f"{self.repo_slug}#{self.number}"


def parse_issue_ref(ref: str) -> IssueRef | None:
    """Parse ``owner/repo#number``; returns None when the shape is wrong."""
    match = _ISSUE_REF_RE.match(ref.strip())
    if not match:
        return None
    number = int(match.group(3))
    if number <= 0:
        return None
    return IssueRef(owner=match.group(1), repo=match.group(2), number=number)
