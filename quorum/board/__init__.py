"""Issue-tracker adapters.

GitHub issues are driven through the gh CLI; issue triage refs use the
``owner/repo#number`` form.
"""

from quorum.board.gh import GhCli, GhCommandError
from quorum.board.github import GitHubBoardActions, build_issue_title
from quorum.board.refs import IssueRef, parse_issue_ref

__all__ = [
    "GhCli",
    "GhCommandError",
    "GitHubBoardActions",
    "IssueRef",
    "build_issue_title",
    "parse_issue_ref",
]
