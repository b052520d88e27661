"""Deliberation consensus engine.

The evaluator drives a discussion thread to a verdict rendered by the
lead persona; contribution rounds, verdict parsing and reply shaping
live alongside it.
"""

from quorum.consensus.contributions import DeliberationCallbacks
from quorum.consensus.evaluator import ConsensusEvaluator
from quorum.consensus.humanizer import SKIP, humanize, is_skip_message
from quorum.consensus.locks import DiscussionLocks
from quorum.consensus.verdicts import MAIN_GRAMMAR, TRIAGE_GRAMMAR, parse_verdict

__all__ = [
    "MAIN_GRAMMAR",
    "SKIP",
    "TRIAGE_GRAMMAR",
    "ConsensusEvaluator",
    "DeliberationCallbacks",
    "DiscussionLocks",
    "humanize",
    "is_skip_message",
    "parse_verdict",
]
