"""Quorum — round-bounded consensus for AI persona discussions."""

__version__ = "0.1.0"
