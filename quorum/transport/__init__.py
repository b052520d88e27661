"""Conversation transports for posting into discussion threads."""

from quorum.transport.slack import SlackTransport

__all__ = ["SlackTransport"]
