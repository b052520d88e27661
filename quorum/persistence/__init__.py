"""Quorum persistence layer.

SQLite-backed storage for discussion records and the persona roster.
"""

from quorum.persistence.database import close_db, init_db
from quorum.persistence.discussions import SqliteDiscussionStore
from quorum.persistence.personas import SqlitePersonaStore

__all__ = [
    "SqliteDiscussionStore",
    "SqlitePersonaStore",
    "close_db",
    "init_db",
]
