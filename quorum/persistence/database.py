"""SQLite database layer for discussions and personas.

Manages the SQLite connection and schema creation. Uses aiosqlite for
async access with WAL mode for concurrent read performance.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

_MEMORY = ":memory:"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS discussions (
    id               TEXT PRIMARY KEY,
    project_path     TEXT NOT NULL,
    trigger_type     TEXT NOT NULL,
    trigger_ref      TEXT NOT NULL,
    channel_id       TEXT NOT NULL,
    thread_ts        TEXT NOT NULL,
    status           TEXT NOT NULL DEFAULT 'active',
    round            INTEGER NOT NULL DEFAULT 1,
    consensus_result TEXT,
    created_at       TEXT NOT NULL,
    updated_at       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS discussion_participants (
    seq           INTEGER PRIMARY KEY AUTOINCREMENT,
    discussion_id TEXT NOT NULL REFERENCES discussions(id) ON DELETE CASCADE,
    persona_id    TEXT NOT NULL,
    UNIQUE (discussion_id, persona_id)
);

CREATE TABLE IF NOT EXISTS personas (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL,
    role       TEXT NOT NULL,
    is_active  INTEGER NOT NULL DEFAULT 1,
    model      TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_discussions_trigger
    ON discussions(project_path, trigger_type, trigger_ref);
CREATE INDEX IF NOT EXISTS idx_discussions_status ON discussions(status);
CREATE INDEX IF NOT EXISTS idx_participants_discussion
    ON discussion_participants(discussion_id);
"""


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Open the database and create tables if needed.

    Creates parent directories for file databases, enables WAL mode and
    foreign keys, then runs the schema DDL. ``:memory:`` is accepted for
    throwaway databases.
    """
    if db_path == _MEMORY:
        target = _MEMORY
    else:
        resolved = Path(db_path).expanduser()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        target = str(resolved)

    db = await aiosqlite.connect(target)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    await db.executescript(_SCHEMA)
    await db.commit()

    logger.info("Quorum database initialized at %s", target)
    return db


async def close_db(db: aiosqlite.Connection) -> None:
    """Close the database connection."""
    await db.close()
