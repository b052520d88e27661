"""Persona roster store backed by SQLite."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import aiosqlite

from quorum.collaborators import PersonaStore
from quorum.schemas.discussion import Persona

logger = logging.getLogger(__name__)


class SqlitePersonaStore(PersonaStore):
    """Persona roster, ordered by insertion time."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def upsert(self, persona: Persona) -> None:
        """Insert a persona or update name, role, model and activity in place."""
        await self._db.execute(
            """
            INSERT INTO personas (id, name, role, is_active, model, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                role = excluded.role,
                is_active = excluded.is_active,
                model = excluded.model
            """,
            (
                persona.id,
                persona.name,
                persona.role,
                int(persona.is_active),
                persona.model,
                datetime.now(UTC).isoformat(),
            ),
        )
        await self._db.commit()
        logger.info("Saved persona %s (%s)", persona.name, persona.role)

    async def set_active(self, persona_id: str, active: bool) -> bool:
        """Toggle a persona; returns False when the id is unknown."""
        cursor = await self._db.execute(
            "UPDATE personas SET is_active = ? WHERE id = ?",
            (int(active), persona_id),
        )
        await self._db.commit()
        return cursor.rowcount > 0

    async def list_personas(self, include_inactive: bool = True) -> list[Persona]:
        sql = "SELECT * FROM personas"
        if not include_inactive:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY created_at, rowid"
        async with self._db.execute(sql) as cursor:
            rows = await cursor.fetchall()
        return [
            Persona(
                id=row["id"],
                name=row["name"],
                role=row["role"],
                is_active=bool(row["is_active"]),
                model=row["model"],
            )
            for row in rows
        ]

    async def get_active_personas(self) -> list[Persona]:
        return await self.list_personas(include_inactive=False)
