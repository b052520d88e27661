"""Discussion store backed by SQLite.

Implements the DiscussionStore interface the evaluator consumes, plus
the create and query operations the CLI needs. Status writes only leave
``active`` and round writes never move backwards, so a late writer can
not undo a resolution made elsewhere.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

import aiosqlite

from quorum.collaborators import DiscussionStore
from quorum.schemas.discussion import (
    ConsensusOutcome,
    Discussion,
    DiscussionStatus,
    Trigger,
    TriggerType,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class SqliteDiscussionStore(DiscussionStore):
    """Persistent discussion store.

    All methods are async and operate on an aiosqlite connection
    initialized by database.init_db().
    """

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def create(
        self,
        trigger: Trigger,
        channel_id: str,
        thread_ts: str,
        discussion_id: str | None = None,
    ) -> Discussion:
        """Insert a new active discussion for ``trigger``."""
        now = datetime.now(UTC)
        discussion = Discussion(
            id=discussion_id or uuid.uuid4().hex,
            project_path=trigger.project_path,
            trigger_type=trigger.type,
            trigger_ref=trigger.ref,
            channel_id=channel_id,
            thread_ts=thread_ts,
            created_at=now,
            updated_at=now,
        )
        await self._db.execute(
            """
            INSERT INTO discussions
                (id, project_path, trigger_type, trigger_ref, channel_id,
                 thread_ts, status, round, consensus_result, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
            """,
            (
                discussion.id,
                discussion.project_path,
                discussion.trigger_type.value,
                discussion.trigger_ref,
                discussion.channel_id,
                discussion.thread_ts,
                discussion.status.value,
                discussion.round,
                now.isoformat(),
                now.isoformat(),
            ),
        )
        await self._db.commit()
        logger.info(
            "Opened discussion %s for %s %s",
            discussion.id, trigger.type.value, trigger.ref,
        )
        return discussion

    async def get_by_id(self, discussion_id: str) -> Discussion | None:
        async with self._db.execute(
            "SELECT * FROM discussions WHERE id = ?", (discussion_id,),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return await self._row_to_discussion(row)

    async def list_discussions(
        self,
        status: DiscussionStatus | None = None,
        project_path: str | None = None,
        limit: int = 20,
    ) -> list[Discussion]:
        """List discussions, most recently updated first."""
        conditions: list[str] = []
        params: list[object] = []
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        if project_path:
            conditions.append("project_path = ?")
            params.append(project_path)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"""
            SELECT * FROM discussions
            {where}
            ORDER BY updated_at DESC
            LIMIT ?
        """
        params.append(limit)

        discussions: list[Discussion] = []
        async with self._db.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        for row in rows:
            discussions.append(await self._row_to_discussion(row))
        return discussions

    async def get_latest_by_trigger(
        self, project_path: str, trigger_type: TriggerType, trigger_ref: str,
    ) -> Discussion | None:
        """Return the newest discussion opened for the same trigger, if any."""
        async with self._db.execute(
            """
            SELECT * FROM discussions
            WHERE project_path = ? AND trigger_type = ? AND trigger_ref = ?
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (project_path, trigger_type.value, trigger_ref),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return await self._row_to_discussion(row)

    async def update_status(
        self,
        discussion_id: str,
        status: DiscussionStatus,
        consensus_result: ConsensusOutcome | None,
    ) -> None:
        cursor = await self._db.execute(
            """
            UPDATE discussions
            SET status = ?, consensus_result = ?, updated_at = ?
            WHERE id = ? AND status = ?
            """,
            (
                status.value,
                consensus_result.value if consensus_result else None,
                _now(),
                discussion_id,
                DiscussionStatus.ACTIVE.value,
            ),
        )
        await self._db.commit()
        if cursor.rowcount == 0:
            logger.debug(
                "Status update to %s ignored for %s (missing or already resolved)",
                status.value, discussion_id,
            )

    async def update_round(self, discussion_id: str, round_number: int) -> None:
        await self._db.execute(
            "UPDATE discussions SET round = ?, updated_at = ? WHERE id = ? AND round < ?",
            (round_number, _now(), discussion_id, round_number),
        )
        await self._db.commit()

    async def add_participant(self, discussion_id: str, persona_id: str) -> None:
        await self._db.execute(
            """
            INSERT OR IGNORE INTO discussion_participants (discussion_id, persona_id)
            VALUES (?, ?)
            """,
            (discussion_id, persona_id),
        )
        await self._db.execute(
            "UPDATE discussions SET updated_at = ? WHERE id = ?",
            (_now(), discussion_id),
        )
        await self._db.commit()

    async def _participants(self, discussion_id: str) -> list[str]:
        async with self._db.execute(
            "SELECT persona_id FROM discussion_participants"
            " WHERE discussion_id = ? ORDER BY seq",
            (discussion_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row["persona_id"] for row in rows]

    async def _row_to_discussion(self, row: aiosqlite.Row) -> Discussion:
        return Discussion(
            id=row["id"],
            project_path=row["project_path"],
            trigger_type=TriggerType(row["trigger_type"]),
            trigger_ref=row["trigger_ref"],
            channel_id=row["channel_id"],
            thread_ts=row["thread_ts"],
            status=DiscussionStatus(row["status"]),
            round=row["round"],
            participants=await self._participants(row["id"]),
            consensus_result=(
                ConsensusOutcome(row["consensus_result"])
                if row["consensus_result"] else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
