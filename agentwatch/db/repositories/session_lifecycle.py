"""SQLite storage for agent session creation/closure events."""
from __future__ import annotations

import logging

import aiosqlite

from agentwatch.db.repositories.utils import (
    bool_to_int,
    generate_id,
    int_to_bool,
    map_rows,
    normalize_path,
    require,
    time_range_start,
    write_guard,
)
from agentwatch.models import SessionLifecycleCreate, SessionLifecycleEvent

logger = logging.getLogger("agentwatch.db.stats")


def map_session_lifecycle_row(row: aiosqlite.Row) -> SessionLifecycleEvent:
    require(row, "session_lifecycle", "session_id", "agent_type", "created_at")
    return SessionLifecycleEvent(
        id=row["id"],
        sessionId=row["session_id"],
        agentType=row["agent_type"],
        projectPath=row["project_path"],
        createdAt=row["created_at"],
        closedAt=row["closed_at"],
        duration=row["duration"],
        isRemote=int_to_bool(row["is_remote"]),
    )


class SqliteSessionLifecycleRepository:
    """SQLite-backed session lifecycle storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def record_created(self, event: SessionLifecycleCreate) -> str:
        event_id = generate_id()
        async with write_guard(self.db, "record session creation"):
            await self.db.execute(
                """INSERT INTO session_lifecycle (
                    id, session_id, agent_type, project_path, created_at, is_remote
                ) VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    event.sessionId,
                    event.agentType,
                    normalize_path(event.projectPath),
                    event.createdAt,
                    bool_to_int(event.isRemote),
                ),
            )
        logger.debug(f"Recorded session created: {event.sessionId}")
        return event_id

    async def record_closed(self, session_id: str, closed_at: int) -> bool:
        """Stamp closure time and duration; False when the session was never recorded."""
        async with self.db.execute(
            "SELECT created_at FROM session_lifecycle WHERE session_id = ?",
            (session_id,),
        ) as cur:
            row = await cur.fetchone()
        if row is None or row["created_at"] is None:
            logger.debug(f"Session not found for closure: {session_id}")
            return False

        duration = closed_at - row["created_at"]
        async with write_guard(self.db, "record session closure"):
            async with self.db.execute(
                "UPDATE session_lifecycle SET closed_at = ?, duration = ? WHERE session_id = ?",
                (closed_at, duration, session_id),
            ) as cur:
                updated = cur.rowcount > 0
        logger.debug(f"Recorded session closed: {session_id}, duration: {duration}ms")
        return updated

    async def list(self, time_range: str) -> list[SessionLifecycleEvent]:
        async with self.db.execute(
            "SELECT * FROM session_lifecycle WHERE created_at >= ? ORDER BY created_at DESC",
            (time_range_start(time_range),),
        ) as cur:
            rows = await cur.fetchall()
        return map_rows(rows, map_session_lifecycle_row)
