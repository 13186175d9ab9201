"""SQLite storage for completed query events."""
from __future__ import annotations

import logging
from typing import Any, Optional

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
from agentwatch.models import QueryEvent, QueryEventCreate, StatsFilters

logger = logging.getLogger("agentwatch.db.stats")


def map_query_event_row(row: aiosqlite.Row) -> QueryEvent:
    require(row, "query_events", "session_id", "agent_type", "source", "start_time", "duration")
    return QueryEvent(
        id=row["id"],
        sessionId=row["session_id"],
        agentType=row["agent_type"],
        source=row["source"],
        startTime=row["start_time"],
        duration=row["duration"],
        projectPath=row["project_path"],
        tabId=row["tab_id"],
        isRemote=int_to_bool(row["is_remote"]),
    )


class SqliteQueryEventRepository:
    """SQLite-backed query event storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def insert(self, event: QueryEventCreate) -> str:
        event_id = generate_id()
        async with write_guard(self.db, "insert query event"):
            await self.db.execute(
                """INSERT INTO query_events (
                    id, session_id, agent_type, source, start_time, duration,
                    project_path, tab_id, is_remote
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    event.sessionId,
                    event.agentType,
                    event.source,
                    event.startTime,
                    event.duration,
                    normalize_path(event.projectPath),
                    event.tabId,
                    bool_to_int(event.isRemote),
                ),
            )
        logger.debug(f"Inserted query event {event_id}")
        return event_id

    async def list(self, time_range: str, filters: Optional[StatsFilters] = None) -> list[QueryEvent]:
        query = "SELECT * FROM query_events WHERE start_time >= ?"
        params: list[Any] = [time_range_start(time_range)]

        if filters is not None:
            if filters.agentType:
                query += " AND agent_type = ?"
                params.append(filters.agentType)
            if filters.source:
                query += " AND source = ?"
                params.append(filters.source)
            if filters.projectPath:
                query += " AND project_path = ?"
                params.append(normalize_path(filters.projectPath))
            if filters.sessionId:
                query += " AND session_id = ?"
                params.append(filters.sessionId)

        query += " ORDER BY start_time DESC"
        async with self.db.execute(query, params) as cur:
            rows = await cur.fetchall()
        return map_rows(rows, map_query_event_row)
