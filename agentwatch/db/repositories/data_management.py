"""Retention cleanup and CSV export for the stats store."""
from __future__ import annotations

import csv
import io
import logging
import sqlite3
from datetime import datetime, timezone

import aiosqlite

from agentwatch.date_utils import format_datetime_utc
from agentwatch.db.repositories.query_events import SqliteQueryEventRepository
from agentwatch.db.repositories.utils import now_ms
from agentwatch.models import ClearDataResult, QueryEvent

logger = logging.getLogger("agentwatch.db.stats")

CSV_HEADERS = (
    "id",
    "sessionId",
    "agentType",
    "source",
    "startTime",
    "duration",
    "projectPath",
    "tabId",
    "isRemote",
)

_DAY_MS = 24 * 60 * 60 * 1000


def _csv_row(event: QueryEvent) -> list[str]:
    return [
        event.id,
        event.sessionId,
        event.agentType,
        event.source,
        str(event.startTime),
        str(event.duration),
        event.projectPath or "",
        event.tabId or "",
        "" if event.isRemote is None else ("true" if event.isRemote else "false"),
    ]


def events_to_csv(events: list[QueryEvent]) -> str:
    """Header plus one line per event, ``\\n``-separated with no trailing newline."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for event in events:
        writer.writerow(_csv_row(event))
    return buffer.getvalue().rstrip("\n")


class SqliteDataManagementRepository:
    """Bulk maintenance over the stats tables."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def _delete(self, query: str, cutoff: int) -> int:
        async with self.db.execute(query, (cutoff,)) as cur:
            return max(0, cur.rowcount)

    async def clear_old_data(self, older_than_days: int) -> ClearDataResult:
        """Delete records older than the cutoff from every stats table atomically."""
        if older_than_days <= 0:
            return ClearDataResult(success=False, error="older_than_days must be greater than 0")

        cutoff = now_ms() - older_than_days * _DAY_MS
        cutoff_label = format_datetime_utc(datetime.fromtimestamp(cutoff / 1000, tz=timezone.utc))
        logger.info(f"Clearing stats data older than {older_than_days} days (before {cutoff_label})")

        try:
            await self.db.execute("BEGIN")
            # Tasks first: they reference the sessions being removed.
            deleted_tasks = await self._delete(
                """DELETE FROM auto_run_tasks WHERE auto_run_session_id IN
                   (SELECT id FROM auto_run_sessions WHERE start_time < ?)""",
                cutoff,
            )
            deleted_sessions = await self._delete("DELETE FROM auto_run_sessions WHERE start_time < ?", cutoff)
            deleted_events = await self._delete("DELETE FROM query_events WHERE start_time < ?", cutoff)
            deleted_lifecycle = await self._delete("DELETE FROM session_lifecycle WHERE created_at < ?", cutoff)
            await self.db.commit()
        except sqlite3.Error as e:
            await self.db.rollback()
            logger.error(f"Failed to clear old stats data: {e}")
            return ClearDataResult(success=False, error=str(e))

        total = deleted_events + deleted_sessions + deleted_tasks + deleted_lifecycle
        logger.info(
            f"Cleared {total} old stats records ({deleted_events} query events, "
            f"{deleted_sessions} auto-run sessions, {deleted_tasks} auto-run tasks, "
            f"{deleted_lifecycle} session lifecycle)"
        )
        return ClearDataResult(
            success=True,
            deletedQueryEvents=deleted_events,
            deletedAutoRunSessions=deleted_sessions,
            deletedAutoRunTasks=deleted_tasks,
            deletedSessionLifecycle=deleted_lifecycle,
        )

    async def export_to_csv(self, time_range: str) -> str:
        events = await SqliteQueryEventRepository(self.db).list(time_range)
        return events_to_csv(events)
