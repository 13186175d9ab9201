"""Dashboard aggregations over query events and session lifecycle records.

Day and hour buckets use the host's local time, matching what a user sees on
their own clock.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Any

import aiosqlite

from agentwatch import config
from agentwatch.db.repositories.utils import time_range_start
from agentwatch.models import (
    AgentTotals,
    DayCount,
    DayTotals,
    HourTotals,
    LocationTotals,
    SourceTotals,
    StatsAggregation,
)

logger = logging.getLogger("agentwatch.db.stats")

_LOCAL_DAY = "date(start_time / 1000, 'unixepoch', 'localtime')"


def _round_half_up(value: float) -> int:
    # round() is banker's rounding; averages here round .5 up.
    return int(math.floor(value + 0.5))


class SqliteAggregationRepository:
    """Read-only rollups for the usage dashboard."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def _fetchall(self, query: str, params: tuple[Any, ...]) -> list[aiosqlite.Row]:
        async with self.db.execute(query, params) as cur:
            return list(await cur.fetchall())

    async def _fetchone(self, query: str, params: tuple[Any, ...]) -> aiosqlite.Row | None:
        async with self.db.execute(query, params) as cur:
            return await cur.fetchone()

    async def _totals(self, start: int) -> tuple[int, int]:
        row = await self._fetchone(
            """SELECT COUNT(*) AS count, COALESCE(SUM(duration), 0) AS total_duration
               FROM query_events WHERE start_time >= ?""",
            (start,),
        )
        if row is None:
            return 0, 0
        return int(row["count"]), int(row["total_duration"])

    async def _by_agent(self, start: int) -> dict[str, AgentTotals]:
        rows = await self._fetchall(
            """SELECT agent_type, COUNT(*) AS count, COALESCE(SUM(duration), 0) AS duration
               FROM query_events WHERE start_time >= ?
               GROUP BY agent_type""",
            (start,),
        )
        return {
            row["agent_type"]: AgentTotals(count=row["count"], duration=row["duration"])
            for row in rows
            if row["agent_type"] is not None
        }

    async def _by_source(self, start: int) -> SourceTotals:
        rows = await self._fetchall(
            """SELECT source, COUNT(*) AS count
               FROM query_events WHERE start_time >= ?
               GROUP BY source""",
            (start,),
        )
        totals = SourceTotals()
        for row in rows:
            if row["source"] == "user":
                totals.user = row["count"]
            elif row["source"] == "auto":
                totals.auto = row["count"]
        return totals

    async def _by_location(self, start: int) -> LocationTotals:
        rows = await self._fetchall(
            """SELECT is_remote, COUNT(*) AS count
               FROM query_events WHERE start_time >= ?
               GROUP BY is_remote""",
            (start,),
        )
        totals = LocationTotals()
        for row in rows:
            if row["is_remote"] == 1:
                totals.remote = row["count"]
            else:
                # NULL predates remote tracking and counts as local
                totals.local += row["count"]
        return totals

    async def _by_day(self, start: int) -> list[DayTotals]:
        rows = await self._fetchall(
            f"""SELECT {_LOCAL_DAY} AS date, COUNT(*) AS count, COALESCE(SUM(duration), 0) AS duration
                FROM query_events WHERE start_time >= ?
                GROUP BY {_LOCAL_DAY}
                ORDER BY date ASC""",
            (start,),
        )
        return [DayTotals(date=row["date"], count=row["count"], duration=row["duration"]) for row in rows]

    async def _grouped_by_day(self, start: int, column: str) -> dict[str, list[DayTotals]]:
        rows = await self._fetchall(
            f"""SELECT {column} AS grp, {_LOCAL_DAY} AS date,
                       COUNT(*) AS count, COALESCE(SUM(duration), 0) AS duration
                FROM query_events WHERE start_time >= ?
                GROUP BY {column}, {_LOCAL_DAY}
                ORDER BY {column}, date ASC""",
            (start,),
        )
        result: dict[str, list[DayTotals]] = {}
        for row in rows:
            if row["grp"] is None:
                continue
            result.setdefault(row["grp"], []).append(
                DayTotals(date=row["date"], count=row["count"], duration=row["duration"])
            )
        return result

    async def _by_hour(self, start: int) -> list[HourTotals]:
        rows = await self._fetchall(
            """SELECT CAST(strftime('%H', start_time / 1000, 'unixepoch', 'localtime') AS INTEGER) AS hour,
                      COUNT(*) AS count, COALESCE(SUM(duration), 0) AS duration
               FROM query_events WHERE start_time >= ?
               GROUP BY hour
               ORDER BY hour ASC""",
            (start,),
        )
        return [HourTotals(hour=row["hour"], count=row["count"], duration=row["duration"]) for row in rows]

    async def _session_stats(self, start: int) -> dict[str, Any]:
        sessions = await self._fetchone(
            "SELECT COUNT(DISTINCT session_id) AS count FROM query_events WHERE start_time >= ?",
            (start,),
        )
        avg = await self._fetchone(
            """SELECT COALESCE(AVG(duration), 0) AS avg_duration
               FROM session_lifecycle
               WHERE created_at >= ? AND duration IS NOT NULL""",
            (start,),
        )
        by_agent = await self._fetchall(
            """SELECT agent_type, COUNT(*) AS count
               FROM session_lifecycle WHERE created_at >= ?
               GROUP BY agent_type""",
            (start,),
        )
        by_day = await self._fetchall(
            """SELECT date(created_at / 1000, 'unixepoch', 'localtime') AS date, COUNT(*) AS count
               FROM session_lifecycle WHERE created_at >= ?
               GROUP BY date(created_at / 1000, 'unixepoch', 'localtime')
               ORDER BY date ASC""",
            (start,),
        )
        return {
            "totalSessions": int(sessions["count"]) if sessions else 0,
            "sessionsByAgent": {row["agent_type"]: row["count"] for row in by_agent if row["agent_type"] is not None},
            "sessionsByDay": [DayCount(date=row["date"], count=row["count"]) for row in by_day],
            "avgSessionDuration": _round_half_up(avg["avg_duration"]) if avg else 0,
        }

    async def get_aggregated_stats(self, time_range: str) -> StatsAggregation:
        started = time.perf_counter()
        start = time_range_start(time_range)

        total_queries, total_duration = await self._totals(start)
        stats = StatsAggregation(
            totalQueries=total_queries,
            totalDuration=total_duration,
            avgDuration=_round_half_up(total_duration / total_queries) if total_queries else 0,
            byAgent=await self._by_agent(start),
            bySource=await self._by_source(start),
            byDay=await self._by_day(start),
            byLocation=await self._by_location(start),
            byHour=await self._by_hour(start),
            byAgentByDay=await self._grouped_by_day(start, "agent_type"),
            bySessionByDay=await self._grouped_by_day(start, "session_id"),
            **await self._session_stats(start),
        )

        elapsed_ms = (time.perf_counter() - started) * 1000
        if elapsed_ms > config.SLOW_AGGREGATION_MS:
            logger.warning(
                f"get_aggregated_stats took {elapsed_ms:.0f}ms "
                f"(threshold: {config.SLOW_AGGREGATION_MS}ms, range={time_range}, queries={total_queries})"
            )
        return stats
