"""Shared helpers for the stats repositories."""
from __future__ import annotations

import logging
import secrets
import sqlite3
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable, Optional, TypeVar

import aiosqlite

from agentwatch.errors import CorruptRecordError, StoreWriteError

logger = logging.getLogger("agentwatch.db.stats")

T = TypeVar("T")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_DAY_MS = 24 * 60 * 60 * 1000
_RANGE_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_id() -> str:
    """``<epoch ms>-<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{now_ms()}-{suffix}"


def time_range_start(time_range: str, now: Optional[int] = None) -> int:
    """Lower start-time bound (epoch ms) for a stats time range; ``all`` is 0."""
    if time_range == "all":
        return 0
    days = _RANGE_DAYS.get(time_range)
    if days is None:
        raise ValueError(f"Unknown time range: {time_range}")
    return (now if now is not None else now_ms()) - days * _DAY_MS


def normalize_path(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    return path.replace("\\", "/")


def bool_to_int(value: Optional[bool]) -> Optional[int]:
    if value is None:
        return None
    return 1 if value else 0


def int_to_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return value == 1


def require(row: aiosqlite.Row, table: str, *columns: str) -> None:
    """Raise CorruptRecordError if any NOT NULL column came back NULL."""
    for column in columns:
        if row[column] is None:
            row_id = row["id"] if "id" in row.keys() else None
            raise CorruptRecordError(table, row_id, column)


def map_rows(rows: Iterable[aiosqlite.Row], mapper: Callable[[aiosqlite.Row], T]) -> list[T]:
    """Map rows, skipping (and logging) corrupt ones instead of failing the whole read."""
    mapped: list[T] = []
    for row in rows:
        try:
            mapped.append(mapper(row))
        except CorruptRecordError as e:
            logger.warning(f"Skipping corrupt record: {e}")
    return mapped


@asynccontextmanager
async def write_guard(db: aiosqlite.Connection, action: str) -> AsyncIterator[None]:
    """Commit on success; roll back and raise StoreWriteError on storage failures."""
    try:
        yield
        await db.commit()
    except (sqlite3.Error, OSError) as e:
        try:
            await db.rollback()
        except sqlite3.Error as rollback_error:
            logger.debug(f"Rollback after failed {action} also failed: {rollback_error}")
        logger.error(f"Failed to {action}: {e}")
        raise StoreWriteError(f"Failed to {action}: {e}") from e
