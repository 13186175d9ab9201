"""Database connection factory.

Opens the telemetry store's SQLite file with WAL mode and a busy timeout.
"""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import aiosqlite

from agentwatch import config

logger = logging.getLogger("agentwatch.db")


async def open_connection(db_path: Path | str, busy_timeout_ms: int | None = None) -> aiosqlite.Connection:
    """Open (creating if absent) a SQLite database and apply the standard pragmas."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    timeout = config.BUSY_TIMEOUT_MS if busy_timeout_ms is None else busy_timeout_ms

    conn = await aiosqlite.connect(str(db_path))
    conn.row_factory = aiosqlite.Row
    try:
        # WAL lets dashboard reads proceed while inserts are committing
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute(f"PRAGMA busy_timeout={int(timeout)}")
    except sqlite3.Error:
        await conn.close()
        raise
    logger.info(f"Database connection established: {db_path}")
    return conn
