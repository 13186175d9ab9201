"""Telemetry store schema and versioned migrations.

The applied version lives in ``PRAGMA user_version``; every attempt, successful or
not, is recorded in the ``_migrations`` table. Each migration runs in its own
transaction together with its history row and version bump.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import aiosqlite

from agentwatch.errors import MigrationError
from agentwatch.models import MigrationRecord

logger = logging.getLogger("agentwatch.db")

_MIGRATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS _migrations (
    version       INTEGER PRIMARY KEY,
    description   TEXT NOT NULL,
    applied_at    INTEGER NOT NULL,
    status        TEXT NOT NULL CHECK(status IN ('success', 'failed')),
    error_message TEXT
)
"""

# Internal key-value storage
_META_TABLE = """
CREATE TABLE IF NOT EXISTS _meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""

# ── v1: query events and Auto Run records ─────────────────────────
_V1_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS query_events (
        id           TEXT PRIMARY KEY,
        session_id   TEXT NOT NULL,
        agent_type   TEXT NOT NULL,
        source       TEXT NOT NULL CHECK(source IN ('user', 'auto')),
        start_time   INTEGER NOT NULL,
        duration     INTEGER NOT NULL,
        project_path TEXT,
        tab_id       TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_query_start_time ON query_events(start_time)",
    "CREATE INDEX IF NOT EXISTS idx_query_agent_type ON query_events(agent_type)",
    "CREATE INDEX IF NOT EXISTS idx_query_source ON query_events(source)",
    "CREATE INDEX IF NOT EXISTS idx_query_session ON query_events(session_id)",
    "CREATE INDEX IF NOT EXISTS idx_query_project_path ON query_events(project_path)",
    "CREATE INDEX IF NOT EXISTS idx_query_agent_time ON query_events(agent_type, start_time)",
    """
    CREATE TABLE IF NOT EXISTS auto_run_sessions (
        id              TEXT PRIMARY KEY,
        session_id      TEXT NOT NULL,
        agent_type      TEXT NOT NULL,
        document_path   TEXT,
        start_time      INTEGER NOT NULL,
        duration        INTEGER NOT NULL,
        tasks_total     INTEGER,
        tasks_completed INTEGER,
        project_path    TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_auto_session_start ON auto_run_sessions(start_time)",
    """
    CREATE TABLE IF NOT EXISTS auto_run_tasks (
        id                  TEXT PRIMARY KEY,
        auto_run_session_id TEXT NOT NULL REFERENCES auto_run_sessions(id),
        session_id          TEXT NOT NULL,
        agent_type          TEXT NOT NULL,
        task_index          INTEGER NOT NULL,
        task_content        TEXT,
        start_time          INTEGER NOT NULL,
        duration            INTEGER NOT NULL,
        success             INTEGER NOT NULL CHECK(success IN (0, 1))
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_task_auto_session ON auto_run_tasks(auto_run_session_id)",
    "CREATE INDEX IF NOT EXISTS idx_task_start ON auto_run_tasks(start_time)",
)

# ── v2: remote (SSH) session flag ─────────────────────────────────
_V2_STATEMENTS = (
    "ALTER TABLE query_events ADD COLUMN is_remote INTEGER",
    "CREATE INDEX IF NOT EXISTS idx_query_is_remote ON query_events(is_remote)",
)

# ── v3: session lifecycle ─────────────────────────────────────────
_V3_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS session_lifecycle (
        id           TEXT PRIMARY KEY,
        session_id   TEXT NOT NULL UNIQUE,
        agent_type   TEXT NOT NULL,
        project_path TEXT,
        created_at   INTEGER NOT NULL,
        closed_at    INTEGER,
        duration     INTEGER,
        is_remote    INTEGER
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_session_created_at ON session_lifecycle(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_session_agent_type ON session_lifecycle(agent_type)",
)


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    up: Callable[[aiosqlite.Connection], Awaitable[None]]


def _statements(statements: tuple[str, ...]) -> Callable[[aiosqlite.Connection], Awaitable[None]]:
    async def up(db: aiosqlite.Connection) -> None:
        for sql in statements:
            await db.execute(sql)

    return up


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "Initial schema: query_events, auto_run_sessions, auto_run_tasks tables", _statements(_V1_STATEMENTS)),
    Migration(2, "Add is_remote column to query_events for tracking SSH sessions", _statements(_V2_STATEMENTS)),
    Migration(3, "Add session_lifecycle table for tracking session creation and closure", _statements(_V3_STATEMENTS)),
)


def get_target_version(migrations: tuple[Migration, ...] = MIGRATIONS) -> int:
    return max((m.version for m in migrations), default=0)


async def get_current_version(db: aiosqlite.Connection) -> int:
    async with db.execute("PRAGMA user_version") as cur:
        row = await cur.fetchone()
    return int(row[0]) if row else 0


async def has_pending_migrations(db: aiosqlite.Connection, migrations: tuple[Migration, ...] = MIGRATIONS) -> bool:
    return await get_current_version(db) < get_target_version(migrations)


async def ensure_meta_table(db: aiosqlite.Connection) -> None:
    await db.execute(_META_TABLE)
    await db.commit()


async def _record(db: aiosqlite.Connection, migration: Migration, status: str, error: str | None) -> None:
    await db.execute(
        """INSERT OR REPLACE INTO _migrations (version, description, applied_at, status, error_message)
           VALUES (?, ?, ?, ?, ?)""",
        (migration.version, migration.description, int(time.time() * 1000), status, error),
    )


async def _apply(db: aiosqlite.Connection, migration: Migration) -> None:
    started = time.monotonic()
    logger.info(f"Applying migration v{migration.version}: {migration.description}")
    try:
        await db.execute("BEGIN")
        await migration.up(db)
        await _record(db, migration, "success", None)
        await db.execute(f"PRAGMA user_version = {int(migration.version)}")
        await db.commit()
    except Exception as exc:
        await db.rollback()
        await _record(db, migration, "failed", str(exc))
        await db.commit()
        logger.error(f"Migration v{migration.version} failed: {exc}")
        raise MigrationError(migration.version, str(exc)) from exc

    elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.info(f"Migration v{migration.version} completed in {elapsed_ms}ms")


async def run_migrations(db: aiosqlite.Connection, migrations: tuple[Migration, ...] = MIGRATIONS) -> None:
    """Apply every migration newer than ``PRAGMA user_version``, in order."""
    await db.execute(_MIGRATIONS_TABLE)
    await db.commit()

    current_version = await get_current_version(db)
    pending = sorted((m for m in migrations if m.version > current_version), key=lambda m: m.version)
    if not pending:
        logger.debug(f"Schema is up to date (version {current_version})")
        return

    logger.info(f"Running {len(pending)} pending migration(s) (current version: {current_version})")
    for migration in pending:
        await _apply(db, migration)


async def get_migration_history(db: aiosqlite.Connection) -> list[MigrationRecord]:
    async with db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='_migrations'"
    ) as cur:
        if await cur.fetchone() is None:
            return []

    async with db.execute(
        """SELECT version, description, applied_at, status, error_message
           FROM _migrations ORDER BY version ASC"""
    ) as cur:
        rows = await cur.fetchall()
    return [
        MigrationRecord(
            version=row["version"],
            description=row["description"],
            appliedAt=row["applied_at"],
            status=row["status"],
            errorMessage=row["error_message"],
        )
        for row in rows
    ]
