"""Telemetry store: lifecycle, maintenance and the public stats API.

The store owns a single aiosqlite connection. ``initialize()`` opens the file
(recovering from corruption by backing the file up and starting fresh), runs
pending migrations and then the weekly vacuum schedule. Every other operation
requires the store to be READY.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import os
import shutil
import sqlite3
from pathlib import Path
from typing import Optional

import aiosqlite

from agentwatch import config
from agentwatch.db import sqlite_migrations
from agentwatch.db.connection import open_connection
from agentwatch.db.repositories import (
    SqliteAggregationRepository,
    SqliteAutoRunRepository,
    SqliteDataManagementRepository,
    SqliteQueryEventRepository,
    SqliteSessionLifecycleRepository,
)
from agentwatch.db.repositories.utils import now_ms
from agentwatch.errors import StoreNotReadyError
from agentwatch.models import (
    AutoRunSession,
    AutoRunSessionCreate,
    AutoRunSessionUpdate,
    AutoRunTask,
    AutoRunTaskCreate,
    BackupResult,
    ClearDataResult,
    IntegrityCheckResult,
    MigrationRecord,
    QueryEvent,
    QueryEventCreate,
    SessionLifecycleCreate,
    SessionLifecycleEvent,
    StatsAggregation,
    StatsFilters,
    VacuumResult,
)

logger = logging.getLogger("agentwatch.db.stats")

# At most one scheduled vacuum per process, however many stores initialize.
_vacuum_ran = False


class StoreState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


async def _integrity_errors(db: aiosqlite.Connection) -> list[str]:
    async with db.execute("PRAGMA integrity_check") as cur:
        rows = await cur.fetchall()
    messages = [str(row[0]) for row in rows]
    if messages == ["ok"]:
        return []
    return messages


async def _checkpoint(db: aiosqlite.Connection) -> None:
    async with db.execute("PRAGMA wal_checkpoint(TRUNCATE)") as cur:
        await cur.fetchall()


class StatsStore:
    def __init__(self, db_path: Optional[Path] = None, vacuum_interval_seconds: Optional[int] = None):
        self.db_path = Path(db_path) if db_path is not None else config.STATS_DB_PATH
        self.vacuum_interval_seconds = (
            config.VACUUM_INTERVAL_SECONDS if vacuum_interval_seconds is None else vacuum_interval_seconds
        )
        self.state = StoreState.UNINITIALIZED
        self._db: Optional[aiosqlite.Connection] = None
        self._init_lock = asyncio.Lock()

    @property
    def vacuum_marker_path(self) -> Path:
        return Path(f"{self.db_path}.vacuum")

    def is_ready(self) -> bool:
        return self.state is StoreState.READY and self._db is not None

    def _require_db(self) -> aiosqlite.Connection:
        if self.state is not StoreState.READY or self._db is None:
            raise StoreNotReadyError(f"Stats store is {self.state.value}")
        return self._db

    # ── Lifecycle ──────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the database and bring its schema up to date.

        Concurrent callers wait on the same lock; once READY further calls are
        no-ops. Migration or open failures propagate and leave the store unusable.
        """
        async with self._init_lock:
            if self.state is StoreState.READY:
                return
            if self.state is StoreState.CLOSED:
                raise StoreNotReadyError("Stats store has been closed")

            self.state = StoreState.INITIALIZING
            db: Optional[aiosqlite.Connection] = None
            try:
                db = await self._open_with_recovery()
                await sqlite_migrations.ensure_meta_table(db)
                await sqlite_migrations.run_migrations(db)
            except Exception:
                self.state = StoreState.UNINITIALIZED
                if db is not None:
                    await db.close()
                logger.error(f"Failed to initialize stats database at {self.db_path}")
                raise

            self._db = db
            self.state = StoreState.READY
            logger.info(f"Stats database initialized at {self.db_path}")

            await self._vacuum_if_due()

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Stats database closed")
        self.state = StoreState.CLOSED

    async def _open_with_recovery(self) -> aiosqlite.Connection:
        if not self.db_path.exists():
            return await open_connection(self.db_path)

        db: Optional[aiosqlite.Connection] = None
        try:
            db = await open_connection(self.db_path)
            errors = await _integrity_errors(db)
            if not errors:
                return db
            logger.error(f"Database integrity check failed: {', '.join(errors)}")
        except sqlite3.DatabaseError as e:
            logger.error(f"Failed to open database: {e}")
        if db is not None:
            try:
                await db.close()
            except sqlite3.Error as e:
                logger.debug(f"Error closing corrupted database: {e}")

        await asyncio.to_thread(self._discard_corrupted_file)
        db = await open_connection(self.db_path)
        logger.info("Fresh database created after corruption recovery")
        return db

    def _discard_corrupted_file(self) -> None:
        logger.warning("Attempting to recover from database corruption...")
        backup = self._copy_database_file()
        if not backup.success:
            corrupted_path = Path(f"{self.db_path}.corrupted.{now_ms()}")
            os.replace(self.db_path, corrupted_path)
            logger.warning(f"Moved corrupted database to {corrupted_path}")

        for suffix in ("-wal", "-shm"):
            Path(f"{self.db_path}{suffix}").unlink(missing_ok=True)
        self.db_path.unlink(missing_ok=True)
        logger.info("Corrupted database removed, will create fresh database")

    # ── Maintenance ────────────────────────────────────────────────

    def get_database_size(self) -> int:
        try:
            return self.db_path.stat().st_size
        except OSError:
            return 0

    def _copy_database_file(self) -> BackupResult:
        if not self.db_path.exists():
            return BackupResult(success=False, error="Database file does not exist")
        backup_path = f"{self.db_path}.backup.{now_ms()}"
        try:
            shutil.copyfile(self.db_path, backup_path)
        except OSError as e:
            logger.error(f"Failed to create database backup: {e}")
            return BackupResult(success=False, error=str(e))
        logger.info(f"Created database backup at {backup_path}")
        return BackupResult(success=True, backupPath=backup_path)

    async def backup_database(self) -> BackupResult:
        db = self._require_db()
        # Fold the WAL into the main file so the copy is complete.
        await _checkpoint(db)
        return await asyncio.to_thread(self._copy_database_file)

    async def check_integrity(self) -> IntegrityCheckResult:
        db = self._require_db()
        try:
            errors = await _integrity_errors(db)
        except sqlite3.Error as e:
            return IntegrityCheckResult(ok=False, errors=[str(e)])
        return IntegrityCheckResult(ok=not errors, errors=errors)

    async def vacuum(self) -> VacuumResult:
        db = self._require_db()
        size_before = self.get_database_size()
        logger.info(f"Starting VACUUM (current size: {size_before / 1024 / 1024:.2f} MB)")
        try:
            await db.execute("VACUUM")
            await _checkpoint(db)
        except sqlite3.Error as e:
            logger.error(f"VACUUM failed: {e}")
            return VacuumResult(success=False, error=str(e))
        size_after = self.get_database_size()
        bytes_freed = size_before - size_after
        logger.info(f"VACUUM completed: freed {bytes_freed / 1024 / 1024:.2f} MB")
        return VacuumResult(success=True, bytesFreed=bytes_freed)

    def _read_last_vacuum(self) -> int:
        try:
            return int(self.vacuum_marker_path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as e:
            logger.debug(f"Unreadable vacuum marker {self.vacuum_marker_path}: {e}")
            return 0

    async def _vacuum_if_due(self) -> None:
        global _vacuum_ran
        if _vacuum_ran:
            logger.debug("Skipping VACUUM (already ran in this process)")
            return

        now = now_ms()
        elapsed_ms = now - self._read_last_vacuum()
        if elapsed_ms < self.vacuum_interval_seconds * 1000:
            logger.debug(f"Skipping VACUUM (last run {elapsed_ms / 86_400_000:.1f} days ago)")
            return

        _vacuum_ran = True
        try:
            backup = await self.backup_database()
            if not backup.success:
                logger.warning(f"Skipping VACUUM, backup failed: {backup.error}")
                return
            result = await self.vacuum()
            if result.success:
                self.vacuum_marker_path.write_text(str(now), encoding="utf-8")
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Failed to check/update VACUUM schedule: {e}")

    # ── Migrations ─────────────────────────────────────────────────

    async def get_migration_history(self) -> list[MigrationRecord]:
        return await sqlite_migrations.get_migration_history(self._require_db())

    async def get_current_version(self) -> int:
        return await sqlite_migrations.get_current_version(self._require_db())

    def get_target_version(self) -> int:
        return sqlite_migrations.get_target_version()

    async def has_pending_migrations(self) -> bool:
        return await sqlite_migrations.has_pending_migrations(self._require_db())

    # ── Query events ───────────────────────────────────────────────

    async def insert_query_event(self, event: QueryEventCreate) -> str:
        return await SqliteQueryEventRepository(self._require_db()).insert(event)

    async def get_query_events(self, time_range: str, filters: Optional[StatsFilters] = None) -> list[QueryEvent]:
        return await SqliteQueryEventRepository(self._require_db()).list(time_range, filters)

    async def get_aggregated_stats(self, time_range: str) -> StatsAggregation:
        return await SqliteAggregationRepository(self._require_db()).get_aggregated_stats(time_range)

    async def export_to_csv(self, time_range: str) -> str:
        return await SqliteDataManagementRepository(self._require_db()).export_to_csv(time_range)

    async def clear_old_data(self, older_than_days: int) -> ClearDataResult:
        return await SqliteDataManagementRepository(self._require_db()).clear_old_data(older_than_days)

    # ── Auto Run ───────────────────────────────────────────────────

    async def insert_auto_run_session(self, session: AutoRunSessionCreate) -> str:
        return await SqliteAutoRunRepository(self._require_db()).insert_session(session)

    async def update_auto_run_session(self, session_id: str, updates: AutoRunSessionUpdate) -> bool:
        return await SqliteAutoRunRepository(self._require_db()).update_session(session_id, updates)

    async def get_auto_run_sessions(self, time_range: str) -> list[AutoRunSession]:
        return await SqliteAutoRunRepository(self._require_db()).list_sessions(time_range)

    async def insert_auto_run_task(self, task: AutoRunTaskCreate) -> str:
        return await SqliteAutoRunRepository(self._require_db()).insert_task(task)

    async def get_auto_run_tasks(self, auto_run_session_id: str) -> list[AutoRunTask]:
        return await SqliteAutoRunRepository(self._require_db()).list_tasks(auto_run_session_id)

    # ── Session lifecycle ──────────────────────────────────────────

    async def record_session_created(self, event: SessionLifecycleCreate) -> str:
        return await SqliteSessionLifecycleRepository(self._require_db()).record_created(event)

    async def record_session_closed(self, session_id: str, closed_at: int) -> bool:
        return await SqliteSessionLifecycleRepository(self._require_db()).record_closed(session_id, closed_at)

    async def get_session_lifecycle_events(self, time_range: str) -> list[SessionLifecycleEvent]:
        return await SqliteSessionLifecycleRepository(self._require_db()).list(time_range)


stats_store = StatsStore()
