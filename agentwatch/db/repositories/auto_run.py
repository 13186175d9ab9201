"""SQLite storage for Auto Run (batch) sessions and their tasks."""
from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from agentwatch.db.repositories.utils import (
    generate_id,
    map_rows,
    normalize_path,
    require,
    time_range_start,
    write_guard,
)
from agentwatch.models import (
    AutoRunSession,
    AutoRunSessionCreate,
    AutoRunSessionUpdate,
    AutoRunTask,
    AutoRunTaskCreate,
)

logger = logging.getLogger("agentwatch.db.stats")


def map_auto_run_session_row(row: aiosqlite.Row) -> AutoRunSession:
    require(row, "auto_run_sessions", "session_id", "agent_type", "start_time", "duration")
    return AutoRunSession(
        id=row["id"],
        sessionId=row["session_id"],
        agentType=row["agent_type"],
        documentPath=row["document_path"],
        startTime=row["start_time"],
        duration=row["duration"],
        tasksTotal=row["tasks_total"],
        tasksCompleted=row["tasks_completed"],
        projectPath=row["project_path"],
    )


def map_auto_run_task_row(row: aiosqlite.Row) -> AutoRunTask:
    require(
        row,
        "auto_run_tasks",
        "auto_run_session_id",
        "session_id",
        "agent_type",
        "task_index",
        "start_time",
        "duration",
        "success",
    )
    return AutoRunTask(
        id=row["id"],
        autoRunSessionId=row["auto_run_session_id"],
        sessionId=row["session_id"],
        agentType=row["agent_type"],
        taskIndex=row["task_index"],
        taskContent=row["task_content"],
        startTime=row["start_time"],
        duration=row["duration"],
        success=row["success"] == 1,
    )


class SqliteAutoRunRepository:
    """SQLite-backed Auto Run session and task storage."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def insert_session(self, session: AutoRunSessionCreate) -> str:
        session_id = generate_id()
        async with write_guard(self.db, "insert Auto Run session"):
            await self.db.execute(
                """INSERT INTO auto_run_sessions (
                    id, session_id, agent_type, document_path, start_time, duration,
                    tasks_total, tasks_completed, project_path
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    session_id,
                    session.sessionId,
                    session.agentType,
                    normalize_path(session.documentPath),
                    session.startTime,
                    session.duration,
                    session.tasksTotal,
                    session.tasksCompleted,
                    normalize_path(session.projectPath),
                ),
            )
        logger.debug(f"Inserted Auto Run session {session_id}")
        return session_id

    async def update_session(self, session_id: str, updates: AutoRunSessionUpdate) -> bool:
        """Apply the fields set on ``updates``; returns False when nothing matched."""
        changes = updates.model_dump(exclude_unset=True)
        columns = {
            "duration": "duration",
            "tasksTotal": "tasks_total",
            "tasksCompleted": "tasks_completed",
            "documentPath": "document_path",
        }
        set_clauses: list[str] = []
        params: list[Any] = []
        for field, column in columns.items():
            if field not in changes:
                continue
            value = changes[field]
            if field == "documentPath":
                value = normalize_path(value)
            set_clauses.append(f"{column} = ?")
            params.append(value)

        if not set_clauses:
            return False

        params.append(session_id)
        async with write_guard(self.db, "update Auto Run session"):
            async with self.db.execute(
                f"UPDATE auto_run_sessions SET {', '.join(set_clauses)} WHERE id = ?",
                params,
            ) as cur:
                updated = cur.rowcount > 0
        logger.debug(f"Updated Auto Run session {session_id}")
        return updated

    async def list_sessions(self, time_range: str) -> list[AutoRunSession]:
        async with self.db.execute(
            "SELECT * FROM auto_run_sessions WHERE start_time >= ? ORDER BY start_time DESC",
            (time_range_start(time_range),),
        ) as cur:
            rows = await cur.fetchall()
        return map_rows(rows, map_auto_run_session_row)

    async def insert_task(self, task: AutoRunTaskCreate) -> str:
        task_id = generate_id()
        async with write_guard(self.db, "insert Auto Run task"):
            await self.db.execute(
                """INSERT INTO auto_run_tasks (
                    id, auto_run_session_id, session_id, agent_type, task_index,
                    task_content, start_time, duration, success
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    task_id,
                    task.autoRunSessionId,
                    task.sessionId,
                    task.agentType,
                    task.taskIndex,
                    task.taskContent,
                    task.startTime,
                    task.duration,
                    1 if task.success else 0,
                ),
            )
        logger.debug(f"Inserted Auto Run task {task_id}")
        return task_id

    async def list_tasks(self, auto_run_session_id: str) -> list[AutoRunTask]:
        async with self.db.execute(
            "SELECT * FROM auto_run_tasks WHERE auto_run_session_id = ? ORDER BY task_index ASC",
            (auto_run_session_id,),
        ) as cur:
            rows = await cur.fetchall()
        return map_rows(rows, map_auto_run_task_row)
