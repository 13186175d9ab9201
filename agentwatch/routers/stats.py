"""Usage telemetry API backed by the stats store."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel

from agentwatch.db.stats_store import stats_store
from agentwatch.errors import StoreNotReadyError, StoreWriteError
from agentwatch.models import (
    AutoRunSession,
    AutoRunSessionCreate,
    AutoRunSessionUpdate,
    AutoRunTask,
    AutoRunTaskCreate,
    BackupResult,
    ClearDataResult,
    IntegrityCheckResult,
    QueryEvent,
    QueryEventCreate,
    QuerySource,
    SessionLifecycleCreate,
    SessionLifecycleEvent,
    StatsAggregation,
    StatsFilters,
    StatsTimeRange,
    VacuumResult,
)


stats_router = APIRouter(prefix="/api/stats", tags=["stats"])


class CreatedResponse(BaseModel):
    id: str


class UpdatedResponse(BaseModel):
    updated: bool


class SessionClosedPayload(BaseModel):
    closedAt: int


class ClearDataPayload(BaseModel):
    olderThanDays: int


@contextmanager
def _store_errors() -> Iterator[None]:
    try:
        yield
    except StoreNotReadyError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except StoreWriteError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


# ── Query events ───────────────────────────────────────────────────

@stats_router.post("/query-events", response_model=CreatedResponse)
async def insert_query_event(payload: QueryEventCreate):
    with _store_errors():
        return CreatedResponse(id=await stats_store.insert_query_event(payload))


@stats_router.get("/query-events", response_model=list[QueryEvent])
async def get_query_events(
    range: StatsTimeRange = Query("week"),
    agentType: Optional[str] = Query(None),
    source: Optional[QuerySource] = Query(None),
    projectPath: Optional[str] = Query(None),
    sessionId: Optional[str] = Query(None),
):
    filters = StatsFilters(agentType=agentType, source=source, projectPath=projectPath, sessionId=sessionId)
    with _store_errors():
        return await stats_store.get_query_events(range, filters)


@stats_router.get("/aggregation", response_model=StatsAggregation)
async def get_aggregated_stats(range: StatsTimeRange = Query("week")):
    with _store_errors():
        return await stats_store.get_aggregated_stats(range)


@stats_router.get("/export")
async def export_csv(range: StatsTimeRange = Query("all")):
    with _store_errors():
        content = await stats_store.export_to_csv(range)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="query-events-{range}.csv"'},
    )


# ── Auto Run ───────────────────────────────────────────────────────

@stats_router.post("/auto-run/sessions", response_model=CreatedResponse)
async def insert_auto_run_session(payload: AutoRunSessionCreate):
    with _store_errors():
        return CreatedResponse(id=await stats_store.insert_auto_run_session(payload))


@stats_router.patch("/auto-run/sessions/{auto_run_id}", response_model=UpdatedResponse)
async def update_auto_run_session(auto_run_id: str, payload: AutoRunSessionUpdate):
    with _store_errors():
        updated = await stats_store.update_auto_run_session(auto_run_id, payload)
    return UpdatedResponse(updated=updated)


@stats_router.get("/auto-run/sessions", response_model=list[AutoRunSession])
async def get_auto_run_sessions(range: StatsTimeRange = Query("week")):
    with _store_errors():
        return await stats_store.get_auto_run_sessions(range)


@stats_router.post("/auto-run/tasks", response_model=CreatedResponse)
async def insert_auto_run_task(payload: AutoRunTaskCreate):
    with _store_errors():
        return CreatedResponse(id=await stats_store.insert_auto_run_task(payload))


@stats_router.get("/auto-run/sessions/{auto_run_id}/tasks", response_model=list[AutoRunTask])
async def get_auto_run_tasks(auto_run_id: str):
    with _store_errors():
        return await stats_store.get_auto_run_tasks(auto_run_id)


# ── Session lifecycle ──────────────────────────────────────────────

@stats_router.post("/sessions", response_model=CreatedResponse)
async def record_session_created(payload: SessionLifecycleCreate):
    with _store_errors():
        return CreatedResponse(id=await stats_store.record_session_created(payload))


@stats_router.post("/sessions/{session_id}/closed", response_model=UpdatedResponse)
async def record_session_closed(session_id: str, payload: SessionClosedPayload):
    with _store_errors():
        updated = await stats_store.record_session_closed(session_id, payload.closedAt)
    if not updated:
        raise HTTPException(status_code=404, detail="Session not found")
    return UpdatedResponse(updated=True)


@stats_router.get("/sessions", response_model=list[SessionLifecycleEvent])
async def get_session_lifecycle_events(range: StatsTimeRange = Query("week")):
    with _store_errors():
        return await stats_store.get_session_lifecycle_events(range)


# ── Maintenance ────────────────────────────────────────────────────

@stats_router.post("/clear", response_model=ClearDataResult)
async def clear_old_data(payload: ClearDataPayload):
    with _store_errors():
        return await stats_store.clear_old_data(payload.olderThanDays)


@stats_router.get("/maintenance/integrity", response_model=IntegrityCheckResult)
async def check_integrity():
    with _store_errors():
        return await stats_store.check_integrity()


@stats_router.post("/maintenance/backup", response_model=BackupResult)
async def backup_database():
    with _store_errors():
        return await stats_store.backup_database()


@stats_router.post("/maintenance/vacuum", response_model=VacuumResult)
async def vacuum_database():
    with _store_errors():
        return await stats_store.vacuum()


@stats_router.get("/maintenance/status")
async def get_store_status():
    with _store_errors():
        return {
            "currentVersion": await stats_store.get_current_version(),
            "targetVersion": stats_store.get_target_version(),
            "hasPendingMigrations": await stats_store.has_pending_migrations(),
            "databaseSize": stats_store.get_database_size(),
            "migrations": [m.model_dump() for m in await stats_store.get_migration_history()],
        }
