"""Session listing and origin overlay API."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from agentwatch.models import PaginatedSessions, SessionOrigin, SessionOriginType, SessionSummary
from agentwatch.session_index import session_index

sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])


class SessionOriginPayload(BaseModel):
    projectPath: str
    origin: SessionOriginType
    sessionName: Optional[str] = None


class SessionNamePayload(BaseModel):
    projectPath: str
    sessionName: Optional[str] = None


class SessionStarredPayload(BaseModel):
    projectPath: str
    starred: bool


@sessions_router.get("", response_model=list[SessionSummary])
async def list_sessions(projectPath: str = Query(...)):
    return await session_index.list_sessions(projectPath)


@sessions_router.get("/paginated", response_model=PaginatedSessions)
async def list_sessions_paginated(
    projectPath: str = Query(...),
    cursor: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=1000),
):
    return await session_index.list_sessions_paginated(projectPath, cursor=cursor, limit=limit)


@sessions_router.put("/{session_id}/origin", response_model=SessionOrigin)
async def register_session_origin(session_id: str, payload: SessionOriginPayload):
    return session_index.register_session_origin(
        payload.projectPath, session_id, payload.origin, payload.sessionName
    )


@sessions_router.put("/{session_id}/name", response_model=SessionOrigin)
async def update_session_name(session_id: str, payload: SessionNamePayload):
    return session_index.update_session_name(payload.projectPath, session_id, payload.sessionName)


@sessions_router.put("/{session_id}/starred", response_model=SessionOrigin)
async def update_session_starred(session_id: str, payload: SessionStarredPayload):
    return session_index.update_session_starred(payload.projectPath, session_id, payload.starred)
