"""Ordered and paginated session listings with the origin overlay merged in."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from agentwatch import config
from agentwatch.models import PaginatedSessions, SessionFileInfo, SessionOrigin, SessionSummary
from agentwatch.parsers.sessions import (
    SessionParseLimits,
    TokenPricing,
    parse_session_summary,
    scan_session_files,
)
from agentwatch.session_origins import (
    JsonOriginsStore,
    OriginsStore,
    get_session_origins,
    set_session_origin,
    update_session_origin,
)

logger = logging.getLogger("agentwatch.sessions")

ProjectDirResolver = Callable[[str], Path]


def encode_project_path(project_path: str) -> str:
    """Directory name the Claude CLI uses for a project (``/a/b`` -> ``-a-b``)."""
    return project_path.replace("\\", "/").replace("/", "-").replace(":", "-").replace(".", "-")


def claude_project_dir(project_path: str, claude_root: Optional[Path] = None) -> Path:
    root = claude_root if claude_root is not None else config.CLAUDE_PROJECTS_DIR
    return root / encode_project_path(project_path)


def _start_index(files: list[SessionFileInfo], cursor: Optional[str]) -> int:
    if not cursor:
        return 0
    for position, info in enumerate(files):
        if info.sessionId == cursor:
            return position + 1
    logger.debug(f"Stale session cursor {cursor}; restarting from the first page")
    return 0


class SessionIndex:
    """Lists transcripts for a project in canonical order (newest first).

    Canonical order is mtime descending with ties broken by session id, computed
    over the full set of non-empty transcripts before any slicing. Summaries are
    only built for the files actually returned.
    """

    def __init__(
        self,
        project_dir_resolver: ProjectDirResolver = claude_project_dir,
        origins_store: Optional[OriginsStore] = None,
        limits: Optional[SessionParseLimits] = None,
        pricing: Optional[TokenPricing] = None,
    ):
        self.project_dir_resolver = project_dir_resolver
        self.origins_store = origins_store
        self.limits = limits or SessionParseLimits.from_config()
        self.pricing = pricing or TokenPricing.from_config()

    async def _scan(self, project_path: str) -> list[SessionFileInfo]:
        project_dir = self.project_dir_resolver(project_path)
        return await asyncio.to_thread(scan_session_files, project_dir)

    def _origins(self, project_path: str) -> dict[str, SessionOrigin]:
        if self.origins_store is None:
            return {}
        return get_session_origins(self.origins_store, project_path)

    async def _summarize(self, project_path: str, files: list[SessionFileInfo]) -> list[SessionSummary]:
        # gather preserves argument order, so concurrency never reorders results.
        summaries = await asyncio.gather(
            *(
                asyncio.to_thread(parse_session_summary, info, project_path, self.limits, self.pricing)
                for info in files
            )
        )
        origins = self._origins(project_path)
        merged: list[SessionSummary] = []
        for summary in summaries:
            overlay = origins.get(summary.sessionId)
            if overlay is not None:
                summary = summary.model_copy(
                    update={
                        "origin": overlay.origin,
                        "sessionName": overlay.sessionName,
                        "starred": overlay.starred,
                    }
                )
            merged.append(summary)
        return merged

    async def list_sessions(self, project_path: str) -> list[SessionSummary]:
        files = await self._scan(project_path)
        return await self._summarize(project_path, files)

    async def list_sessions_paginated(
        self,
        project_path: str,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> PaginatedSessions:
        page_size = limit if limit is not None and limit > 0 else config.DEFAULT_PAGE_SIZE
        files = await self._scan(project_path)
        total = len(files)

        start = _start_index(files, cursor)
        page = files[start:start + page_size]
        has_more = start + len(page) < total

        sessions = await self._summarize(project_path, page)
        return PaginatedSessions(
            sessions=sessions,
            hasMore=has_more,
            totalCount=total,
            nextCursor=page[-1].sessionId if has_more and page else None,
        )

    def register_session_origin(
        self,
        project_path: str,
        session_id: str,
        origin: str,
        session_name: Optional[str] = None,
    ) -> SessionOrigin:
        return set_session_origin(self._require_store(), project_path, session_id, origin, session_name)

    def update_session_name(self, project_path: str, session_id: str, session_name: Optional[str]) -> SessionOrigin:
        return update_session_origin(self._require_store(), project_path, session_id, sessionName=session_name)

    def update_session_starred(self, project_path: str, session_id: str, starred: bool) -> SessionOrigin:
        return update_session_origin(self._require_store(), project_path, session_id, starred=starred)

    def _require_store(self) -> OriginsStore:
        if self.origins_store is None:
            raise RuntimeError("No session origins store configured")
        return self.origins_store


session_index = SessionIndex(origins_store=JsonOriginsStore(config.ORIGINS_STORE_PATH))
