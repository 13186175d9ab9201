"""Session origin overlay: user-assigned labels kept beside, never inside, transcripts."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

from agentwatch.models import SessionOrigin

logger = logging.getLogger("agentwatch.sessions")

ORIGINS_KEY = "origins"


class OriginsStore(Protocol):
    """Key-value accessor owned by the embedding application."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class JsonOriginsStore:
    """Keeps the overlay in a single JSON document on disk."""

    def __init__(self, storage_path: Path):
        self.storage_path = storage_path
        self._data: dict[str, Any] = {}
        self._load()

    def _load(self):
        if not self.storage_path.exists():
            return
        try:
            content = self.storage_path.read_text(encoding="utf-8")
            if not content.strip():
                return
            data = json.loads(content)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load session origins file: {e}")
            return
        if isinstance(data, dict):
            self._data = data

    def _save(self):
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage_path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()


def normalize_origin(value: Any) -> Optional[SessionOrigin]:
    """Collapse a stored overlay entry into a SessionOrigin.

    Legacy entries are a bare origin string; current entries are objects with
    ``origin`` and optional ``sessionName``/``starred``. Anything else is ignored.
    """
    if isinstance(value, str):
        if value not in ("user", "auto"):
            return None
        return SessionOrigin(origin=value)
    if isinstance(value, dict):
        origin = value.get("origin")
        name = value.get("sessionName")
        starred = value.get("starred")
        return SessionOrigin(
            origin=origin if origin in ("user", "auto") else "user",
            sessionName=name if isinstance(name, str) else None,
            starred=starred if isinstance(starred, bool) else None,
        )
    return None


def _all_origins(store: OriginsStore) -> dict[str, Any]:
    data = store.get(ORIGINS_KEY, {})
    return data if isinstance(data, dict) else {}


def get_session_origins(store: OriginsStore, project_path: str) -> dict[str, SessionOrigin]:
    project_origins = _all_origins(store).get(project_path)
    if not isinstance(project_origins, dict):
        return {}

    origins: dict[str, SessionOrigin] = {}
    for session_id, value in project_origins.items():
        normalized = normalize_origin(value)
        if normalized is None:
            logger.debug(f"Ignoring malformed origin entry for session {session_id}")
            continue
        origins[str(session_id)] = normalized
    return origins


def _write_origin(store: OriginsStore, project_path: str, session_id: str, origin: SessionOrigin) -> None:
    all_origins = dict(_all_origins(store))
    project_origins = all_origins.get(project_path)
    project_origins = dict(project_origins) if isinstance(project_origins, dict) else {}
    project_origins[session_id] = origin.model_dump(exclude_none=True)
    all_origins[project_path] = project_origins
    store.set(ORIGINS_KEY, all_origins)


def set_session_origin(
    store: OriginsStore,
    project_path: str,
    session_id: str,
    origin: str,
    session_name: Optional[str] = None,
) -> SessionOrigin:
    existing = get_session_origins(store, project_path).get(session_id)
    record = SessionOrigin(
        origin=origin,
        sessionName=session_name if session_name is not None else (existing.sessionName if existing else None),
        starred=existing.starred if existing else None,
    )
    _write_origin(store, project_path, session_id, record)
    return record


def update_session_origin(
    store: OriginsStore,
    project_path: str,
    session_id: str,
    **changes: Any,
) -> SessionOrigin:
    """Patch name/star on an existing entry, creating a ``user`` entry if absent.

    Legacy string entries are rewritten in object form.
    """
    existing = get_session_origins(store, project_path).get(session_id) or SessionOrigin()
    record = existing.model_copy(update=changes)
    _write_origin(store, project_path, session_id, record)
    return record
