"""Shared interface for per-agent output parsers."""
from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod
from typing import Any

from agentwatch.models import AgentEvent, EventUsage

logger = logging.getLogger("agentwatch.parsers")


class AgentOutputParser(ABC):
    """Turns one line of an agent CLI's JSONL output into an AgentEvent.

    Subclasses only describe how a decoded message maps onto the canonical
    event; decoding, the blank-line rule and the plain-text fallback are
    shared here so every format degrades the same way.
    """

    agent_id: str = ""

    def parse_json_line(self, line: str) -> AgentEvent | None:
        if not line or not line.strip():
            return None

        try:
            msg = json.loads(line)
        except (json.JSONDecodeError, ValueError):
            return AgentEvent(type="text", text=line)

        if not isinstance(msg, dict):
            return AgentEvent(type="text", text=line)

        try:
            return self.transform_message(msg)
        except (AttributeError, TypeError, ValueError, OverflowError) as exc:
            # Well-formed JSON with an unexpected shape for this format.
            logger.debug(f"{self.agent_id} parser could not map message: {exc}")
            return AgentEvent(type="system", sessionId=_as_str(msg.get("session_id")), raw=msg)

    @abstractmethod
    def transform_message(self, msg: dict[str, Any]) -> AgentEvent:
        """Map a decoded message onto the canonical event model."""

    def is_result_message(self, event: AgentEvent) -> bool:
        return event.type == "result"

    def extract_session_id(self, event: AgentEvent) -> str | None:
        return event.sessionId or None

    def extract_usage(self, event: AgentEvent) -> EventUsage | None:
        return event.usage

    def extract_slash_commands(self, event: AgentEvent) -> list[str] | None:
        return event.slashCommands

    def detect_error_from_line(self, line: str) -> str | None:
        """Return the ``error`` payload of a JSON output line, if it carries one.

        Object payloads are returned as compact JSON. Non-JSON lines and lines
        without an error yield None.
        """
        if not line or not line.strip():
            return None
        try:
            msg = json.loads(line)
        except ValueError:
            return None
        if not isinstance(msg, dict):
            return None
        error = msg.get("error")
        if not error:
            return None
        if isinstance(error, str):
            return error
        return json.dumps(error, separators=(",", ":"))


def _as_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def _as_float(value: Any) -> float:
    """Finite float for ``value``, 0.0 for anything non-numeric or infinite."""
    if isinstance(value, bool):
        return 0.0
    try:
        result = float(value or 0.0)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return result if math.isfinite(result) else 0.0
