"""OpenCode JSON output parser.

Message types: ``step_start`` (session start), ``text`` (``part.text``),
``tool_use`` (``tool.name`` / ``tool.state``) and ``step_finish`` (``result`` plus
``part.tokens``). Session ids arrive as ``sessionID``.
"""
from __future__ import annotations

from typing import Any

from agentwatch.models import AgentEvent, EventUsage
from agentwatch.parsers.platforms.base import AgentOutputParser, _as_dict, _as_int, _as_str


class OpenCodeOutputParser(AgentOutputParser):
    agent_id = "opencode"

    def transform_message(self, msg: dict[str, Any]) -> AgentEvent:
        msg_type = msg.get("type")
        session_id = _as_str(msg.get("sessionID"))
        part = _as_dict(msg.get("part"))

        if msg_type == "step_start":
            return AgentEvent(type="init", sessionId=session_id, raw=msg)

        if msg_type == "text":
            text = part.get("text")
            return AgentEvent(
                type="text",
                text=text if isinstance(text, str) else "",
                sessionId=session_id,
                isPartial=True,
                raw=msg,
            )

        if msg_type == "tool_use":
            tool = _as_dict(msg.get("tool"))
            return AgentEvent(
                type="tool_use",
                toolName=_as_str(tool.get("name")),
                toolState=tool.get("state"),
                sessionId=session_id,
                raw=msg,
            )

        if msg_type == "step_finish":
            result = msg.get("result")
            return AgentEvent(
                type="result",
                text=result if isinstance(result, str) else None,
                sessionId=session_id,
                usage=self._usage_from_raw(part),
                raw=msg,
            )

        error = msg.get("error")
        if error:
            return AgentEvent(
                type="error",
                text=error if isinstance(error, str) else str(error),
                sessionId=session_id,
                raw=msg,
            )

        return AgentEvent(type="system", sessionId=session_id, raw=msg)

    @staticmethod
    def _usage_from_raw(part: dict[str, Any]) -> EventUsage | None:
        tokens = part.get("tokens")
        if not isinstance(tokens, dict):
            return None
        return EventUsage(
            inputTokens=_as_int(tokens.get("input")),
            outputTokens=_as_int(tokens.get("output")),
        )
