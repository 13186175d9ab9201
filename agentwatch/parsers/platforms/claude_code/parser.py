"""Claude Code stream-json output parser.

Claude Code emits one JSON object per line:

- ``{"type": "system", "subtype": "init", "session_id", "slash_commands"}``
- ``{"type": "assistant", "message": {"role", "content"}}`` (streamed text)
- ``{"type": "result", "result", "session_id", "modelUsage", "usage", "total_cost_usd"}``
"""
from __future__ import annotations

from typing import Any

from agentwatch.models import AgentEvent, EventUsage
from agentwatch.parsers.platforms.base import AgentOutputParser, _as_dict, _as_float, _as_str
from agentwatch.parsers.usage import aggregate_model_usage


def extract_message_text(content: Any) -> str:
    """Return string content verbatim, or the joined ``text`` parts of a block list."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for block in content:
        if not isinstance(block, dict) or block.get("type") != "text":
            continue
        text = block.get("text")
        if isinstance(text, str) and text:
            parts.append(text)
    return "".join(parts)


def _has_usage(msg: dict[str, Any]) -> bool:
    return bool(msg.get("modelUsage")) or bool(msg.get("usage")) or msg.get("total_cost_usd") is not None


def _usage_from_raw(msg: dict[str, Any]) -> EventUsage | None:
    if not _has_usage(msg):
        return None

    model_usage = msg.get("modelUsage")
    aggregated = aggregate_model_usage(
        model_usage if isinstance(model_usage, dict) else None,
        _as_dict(msg.get("usage")),
        _as_float(msg.get("total_cost_usd")),
    )
    return EventUsage(
        inputTokens=aggregated.inputTokens,
        outputTokens=aggregated.outputTokens,
        cacheReadTokens=aggregated.cacheReadInputTokens,
        cacheCreationTokens=aggregated.cacheCreationInputTokens,
        contextWindow=aggregated.contextWindow,
        costUsd=aggregated.totalCostUsd,
    )


class ClaudeOutputParser(AgentOutputParser):
    agent_id = "claude-code"

    def transform_message(self, msg: dict[str, Any]) -> AgentEvent:
        msg_type = msg.get("type")
        session_id = _as_str(msg.get("session_id"))

        if msg_type == "system" and msg.get("subtype") == "init":
            commands = msg.get("slash_commands")
            return AgentEvent(
                type="init",
                sessionId=session_id,
                slashCommands=[str(c) for c in commands] if isinstance(commands, list) else None,
                raw=msg,
            )

        if msg_type == "result":
            result = msg.get("result")
            return AgentEvent(
                type="result",
                text=result if isinstance(result, str) else None,
                sessionId=session_id,
                usage=_usage_from_raw(msg),
                raw=msg,
            )

        if msg_type == "assistant":
            message = _as_dict(msg.get("message"))
            return AgentEvent(
                type="text",
                text=extract_message_text(message.get("content")),
                sessionId=session_id,
                isPartial=True,
                raw=msg,
            )

        # Usage-only messages carry no content type of their own.
        if _has_usage(msg):
            return AgentEvent(
                type="system",
                sessionId=session_id,
                usage=_usage_from_raw(msg),
                raw=msg,
            )

        return AgentEvent(type="system", sessionId=session_id, raw=msg)
