"""Codex CLI (``codex exec --json``) output parser.

Codex reports a ``thread_id`` instead of a session id, wraps content in
``item.completed`` events (reasoning, agent_message, tool_call, tool_result) and
reports token usage on ``turn.completed``. Reasoning tokens are billed as output.
"""
from __future__ import annotations

from typing import Any, Mapping

from agentwatch import config
from agentwatch.models import AgentEvent, EventUsage
from agentwatch.parsers.platforms.base import AgentOutputParser, _as_int, _as_str


def decode_tool_output(output: Any) -> str:
    """Codex sometimes returns command output as a list of byte values."""
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    if isinstance(output, list):
        try:
            return bytes(int(b) for b in output).decode("utf-8", errors="replace")
        except (TypeError, ValueError):
            return str(output)
    return str(output)


class CodexOutputParser(AgentOutputParser):
    agent_id = "codex"

    def __init__(self, pricing: Mapping[str, float] | None = None):
        self.pricing = dict(pricing or config.CODEX_PRICING)

    def transform_message(self, msg: dict[str, Any]) -> AgentEvent:
        msg_type = msg.get("type")

        if msg_type == "thread.started":
            return AgentEvent(type="init", sessionId=_as_str(msg.get("thread_id")), raw=msg)

        if msg_type == "turn.started":
            return AgentEvent(type="system", raw=msg)

        item = msg.get("item")
        if msg_type == "item.completed" and isinstance(item, dict):
            return self._transform_item(item, msg)

        if msg_type == "turn.completed":
            return AgentEvent(type="result", usage=self._usage_from_raw(msg), raw=msg)

        if msg_type == "error" or msg.get("error"):
            error = msg.get("error")
            return AgentEvent(
                type="error",
                text=error if isinstance(error, str) and error else "Unknown error",
                raw=msg,
            )

        return AgentEvent(type="system", raw=msg)

    def _transform_item(self, item: dict[str, Any], msg: dict[str, Any]) -> AgentEvent:
        item_type = item.get("type")
        text = item.get("text") if isinstance(item.get("text"), str) else ""

        if item_type == "reasoning":
            return AgentEvent(type="text", text=text, isPartial=True, raw=msg)
        if item_type == "agent_message":
            return AgentEvent(type="text", text=text, isPartial=False, raw=msg)
        if item_type == "tool_call":
            return AgentEvent(
                type="tool_use",
                toolName=_as_str(item.get("tool")),
                toolState={"status": "running", "input": item.get("args")},
                raw=msg,
            )
        if item_type == "tool_result":
            return AgentEvent(
                type="tool_use",
                toolState={"status": "completed", "output": decode_tool_output(item.get("output"))},
                raw=msg,
            )
        return AgentEvent(type="system", raw=msg)

    def _usage_from_raw(self, msg: dict[str, Any]) -> EventUsage | None:
        usage = msg.get("usage")
        if not isinstance(usage, dict):
            return None

        input_tokens = _as_int(usage.get("input_tokens"))
        output_tokens = _as_int(usage.get("output_tokens"))
        cached_input = _as_int(usage.get("cached_input_tokens"))
        reasoning = _as_int(usage.get("reasoning_output_tokens"))
        total_output = output_tokens + reasoning

        uncached_input = max(0, input_tokens - cached_input)
        cost = (
            uncached_input / 1_000_000 * self.pricing["INPUT_PER_MILLION"]
            + cached_input / 1_000_000 * self.pricing["CACHED_INPUT_PER_MILLION"]
            + total_output / 1_000_000 * self.pricing["OUTPUT_PER_MILLION"]
        )

        return EventUsage(
            inputTokens=input_tokens,
            outputTokens=total_output,
            cacheReadTokens=cached_input,
            cacheCreationTokens=0,
            contextWindow=int(self.pricing.get("CONTEXT_WINDOW", 0)),
            costUsd=cost,
            reasoningTokens=reasoning,
        )

    def extract_slash_commands(self, event: AgentEvent) -> list[str] | None:
        return None
