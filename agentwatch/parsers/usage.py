"""Token usage aggregation and context-window estimation."""
from __future__ import annotations

import math
from typing import Any, Mapping

from agentwatch.models import ModelStats, UsageStats

DEFAULT_CONTEXT_WINDOW = 200000

# Fallback context windows when an agent does not report one.
# A zero entry means the agent has no LLM context (e.g. a plain terminal).
DEFAULT_CONTEXT_WINDOWS: dict[str, int] = {
    "claude-code": 200000,
    "claude": 200000,
    "codex": 200000,
    "opencode": 128000,
    "aider": 128000,
    "terminal": 0,
}


def _coerce_int(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def _coerce_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        result = float(value or 0.0)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return result if math.isfinite(result) else 0.0


def _coerce_model_stats(value: Any) -> ModelStats:
    if isinstance(value, ModelStats):
        return value
    if not isinstance(value, Mapping):
        return ModelStats()
    return ModelStats(
        inputTokens=_coerce_int(value.get("inputTokens")),
        outputTokens=_coerce_int(value.get("outputTokens")),
        cacheReadInputTokens=_coerce_int(value.get("cacheReadInputTokens")),
        cacheCreationInputTokens=_coerce_int(value.get("cacheCreationInputTokens")),
        contextWindow=_coerce_int(value.get("contextWindow")),
    )


def aggregate_model_usage(
    model_usage: Mapping[str, Any] | None = None,
    usage: Mapping[str, Any] | None = None,
    total_cost_usd: float = 0.0,
) -> UsageStats:
    """Reduce per-model counters (or top-level fallback usage) into one UsageStats.

    Token fields are summed across models while the context window is the
    largest one reported: a session that touched a bigger-window model has that
    much capacity available. Without per-model data the snake_case top-level
    ``usage`` fields are used. The window defaults to 200k when nothing reports it.
    """
    input_tokens = 0
    output_tokens = 0
    cache_read = 0
    cache_creation = 0
    context_window = 0

    if model_usage:
        for raw_stats in model_usage.values():
            stats = _coerce_model_stats(raw_stats)
            input_tokens += stats.inputTokens
            output_tokens += stats.outputTokens
            cache_read += stats.cacheReadInputTokens
            cache_creation += stats.cacheCreationInputTokens
            context_window = max(context_window, stats.contextWindow)
    else:
        usage = usage or {}
        input_tokens = _coerce_int(usage.get("input_tokens"))
        output_tokens = _coerce_int(usage.get("output_tokens"))
        cache_read = _coerce_int(usage.get("cache_read_input_tokens"))
        cache_creation = _coerce_int(usage.get("cache_creation_input_tokens"))
        context_window = _coerce_int(usage.get("context_window"))

    return UsageStats(
        inputTokens=input_tokens,
        outputTokens=output_tokens,
        cacheReadInputTokens=cache_read,
        cacheCreationInputTokens=cache_creation,
        totalCostUsd=_coerce_float(total_cost_usd),
        contextWindow=context_window or DEFAULT_CONTEXT_WINDOW,
    )


def estimate_context_usage(
    stats: UsageStats,
    agent_type: str | None = None,
    context_windows: Mapping[str, int] | None = None,
) -> int | None:
    """Estimate how full the context window is, as a 0-100 percentage.

    Only input tokens occupy the window; generated output is excluded.
    Returns None when no window is known for the agent, and 0 when nothing
    has been used yet.
    """
    windows = DEFAULT_CONTEXT_WINDOWS if context_windows is None else context_windows
    context_window = stats.contextWindow
    if context_window <= 0:
        context_window = windows.get(agent_type, 0) if agent_type else 0
    if context_window <= 0:
        return None

    if stats.inputTokens + stats.outputTokens == 0:
        return 0

    # Half-up rounding to the nearest whole percent.
    percentage = math.floor(100 * stats.inputTokens / context_window + 0.5)
    return min(100, percentage)
