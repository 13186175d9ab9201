"""Scan agent transcript directories and extract lightweight session metadata.

Transcripts are append-only JSON-Lines files, one per session, named
``<sessionId>.jsonl``. Metadata is extracted by streaming the file line by line;
the whole transcript is never held in memory.

Bounded scans: the first user message is only looked for in the first
``first_message_scan_lines`` lines, the earliest timestamp in the first
``oldest_timestamp_scan_lines`` lines and the terminal timestamp in the last
``last_timestamp_scan_lines`` lines. These are precision/performance trade-offs,
not guarantees: a transcript whose first user prompt sits beyond the head window
reports an empty preview. Token sums, cost and message count always cover the
full file.
"""
from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from agentwatch import config
from agentwatch.date_utils import epoch_to_iso, parse_timestamp
from agentwatch.models import SessionFileInfo, SessionSummary
from agentwatch.parsers.platforms.claude_code.parser import extract_message_text

logger = logging.getLogger("agentwatch.sessions")

TRANSCRIPT_SUFFIX = ".jsonl"

_MESSAGE_RECORD_TYPES = frozenset({"user", "assistant"})


@dataclass(frozen=True)
class SessionParseLimits:
    first_message_scan_lines: int = 20
    first_message_preview_length: int = 200
    last_timestamp_scan_lines: int = 10
    oldest_timestamp_scan_lines: int = 10

    @classmethod
    def from_config(cls, limits: Mapping[str, int] | None = None) -> SessionParseLimits:
        values = limits if limits is not None else config.SESSION_PARSE_LIMITS
        return cls(
            first_message_scan_lines=int(values["FIRST_MESSAGE_SCAN_LINES"]),
            first_message_preview_length=int(values["FIRST_MESSAGE_PREVIEW_LENGTH"]),
            last_timestamp_scan_lines=int(values["LAST_TIMESTAMP_SCAN_LINES"]),
            oldest_timestamp_scan_lines=int(values["OLDEST_TIMESTAMP_SCAN_LINES"]),
        )


@dataclass(frozen=True)
class TokenPricing:
    """Dollars per million tokens."""

    input_per_million: float = 3.0
    output_per_million: float = 15.0
    cache_read_per_million: float = 0.3
    cache_creation_per_million: float = 3.75

    @classmethod
    def from_config(cls, pricing: Mapping[str, float] | None = None) -> TokenPricing:
        values = pricing if pricing is not None else config.CLAUDE_PRICING
        return cls(
            input_per_million=float(values["INPUT_PER_MILLION"]),
            output_per_million=float(values["OUTPUT_PER_MILLION"]),
            cache_read_per_million=float(values["CACHE_READ_PER_MILLION"]),
            cache_creation_per_million=float(values["CACHE_CREATION_PER_MILLION"]),
        )


def calculate_cost(
    input_tokens: int,
    output_tokens: int,
    cache_read_tokens: int,
    cache_creation_tokens: int,
    pricing: TokenPricing,
) -> float:
    return (
        input_tokens * pricing.input_per_million
        + output_tokens * pricing.output_per_million
        + cache_read_tokens * pricing.cache_read_per_million
        + cache_creation_tokens * pricing.cache_creation_per_million
    ) / 1_000_000


def _coerce_int(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def _line_usage(entry: dict[str, Any]) -> dict[str, Any] | None:
    usage = entry.get("usage")
    if isinstance(usage, dict):
        return usage
    message = entry.get("message")
    if isinstance(message, dict) and isinstance(message.get("usage"), dict):
        return message["usage"]
    return None


def _user_message_text(entry: dict[str, Any]) -> str:
    if entry.get("type") != "user":
        return ""
    message = entry.get("message")
    if not isinstance(message, dict):
        return ""
    return extract_message_text(message.get("content")).strip()


def session_id_from_filename(name: str) -> str | None:
    if not name.endswith(TRANSCRIPT_SUFFIX):
        return None
    stem = name[: -len(TRANSCRIPT_SUFFIX)]
    return stem or None


def scan_session_files(project_dir: Path) -> list[SessionFileInfo]:
    """List non-empty transcripts in ``project_dir``, most recently modified first.

    A missing directory is a normal outcome and yields an empty list. Ties on
    mtime are broken by session id so the order is deterministic.
    """
    if not project_dir.is_dir():
        return []

    files: list[SessionFileInfo] = []
    for entry in project_dir.iterdir():
        session_id = session_id_from_filename(entry.name)
        if session_id is None:
            continue
        try:
            stat = entry.stat()
        except OSError as exc:
            # Removed between listing and stat.
            logger.debug(f"Skipping transcript {entry}: {exc}")
            continue
        if not entry.is_file() or stat.st_size == 0:
            continue
        files.append(
            SessionFileInfo(
                sessionId=session_id,
                path=str(entry),
                size=stat.st_size,
                mtime=stat.st_mtime,
            )
        )

    files.sort(key=lambda f: (-f.mtime, f.sessionId))
    return files


def parse_session_summary(
    info: SessionFileInfo,
    project_path: str,
    limits: SessionParseLimits | None = None,
    pricing: TokenPricing | None = None,
) -> SessionSummary:
    """Build a SessionSummary for one transcript.

    Lines that fail to decode are skipped; the rest of the file still counts.
    """
    limits = limits or SessionParseLimits.from_config()
    pricing = pricing or TokenPricing.from_config()
    modified_at = epoch_to_iso(info.mtime)
    summary = SessionSummary(
        sessionId=info.sessionId,
        projectPath=project_path,
        createdAt=modified_at,
        modifiedAt=modified_at,
        sizeBytes=info.size,
    )

    first_message = ""
    message_count = 0
    input_tokens = output_tokens = cache_read = cache_creation = 0
    cost = 0.0
    head_timestamps: list[datetime] = []
    tail_timestamps: deque[datetime | None] = deque(maxlen=max(0, limits.last_timestamp_scan_lines))

    try:
        with open(info.path, "r", encoding="utf-8", errors="replace") as handle:
            index = -1
            for raw_line in handle:
                line = raw_line.strip()
                if not line:
                    continue
                index += 1

                try:
                    entry = json.loads(line)
                except ValueError:
                    tail_timestamps.append(None)
                    continue
                if not isinstance(entry, dict):
                    tail_timestamps.append(None)
                    continue

                if entry.get("type") in _MESSAGE_RECORD_TYPES:
                    message_count += 1

                if not first_message and index < limits.first_message_scan_lines:
                    text = _user_message_text(entry)
                    if text:
                        first_message = text[: limits.first_message_preview_length]

                usage = _line_usage(entry)
                if usage:
                    line_in = _coerce_int(usage.get("input_tokens"))
                    line_out = _coerce_int(usage.get("output_tokens"))
                    line_read = _coerce_int(usage.get("cache_read_input_tokens"))
                    line_create = _coerce_int(usage.get("cache_creation_input_tokens"))
                    try:
                        line_cost = calculate_cost(line_in, line_out, line_read, line_create, pricing)
                    except OverflowError:
                        # Counts too large to price; only this line's usage is dropped.
                        logger.warning(f"Skipping unpriceable usage in {info.path} (line {index + 1})")
                    else:
                        input_tokens += line_in
                        output_tokens += line_out
                        cache_read += line_read
                        cache_creation += line_create
                        cost += line_cost

                timestamp = parse_timestamp(entry.get("timestamp"))
                if timestamp is not None and index < limits.oldest_timestamp_scan_lines:
                    head_timestamps.append(timestamp)
                tail_timestamps.append(timestamp)
    except OSError as exc:
        logger.warning(f"Failed to read transcript {info.path}: {exc}")
        return summary

    # min/max rather than first/last: transcripts are not guaranteed to be
    # written in timestamp order.
    bounds = head_timestamps + [ts for ts in tail_timestamps if ts is not None]
    duration = 0
    if bounds:
        duration = int((max(bounds) - min(bounds)).total_seconds())

    return summary.model_copy(
        update={
            "firstMessage": first_message,
            "messageCount": message_count,
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
            "cacheReadTokens": cache_read,
            "cacheCreationTokens": cache_creation,
            "costUsd": cost,
            "durationSeconds": max(0, duration),
        }
    )
