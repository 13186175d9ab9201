"""Timestamp parsing and formatting helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_to_iso(seconds: float) -> str:
    return format_datetime_utc(datetime.fromtimestamp(seconds, tz=timezone.utc))


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO-8601 strings (with ``Z``) or epoch numbers into aware datetimes."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Values above 1e12 are epoch milliseconds.
        seconds = value / 1000 if value > 1e12 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None
    token = value.strip()
    if not token:
        return None
    try:
        parsed = datetime.fromisoformat(token.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
