"""agentwatch configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# Data locations
DATA_DIR = Path(os.getenv("AGENTWATCH_DATA_DIR", str(Path.home() / ".agentwatch")))
CLAUDE_PROJECTS_DIR = Path(
    os.getenv("AGENTWATCH_CLAUDE_PROJECTS_DIR", str(Path.home() / ".claude" / "projects"))
)
ORIGINS_STORE_PATH = Path(
    os.getenv("AGENTWATCH_ORIGINS_STORE_PATH", str(DATA_DIR / "session-origins.json"))
)

# Stats database
STATS_DB_PATH = Path(os.getenv("AGENTWATCH_STATS_DB_PATH", str(DATA_DIR / "stats.db")))
VACUUM_INTERVAL_SECONDS = _env_int("AGENTWATCH_VACUUM_INTERVAL_SECONDS", 7 * 24 * 60 * 60)
BUSY_TIMEOUT_MS = _env_int("AGENTWATCH_BUSY_TIMEOUT_MS", 5000)
SLOW_AGGREGATION_MS = _env_int("AGENTWATCH_SLOW_AGGREGATION_MS", 1000)

# Session listing
DEFAULT_PAGE_SIZE = _env_int("AGENTWATCH_DEFAULT_PAGE_SIZE", 100)

# Bounded transcript scans. These trade precision for speed on large files:
# the first message and earliest timestamp are only searched near the head of a
# transcript and the terminal timestamp only near its tail.
SESSION_PARSE_LIMITS = {
    "FIRST_MESSAGE_SCAN_LINES": _env_int("AGENTWATCH_FIRST_MESSAGE_SCAN_LINES", 20),
    "FIRST_MESSAGE_PREVIEW_LENGTH": _env_int("AGENTWATCH_FIRST_MESSAGE_PREVIEW_LENGTH", 200),
    "LAST_TIMESTAMP_SCAN_LINES": _env_int("AGENTWATCH_LAST_TIMESTAMP_SCAN_LINES", 10),
    "OLDEST_TIMESTAMP_SCAN_LINES": _env_int("AGENTWATCH_OLDEST_TIMESTAMP_SCAN_LINES", 10),
}

# Dollars per million tokens
CLAUDE_PRICING = {
    "INPUT_PER_MILLION": _env_float("AGENTWATCH_CLAUDE_INPUT_PER_MILLION", 3.0),
    "OUTPUT_PER_MILLION": _env_float("AGENTWATCH_CLAUDE_OUTPUT_PER_MILLION", 15.0),
    "CACHE_READ_PER_MILLION": _env_float("AGENTWATCH_CLAUDE_CACHE_READ_PER_MILLION", 0.3),
    "CACHE_CREATION_PER_MILLION": _env_float("AGENTWATCH_CLAUDE_CACHE_CREATION_PER_MILLION", 3.75),
}

CODEX_PRICING = {
    "INPUT_PER_MILLION": _env_float("AGENTWATCH_CODEX_INPUT_PER_MILLION", 1.1),
    "CACHED_INPUT_PER_MILLION": _env_float("AGENTWATCH_CODEX_CACHED_INPUT_PER_MILLION", 0.275),
    "OUTPUT_PER_MILLION": _env_float("AGENTWATCH_CODEX_OUTPUT_PER_MILLION", 4.4),
    "CONTEXT_WINDOW": _env_int("AGENTWATCH_CODEX_CONTEXT_WINDOW", 200000),
}

# Features
STATS_ENABLED = _env_bool("AGENTWATCH_STATS_ENABLED", True)
