"""Repository package for stats store access."""

from .query_events import SqliteQueryEventRepository
from .auto_run import SqliteAutoRunRepository
from .session_lifecycle import SqliteSessionLifecycleRepository
from .aggregations import SqliteAggregationRepository
from .data_management import SqliteDataManagementRepository

__all__ = [
    "SqliteQueryEventRepository",
    "SqliteAutoRunRepository",
    "SqliteSessionLifecycleRepository",
    "SqliteAggregationRepository",
    "SqliteDataManagementRepository",
]
