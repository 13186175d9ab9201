"""Exceptions raised by the telemetry store."""
from __future__ import annotations


class TelemetryError(Exception):
    """Base class for agentwatch errors."""


class StoreNotReadyError(TelemetryError):
    """The stats store was used before initialize() completed or after close()."""


class MigrationError(TelemetryError):
    """A schema migration failed; the store must not be used."""

    def __init__(self, version: int, message: str):
        super().__init__(f"Migration v{version} failed: {message}")
        self.version = version


class StoreWriteError(TelemetryError):
    """A write could not be persisted (disk full, permissions, locked file)."""


class CorruptRecordError(TelemetryError):
    """A stored row is missing a value for a required column."""

    def __init__(self, table: str, row_id: object, column: str):
        super().__init__(f"Corrupt {table} row {row_id!r}: column {column} is NULL")
        self.table = table
        self.row_id = row_id
        self.column = column
