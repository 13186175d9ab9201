"""Pydantic models matching the consumer-facing telemetry types."""
from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

EventType = Literal["init", "text", "tool_use", "result", "error", "system"]
QuerySource = Literal["user", "auto"]
SessionOriginType = Literal["user", "auto"]
StatsTimeRange = Literal["day", "week", "month", "year", "all"]


# ── Normalized agent output ─────────────────────────────────────────

class EventUsage(BaseModel):
    inputTokens: int = 0
    outputTokens: int = 0
    cacheReadTokens: Optional[int] = None
    cacheCreationTokens: Optional[int] = None
    contextWindow: Optional[int] = None
    costUsd: Optional[float] = None
    reasoningTokens: Optional[int] = None


class AgentEvent(BaseModel):
    type: EventType
    sessionId: Optional[str] = None
    text: Optional[str] = None
    isPartial: bool = False
    toolName: Optional[str] = None
    toolState: Any = None
    usage: Optional[EventUsage] = None
    slashCommands: Optional[list[str]] = None
    raw: Any = None

    @property
    def kind(self) -> str:
        return self.type


# ── Usage aggregation ───────────────────────────────────────────────

class ModelStats(BaseModel):
    inputTokens: int = 0
    outputTokens: int = 0
    cacheReadInputTokens: int = 0
    cacheCreationInputTokens: int = 0
    contextWindow: int = 0


class UsageStats(BaseModel):
    inputTokens: int = 0
    outputTokens: int = 0
    cacheReadInputTokens: int = 0
    cacheCreationInputTokens: int = 0
    totalCostUsd: float = 0.0
    contextWindow: int = 0


# ── Session listing ─────────────────────────────────────────────────

class SessionFileInfo(BaseModel):
    sessionId: str
    path: str
    size: int
    mtime: float


class SessionOrigin(BaseModel):
    origin: SessionOriginType = "user"
    sessionName: Optional[str] = None
    starred: Optional[bool] = None


class SessionSummary(BaseModel):
    sessionId: str
    projectPath: str
    firstMessage: str = ""
    messageCount: int = 0
    inputTokens: int = 0
    outputTokens: int = 0
    cacheReadTokens: int = 0
    cacheCreationTokens: int = 0
    costUsd: float = 0.0
    createdAt: str = ""
    modifiedAt: str = ""
    sizeBytes: int = 0
    durationSeconds: int = 0
    origin: SessionOriginType = "user"
    sessionName: Optional[str] = None
    starred: Optional[bool] = None


class PaginatedSessions(BaseModel):
    sessions: list[SessionSummary] = Field(default_factory=list)
    hasMore: bool = False
    totalCount: int = 0
    nextCursor: Optional[str] = None


# ── Stats store records ─────────────────────────────────────────────

class QueryEventCreate(BaseModel):
    sessionId: str
    agentType: str
    source: QuerySource
    startTime: int
    duration: int = Field(ge=0)
    projectPath: Optional[str] = None
    tabId: Optional[str] = None
    isRemote: Optional[bool] = None


class QueryEvent(QueryEventCreate):
    id: str


class StatsFilters(BaseModel):
    agentType: Optional[str] = None
    source: Optional[QuerySource] = None
    projectPath: Optional[str] = None
    sessionId: Optional[str] = None


class AutoRunSessionCreate(BaseModel):
    sessionId: str
    agentType: str
    documentPath: Optional[str] = None
    startTime: int
    duration: int = Field(default=0, ge=0)
    tasksTotal: Optional[int] = None
    tasksCompleted: Optional[int] = None
    projectPath: Optional[str] = None


class AutoRunSession(AutoRunSessionCreate):
    id: str


class AutoRunSessionUpdate(BaseModel):
    duration: Optional[int] = Field(default=None, ge=0)
    tasksTotal: Optional[int] = None
    tasksCompleted: Optional[int] = None
    documentPath: Optional[str] = None


class AutoRunTaskCreate(BaseModel):
    autoRunSessionId: str
    sessionId: str
    agentType: str
    taskIndex: int
    taskContent: Optional[str] = None
    startTime: int
    duration: int = Field(ge=0)
    success: bool


class AutoRunTask(AutoRunTaskCreate):
    id: str


class SessionLifecycleCreate(BaseModel):
    sessionId: str
    agentType: str
    projectPath: Optional[str] = None
    createdAt: int
    isRemote: Optional[bool] = None


class SessionLifecycleEvent(SessionLifecycleCreate):
    id: str
    closedAt: Optional[int] = None
    duration: Optional[int] = None


# ── Aggregations ────────────────────────────────────────────────────

class AgentTotals(BaseModel):
    count: int = 0
    duration: int = 0


class DayTotals(BaseModel):
    date: str
    count: int = 0
    duration: int = 0


class HourTotals(BaseModel):
    hour: int
    count: int = 0
    duration: int = 0


class DayCount(BaseModel):
    date: str
    count: int = 0


class SourceTotals(BaseModel):
    user: int = 0
    auto: int = 0


class LocationTotals(BaseModel):
    local: int = 0
    remote: int = 0


class StatsAggregation(BaseModel):
    totalQueries: int = 0
    totalDuration: int = 0
    avgDuration: int = 0
    byAgent: dict[str, AgentTotals] = Field(default_factory=dict)
    bySource: SourceTotals = Field(default_factory=SourceTotals)
    byDay: list[DayTotals] = Field(default_factory=list)
    byLocation: LocationTotals = Field(default_factory=LocationTotals)
    byHour: list[HourTotals] = Field(default_factory=list)
    byAgentByDay: dict[str, list[DayTotals]] = Field(default_factory=dict)
    bySessionByDay: dict[str, list[DayTotals]] = Field(default_factory=dict)
    totalSessions: int = 0
    sessionsByAgent: dict[str, int] = Field(default_factory=dict)
    sessionsByDay: list[DayCount] = Field(default_factory=list)
    avgSessionDuration: int = 0


# ── Maintenance ─────────────────────────────────────────────────────

class MigrationRecord(BaseModel):
    version: int
    description: str
    appliedAt: int
    status: Literal["success", "failed"]
    errorMessage: Optional[str] = None


class IntegrityCheckResult(BaseModel):
    ok: bool
    errors: list[str] = Field(default_factory=list)


class BackupResult(BaseModel):
    success: bool
    backupPath: Optional[str] = None
    error: Optional[str] = None


class VacuumResult(BaseModel):
    success: bool
    bytesFreed: int = 0
    error: Optional[str] = None


class ClearDataResult(BaseModel):
    success: bool
    deletedQueryEvents: int = 0
    deletedAutoRunSessions: int = 0
    deletedAutoRunTasks: int = 0
    deletedSessionLifecycle: int = 0
    error: Optional[str] = None
