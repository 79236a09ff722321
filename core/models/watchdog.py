# ============================================================================
# WATCHDOG VIEW MODELS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core model - Derived, non-persisted watchdog reports
# PURPOSE: Task sessions, stuck tasks, orphaned processes, alert queries
# CREATED: 19 OCT 2026
# EXPORTS: TaskSession, StuckTaskReport, ProcessInfo, OrphanedProcess,
#          SuspiciousProcess, OrphanReport, HealthAlert, AlertQueryResult,
#          WatchdogStatus
# DEPENDENCIES: pydantic
# ============================================================================
"""
Watchdog View Models

Everything here is computed on query from the Event Log and a snapshot
of OS processes. Nothing is written back. Field aliases match the JSON
shape consumed by the dashboard.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from core.contracts import Severity, WatchdogHealth, to_iso


class _ViewModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# SESSIONS
# ============================================================================

class SessionState:
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    # A later TASK_START reused the key before this session ended
    SUPERSEDED = "superseded"


class TaskSession(_ViewModel):
    """
    Events sharing (taskName, target, pid), bounded by TASK_START and
    TASK_END/TASK_ERROR. A session without a terminal event is active.
    """

    task_name: str = Field(..., alias="taskName")
    target: str
    pid: Optional[int] = None
    status: str = SessionState.RUNNING
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    child_pids: List[int] = Field(default_factory=list, alias="childPids")
    last_event_type: Optional[str] = Field(default=None, alias="lastEventType")
    last_event_time: Optional[datetime] = Field(default=None, alias="lastEventTime")

    @property
    def key(self) -> tuple:
        return (self.task_name, self.target, self.pid)

    @property
    def is_active(self) -> bool:
        return self.status == SessionState.RUNNING and self.start_time is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionState.COMPLETED, SessionState.FAILED, SessionState.SUPERSEDED)

    @property
    def duration_ms(self) -> Optional[int]:
        if self.start_time and self.end_time:
            return int((self.end_time - self.start_time).total_seconds() * 1000)
        return None

    @field_serializer("start_time", "end_time", "last_event_time")
    def _serialize_time(self, value: Optional[datetime]) -> Optional[str]:
        return to_iso(value) if value else None


# ============================================================================
# STUCK TASKS
# ============================================================================

class StuckTaskReport(_ViewModel):
    """An active session running past its staleness threshold."""

    task_name: str = Field(..., alias="taskName")
    target: str
    start_time: datetime = Field(..., alias="startTime")
    running_time_minutes: int = Field(..., alias="runningTimeMinutes")
    expected_duration_minutes: int = Field(..., alias="expectedDurationMinutes")
    threshold_minutes: int = Field(..., alias="thresholdMinutes")
    pid: Optional[int] = None
    status: str = "stuck"
    severity: Severity
    last_event_type: Optional[str] = Field(default=None, alias="lastEventType")
    last_event_time: Optional[datetime] = Field(default=None, alias="lastEventTime")
    actions: List[str] = Field(default_factory=lambda: [
        "Check process status",
        "Review task logs",
        "Consider manual intervention",
    ])

    @field_serializer("start_time", "last_event_time")
    def _serialize_time(self, value: Optional[datetime]) -> Optional[str]:
        return to_iso(value) if value else None


# ============================================================================
# PROCESSES
# ============================================================================

class ProcessInfo(_ViewModel):
    """One entry of the OS process snapshot."""

    pid: int
    command: str = ""
    user: Optional[str] = None
    cpu: float = 0.0
    memory: float = 0.0


class OrphanedProcess(_ViewModel):
    """A live process whose originating task session already ended."""

    pid: int
    task_name: str = Field(..., alias="taskName")
    target: str
    command: str
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    cpu: float = 0.0
    memory: float = 0.0
    status: str = "orphaned"
    severity: Severity = Severity.WARNING
    actions: List[str] = Field(default_factory=lambda: [
        "Verify process is actually orphaned",
        "Check if process can be safely terminated",
        "Kill process if confirmed orphaned",
    ])

    @field_serializer("start_time")
    def _serialize_time(self, value: Optional[datetime]) -> Optional[str]:
        return to_iso(value) if value else None


class SuspiciousProcess(_ViewModel):
    """A relevant process that no recent event mentions."""

    pid: int
    command: str
    user: Optional[str] = None
    cpu: float = 0.0
    memory: float = 0.0
    status: str = "suspicious"
    severity: Severity = Severity.INFO
    reason: str = "Process not tracked in recent events"
    actions: List[str] = Field(default_factory=lambda: [
        "Investigate process origin",
        "Check if process is legitimate",
        "Monitor process behavior",
    ])


class OrphanReport(_ViewModel):
    orphaned_processes: List[OrphanedProcess] = Field(default_factory=list, alias="orphanedProcesses")
    suspicious_processes: List[SuspiciousProcess] = Field(default_factory=list, alias="suspiciousProcesses")
    total_tracked_pids: int = Field(default=0, alias="totalTrackedPids")
    total_running_processes: int = Field(default=0, alias="totalRunningProcesses")
    analysis_window_hours: float = Field(default=24.0, alias="analysisWindowHours")

    @property
    def total_orphaned(self) -> int:
        return len(self.orphaned_processes)


# ============================================================================
# ALERTS
# ============================================================================

class HealthAlert(_ViewModel):
    """A HEALTH_ALERT event flattened for display."""

    id: str
    timestamp: datetime
    task_name: str = Field(..., alias="taskName")
    target: str
    alert_type: str = Field(..., alias="alertType")
    severity: Severity
    component: str
    message: str
    recommended_action: str = Field(..., alias="recommendedAction")
    additional_data: Dict[str, Any] = Field(default_factory=dict, alias="additionalData")

    @field_serializer("timestamp")
    def _serialize_time(self, value: datetime) -> str:
        return to_iso(value)


class AlertQueryResult(_ViewModel):
    """Filtered alerts plus counts by severity over the whole filtered set."""

    alerts: List[HealthAlert] = Field(default_factory=list)
    total_alerts: int = Field(default=0, alias="totalAlerts")
    counts: Dict[str, int] = Field(default_factory=lambda: {s.value: 0 for s in Severity})
    alert_types: List[str] = Field(default_factory=list, alias="alertTypes")
    components: List[str] = Field(default_factory=list)
    time_range_hours: float = Field(default=24.0, alias="timeRangeHours")
    filters: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# STATUS
# ============================================================================

class WatchdogStatus(_ViewModel):
    """Overall watchdog summary for the requested window."""

    active_tasks: int = Field(default=0, alias="activeTasks")
    stuck_tasks: int = Field(default=0, alias="stuckTasks")
    orphaned_processes: int = Field(default=0, alias="orphanedProcesses")
    task_completion_rate: int = Field(default=100, alias="taskCompletionRate")
    health_status: WatchdogHealth = Field(default=WatchdogHealth.UNKNOWN, alias="healthStatus")
    completed_tasks: int = Field(default=0, alias="completedTasks")
    failed_tasks: int = Field(default=0, alias="failedTasks")
    total_sessions_analyzed: int = Field(default=0, alias="totalSessionsAnalyzed")
    analysis_window_hours: float = Field(default=24.0, alias="analysisWindowHours")


__all__ = [
    "SessionState",
    "TaskSession",
    "StuckTaskReport",
    "ProcessInfo",
    "OrphanedProcess",
    "SuspiciousProcess",
    "OrphanReport",
    "HealthAlert",
    "AlertQueryResult",
    "WatchdogStatus",
]
