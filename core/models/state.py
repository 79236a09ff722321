# ============================================================================
# MONITORING STATE MODEL
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core model - Persisted run-state snapshot
# PURPOSE: Last runs, bounded task history, consecutive failure counters
# CREATED: 19 OCT 2026
# EXPORTS: TaskHistoryEntry, MonitoringState
# DEPENDENCIES: pydantic
# ============================================================================
"""
Monitoring State Model

Snapshot written whole to monitoringState.json:
    {"lastRun": {"<task>": "<ISO8601>"},
     "taskHistory": [{"taskName", "status", "duration", "timestamp", "error"}],
     "failureCount": {"<task>": <int>},
     "startTime": "<ISO8601>"}

Timestamps are kept as the ISO strings they were written with, so a
save/load round trip reproduces the file exactly.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.contracts import RunStatus, to_iso, utc_now


class TaskHistoryEntry(BaseModel):
    """One completed or failed run."""

    model_config = ConfigDict(populate_by_name=True)

    task_name: str = Field(..., alias="taskName")
    status: str
    duration: int = Field(default=0, description="Run duration in milliseconds")
    timestamp: str = Field(default_factory=lambda: to_iso(utc_now()))
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.COMPLETED.value


class MonitoringState(BaseModel):
    """
    Persisted scheduler state.

    Invariant: failure_count[t] is reset to 0 by any completed run of t
    and incremented by 1 by any failed run of t.
    """

    model_config = ConfigDict(populate_by_name=True)

    last_run: Dict[str, str] = Field(default_factory=dict, alias="lastRun")
    task_history: List[TaskHistoryEntry] = Field(default_factory=list, alias="taskHistory")
    failure_count: Dict[str, int] = Field(default_factory=dict, alias="failureCount")
    start_time: str = Field(default_factory=lambda: to_iso(utc_now()), alias="startTime")

    @classmethod
    def fresh(cls) -> "MonitoringState":
        """Empty state stamped with the current start time."""
        return cls()

    def record(
        self,
        task_name: str,
        status: str,
        duration_ms: int,
        error: Optional[str] = None,
        history_limit: int = 100,
    ) -> TaskHistoryEntry:
        """Append one run outcome and apply the failure-counter rule."""
        entry = TaskHistoryEntry(
            task_name=task_name,
            status=status,
            duration=duration_ms,
            error=error,
        )

        self.task_history.append(entry)
        if len(self.task_history) > history_limit:
            self.task_history = self.task_history[-history_limit:]

        self.last_run[task_name] = entry.timestamp

        if status == RunStatus.FAILED.value:
            self.failure_count[task_name] = self.failure_count.get(task_name, 0) + 1
        elif status == RunStatus.COMPLETED.value:
            self.failure_count[task_name] = 0

        return entry

    def failures_for(self, task_name: str) -> int:
        return self.failure_count.get(task_name, 0)

    @property
    def total_failures(self) -> int:
        return sum(self.failure_count.values())

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = ["TaskHistoryEntry", "MonitoringState"]
