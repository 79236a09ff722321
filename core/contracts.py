# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Foundation - Core enums and shared helpers
# PURPOSE: Event types, run outcomes, priorities, severities, timestamps
# CREATED: 19 OCT 2026
# EXPORTS: EventType, RunStatus, TierPriority, Severity, WatchdogHealth
# DEPENDENCIES: enum, datetime
# ============================================================================
"""
Base contracts for the monitoring scheduler.

These values cross the Event Log and state-file boundaries, so their
string values are part of the on-disk format and must not change.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


# ============================================================================
# EVENT LOG
# ============================================================================

class EventType(str, Enum):
    """
    Event types written to the Event Log.

    Readers must still accept other values: child scripts write their
    own event types into the same file.
    """
    TASK_START = "TASK_START"
    TASK_END = "TASK_END"
    TASK_ERROR = "TASK_ERROR"
    PROGRESS = "PROGRESS"
    HEALTH_ALERT = "HEALTH_ALERT"
    TASK_SKIP = "TASK_SKIP"

    @classmethod
    def terminal(cls) -> tuple:
        """Event types that close a task session."""
        return (cls.TASK_END.value, cls.TASK_ERROR.value)


SYSTEM_TARGET = "system"


# ============================================================================
# RUN OUTCOMES
# ============================================================================

class RunStatus(str, Enum):
    """
    Outcome of a single task run.

    State transitions:
        IDLE -> RUNNING -> COMPLETED
                        -> FAILED
                        -> TIMED_OUT

    TIMED_OUT is booked exactly like FAILED (history status "failed",
    failure counter incremented) but carries a timeout-specific message.
    """
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timeout"

    @property
    def history_status(self) -> str:
        """Status string written to the task history."""
        if self == RunStatus.COMPLETED:
            return RunStatus.COMPLETED.value
        return RunStatus.FAILED.value

    @property
    def is_success(self) -> bool:
        return self == RunStatus.COMPLETED


class TierPriority(str, Enum):
    """Priority label of a scheduling tier."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


# ============================================================================
# ALERTS
# ============================================================================

class Severity(str, Enum):
    """Health alert severity (worst wins)."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return {Severity.INFO: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}[self]

    @classmethod
    def worst(cls, severities: List["Severity"]) -> Optional["Severity"]:
        """Highest severity of a list, None when empty."""
        if not severities:
            return None
        return max(severities, key=lambda s: s.rank)


class WatchdogHealth(str, Enum):
    """Overall health reported by the watchdog status query."""
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


# ============================================================================
# TIMESTAMPS
# ============================================================================

def utc_now() -> datetime:
    """Current time, timezone-aware UTC."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Format a datetime as ISO8601 UTC with millisecond precision and 'Z'.

    Example: 2026-10-19T05:34:00.123Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_iso(value: str) -> datetime:
    """Parse an ISO8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = [
    "EventType",
    "SYSTEM_TARGET",
    "RunStatus",
    "TierPriority",
    "Severity",
    "WatchdogHealth",
    "utc_now",
    "to_iso",
    "parse_iso",
]
