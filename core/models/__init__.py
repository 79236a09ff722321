# ============================================================================
# CORE MODELS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Pydantic models
# PURPOSE: Export task, event, state and watchdog models
# CREATED: 19 OCT 2026
# ============================================================================

from core.models.task import TaskDefinition, Tier, RunRecord
from core.models.events import TaskEvent, HealthAlertMetadata
from core.models.state import TaskHistoryEntry, MonitoringState
from core.models.watchdog import (
    SessionState,
    TaskSession,
    StuckTaskReport,
    ProcessInfo,
    OrphanedProcess,
    SuspiciousProcess,
    OrphanReport,
    HealthAlert,
    AlertQueryResult,
    WatchdogStatus,
)

__all__ = [
    # Task catalogue
    "TaskDefinition",
    "Tier",
    "RunRecord",
    # Event Log
    "TaskEvent",
    "HealthAlertMetadata",
    # Run state
    "TaskHistoryEntry",
    "MonitoringState",
    # Watchdog views
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
