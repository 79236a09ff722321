# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core module initialization
# PURPOSE: Export contracts and models
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================

from core.contracts import (
    EventType,
    RunStatus,
    TierPriority,
    Severity,
    WatchdogHealth,
    SYSTEM_TARGET,
)
from core.models import (
    TaskDefinition,
    Tier,
    RunRecord,
    TaskEvent,
    HealthAlertMetadata,
    TaskHistoryEntry,
    MonitoringState,
)

__all__ = [
    # Enums
    "EventType",
    "RunStatus",
    "TierPriority",
    "Severity",
    "WatchdogHealth",
    "SYSTEM_TARGET",
    # Models
    "TaskDefinition",
    "Tier",
    "RunRecord",
    "TaskEvent",
    "HealthAlertMetadata",
    "TaskHistoryEntry",
    "MonitoringState",
]
