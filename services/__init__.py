# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Services - Event emission and watchdog analysis
# PURPOSE: Business logic over the Event Log
# CREATED: 19 OCT 2026
# ============================================================================
"""
Services module.

Provides:
- EventService: fire-and-forget lifecycle events and health alerts
- WatchdogService: active/stuck/orphan analysis and alert queries
"""

from services.event_service import EventService, COMPONENT_SCHEDULER
from services.watchdog_service import WatchdogService, build_sessions, completion_rate

__all__ = [
    "EventService",
    "COMPONENT_SCHEDULER",
    "WatchdogService",
    "build_sessions",
    "completion_rate",
]
