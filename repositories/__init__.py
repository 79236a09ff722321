# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - File-backed persistence layer
# PURPOSE: Event Log, run-state snapshot, task registry
# CREATED: 19 OCT 2026
# ============================================================================
"""
Repositories Module

File-backed stores for the monitoring scheduler:
- EventLogRepository: append-only events.jsonl
- RunStateRepository: monitoringState.json snapshot
- TaskRegistry: read-only taskRegistry.json catalogue

Usage:
    from repositories import EventLogRepository, RunStateRepository

    events = EventLogRepository(paths.events_file)
    state = RunStateRepository(paths.state_file)
    state.load_state()
"""

from .event_repo import EventLogRepository
from .state_repo import RunStateRepository, DEFAULT_HISTORY_LIMIT
from .registry_repo import TaskRegistry, RegistryError, expand_script_path

__all__ = [
    "EventLogRepository",
    "RunStateRepository",
    "DEFAULT_HISTORY_LIMIT",
    "TaskRegistry",
    "RegistryError",
    "expand_script_path",
]
