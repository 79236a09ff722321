# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the monitoring scheduler.
"""

from core.config.defaults import (
    MINUTE_MS,
    TimeoutDefaults,
    SchedulerDefaults,
    WatchdogDefaults,
    ExecutorDefaults,
    PathDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "MINUTE_MS",
    "TimeoutDefaults",
    "SchedulerDefaults",
    "WatchdogDefaults",
    "ExecutorDefaults",
    "PathDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
