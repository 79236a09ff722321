# ============================================================================
# WORKER MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Task execution components
# PURPOSE: Subprocess execution, timeout resolution, result parsing
# CREATED: 19 OCT 2026
# ============================================================================
"""
Worker Module

Components for running one task:
- contracts: Execution result, executor errors, RESULT: marker parser
- timeouts: Timeout resolution from registry durations
- executor: Subprocess execution engine
"""

from worker.contracts import (
    ExecutionResult,
    ResultMarkerParser,
    TaskExecutionError,
    TaskSpawnError,
    TaskTimeoutError,
)
from worker.timeouts import (
    TimeoutResolution,
    TimeoutSource,
    resolve_task_timeout,
)
from worker.executor import TaskExecutor

__all__ = [
    # Contracts
    "ExecutionResult",
    "ResultMarkerParser",
    "TaskExecutionError",
    "TaskSpawnError",
    "TaskTimeoutError",
    # Timeouts
    "TimeoutResolution",
    "TimeoutSource",
    "resolve_task_timeout",
    # Executor
    "TaskExecutor",
]
