# ============================================================================
# TASK TIMEOUT RESOLUTION
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Executor timeout computation
# PURPOSE: Derive a task's timeout from its registry durations
# CREATED: 19 OCT 2026
# ============================================================================
"""
Task Timeout Resolution

    1. default (30 min)
    2. averageDuration x 2, when the task has an observed average
    3. enforcedTimeout, when set, wins outright over step 2
    4. clamp to [5 min, 120 min]

The clamp applies to the enforced value as well.
"""

from dataclasses import dataclass
from typing import Optional

from core.config import MINUTE_MS, TimeoutDefaults
from core.models import TaskDefinition


class TimeoutSource:
    DEFAULT = "default"
    AVERAGE_DURATION = "averageDuration"
    ENFORCED = "enforcedTimeout"


@dataclass(frozen=True)
class TimeoutResolution:
    """A computed timeout and where it came from."""
    timeout_ms: int
    source: str
    was_adjusted: bool = False

    @property
    def timeout_minutes(self) -> float:
        return self.timeout_ms / MINUTE_MS

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def describe(self) -> str:
        clamped = " (clamped)" if self.was_adjusted else ""
        return f"{self.timeout_minutes:g} min from {self.source}{clamped}"


def resolve_task_timeout(
    task: TaskDefinition,
    defaults: Optional[TimeoutDefaults] = None,
) -> TimeoutResolution:
    """Compute the executor timeout for a task."""
    defaults = defaults or TimeoutDefaults()

    timeout_ms = defaults.default_ms
    source = TimeoutSource.DEFAULT

    if task.expected_duration_ms:
        timeout_ms = int(task.expected_duration_ms * defaults.average_duration_multiplier)
        source = TimeoutSource.AVERAGE_DURATION

    if task.enforced_timeout_ms:
        timeout_ms = task.enforced_timeout_ms
        source = TimeoutSource.ENFORCED

    clamped = min(max(timeout_ms, defaults.min_ms), defaults.max_ms)
    return TimeoutResolution(
        timeout_ms=clamped,
        source=source,
        was_adjusted=clamped != timeout_ms,
    )


__all__ = ["TimeoutSource", "TimeoutResolution", "resolve_task_timeout"]
