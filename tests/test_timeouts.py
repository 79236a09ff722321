# ============================================================================
# TASK TIMEOUT TESTS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Tests - Executor timeout resolution
# PURPOSE: Verify default, averageDuration, enforcedTimeout and clamping
# CREATED: 19 OCT 2026
# ============================================================================
"""
Task Timeout Tests

Covers:
1. Default timeout when the registry has no durations
2. averageDuration x 2
3. enforcedTimeout wins over averageDuration
4. Clamp to [5 min, 120 min], enforced value included

Run with:
    pytest tests/test_timeouts.py -v
"""

from pathlib import Path

import pytest

from core.config import MINUTE_MS, TimeoutDefaults
from core.models import TaskDefinition
from worker import TimeoutSource, resolve_task_timeout


def _task(average=None, enforced=None) -> TaskDefinition:
    return TaskDefinition(
        name="systemResourceMonitor",
        script_path=Path("/opt/brainstorm/monitor.sh"),
        expected_duration_ms=average,
        enforced_timeout_ms=enforced,
    )


# ============================================================================
# RESOLUTION ORDER
# ============================================================================

class TestResolutionOrder:

    def test_default_without_durations(self):
        resolution = resolve_task_timeout(_task())
        assert resolution.timeout_ms == 30 * MINUTE_MS
        assert resolution.source == TimeoutSource.DEFAULT
        assert not resolution.was_adjusted

    def test_average_duration_doubled(self):
        resolution = resolve_task_timeout(_task(average=4 * MINUTE_MS))
        assert resolution.timeout_ms == 8 * MINUTE_MS
        assert resolution.source == TimeoutSource.AVERAGE_DURATION

    def test_enforced_wins_over_average(self):
        resolution = resolve_task_timeout(_task(average=60 * MINUTE_MS, enforced=10 * MINUTE_MS))
        assert resolution.timeout_ms == 10 * MINUTE_MS
        assert resolution.source == TimeoutSource.ENFORCED

    def test_enforced_wins_over_tiny_average(self):
        resolution = resolve_task_timeout(_task(average=10, enforced=20 * MINUTE_MS))
        assert resolution.timeout_ms == 20 * MINUTE_MS
        assert not resolution.was_adjusted

    def test_zero_average_means_unset(self):
        task = TaskDefinition.model_validate({
            "name": "taskWatchdog",
            "script": "/opt/brainstorm/watchdog.sh",
            "averageDuration": 0,
            "enforcedTimeout": None,
        })
        assert task.expected_duration_ms is None
        assert resolve_task_timeout(task).source == TimeoutSource.DEFAULT


# ============================================================================
# CLAMPING
# ============================================================================

class TestClamping:

    def test_short_average_clamped_up(self):
        resolution = resolve_task_timeout(_task(average=1 * MINUTE_MS))
        assert resolution.timeout_ms == 5 * MINUTE_MS
        assert resolution.was_adjusted

    def test_long_average_clamped_down(self):
        resolution = resolve_task_timeout(_task(average=90 * MINUTE_MS))
        assert resolution.timeout_ms == 120 * MINUTE_MS
        assert resolution.was_adjusted

    def test_enforced_value_is_clamped_too(self):
        assert resolve_task_timeout(_task(enforced=MINUTE_MS)).timeout_ms == 5 * MINUTE_MS
        assert resolve_task_timeout(_task(enforced=200 * MINUTE_MS)).timeout_ms == 120 * MINUTE_MS

    @pytest.mark.parametrize("average", [1, 1000, 2 * MINUTE_MS, 45 * MINUTE_MS, 10 ** 9])
    @pytest.mark.parametrize("enforced", [None, 1, 7 * MINUTE_MS, 10 ** 9])
    def test_always_within_bounds(self, average, enforced):
        resolution = resolve_task_timeout(_task(average=average, enforced=enforced))
        assert 5 * MINUTE_MS <= resolution.timeout_ms <= 120 * MINUTE_MS

    def test_custom_bounds(self):
        defaults = TimeoutDefaults(default_ms=1000, min_ms=500, max_ms=2000)
        assert resolve_task_timeout(_task(), defaults).timeout_ms == 1000
        assert resolve_task_timeout(_task(average=5000), defaults).timeout_ms == 2000

    def test_describe(self):
        resolution = resolve_task_timeout(_task(average=MINUTE_MS))
        assert resolution.describe() == "5 min from averageDuration (clamped)"
        assert resolution.timeout_seconds == 300.0
