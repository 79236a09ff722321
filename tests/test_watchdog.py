# ============================================================================
# TASK WATCHDOG TESTS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Tests - Event Log analysis
# PURPOSE: Verify sessions, stuck detection, orphans, status and alerts
# CREATED: 19 OCT 2026
# ============================================================================
"""
Task Watchdog Tests

Events are written with explicit timestamps and the service runs on a
fixed clock; the process table is a fake provider.

Run with:
    pytest tests/test_watchdog.py -v
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from core.config import WatchdogDefaults
from core.contracts import Severity, WatchdogHealth, to_iso
from core.models import ProcessInfo, SessionState
from repositories import EventLogRepository
from services import WatchdogService, build_sessions, completion_rate

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# FIXTURES
# ============================================================================

def _event(minutes_ago, task, event_type, pid=100, target="system", **metadata):
    return {
        "timestamp": to_iso(NOW - timedelta(minutes=minutes_ago)),
        "taskName": task,
        "target": target,
        "eventType": event_type,
        "pid": pid,
        "metadata": metadata,
    }


@pytest.fixture
def events_path(tmp_path):
    return tmp_path / "events.jsonl"


def _write(path, records):
    with open(path, "a", encoding="utf-8") as handle:
        for record in records:
            handle.write(json.dumps(record) + "\n")


def _watchdog(path, processes=None, defaults=None, tracked=None) -> WatchdogService:
    """Fake process table; tracked holds processes only a direct pid lookup finds."""
    tracked = {proc.pid: proc for proc in tracked or []}
    return WatchdogService(
        EventLogRepository(path),
        defaults=defaults,
        process_provider=lambda: list(processes or []),
        pid_lookup=lambda pids: [tracked[pid] for pid in pids if pid in tracked],
        clock=lambda: NOW,
    )


# ============================================================================
# SESSIONS
# ============================================================================

class TestBuildSessions:

    def test_start_end_pairing(self, events_path):
        _write(events_path, [
            _event(10, "taskWatchdog", "TASK_START", pid=1),
            _event(9, "taskWatchdog", "PROGRESS", pid=1, child_pid=555),
            _event(8, "taskWatchdog", "TASK_END", pid=1),
            _event(5, "taskWatchdog", "TASK_START", pid=1),
        ])
        events = EventLogRepository(events_path).read_events()

        first, second = build_sessions(events)

        assert first.status == SessionState.COMPLETED
        assert first.child_pids == [555]
        assert first.duration_ms == 2 * 60 * 1000
        assert second.is_active

    def test_sessions_keyed_by_target_and_pid(self, events_path):
        _write(events_path, [
            _event(10, "processCustomer", "TASK_START", pid=1, target="cust-a"),
            _event(10, "processCustomer", "TASK_START", pid=2, target="cust-b"),
            _event(9, "processCustomer", "TASK_ERROR", pid=2, target="cust-b"),
        ])

        sessions = build_sessions(EventLogRepository(events_path).read_events())

        assert [s.status for s in sessions] == [SessionState.RUNNING, SessionState.FAILED]

    def test_terminal_without_start(self, events_path):
        _write(events_path, [_event(3, "syncWoT", "TASK_END", pid=7)])

        (session,) = build_sessions(EventLogRepository(events_path).read_events())

        assert session.status == SessionState.COMPLETED
        assert session.start_time is None
        assert not session.is_active

    def test_restart_on_open_key_supersedes(self, events_path):
        _write(events_path, [
            _event(50, "syncWoT", "TASK_START", pid=7),
            _event(49, "syncWoT", "PROGRESS", pid=7, child_pid=700),
            _event(5, "syncWoT", "TASK_START", pid=7),
            _event(4, "syncWoT", "PROGRESS", pid=7, child_pid=701),
        ])

        old, new = build_sessions(EventLogRepository(events_path).read_events())

        assert old.status == SessionState.SUPERSEDED
        assert not old.is_active
        assert old.end_time == NOW - timedelta(minutes=5)
        assert old.child_pids == [700]
        assert new.is_active
        assert new.child_pids == [701]

    def test_superseded_session_not_counted(self, events_path):
        _write(events_path, [
            _event(200, "syncWoT", "TASK_START", pid=7),
            _event(5, "syncWoT", "TASK_START", pid=7),
            _event(4, "syncWoT", "TASK_END", pid=7),
        ])

        status = _watchdog(events_path).get_status()

        assert status.active_tasks == 0
        assert status.stuck_tasks == 0
        assert status.completed_tasks == 1
        assert status.failed_tasks == 0
        assert status.health_status == WatchdogHealth.HEALTHY

    def test_progress_without_session_ignored(self, events_path):
        _write(events_path, [_event(3, "syncWoT", "PROGRESS", pid=7)])
        assert build_sessions(EventLogRepository(events_path).read_events()) == []


# ============================================================================
# STUCK TASKS
# ============================================================================

class TestStuckTasks:

    @pytest.mark.parametrize("minutes, expected", [
        (29, None),
        (30.9, None),
        (31, Severity.WARNING),
        (60, Severity.WARNING),
        (61, Severity.CRITICAL),
    ])
    def test_threshold_floor_applies(self, events_path, minutes, expected):
        # taskWatchdog expects 10 minutes; the 30 minute floor wins
        _write(events_path, [_event(minutes, "taskWatchdog", "TASK_START")])

        data = _watchdog(events_path).get_stuck_tasks()

        if expected is None:
            assert data["totalStuckTasks"] == 0
        else:
            (report,) = data["stuckTasks"]
            assert report["severity"] == expected.value
            assert report["thresholdMinutes"] == 30
            assert report["expectedDurationMinutes"] == 10
            assert report["runningTimeMinutes"] == int(minutes)

    def test_long_expected_duration(self, events_path):
        _write(events_path, [
            _event(44, "syncWoT", "TASK_START", pid=1),
            _event(46, "reconciliation", "TASK_START", pid=2),
        ])

        data = _watchdog(events_path).get_stuck_tasks()

        assert data["totalStuckTasks"] == 0

    def test_finished_sessions_never_stuck(self, events_path):
        _write(events_path, [
            _event(120, "taskWatchdog", "TASK_START"),
            _event(1, "taskWatchdog", "TASK_END"),
        ])
        assert _watchdog(events_path).get_stuck_tasks()["totalStuckTasks"] == 0

    def test_sorted_longest_first_with_counts(self, events_path):
        _write(events_path, [
            _event(40, "a", "TASK_START", pid=1),
            _event(90, "b", "TASK_START", pid=2, child_pid=9001),
        ])

        data = _watchdog(events_path).get_stuck_tasks()

        assert [r["taskName"] for r in data["stuckTasks"]] == ["b", "a"]
        assert data["stuckTasks"][0]["pid"] == 9001
        assert data["criticalTasks"] == 1
        assert data["warningTasks"] == 1
        assert data["analysisWindowHours"] == 24.0

    def test_start_outside_window_not_reported(self, events_path):
        _write(events_path, [_event(3 * 60, "a", "TASK_START")])
        assert _watchdog(events_path).get_stuck_tasks(window_hours=2)["totalStuckTasks"] == 0


# ============================================================================
# ORPHANED AND SUSPICIOUS PROCESSES
# ============================================================================

class TestOrphanedProcesses:

    def _seed(self, events_path):
        _write(events_path, [
            _event(20, "neo4jStabilityMonitor", "TASK_START", pid=100),
            _event(19, "neo4jStabilityMonitor", "PROGRESS", pid=100, child_pid=5555),
            _event(10, "neo4jStabilityMonitor", "TASK_END", pid=100),
            _event(5, "taskWatchdog", "TASK_START", pid=100),
            _event(4, "taskWatchdog", "PROGRESS", pid=100, child_pid=6000),
        ])

    def test_classification(self, events_path):
        self._seed(events_path)
        processes = [
            ProcessInfo(pid=5555, command="node /opt/brainstorm/neo4jStabilityMonitor.js", cpu=1.5),
            ProcessInfo(pid=6000, command="bash /opt/brainstorm/taskWatchdog.sh"),
            ProcessInfo(pid=7777, command="/usr/bin/java neo4j console", user="neo4j"),
            ProcessInfo(pid=8888, command="/lib/systemd/systemd --user brainstorm"),
            ProcessInfo(pid=9999, command="sleep 100"),
        ]

        report = _watchdog(events_path, processes).get_orphaned_processes()

        assert [p.pid for p in report.orphaned_processes] == [5555]
        orphan = report.orphaned_processes[0]
        assert orphan.task_name == "neo4jStabilityMonitor"
        assert orphan.cpu == 1.5
        assert [p.pid for p in report.suspicious_processes] == [7777]
        assert report.suspicious_processes[0].user == "neo4j"
        assert report.total_tracked_pids == 2
        assert report.total_running_processes == 5

    def test_process_table_failure_is_empty(self, events_path):
        self._seed(events_path)

        def _broken():
            raise RuntimeError("no /proc")

        watchdog = WatchdogService(
            EventLogRepository(events_path),
            process_provider=_broken,
            pid_lookup=lambda pids: [],
            clock=lambda: NOW,
        )

        report = watchdog.get_orphaned_processes()

        assert report.orphaned_processes == []
        assert report.total_running_processes == 0

    def test_tracked_pid_found_without_pattern_match(self, events_path):
        self._seed(events_path)
        child = ProcessInfo(pid=5555, command="python3 /srv/monitors/stability_check.py")

        report = _watchdog(events_path, processes=[], tracked=[child]).get_orphaned_processes()

        assert [p.pid for p in report.orphaned_processes] == [5555]
        assert report.orphaned_processes[0].command == "python3 /srv/monitors/stability_check.py"
        assert report.suspicious_processes == []

    def test_lookup_only_asks_for_unscanned_pids(self, events_path):
        self._seed(events_path)
        asked = []

        def _lookup(pids):
            asked.extend(pids)
            return []

        watchdog = WatchdogService(
            EventLogRepository(events_path),
            process_provider=lambda: [ProcessInfo(pid=6000, command="bash /opt/brainstorm/taskWatchdog.sh")],
            pid_lookup=_lookup,
            clock=lambda: NOW,
        )
        watchdog.get_orphaned_processes()

        assert asked == [5555]


# ============================================================================
# STATUS
# ============================================================================

class TestStatus:

    @pytest.mark.parametrize("completed, failed, rate", [
        (0, 0, 100),
        (9, 1, 90),
        (2, 1, 67),
        (1, 2, 33),
        (0, 3, 0),
    ])
    def test_completion_rate(self, completed, failed, rate):
        assert completion_rate(completed, failed) == rate

    def test_unknown_without_log(self, events_path):
        status = _watchdog(events_path).get_status()
        assert status.health_status == WatchdogHealth.UNKNOWN
        assert status.to_dict()["healthStatus"] == "unknown"

    def test_empty_log_is_healthy(self, events_path):
        events_path.write_text("")
        status = _watchdog(events_path).get_status()
        assert status.health_status == WatchdogHealth.HEALTHY
        assert status.task_completion_rate == 100

    def test_healthy(self, events_path):
        _write(events_path, [
            _event(10, "a", "TASK_START"),
            _event(9, "a", "TASK_END"),
            _event(1, "b", "TASK_START", pid=2),
        ])

        status = _watchdog(events_path).get_status()

        assert status.health_status == WatchdogHealth.HEALTHY
        assert status.active_tasks == 1
        assert status.completed_tasks == 1
        assert status.total_sessions_analyzed == 2

    def test_low_completion_rate_warns(self, events_path):
        _write(events_path, [
            _event(10, "a", "TASK_START"),
            _event(9, "a", "TASK_END"),
            _event(10, "b", "TASK_START", pid=2),
            _event(9, "b", "TASK_ERROR", pid=2),
        ])

        status = _watchdog(events_path).get_status()

        assert status.task_completion_rate == 50
        assert status.health_status == WatchdogHealth.WARNING

    def test_many_active_tasks_warn(self, events_path):
        _write(events_path, [_event(1, "a", "TASK_START", pid=pid) for pid in range(11)])
        assert _watchdog(events_path).get_status().health_status == WatchdogHealth.WARNING

    def test_orphan_warns(self, events_path):
        _write(events_path, [
            _event(10, "a", "TASK_START", child_pid=4000),
            _event(9, "a", "TASK_END"),
        ])
        processes = [ProcessInfo(pid=4000, command="node a.js")]

        status = _watchdog(events_path, processes).get_status()

        assert status.orphaned_processes == 1
        assert status.health_status == WatchdogHealth.WARNING

    def test_stuck_is_critical(self, events_path):
        _write(events_path, [_event(45, "a", "TASK_START")])

        status = _watchdog(events_path).get_status()

        assert status.stuck_tasks == 1
        assert status.health_status == WatchdogHealth.CRITICAL


# ============================================================================
# ALERTS
# ============================================================================

class TestAlerts:

    def _alert(self, minutes_ago, severity, component="monitoring_scheduler", alert_type="X", **extra):
        metadata = {
            "alertType": alert_type,
            "severity": severity,
            "component": component,
            "message": f"{alert_type} {severity}",
        }
        metadata.update(extra)
        record = _event(minutes_ago, "monitoringScheduler", "HEALTH_ALERT")
        record["metadata"] = metadata
        return record

    def test_sorted_newest_first_with_counts(self, events_path):
        _write(events_path, [
            self._alert(30, "warning", alert_type="MONITORING_TASK_FAILED"),
            self._alert(10, "critical", alert_type="MONITORING_HIGH_FAILURES"),
            self._alert(20, "info", component="neo4j", alert_type="NEO4J_HEAP"),
            _event(5, "a", "TASK_START"),
        ])

        result = _watchdog(events_path).get_alerts()

        assert [a.alert_type for a in result.alerts] == [
            "MONITORING_HIGH_FAILURES", "NEO4J_HEAP", "MONITORING_TASK_FAILED",
        ]
        assert result.counts == {"info": 1, "warning": 1, "critical": 1}
        assert result.total_alerts == 3
        assert result.components == ["monitoring_scheduler", "neo4j"]
        newest = result.alerts[0]
        expected_ms = int((NOW - timedelta(minutes=10)).timestamp() * 1000)
        assert newest.id == f"monitoringScheduler_{expected_ms}"

    def test_limit_truncates_list_only(self, events_path):
        _write(events_path, [self._alert(i + 1, "warning") for i in range(5)])

        result = _watchdog(events_path).get_alerts(limit=2)

        assert len(result.alerts) == 2
        assert result.total_alerts == 5
        assert result.counts["warning"] == 5
        assert result.filters["limit"] == 2

    def test_component_and_severity_filters(self, events_path):
        _write(events_path, [
            self._alert(3, "warning", component="neo4j"),
            self._alert(2, "critical", component="neo4j"),
            self._alert(1, "critical", component="monitoring_scheduler"),
        ])

        result = _watchdog(events_path).get_alerts(component="neo4j", severity="critical")

        assert len(result.alerts) == 1
        assert result.alerts[0].component == "neo4j"
        assert result.alerts[0].severity == Severity.CRITICAL

    def test_window_excludes_old_alerts(self, events_path):
        _write(events_path, [self._alert(3 * 60, "warning"), self._alert(30, "warning")])
        assert _watchdog(events_path).get_alerts(hours=1).total_alerts == 1

    def test_missing_fields_get_defaults(self, events_path):
        record = _event(1, "childScript", "HEALTH_ALERT")
        record["metadata"] = {"severity": "bogus"}
        _write(events_path, [record])

        (alert,) = _watchdog(events_path).get_alerts().alerts

        assert alert.severity == Severity.INFO
        assert alert.alert_type == "UNKNOWN"
        assert alert.recommended_action == "No action specified"

    def test_default_limit(self, events_path):
        _write(events_path, [self._alert(1, "info") for _ in range(60)])
        defaults = WatchdogDefaults(default_alert_limit=50)
        assert len(_watchdog(events_path, defaults=defaults).get_alerts().alerts) == 50
