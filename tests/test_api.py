# ============================================================================
# WATCHDOG API TESTS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Tests - FastAPI watchdog endpoints
# PURPOSE: Verify response envelope, query validation and error mapping
# CREATED: 19 OCT 2026
# ============================================================================
"""
Watchdog API Tests

Uses FastAPI TestClient against a real WatchdogService over a temporary
Event Log, and MagicMock where a failure must be forced.

Run with:
    pytest tests/test_api.py -v
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from api import create_app
from core.contracts import to_iso, utc_now
from core.models import ProcessInfo
from repositories import EventLogRepository
from services import WatchdogService


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def events_path(tmp_path):
    path = tmp_path / "events.jsonl"
    now = utc_now()
    records = [
        {
            "timestamp": to_iso(now - timedelta(minutes=50)),
            "taskName": "neo4jStabilityMonitor",
            "target": "system",
            "eventType": "TASK_START",
            "pid": 10,
            "metadata": {"child_pid": 5555},
        },
        {
            "timestamp": to_iso(now - timedelta(minutes=5)),
            "taskName": "monitoringScheduler",
            "target": "system",
            "eventType": "HEALTH_ALERT",
            "metadata": {
                "alertType": "MONITORING_TASK_FAILED",
                "severity": "warning",
                "component": "monitoring_scheduler",
                "message": "Monitoring task failed: taskWatchdog",
            },
        },
    ]
    path.write_text("".join(json.dumps(r) + "\n" for r in records))
    return path


@pytest.fixture
def client(events_path):
    watchdog = WatchdogService(
        EventLogRepository(events_path),
        process_provider=lambda: [ProcessInfo(pid=7777, command="cypher-shell -u neo4j")],
        pid_lookup=lambda pids: [],
    )
    return TestClient(create_app(watchdog))


# ============================================================================
# TESTS
# ============================================================================

class TestLiveness:

    def test_livez(self, client):
        response = client.get("/livez")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_root(self, client):
        assert client.get("/").json()["service"] == "Monitoring Scheduler"


class TestWatchdogEndpoints:

    def test_status_envelope(self, client):
        body = client.get("/watchdog/status").json()

        assert body["status"] == "success"
        assert body["timestamp"] == body["metadata"]["lastUpdated"]
        assert body["metadata"]["recordCount"] == 1
        assert body["data"]["activeTasks"] == 1
        assert body["data"]["stuckTasks"] == 1
        assert body["data"]["healthStatus"] == "critical"

    def test_stuck_tasks(self, client):
        body = client.get("/watchdog/stuck-tasks", params={"hours": 2}).json()

        assert body["data"]["totalStuckTasks"] == 1
        stuck = body["data"]["stuckTasks"][0]
        assert stuck["taskName"] == "neo4jStabilityMonitor"
        assert stuck["pid"] == 5555
        assert stuck["severity"] == "warning"
        assert body["data"]["analysisWindowHours"] == 2

    def test_alerts(self, client):
        body = client.get("/watchdog/alerts", params={"severity": "warning"}).json()

        assert body["metadata"]["recordCount"] == 1
        assert body["data"]["alerts"][0]["alertType"] == "MONITORING_TASK_FAILED"
        assert body["data"]["counts"]["warning"] == 1

    @pytest.mark.parametrize("params", [
        {"severity": "fatal"},
        {"limit": 0},
        {"limit": 1001},
        {"hours": -1},
    ])
    def test_alert_query_validation(self, client, params):
        assert client.get("/watchdog/alerts", params=params).status_code == 422

    def test_orphaned_processes(self, client):
        body = client.get("/watchdog/orphaned-processes").json()

        assert body["data"]["totalOrphanedProcesses"] == 0
        assert body["data"]["totalSuspiciousProcesses"] == 1
        assert body["data"]["suspiciousProcesses"][0]["pid"] == 7777
        assert body["metadata"]["recordCount"] == 1

    def test_service_failure_is_500(self):
        watchdog = MagicMock()
        watchdog.get_status.side_effect = RuntimeError("disk gone")
        client = TestClient(create_app(watchdog))

        response = client.get("/watchdog/status")

        assert response.status_code == 500
        assert "disk gone" in response.json()["detail"]


class TestSchedulerStatus:

    def test_without_scheduler_is_503(self, client):
        assert client.get("/scheduler/status").status_code == 503

    def test_with_scheduler(self, events_path):
        scheduler = MagicMock()
        scheduler.is_running = True
        scheduler.get_status.return_value = {"isRunning": True, "runningTasks": []}
        scheduler.stats = {"ticks": 3}
        client = TestClient(create_app(WatchdogService(EventLogRepository(events_path)), scheduler))

        body = client.get("/scheduler/status").json()

        assert body["status"] == "running"
        assert body["data"]["isRunning"] is True
        assert body["metrics"] == {"ticks": 3}
