# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP endpoints for the watchdog query surface
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Routes

Read-only endpoints over the watchdog and the scheduler. Every watchdog
response uses the same envelope:

    {"timestamp": "...", "status": "success", "data": {...},
     "metadata": {"dataSource": "...", "lastUpdated": "...", "recordCount": n}}
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query

from __version__ import __version__, BUILD_DATE
from core.contracts import to_iso, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the app factory at startup

_watchdog_service = None
_scheduler = None


def set_services(watchdog_service, scheduler=None):
    """Set service instances for dependency injection."""
    global _watchdog_service, _scheduler
    _watchdog_service = watchdog_service
    _scheduler = scheduler


def get_watchdog_service():
    if _watchdog_service is None:
        raise HTTPException(500, "Watchdog service not initialized")
    return _watchdog_service


def _envelope(data: Any, data_source: str, record_count: int) -> Dict[str, Any]:
    now = to_iso(utc_now())
    return {
        "timestamp": now,
        "status": "success",
        "data": data,
        "metadata": {
            "dataSource": data_source,
            "lastUpdated": now,
            "recordCount": record_count,
        },
    }


# ============================================================================
# LIVENESS
# ============================================================================

@router.get("/livez", tags=["Health"])
async def liveness_probe():
    """Returns 200 while the process is alive. No checks."""
    return {"status": "alive", "version": __version__, "build_date": BUILD_DATE}


# ============================================================================
# WATCHDOG
# ============================================================================

@router.get("/watchdog/status", tags=["Watchdog"])
async def get_watchdog_status(
    hours: float = Query(24.0, gt=0, le=24 * 30, description="Analysis window"),
):
    """Active, stuck and orphaned counts, completion rate and overall health."""
    watchdog = get_watchdog_service()
    try:
        status = watchdog.get_status(window_hours=hours)
    except Exception as e:
        logger.exception("Failed to get task watchdog status")
        raise HTTPException(500, f"Failed to get task watchdog status: {e}")

    return _envelope(status.to_dict(), "events.jsonl", status.total_sessions_analyzed)


@router.get("/watchdog/stuck-tasks", tags=["Watchdog"])
async def get_stuck_tasks(
    hours: float = Query(24.0, gt=0, le=24 * 30, description="Analysis window"),
):
    """Active task sessions running past their staleness threshold."""
    watchdog = get_watchdog_service()
    try:
        data = watchdog.get_stuck_tasks(window_hours=hours)
    except Exception as e:
        logger.exception("Failed to get stuck tasks")
        raise HTTPException(500, f"Failed to get stuck tasks: {e}")

    return _envelope(data, "events.jsonl", data["totalStuckTasks"])


@router.get("/watchdog/alerts", tags=["Watchdog"])
async def get_alerts(
    limit: int = Query(50, ge=1, le=1000),
    component: Optional[str] = Query(None),
    severity: Optional[str] = Query(None, pattern="^(info|warning|critical)$"),
    hours: float = Query(24.0, gt=0, le=24 * 30),
):
    """Health alerts, newest first, with counts by severity."""
    watchdog = get_watchdog_service()
    try:
        result = watchdog.get_alerts(
            limit=limit,
            component=component,
            hours=hours,
            severity=severity,
        )
    except Exception as e:
        logger.exception("Failed to get health alerts")
        raise HTTPException(500, f"Failed to get health alerts: {e}")

    return _envelope(result.to_dict(), "events.jsonl", len(result.alerts))


@router.get("/watchdog/orphaned-processes", tags=["Watchdog"])
async def get_orphaned_processes():
    """Live processes whose task ended, and untracked relevant processes."""
    watchdog = get_watchdog_service()
    try:
        report = watchdog.get_orphaned_processes()
    except Exception as e:
        logger.exception("Failed to get orphaned processes")
        raise HTTPException(500, f"Failed to get orphaned processes: {e}")

    data = report.to_dict()
    data["totalOrphanedProcesses"] = len(report.orphaned_processes)
    data["totalSuspiciousProcesses"] = len(report.suspicious_processes)
    count = len(report.orphaned_processes) + len(report.suspicious_processes)
    return _envelope(data, "events.jsonl + process table", count)


# ============================================================================
# SCHEDULER STATUS
# ============================================================================

@router.get("/scheduler/status", tags=["Scheduler"])
async def get_scheduler_status():
    """Scheduler running state, running tasks, recent history, failure counts."""
    if _scheduler is None:
        raise HTTPException(503, "Scheduler not running in this process")

    return {
        "status": "running" if _scheduler.is_running else "stopped",
        "data": _scheduler.get_status(),
        "metrics": _scheduler.stats,
    }
