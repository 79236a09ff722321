# ============================================================================
# WATCHDOG SERVICE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Service - Read-only Event Log analysis
# PURPOSE: Active, stuck and orphaned task detection; health alert queries
# CREATED: 19 OCT 2026
# ============================================================================
"""
Watchdog Service

A stateless reader. Every query replays the Event Log over a time
window and derives its answer from scratch; nothing is cached and
nothing is written.

Sessions:
    Events are grouped by (taskName, target, pid). TASK_START opens a
    new session for its key; TASK_END/TASK_ERROR closes the open one.
    A terminal event with no open session still counts as a terminal
    session (its start fell outside the window). A TASK_START on a key
    that is still open marks the older session superseded: no longer
    active, not counted as completed or failed.

Processes:
    Pids named in the window's events are looked up directly; the
    pattern-filtered scan only feeds the suspicious list.

Stuck rule:
    threshold = max(expected duration, stuck floor)
    stuck     when whole elapsed minutes > threshold
    critical  when elapsed minutes > 2 x threshold, else warning
"""

import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from core.config import WatchdogDefaults
from core.contracts import EventType, Severity, WatchdogHealth, utc_now
from core.logging import ComponentType, get_logger
from core.models import (
    AlertQueryResult,
    HealthAlert,
    OrphanedProcess,
    OrphanReport,
    ProcessInfo,
    SessionState,
    StuckTaskReport,
    SuspiciousProcess,
    TaskEvent,
    TaskSession,
    WatchdogStatus,
)
from infrastructure import list_processes, lookup_processes
from repositories import EventLogRepository

logger = get_logger(__name__, ComponentType.WATCHDOG)

ProcessProvider = Callable[[], List[ProcessInfo]]
PidLookup = Callable[[Iterable[int]], List[ProcessInfo]]
SessionKey = Tuple[str, str, Optional[int]]


def build_sessions(events: List[TaskEvent], pid_keys=("pid", "child_pid", "neo4j_pid")) -> List[TaskSession]:
    """
    Group events into task sessions, in order of first appearance.

    Non-lifecycle events (PROGRESS, TASK_SKIP, HEALTH_ALERT, ...) only
    update the open session's last-event fields and collect child pids.
    """
    sessions: List[TaskSession] = []
    open_sessions: Dict[SessionKey, TaskSession] = {}

    for event in events:
        key = (event.task_name, event.target, event.pid)

        if event.is_type(EventType.TASK_START):
            previous = open_sessions.get(key)
            if previous is not None:
                previous.status = SessionState.SUPERSEDED
                previous.end_time = event.timestamp
            session = TaskSession(
                task_name=event.task_name,
                target=event.target,
                pid=event.pid,
                start_time=event.timestamp,
            )
            open_sessions[key] = session
            sessions.append(session)

        elif event.is_terminal:
            session = open_sessions.pop(key, None)
            if session is None:
                session = TaskSession(task_name=event.task_name, target=event.target, pid=event.pid)
                sessions.append(session)
            session.end_time = event.timestamp
            if event.is_type(EventType.TASK_END):
                session.status = SessionState.COMPLETED
            else:
                session.status = SessionState.FAILED

        else:
            session = open_sessions.get(key)
            if session is None:
                continue

        child_pid = event.metadata_pid(pid_keys)
        if child_pid is not None and child_pid not in session.child_pids:
            session.child_pids.append(child_pid)
        session.last_event_type = event.event_type
        session.last_event_time = event.timestamp

    return sessions


class WatchdogService:
    """
    Derives task health from the Event Log.

    Usage:
        watchdog = WatchdogService(EventLogRepository(paths.events_file))
        status = watchdog.get_status()
    """

    def __init__(
        self,
        repo: EventLogRepository,
        defaults: Optional[WatchdogDefaults] = None,
        process_provider: Optional[ProcessProvider] = None,
        pid_lookup: Optional[PidLookup] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            repo: Event Log repository to replay
            defaults: Thresholds and expected durations
            process_provider: Returns the current OS process snapshot
                (defaults to a psutil scan filtered by process patterns)
            pid_lookup: Returns the live processes among the given pids
                (defaults to a direct psutil lookup)
            clock: Current time source
        """
        self._repo = repo
        self.defaults = defaults or WatchdogDefaults()
        self._process_provider = process_provider or self._scan_processes
        self._pid_lookup = pid_lookup or lookup_processes
        self._clock = clock

    def _scan_processes(self) -> List[ProcessInfo]:
        return list_processes(self.defaults.process_patterns)

    # =========================================================================
    # REPLAY
    # =========================================================================

    def _window_hours(self, window_hours: Optional[float]) -> float:
        return self.defaults.window_hours if window_hours is None else window_hours

    def recent_events(self, window_hours: Optional[float] = None) -> List[TaskEvent]:
        """Events strictly newer than now - window."""
        since = self._clock() - timedelta(hours=self._window_hours(window_hours))
        return self._repo.read_events(since=since)

    def sessions(self, window_hours: Optional[float] = None) -> List[TaskSession]:
        return build_sessions(self.recent_events(window_hours), self.defaults.pid_metadata_keys)

    # =========================================================================
    # STUCK TASKS
    # =========================================================================

    def _stuck_report(self, session: TaskSession, now: datetime) -> Optional[StuckTaskReport]:
        elapsed_minutes = (now - session.start_time).total_seconds() / 60.0
        running_minutes = math.floor(elapsed_minutes)
        expected = self.defaults.expected_minutes_for(session.task_name)
        threshold = max(expected, self.defaults.stuck_threshold_minutes)

        if running_minutes <= threshold:
            return None

        severity = Severity.CRITICAL if elapsed_minutes > 2 * threshold else Severity.WARNING
        return StuckTaskReport(
            task_name=session.task_name,
            target=session.target,
            start_time=session.start_time,
            running_time_minutes=running_minutes,
            expected_duration_minutes=expected,
            threshold_minutes=threshold,
            pid=session.child_pids[-1] if session.child_pids else session.pid,
            severity=severity,
            last_event_type=session.last_event_type,
            last_event_time=session.last_event_time,
        )

    def find_stuck(self, sessions: List[TaskSession]) -> List[StuckTaskReport]:
        """Stuck reports for the active sessions, longest running first."""
        now = self._clock()
        reports = []
        for session in sessions:
            if not session.is_active:
                continue
            report = self._stuck_report(session, now)
            if report is not None:
                reports.append(report)
        reports.sort(key=lambda r: r.running_time_minutes, reverse=True)
        return reports

    def get_stuck_tasks(self, window_hours: Optional[float] = None) -> Dict:
        """Stuck tasks with critical/warning sub-counts."""
        hours = self._window_hours(window_hours)
        reports = self.find_stuck(self.sessions(hours))
        severities = Counter(r.severity for r in reports)
        return {
            "stuckTasks": [r.to_dict() for r in reports],
            "totalStuckTasks": len(reports),
            "criticalTasks": severities.get(Severity.CRITICAL, 0),
            "warningTasks": severities.get(Severity.WARNING, 0),
            "analysisWindowHours": hours,
        }

    # =========================================================================
    # ORPHANED PROCESSES
    # =========================================================================

    def find_orphans(
        self,
        events: List[TaskEvent],
        sessions: List[TaskSession],
        processes: List[ProcessInfo],
        window_hours: float,
    ) -> OrphanReport:
        """
        Cross-reference event pids with live processes.

        A live pid whose originating session has ended is orphaned; a
        relevant process no recent event mentions is suspicious.
        """
        keys = self.defaults.pid_metadata_keys

        # pid -> originating event (latest mention wins)
        pid_origin: Dict[int, TaskEvent] = {}
        for event in events:
            pid = event.metadata_pid(keys)
            if pid is not None:
                pid_origin[pid] = event

        # pid -> session that spawned it, when the pid was seen inside one
        pid_session: Dict[int, TaskSession] = {}
        ended_keys = set()
        open_keys = set()
        for session in sessions:
            for pid in session.child_pids:
                pid_session[pid] = session
            if session.is_active:
                open_keys.add(session.key)
            elif session.is_terminal:
                ended_keys.add(session.key)

        orphaned: List[OrphanedProcess] = []
        suspicious: List[SuspiciousProcess] = []

        for proc in processes:
            origin = pid_origin.get(proc.pid)
            if origin is not None:
                session = pid_session.get(proc.pid)
                if session is not None:
                    ended = session.is_terminal
                else:
                    key = (origin.task_name, origin.target, origin.pid)
                    ended = key in ended_keys and key not in open_keys
                if ended:
                    orphaned.append(OrphanedProcess(
                        pid=proc.pid,
                        task_name=origin.task_name,
                        target=origin.target,
                        command=proc.command,
                        start_time=origin.timestamp,
                        cpu=proc.cpu,
                        memory=proc.memory,
                    ))
            elif self._is_suspicious(proc.command):
                suspicious.append(SuspiciousProcess(
                    pid=proc.pid,
                    command=proc.command,
                    user=proc.user,
                    cpu=proc.cpu,
                    memory=proc.memory,
                ))

        return OrphanReport(
            orphaned_processes=orphaned,
            suspicious_processes=suspicious,
            total_tracked_pids=len(pid_origin),
            total_running_processes=len(processes),
            analysis_window_hours=window_hours,
        )

    def _is_suspicious(self, command: str) -> bool:
        if any(excluded in command for excluded in self.defaults.suspicious_exclusions):
            return False
        return any(pattern in command for pattern in self.defaults.suspicious_patterns)

    def _process_snapshot(self, events: List[TaskEvent]) -> List[ProcessInfo]:
        """Pattern-filtered scan plus a direct lookup of every tracked pid."""
        try:
            processes = list(self._process_provider())
        except Exception as e:
            logger.warning(f"Could not get process list: {e}")
            processes = []

        seen = {proc.pid for proc in processes}
        tracked = {
            pid
            for pid in (event.metadata_pid(self.defaults.pid_metadata_keys) for event in events)
            if pid is not None and pid not in seen
        }
        if tracked:
            try:
                processes.extend(self._pid_lookup(sorted(tracked)))
            except Exception as e:
                logger.warning(f"Could not look up tracked pids: {e}")
        return processes

    def get_orphaned_processes(self, window_hours: Optional[float] = None) -> OrphanReport:
        hours = self._window_hours(window_hours)
        events = self.recent_events(hours)
        sessions = build_sessions(events, self.defaults.pid_metadata_keys)
        return self.find_orphans(events, sessions, self._process_snapshot(events), hours)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self, window_hours: Optional[float] = None) -> WatchdogStatus:
        """
        Overall status for the window.

        healthStatus is unknown when there is no Event Log at all.
        """
        hours = self._window_hours(window_hours)
        if not self._repo.exists:
            return WatchdogStatus(health_status=WatchdogHealth.UNKNOWN, analysis_window_hours=hours)

        events = self.recent_events(hours)
        sessions = build_sessions(events, self.defaults.pid_metadata_keys)

        active = sum(1 for s in sessions if s.is_active)
        completed = sum(1 for s in sessions if s.status == SessionState.COMPLETED)
        failed = sum(1 for s in sessions if s.status == SessionState.FAILED)
        stuck = self.find_stuck(sessions)
        orphans = self.find_orphans(events, sessions, self._process_snapshot(events), hours)

        rate = completion_rate(completed, failed)

        if stuck:
            health = WatchdogHealth.CRITICAL
        elif (
            orphans.total_orphaned > 0
            or active > self.defaults.active_task_warning_threshold
            or rate < self.defaults.completion_rate_warning_percent
        ):
            health = WatchdogHealth.WARNING
        else:
            health = WatchdogHealth.HEALTHY

        return WatchdogStatus(
            active_tasks=active,
            stuck_tasks=len(stuck),
            orphaned_processes=orphans.total_orphaned,
            task_completion_rate=rate,
            health_status=health,
            completed_tasks=completed,
            failed_tasks=failed,
            total_sessions_analyzed=len(sessions),
            analysis_window_hours=hours,
        )

    # =========================================================================
    # ALERTS
    # =========================================================================

    def get_alerts(
        self,
        limit: Optional[int] = None,
        component: Optional[str] = None,
        hours: Optional[float] = None,
        severity: Optional[str] = None,
    ) -> AlertQueryResult:
        """
        HEALTH_ALERT events, newest first.

        Severity counts, alert types and components cover the whole
        filtered set; only the returned list is truncated to limit.
        """
        window = self._window_hours(hours)
        limit = self.defaults.default_alert_limit if limit is None else limit

        alerts: List[HealthAlert] = []
        for event in self.recent_events(window):
            if not event.is_type(EventType.HEALTH_ALERT):
                continue
            meta = event.alert()
            if component and meta.component != component:
                continue
            if severity and meta.severity.value != severity:
                continue
            alerts.append(HealthAlert(
                id=f"{event.task_name}_{int(event.timestamp.timestamp() * 1000)}",
                timestamp=event.timestamp,
                task_name=event.task_name,
                target=event.target,
                alert_type=meta.alert_type,
                severity=meta.severity,
                component=meta.component,
                message=meta.message,
                recommended_action=meta.recommended_action,
                additional_data=meta.additional_data,
            ))

        alerts.sort(key=lambda a: a.timestamp, reverse=True)

        counts = {s.value: 0 for s in Severity}
        for alert in alerts:
            counts[alert.severity.value] += 1

        return AlertQueryResult(
            alerts=alerts[:max(limit, 0)],
            total_alerts=len(alerts),
            counts=counts,
            alert_types=sorted({a.alert_type for a in alerts}),
            components=sorted({a.component for a in alerts}),
            time_range_hours=window,
            filters={"component": component, "severity": severity, "limit": limit},
        )


def completion_rate(completed: int, failed: int) -> int:
    """Rounded completion percentage; 100 when nothing finished."""
    total = completed + failed
    if total == 0:
        return 100
    return int(math.floor(completed * 100.0 / total + 0.5))


__all__ = ["WatchdogService", "build_sessions", "completion_rate"]
