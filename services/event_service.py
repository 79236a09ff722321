# ============================================================================
# EVENT SERVICE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Event emission
# PURPOSE: Emit task lifecycle events and health alerts into the Event Log
# CREATED: 19 OCT 2026
# ============================================================================
"""
Event Service

Provides methods to emit events at key lifecycle points.
Events are fire-and-forget - failures are logged but don't propagate.

Two channels:
- Primary: the Event Log (events.jsonl), read by the watchdog and the
  dashboards.
- Secondary: the diagnostic logger. Every event is mirrored there, and
  a failed Event Log write is reported there instead of raised.

Task completion is authoritative; observability is best-effort.
"""

import logging
import os
from typing import Any, Dict, Optional

from core.contracts import EventType, Severity, SYSTEM_TARGET
from core.models import HealthAlertMetadata, TaskDefinition, TaskEvent
from repositories import EventLogRepository

logger = logging.getLogger(__name__)

# Component name recorded in scheduler health alerts
COMPONENT_SCHEDULER = "monitoring_scheduler"
DEFAULT_RECOMMENDED_ACTION = "Review monitoring scheduler configuration and task execution"

SKIP_MESSAGES = {
    "already_running": "Task already running: {task}",
    "repeated_failures": "Task skipped due to repeated failures: {task}",
    "tier_busy": "Task skipped, tier still running its previous tick: {task}",
}


class EventService:
    """Service for emitting scheduler events."""

    def __init__(
        self,
        repo: EventLogRepository,
        source_name: str = "monitoringScheduler",
        pid: Optional[int] = None,
    ):
        """
        Initialize event service.

        Args:
            repo: Event Log repository
            source_name: Task name used for scheduler-level events
            pid: Process id stamped on every event (defaults to this process)
        """
        self._repo = repo
        self.source_name = source_name
        self.pid = pid if pid is not None else os.getpid()
        self._write_failures = 0

    @property
    def write_failures(self) -> int:
        """Number of events that could not be appended."""
        return self._write_failures

    # =========================================================================
    # CORE EMIT METHOD
    # =========================================================================

    async def emit(
        self,
        event_type: EventType,
        task_name: str,
        message: Optional[str] = None,
        target: str = SYSTEM_TARGET,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[TaskEvent]:
        """
        Emit an event. Fire-and-forget - logs errors but doesn't raise.

        Returns:
            The event, or None if it was not written
        """
        try:
            event = TaskEvent.create(
                event_type,
                task_name,
                message=message,
                target=target,
                metadata=metadata,
                pid=self.pid,
            )
        except Exception as e:
            logger.warning(f"Failed to build event {event_type.value} for {task_name}: {e}")
            self._write_failures += 1
            return None

        logger.info(f"{event_type.value}: {message}" if message else event_type.value)

        if not self._repo.append(event):
            self._write_failures += 1
            return None

        return event

    # =========================================================================
    # TASK LIFECYCLE EVENTS
    # =========================================================================

    async def emit_task_start(
        self,
        task: TaskDefinition,
        tier: str,
        timeout_ms: int,
    ) -> None:
        """Emit TASK_START event."""
        await self.emit(
            EventType.TASK_START,
            task.name,
            message=f"Starting monitoring task: {task.name}",
            metadata={"task": task.name, "tier": tier, "timeout": timeout_ms},
        )

    async def emit_task_end(
        self,
        task: TaskDefinition,
        tier: str,
        duration_ms: int,
        exit_code: int,
        result: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Emit TASK_END event."""
        metadata: Dict[str, Any] = {
            "task": task.name,
            "tier": tier,
            "duration": duration_ms,
            "exitCode": exit_code,
        }
        if result is not None:
            metadata["result"] = result

        await self.emit(
            EventType.TASK_END,
            task.name,
            message=f"Completed monitoring task: {task.name}",
            metadata=metadata,
        )

    async def emit_task_error(
        self,
        task: TaskDefinition,
        tier: str,
        duration_ms: int,
        error: str,
        timed_out: bool = False,
        exit_code: Optional[int] = None,
        cancelled: bool = False,
    ) -> None:
        """Emit TASK_ERROR event; cancelled marks a run ended by shutdown."""
        metadata: Dict[str, Any] = {
            "task": task.name,
            "tier": tier,
            "duration": duration_ms,
            "error": error,
            "timedOut": timed_out,
        }
        if exit_code is not None:
            metadata["exitCode"] = exit_code
        if cancelled:
            metadata["cancelled"] = True

        await self.emit(
            EventType.TASK_ERROR,
            task.name,
            message=f"Failed monitoring task: {task.name}",
            metadata=metadata,
        )

    async def emit_task_skip(
        self,
        task: TaskDefinition,
        tier: str,
        reason: str,
        failure_count: Optional[int] = None,
    ) -> None:
        """Emit TASK_SKIP event (already running, circuit open, or tier busy)."""
        metadata: Dict[str, Any] = {"task": task.name, "tier": tier, "reason": reason}
        if failure_count is not None:
            metadata["failureCount"] = failure_count

        message = SKIP_MESSAGES.get(reason, "Task skipped: {task}").format(task=task.name)
        await self.emit(EventType.TASK_SKIP, task.name, message=message, metadata=metadata)

    async def emit_child_spawned(
        self,
        task: TaskDefinition,
        child_pid: int,
        command: str,
    ) -> None:
        """Emit PROGRESS event recording the spawned child's pid."""
        await self.emit(
            EventType.PROGRESS,
            task.name,
            message=f"Spawned child process {child_pid} for {task.name}",
            metadata={"task": task.name, "child_pid": child_pid, "command": command},
        )

    # =========================================================================
    # SCHEDULER EVENTS
    # =========================================================================

    async def emit_lifecycle(
        self,
        phase: str,
        message: str,
        **data: Any,
    ) -> None:
        """Emit a scheduler lifecycle notice (PROGRESS on the scheduler's own name)."""
        await self.emit(
            EventType.PROGRESS,
            self.source_name,
            message=message,
            metadata={"phase": phase, **data},
        )

    async def emit_health_alert(
        self,
        alert_type: str,
        severity: Severity,
        message: str,
        additional_data: Optional[Dict[str, Any]] = None,
        component: str = COMPONENT_SCHEDULER,
        recommended_action: str = DEFAULT_RECOMMENDED_ACTION,
    ) -> Optional[TaskEvent]:
        """Emit a HEALTH_ALERT event."""
        alert = HealthAlertMetadata(
            alert_type=alert_type,
            severity=severity,
            component=component,
            message=message,
            recommended_action=recommended_action,
            additional_data=additional_data or {},
        )
        return await self.emit(
            EventType.HEALTH_ALERT,
            self.source_name,
            message=message,
            metadata=alert.to_metadata(),
        )


__all__ = ["EventService", "COMPONENT_SCHEDULER"]
