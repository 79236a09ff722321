# ============================================================================
# TIERED SCHEDULER LOOP
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Tier timers, dispatch, circuit breaker, self health check
# PURPOSE: Drive the Task Executor on independent per-tier intervals
# CREATED: 19 OCT 2026
# ============================================================================
"""
Tiered Scheduler Loop

Each tier runs its own timeline:
1. Run one tick immediately
2. Start a new tick every tier.interval_ms
3. Within a tick, dispatch tasks one after another

Two ticks of the same tier never overlap. A tick that comes due while
the previous one is still running is skipped whole: every task of the
tier gets a TASK_SKIP and the timeline moves on to the next interval.
Tiers never wait on each other.

Dispatch rules, in order:
- task already in the run map    -> TASK_SKIP (already running)
- failure_count >= 5             -> TASK_SKIP (circuit open)
- otherwise                      -> TASK_START, run, TASK_END/TASK_ERROR

stop() cancels in-flight runs. A cancelled run gets a TASK_ERROR
marked cancelled, so its Event Log session is closed, but no history
entry: shutdown is not a task failure.

Background timers:
- state save every 60 s
- self health check every 5 min (overdue runs, total failure count)

Runs as background tasks on the current event loop.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from core.config import SchedulerDefaults, TimeoutDefaults
from core.contracts import RunStatus, Severity, utc_now
from core.logging import ComponentType, get_logger, log_context
from core.models import RunRecord, TaskDefinition, Tier
from repositories import RunStateRepository
from services import EventService
from worker import (
    TaskExecutionError,
    TaskExecutor,
    TaskTimeoutError,
    resolve_task_timeout,
)

logger = get_logger(__name__, ComponentType.SCHEDULER)

SKIP_ALREADY_RUNNING = "already_running"
SKIP_REPEATED_FAILURES = "repeated_failures"
SKIP_TIER_BUSY = "tier_busy"

CANCELLED_MESSAGE = "Task cancelled by scheduler shutdown"


class Scheduler:
    """
    Tiered monitoring scheduler.

    Owns the run map, the tier timers and the background timers. Built
    once per process; collaborators are passed in.
    """

    def __init__(
        self,
        tiers: List[Tier],
        executor: TaskExecutor,
        state: RunStateRepository,
        events: EventService,
        defaults: Optional[SchedulerDefaults] = None,
        timeouts: Optional[TimeoutDefaults] = None,
        target: str = "system",
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize scheduler.

        Args:
            tiers: Resolved tiers (see scheduler.tiers.build_tiers)
            executor: Runs one task
            state: Run-state store (history, failure counters)
            events: Event Log emitter
            defaults: Timer intervals and thresholds
            timeouts: Timeout resolution bounds
            target: Deployment target label from the command line
            clock: Current time source
        """
        self.tiers = list(tiers)
        self._executor = executor
        self._state = state
        self._events = events
        self.defaults = defaults or SchedulerDefaults()
        self.timeouts = timeouts or TimeoutDefaults()
        self.target = target
        self._clock = clock

        # Run map: at most one RunRecord per task name
        self._running_tasks: Dict[str, RunRecord] = {}

        # State; loop-bound primitives are created on the running loop
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._tier_locks: Dict[str, asyncio.Lock] = {}

        # Background tasks
        self._tier_tasks: Dict[str, asyncio.Task] = {}
        self._tick_tasks: Set[asyncio.Task] = set()
        self._save_task: Optional[asyncio.Task] = None
        self._health_task: Optional[asyncio.Task] = None

        # Metrics
        self._started_at: Optional[datetime] = None
        self._ticks = 0
        self._dispatched = 0
        self._skipped = 0
        self._busy_ticks = 0
        self._completed = 0
        self._failed = 0
        self._errors = 0
        self._last_health_check_at: Optional[datetime] = None
        self._fatal_error: Optional[BaseException] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Start every tier and the background timers."""
        if self._running:
            logger.warning("Monitoring scheduler already running")
            return

        self._running = True
        self._started_at = self._clock()
        self._stop_event = asyncio.Event()
        self._tier_locks = {}
        self._fatal_error = None

        total_tasks = sum(len(tier.tasks) for tier in self.tiers)
        logger.info(f"Starting monitoring scheduler: {len(self.tiers)} tiers, {total_tasks} tasks")
        await self._events.emit_lifecycle(
            "scheduler_start",
            "Starting monitoring scheduler",
            tiers=len(self.tiers),
            totalTasks=total_tasks,
            target=self.target,
        )

        for tier in self.tiers:
            await self._events.emit_lifecycle(
                "tier_start",
                f"Starting monitoring tier: {tier.name}",
                tier=tier.name,
                interval=tier.interval_ms,
                taskCount=len(tier.tasks),
            )
            self._tier_tasks[tier.name] = asyncio.create_task(
                self._tier_loop(tier),
                name=f"tier-{tier.name}",
            )
            self._tier_tasks[tier.name].add_done_callback(self._on_background_done)

        self._save_task = asyncio.create_task(self._save_loop(), name="state-save")
        self._health_task = asyncio.create_task(self._health_loop(), name="health-check")
        self._save_task.add_done_callback(self._on_background_done)
        self._health_task.add_done_callback(self._on_background_done)

    async def stop(self) -> None:
        """
        Stop gracefully.

        Cancels tier timers, in-flight ticks (their children get SIGTERM)
        and the background timers, then flushes state.
        """
        if not self._running:
            return

        logger.info("Stopping monitoring scheduler")
        await self._events.emit_lifecycle("scheduler_stop", "Stopping monitoring scheduler")

        self._running = False
        self._stop_event.set()

        for tier_name, task in list(self._tier_tasks.items()):
            task.cancel()
            await self._events.emit_lifecycle(
                "tier_stop",
                f"Stopped monitoring tier: {tier_name}",
                tier=tier_name,
            )

        pending = list(self._tier_tasks.values()) + list(self._tick_tasks)
        pending += [t for t in (self._save_task, self._health_task) if t]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self._tier_tasks.clear()
        self._tick_tasks.clear()
        self._save_task = None
        self._health_task = None

        self._state.save_state()
        logger.info(
            f"Monitoring scheduler stopped (ticks={self._ticks}, "
            f"dispatched={self._dispatched}, skipped={self._skipped}, "
            f"completed={self._completed}, failed={self._failed})"
        )

    async def wait_stopped(self) -> None:
        """Block until stop() is called or a background loop dies."""
        if self._stop_event is None:
            return
        await self._stop_event.wait()

    @property
    def _stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def _tier_lock(self, tier_name: str) -> asyncio.Lock:
        if tier_name not in self._tier_locks:
            self._tier_locks[tier_name] = asyncio.Lock()
        return self._tier_locks[tier_name]

    @property
    def fatal_error(self) -> Optional[BaseException]:
        """Exception that ended a tier or timer loop, if any."""
        return self._fatal_error

    def _on_background_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        self._fatal_error = task.exception()
        logger.error(f"Background loop {task.get_name()} died: {self._fatal_error!r}")
        self._stop_event.set()

    # =========================================================================
    # TIER TIMELINES
    # =========================================================================

    async def _tier_loop(self, tier: Tier) -> None:
        """Start a tick now and then every interval until stopped."""
        logger.info(f"Tier {tier.name} started (interval={tier.interval_ms}ms)")
        previous: Optional[asyncio.Task] = None

        while self._running and not self._stopping:
            if previous is not None and not previous.done():
                await self._skip_busy_tick(tier)
            else:
                previous = asyncio.create_task(self.run_tier(tier), name=f"tick-{tier.name}")
                self._tick_tasks.add(previous)
                previous.add_done_callback(self._on_tick_done)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=tier.interval_seconds,
                )
                break  # Stop event was set
            except asyncio.TimeoutError:
                pass  # Next tick

        logger.info(f"Tier {tier.name} stopped")

    def _on_tick_done(self, tick: asyncio.Task) -> None:
        self._tick_tasks.discard(tick)
        if tick.cancelled():
            return
        error = tick.exception()
        if error is not None:
            self._errors += 1
            logger.error(f"Error in {tick.get_name()}: {error}", exc_info=error)

    async def _skip_busy_tick(self, tier: Tier) -> None:
        self._busy_ticks += 1
        logger.warning(f"Tier {tier.name} still busy with its previous tick, skipping this one")
        for task in tier.tasks:
            reason = SKIP_ALREADY_RUNNING if task.name in self._running_tasks else SKIP_TIER_BUSY
            self._skipped += 1
            with log_context(task_name=task.name, tier=tier.name, target=self.target):
                await self._events.emit_task_skip(task, tier.name, reason)

    async def run_tier(self, tier: Tier) -> Dict[str, Optional[RunStatus]]:
        """
        One tick: dispatch the tier's tasks sequentially.

        Holds the tier's lock for the whole tick, so ticks of one tier
        are serialized however they were started.

        Returns:
            Task name -> outcome (None when skipped)
        """
        async with self._tier_lock(tier.name):
            self._ticks += 1
            outcomes: Dict[str, Optional[RunStatus]] = {}
            for task in tier.tasks:
                if self._stopping:
                    break
                outcomes[task.name] = await self.dispatch(task, tier.name)
            return outcomes

    async def run_once(self) -> Dict[str, Any]:
        """
        Run every tier's tick once and return the status.

        Tiers run concurrently, tasks within a tier sequentially. No
        timers are started.
        """
        if not self._running:
            self._stop_event = asyncio.Event()
            self._tier_locks = {}
        await asyncio.gather(*(self.run_tier(tier) for tier in self.tiers))
        self._state.save_state()
        return self.get_status()

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def is_task_running(self, task_name: str) -> bool:
        return task_name in self._running_tasks

    async def dispatch(self, task: TaskDefinition, tier_name: str) -> Optional[RunStatus]:
        """
        Dispatch one task under the run-map and circuit-breaker rules.

        Returns:
            The run outcome, or None when the dispatch was skipped
        """
        with log_context(task_name=task.name, tier=tier_name, target=self.target):
            if task.name in self._running_tasks:
                self._skipped += 1
                logger.info(f"Task already running: {task.name}")
                await self._events.emit_task_skip(task, tier_name, SKIP_ALREADY_RUNNING)
                return None

            failure_count = self._state.failure_count(task.name)
            if failure_count >= self.defaults.max_consecutive_failures:
                self._skipped += 1
                logger.warning(f"Task skipped due to repeated failures: {task.name} ({failure_count})")
                await self._events.emit_task_skip(
                    task, tier_name, SKIP_REPEATED_FAILURES, failure_count=failure_count
                )
                return None

            resolution = resolve_task_timeout(task, self.timeouts)
            record = RunRecord(
                task=task,
                tier=tier_name,
                start_time=self._clock(),
                timeout_ms=resolution.timeout_ms,
            )
            # Claimed before the first await so a concurrent dispatch sees it
            self._running_tasks[task.name] = record
            self._dispatched += 1

            try:
                logger.info(f"Starting {task.name}: timeout {resolution.describe()}")
                await self._events.emit_task_start(task, tier_name, resolution.timeout_ms)
                return await self._run(task, tier_name, record)
            finally:
                if self._running_tasks.get(task.name) is record:
                    del self._running_tasks[task.name]

    async def _run(self, task: TaskDefinition, tier_name: str, record: RunRecord) -> RunStatus:
        start = time.monotonic()
        result = None
        exit_code: Optional[int] = None

        def _on_spawn(pid: int) -> None:
            record.pid = pid

        try:
            result = await self._executor.execute(
                task,
                timeout_ms=record.timeout_ms,
                on_spawn=_on_spawn,
            )
        except TaskTimeoutError as e:
            status, error = RunStatus.TIMED_OUT, str(e)
        except TaskExecutionError as e:
            status, error = RunStatus.FAILED, str(e)
        except asyncio.CancelledError:
            logger.warning(f"Run of {task.name} cancelled by scheduler shutdown")
            await self._events.emit_task_error(
                task,
                tier_name,
                int((time.monotonic() - start) * 1000),
                CANCELLED_MESSAGE,
                cancelled=True,
            )
            raise
        except Exception as e:
            logger.exception(f"Unexpected error running {task.name}")
            status, error = RunStatus.FAILED, f"{type(e).__name__}: {e}"
        else:
            exit_code = result.exit_code
            if result.success:
                status, error = RunStatus.COMPLETED, None
            else:
                status = RunStatus.FAILED
                error = result.failure_message()

        duration_ms = int((time.monotonic() - start) * 1000)
        if self._running_tasks.get(task.name) is record:
            del self._running_tasks[task.name]
        self._state.update_task_history(task.name, status.history_status, duration_ms, error)

        if status.is_success:
            self._completed += 1
            await self._events.emit_task_end(
                task, tier_name, duration_ms, exit_code, result.result if result else None
            )
            return status

        self._failed += 1
        logger.error(f"Monitoring task failed: {task.name}: {error}")
        await self._events.emit_task_error(
            task,
            tier_name,
            duration_ms,
            error,
            timed_out=status == RunStatus.TIMED_OUT,
            exit_code=exit_code,
        )
        await self._events.emit_health_alert(
            "MONITORING_TASK_FAILED",
            Severity.WARNING,
            f"Monitoring task failed: {task.name}",
            {
                "task": task.name,
                "tier": tier_name,
                "error": error,
                "failureCount": self._state.failure_count(task.name),
            },
        )
        return status

    # =========================================================================
    # BACKGROUND TIMERS
    # =========================================================================

    async def _save_loop(self) -> None:
        """Persist state every state_save_interval_sec."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.defaults.state_save_interval_sec,
                )
                break
            except asyncio.TimeoutError:
                pass

            try:
                self._state.save_state()
            except Exception as e:
                self._errors += 1
                logger.error(f"State save error: {e}")

    async def _health_loop(self) -> None:
        """Run check_health() every health_check_interval_sec."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.defaults.health_check_interval_sec,
                )
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.check_health()
            except Exception as e:
                self._errors += 1
                logger.exception(f"Health check error: {e}")

    async def check_health(self) -> Dict[str, Any]:
        """
        Self health check over the in-memory run map.

        Alerts:
        - MONITORING_STUCK_TASKS (warning): runs past their timeout
        - MONITORING_HIGH_FAILURES (critical): failure counters sum
          above the threshold
        """
        now = self._clock()
        self._last_health_check_at = now

        overdue = [
            record.summary(now)
            for record in self._running_tasks.values()
            if record.is_overdue(now)
        ]
        total_failures = self._state.total_failures

        await self._events.emit_lifecycle(
            "health_check",
            "Monitoring scheduler health check",
            runningTasks=len(self._running_tasks),
            recentFailures=total_failures,
            uptime=self._uptime_ms(now),
        )

        if overdue:
            await self._events.emit_health_alert(
                "MONITORING_STUCK_TASKS",
                Severity.WARNING,
                f"Detected {len(overdue)} stuck monitoring tasks",
                {"stuckTasks": overdue},
            )

        if total_failures > self.defaults.total_failure_alert_threshold:
            await self._events.emit_health_alert(
                "MONITORING_HIGH_FAILURES",
                Severity.CRITICAL,
                f"High failure count in monitoring tasks: {total_failures}",
                {
                    "recentFailures": total_failures,
                    "failureBreakdown": dict(self._state.state.failure_count),
                },
            )

        return {
            "runningTasks": len(self._running_tasks),
            "stuckTasks": overdue,
            "recentFailures": total_failures,
        }

    # =========================================================================
    # STATUS
    # =========================================================================

    def _uptime_ms(self, now: datetime) -> Optional[int]:
        if self._started_at is None:
            return None
        return int((now - self._started_at).total_seconds() * 1000)

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    @property
    def events(self) -> EventService:
        return self._events

    def get_status(self) -> Dict[str, Any]:
        """Running tasks, recent history, failure counts and uptime."""
        now = self._clock()
        return {
            "isRunning": self._running,
            "target": self.target,
            "runningTasks": [r.summary(now) for r in self._running_tasks.values()],
            "recentHistory": [
                entry.model_dump(by_alias=True) for entry in self._state.recent_history(10)
            ],
            "failureCounts": dict(self._state.state.failure_count),
            "uptime": self._uptime_ms(now),
        }

    @property
    def stats(self) -> Dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "running": self._running,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "tiers": [
                {
                    "name": tier.name,
                    "interval_ms": tier.interval_ms,
                    "priority": tier.priority.value,
                    "tasks": tier.task_names,
                }
                for tier in self.tiers
            ],
            "running_tasks": len(self._running_tasks),
            "ticks": self._ticks,
            "dispatched": self._dispatched,
            "skipped": self._skipped,
            "busy_ticks": self._busy_ticks,
            "completed": self._completed,
            "failed": self._failed,
            "errors": self._errors,
            "total_failures": self._state.total_failures,
            "last_health_check_at": (
                self._last_health_check_at.isoformat() if self._last_health_check_at else None
            ),
        }


__all__ = [
    "Scheduler",
    "SKIP_ALREADY_RUNNING",
    "SKIP_REPEATED_FAILURES",
    "SKIP_TIER_BUSY",
    "CANCELLED_MESSAGE",
]
