# ============================================================================
# TASK EXECUTOR
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Subprocess execution engine
# PURPOSE: Spawn task scripts with timeout and result marker support
# CREATED: 19 OCT 2026
# ============================================================================
"""
Task Executor

Runs one registry task as a child process with:
- Timeout enforcement (SIGTERM only, no escalation)
- Incremental stdout/stderr capture
- Best-effort parsing of the RESULT: marker
- Child pid reporting to the Event Log

execute() returns an ExecutionResult for any child that exits on its
own, whatever the exit code. It raises TaskSpawnError when the child
cannot start and TaskTimeoutError when it outlives its timeout.

A child that ignores SIGTERM keeps running; the executor does not
re-check. The watchdog reports such processes as orphaned.
"""

import asyncio
import codecs
import os
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from core.config import ExecutorDefaults, TimeoutDefaults
from core.logging import ComponentType, get_logger
from core.models import TaskDefinition
from worker.contracts import (
    ExecutionResult,
    ResultMarkerParser,
    TaskSpawnError,
    TaskTimeoutError,
)
from worker.timeouts import resolve_task_timeout

logger = get_logger(__name__, ComponentType.EXECUTOR)

READ_CHUNK_BYTES = 4096


class TaskExecutor:
    """
    Executes registry tasks as subprocesses.

    Takes a TaskDefinition, runs its script, returns ExecutionResult.
    """

    def __init__(
        self,
        events=None,
        defaults: Optional[ExecutorDefaults] = None,
        timeouts: Optional[TimeoutDefaults] = None,
        extra_env: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize executor.

        Args:
            events: EventService for child pid reporting (optional)
            defaults: Interpreter map, marker prefix, env flag name
            timeouts: Used when execute() is not given a timeout
            extra_env: Added to the inherited environment of every child
        """
        self._events = events
        self.defaults = defaults or ExecutorDefaults()
        self.timeouts = timeouts or TimeoutDefaults()
        self._extra_env = dict(extra_env or {})
        self._abandoned: Set[asyncio.Future] = set()

    def build_command(self, script: Path) -> List[str]:
        """Interpreter chosen by script suffix; unknown suffixes run directly."""
        interpreter = self.defaults.interpreters.get(script.suffix)
        if interpreter:
            return [interpreter, str(script)]
        return [str(script)]

    def build_env(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(self._extra_env)
        env[self.defaults.structured_logging_env] = "true"
        return env

    async def execute(
        self,
        task: TaskDefinition,
        timeout_ms: Optional[int] = None,
        on_spawn: Optional[Callable[[int], None]] = None,
    ) -> ExecutionResult:
        """
        Execute a task.

        Args:
            task: Task to run
            timeout_ms: Overrides the timeout resolved from the task
            on_spawn: Called with the child pid once it is running

        Returns:
            ExecutionResult; success means exit code 0

        Raises:
            TaskSpawnError: Script missing or could not be started
            TaskTimeoutError: Child exceeded the timeout (SIGTERM sent)
        """
        if timeout_ms is None:
            timeout_ms = resolve_task_timeout(task, self.timeouts).timeout_ms

        script = Path(task.script_path)
        if not script.is_file():
            raise TaskSpawnError(task.name, f"Script not found: {script}")

        command = self.build_command(script)
        start = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_env(),
            )
        except OSError as e:
            raise TaskSpawnError(task.name, f"Failed to start {task.name}: {e}") from e

        logger.info(f"Spawned {task.name}: pid={proc.pid}, timeout={timeout_ms}ms")
        if on_spawn is not None:
            on_spawn(proc.pid)
        if self._events is not None:
            await self._events.emit_child_spawned(task, proc.pid, " ".join(command))

        parser = ResultMarkerParser(self.defaults.result_marker_prefix)
        stdout_parts: List[str] = []
        stderr_parts: List[str] = []

        reading = asyncio.gather(
            _read_stream(proc.stdout, stdout_parts, parser),
            _read_stream(proc.stderr, stderr_parts),
            proc.wait(),
        )
        try:
            done, _ = await asyncio.wait({reading}, timeout=timeout_ms / 1000.0)
        except asyncio.CancelledError:
            self._abandon(proc, reading, task)
            raise

        if reading not in done:
            self._abandon(proc, reading, task)
            error = TaskTimeoutError(task.name, timeout_ms, pid=proc.pid)
            logger.error(f"{error} ({task.name}, pid={proc.pid})")
            raise error
        reading.result()

        duration_ms = int((time.monotonic() - start) * 1000)
        result = ExecutionResult(
            task_name=task.name,
            exit_code=proc.returncode,
            stdout="".join(stdout_parts),
            stderr="".join(stderr_parts),
            duration_ms=duration_ms,
            pid=proc.pid,
            result=parser.finish(),
        )

        logger.info(
            f"Task {task.name} exited: code={result.exit_code}, "
            f"duration={duration_ms}ms, marker={'yes' if result.result else 'no'}"
        )
        return result

    def _abandon(
        self,
        proc: asyncio.subprocess.Process,
        reading: asyncio.Future,
        task: TaskDefinition,
    ) -> None:
        """
        SIGTERM the child and stop waiting for it.

        The pipe readers and proc.wait() keep running in the background,
        so the child is reaped if it does exit; their outcome is
        retrieved and dropped. A child that ignores SIGTERM stays
        tracked until the event loop shuts down.
        """
        self._abandoned.add(reading)
        reading.add_done_callback(self._settle_abandoned)

        if proc.returncode is not None:
            return
        try:
            proc.terminate()
            logger.warning(f"Sent SIGTERM to {task.name} (pid={proc.pid})")
        except ProcessLookupError:
            pass

    def _settle_abandoned(self, reading: asyncio.Future) -> None:
        self._abandoned.discard(reading)
        if not reading.cancelled() and reading.exception() is not None:
            logger.debug(f"Abandoned child reader ended with {reading.exception()!r}")

    @property
    def abandoned_count(self) -> int:
        """Timed-out or cancelled children not yet reaped."""
        return len(self._abandoned)


async def _read_stream(
    stream: Optional[asyncio.StreamReader],
    parts: List[str],
    parser: Optional[ResultMarkerParser] = None,
) -> None:
    """Drain a child pipe in chunks, decoding UTF-8 across chunk boundaries."""
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        text = decoder.decode(chunk)
        if text:
            parts.append(text)
            if parser is not None:
                parser.feed(text)
    tail = decoder.decode(b"", final=True)
    if tail:
        parts.append(tail)
        if parser is not None:
            parser.feed(tail)


__all__ = ["TaskExecutor"]
