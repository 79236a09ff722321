# ============================================================================
# WORKER CONTRACTS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Contract - Executor results and errors
# PURPOSE: Execution result model, executor exceptions, result marker parser
# CREATED: 19 OCT 2026
# EXPORTS: ExecutionResult, TaskExecutionError, TaskTimeoutError,
#          TaskSpawnError, ResultMarkerParser
# ============================================================================
"""
Worker Contracts

ExecutionResult is what TaskExecutor.execute() returns for a child that
ran to exit. A child that never ran (spawn error) or ran too long
(timeout) raises instead.

Structured result marker:
    A child may print one line starting with RESULT: followed by JSON.
    The JSON may span lines; accumulation stops at a line that is just
    "}" or when the braces balance. The marker is optional and a broken
    one yields no result. The exit code is authoritative.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class TaskExecutionError(Exception):
    """Base class for executor failures."""

    def __init__(self, task_name: str, message: str):
        self.task_name = task_name
        super().__init__(message)


class TaskTimeoutError(TaskExecutionError):
    """Child exceeded its computed timeout and was sent SIGTERM."""

    def __init__(self, task_name: str, timeout_ms: int, pid: Optional[int] = None):
        self.timeout_ms = timeout_ms
        self.pid = pid
        super().__init__(task_name, f"Task timeout after {self.timeout_minutes:g} minutes")

    @property
    def timeout_minutes(self) -> float:
        return self.timeout_ms / 60000


class TaskSpawnError(TaskExecutionError):
    """Child could not be started (missing script, exec failure)."""
    pass


# ============================================================================
# RESULT
# ============================================================================

class ExecutionResult(BaseModel):
    """Outcome of a child that exited on its own."""

    task_name: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = Field(default=0, ge=0)
    pid: Optional[int] = None
    result: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Parsed RESULT: marker payload, if the child printed one",
    )

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def failure_message(self, excerpt_bytes: int = 2000) -> str:
        stderr = self.stderr
        if len(stderr) > excerpt_bytes:
            stderr = stderr[-excerpt_bytes:]
        return f"Script exited with code {self.exit_code}: {stderr}"


# ============================================================================
# RESULT MARKER PARSER
# ============================================================================

class ResultMarkerParser:
    """
    Incremental parser for the RESULT: marker.

    Feed it raw stdout chunks as they arrive; partial lines are held
    until their newline. Call finish() at end of stream.
    """

    def __init__(self, prefix: str = "RESULT:"):
        self.prefix = prefix
        self.result: Optional[Dict[str, Any]] = None
        self._pending = ""
        self._buffer: List[str] = []
        self._collecting = False

    def feed(self, chunk: str) -> None:
        text = self._pending + chunk
        lines = text.split("\n")
        self._pending = lines.pop()
        for line in lines:
            self._feed_line(line.rstrip("\r"))

    def finish(self) -> Optional[Dict[str, Any]]:
        """Flush the last unterminated line and return the result."""
        if self._pending:
            self._feed_line(self._pending.rstrip("\r"))
            self._pending = ""
        if self._collecting:
            self._try_parse(final=True)
        return self.result

    def _feed_line(self, line: str) -> None:
        if line.startswith(self.prefix):
            self._collecting = True
            first = line[len(self.prefix):].strip()
            self._buffer = [first]
            if first.startswith("{") and first.endswith("}"):
                self._try_parse()
            return

        if not self._collecting:
            return

        self._buffer.append(line)
        text = "\n".join(self._buffer)
        if line.strip() == "}" or _braces_balanced(text):
            self._try_parse()

    def _try_parse(self, final: bool = False) -> None:
        text = "\n".join(self._buffer).strip()
        try:
            value = json.loads(text)
        except ValueError:
            if final:
                logger.debug(f"Discarding unparseable result marker ({len(text)} chars)")
                self._reset()
            return

        if isinstance(value, dict):
            self.result = value
        else:
            logger.debug("Result marker is not a JSON object, ignoring")
        self._reset()

    def _reset(self) -> None:
        self._collecting = False
        self._buffer = []


def _braces_balanced(text: str) -> bool:
    """True once an opening brace has been matched, ignoring string contents."""
    depth = 0
    opened = False
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
            opened = True
        elif ch == "}":
            depth -= 1
    return opened and depth <= 0


__all__ = [
    "TaskExecutionError",
    "TaskTimeoutError",
    "TaskSpawnError",
    "ExecutionResult",
    "ResultMarkerParser",
]
