# ============================================================================
# DIAGNOSTIC LOGGING
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Diagnostic channel with per-task context
# PURPOSE: Diagnostic channel for scheduler, executor and watchdog
# CREATED: 19 OCT 2026
# ============================================================================
"""
Diagnostic Logging

The secondary channel of the monitoring scheduler. Task lifecycle goes to
the Event Log; this channel carries operator diagnostics, including the
report of any Event Log write that failed.

Each line can carry the task, tier and target being worked on. That
context lives in a ContextVar, so the concurrently running tier timelines
each see their own.

Output:
- stdout, human-readable or one JSON object per line (LOG_FORMAT=json)
- optional human-readable mirror file (monitoringScheduler.log)

Usage:
    from core.logging import ComponentType, get_logger, log_context

    logger = get_logger(__name__, ComponentType.SCHEDULER)

    with log_context(task_name="systemResourceMonitor", tier="tier1"):
        logger.info("Dispatching task")
"""

import contextvars
import dataclasses
import json
import logging
import os
import sys
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from core.contracts import to_iso, utc_now


class ComponentType(str, Enum):
    """Which part of the process wrote a log line."""
    SCHEDULER = "scheduler"
    EXECUTOR = "executor"
    WATCHDOG = "watchdog"
    CLI = "cli"


@dataclasses.dataclass(frozen=True)
class LogContext:
    """Fields folded into every line logged while the context is active."""
    task_name: Optional[str] = None
    tier: Optional[str] = None
    target: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = dataclasses.field(default_factory=dict)

    def merged(self, **changes: Any) -> "LogContext":
        """New context: given fields replace, extra is merged."""
        extra = {**self.extra, **changes.pop("extra", {})}
        return dataclasses.replace(self, extra=extra, **changes)

    def to_dict(self) -> Dict[str, Any]:
        fields = {
            name: getattr(self, name)
            for name in ("task_name", "tier", "target", "operation")
            if getattr(self, name) is not None
        }
        fields.update(self.extra)
        return fields


_EMPTY_CONTEXT = LogContext()
_context: contextvars.ContextVar = contextvars.ContextVar("monitor_log_context", default=_EMPTY_CONTEXT)


def get_current_context() -> LogContext:
    return _context.get()


@contextmanager
def log_context(**fields: Any) -> Iterator[LogContext]:
    """
    Attach fields to every line logged inside the block.

    Nested blocks inherit the outer fields; leaving a block restores them.

        with log_context(task_name="taskWatchdog", tier="tier4"):
            logger.info("Running")
    """
    token = _context.set(get_current_context().merged(**fields))
    try:
        yield _context.get()
    finally:
        _context.reset(token)


# ============================================================================
# FORMATTERS
# ============================================================================

class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def __init__(self, include_source: bool = True):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": to_iso(utc_now()),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_current_context().to_dict()
        if context:
            entry["context"] = context

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            entry["source"] = f"{record.filename}:{record.lineno} {record.funcName}"

        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """
    Single-line text for terminals and the mirror file.

        2026-10-19 05:34:00 INFO     scheduler.loop [task=taskWatchdog, tier=tier4]: Starting
    """

    CONTEXT_LABELS = (("task_name", "task"), ("tier", "tier"), ("target", "target"))

    def format(self, record: logging.LogRecord) -> str:
        context = get_current_context()
        labels = [
            f"{label}={getattr(context, name)}"
            for name, label in self.CONTEXT_LABELS
            if getattr(context, name)
        ]
        where = record.name + (f" [{', '.join(labels)}]" if labels else "")

        line = f"{utc_now():%Y-%m-%d %H:%M:%S} {record.levelname:<8} {where}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# ============================================================================
# LOGGERS
# ============================================================================

class ContextLogger(logging.LoggerAdapter):
    """Adapter stamping the component name and current context on each record."""

    def process(self, msg, kwargs):
        data = get_current_context().to_dict()
        if self.extra.get("component"):
            data["component"] = self.extra["component"]
        data.update(kwargs.pop("extra", None) or {})
        kwargs["extra"] = {"data": data}
        return msg, kwargs


def get_logger(name: str, component: Optional[ComponentType] = None) -> ContextLogger:
    """Context-aware logger, optionally tagged with a component."""
    return ContextLogger(
        logging.getLogger(name),
        {"component": component.value if component else None},
    )


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """
    Replace the root handlers with stdout and an optional mirror file.

    Args:
        level: Level name or number; unknown names fall back to INFO
        json_output: JSON lines on stdout (also enabled by LOG_FORMAT=json)
        log_file: Human-readable mirror; an unopenable path is reported, not raised
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    use_json = json_output or os.getenv("LOG_FORMAT", "").lower() == "json"
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter() if use_json else HumanFormatter())
    handlers: List[logging.Handler] = [console]

    mirror_error: Optional[OSError] = None
    if log_file:
        path = Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            mirror = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            mirror_error = e
        else:
            mirror.setFormatter(HumanFormatter())
            handlers.append(mirror)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)

    if mirror_error is not None:
        root.warning(f"Cannot open log file {log_file}: {mirror_error}")


__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
]
