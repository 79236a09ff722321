# ============================================================================
# EVENT LOG REPOSITORY
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Append-only JSON-Lines event store
# PURPOSE: Append and replay events.jsonl
# CREATED: 19 OCT 2026
# ============================================================================
"""
Event Log Repository

The Event Log is a JSON-Lines file shared by the scheduler, the child
task scripts and every reader. Writers only append; nobody locks.

Reader contract:
- A record is a newline-terminated line. A trailing fragment without
  a newline is a write in progress and is discarded.
- A line that is not a valid event is skipped; it never aborts the
  replay of the rest of the file.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterator, List, Optional, Union

from pydantic import ValidationError

from core.models import TaskEvent

logger = logging.getLogger(__name__)


class EventLogRepository:
    """Repository for the events.jsonl file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    # =========================================================================
    # WRITE
    # =========================================================================

    def append(self, event: TaskEvent) -> bool:
        """
        Append one event as a single JSON line.

        Creates parent directories as needed. Never raises: a failed
        write is reported on the diagnostic logger and False is returned.
        """
        try:
            line = event.to_json_line()
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize event {event.event_type} for {event.task_name}: {e}")
            return False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as handle:
                handle.write(line)
            return True
        except OSError as e:
            logger.error(
                f"Error writing to events log {self.path}: {e} "
                f"(event={event.event_type}, task={event.task_name})"
            )
            return False

    # =========================================================================
    # READ
    # =========================================================================

    def iter_lines(self) -> Iterator[str]:
        """Yield complete (newline-terminated) lines of the log."""
        if not self.exists:
            return

        with open(self.path, "rb") as handle:
            for raw in handle:
                if not raw.endswith(b"\n"):
                    # Unterminated trailing fragment: write still in progress
                    break
                text = raw.decode("utf-8", errors="replace").strip()
                if text:
                    yield text

    def iter_events(self, since: Optional[datetime] = None) -> Iterator[TaskEvent]:
        """
        Replay events in file order.

        Args:
            since: Only yield events strictly newer than this instant
        """
        skipped = 0
        for line in self.iter_lines():
            event = self.parse_line(line)
            if event is None:
                skipped += 1
                continue
            if since is not None and event.timestamp <= since:
                continue
            yield event

        if skipped:
            logger.debug(f"Skipped {skipped} malformed lines in {self.path}")

    def read_events(self, since: Optional[datetime] = None) -> List[TaskEvent]:
        """Replay events into a list. A missing file yields no events."""
        try:
            return list(self.iter_events(since=since))
        except OSError as e:
            logger.warning(f"Cannot read events log {self.path}: {e}")
            return []

    @staticmethod
    def parse_line(line: str) -> Optional[TaskEvent]:
        """Parse one line; None when it is not a valid event."""
        try:
            data = json.loads(line)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        try:
            return TaskEvent.model_validate(data)
        except ValidationError:
            return None


__all__ = ["EventLogRepository"]
