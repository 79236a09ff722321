# ============================================================================
# RUN-STATE REPOSITORY
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Persisted scheduler state
# PURPOSE: Last runs, bounded history, circuit-breaker failure counters
# CREATED: 19 OCT 2026
# ============================================================================
"""
Run-State Repository

Owns the MonitoringState snapshot and its file. The file is read once
at startup and rewritten whole after every task outcome and on the
scheduler's save timer; it is only ever written by this process.

A missing or corrupt file is never fatal: loading falls back to a fresh
empty state.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from core.models import MonitoringState, TaskHistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


class RunStateRepository:
    """File-backed store for MonitoringState."""

    def __init__(
        self,
        path: Union[str, Path],
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        autosave: bool = True,
    ):
        """
        Args:
            path: Location of monitoringState.json
            history_limit: Ring buffer size of the task history
            autosave: Save after every update_task_history() call
        """
        self.path = Path(path)
        self.history_limit = history_limit
        self.autosave = autosave
        self.state: MonitoringState = MonitoringState.fresh()

    # =========================================================================
    # LOAD / SAVE
    # =========================================================================

    def load_state(self) -> MonitoringState:
        """
        Read the snapshot from disk and make it the current state.

        Returns a fresh state when the file is missing or unreadable.
        """
        state = self._read()
        if len(state.task_history) > self.history_limit:
            state.task_history = state.task_history[-self.history_limit:]
        self.state = state
        return state

    def _read(self) -> MonitoringState:
        if not self.path.exists():
            logger.info(f"No monitoring state at {self.path}, starting fresh")
            return MonitoringState.fresh()

        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
            return MonitoringState.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            # ValidationError is a ValueError; listed for the reader
            logger.error(f"Error loading monitoring state from {self.path}: {e}")
            return MonitoringState.fresh()

    def save_state(self) -> bool:
        """
        Write the current snapshot, replacing the file atomically.

        Returns False (and logs) on failure; never raises.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(self.state.to_json_dict(), handle, indent=2)
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            logger.error(f"Error saving monitoring state to {self.path}: {e}")
            return False

    # =========================================================================
    # UPDATES
    # =========================================================================

    def update_task_history(
        self,
        task_name: str,
        status: str,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> TaskHistoryEntry:
        """
        Record one run outcome.

        Appends to the bounded history, stamps lastRun, resets the
        failure counter on "completed" and increments it on "failed".
        """
        entry = self.state.record(
            task_name,
            status,
            duration_ms,
            error=error,
            history_limit=self.history_limit,
        )
        if self.autosave:
            self.save_state()
        return entry

    # =========================================================================
    # QUERIES
    # =========================================================================

    def failure_count(self, task_name: str) -> int:
        return self.state.failures_for(task_name)

    @property
    def total_failures(self) -> int:
        return self.state.total_failures

    def recent_history(self, count: int = 10) -> list:
        return self.state.task_history[-count:]


__all__ = ["RunStateRepository", "DEFAULT_HISTORY_LIMIT"]
