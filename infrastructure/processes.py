# ============================================================================
# PROCESS SNAPSHOT
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Infrastructure - OS process enumeration
# PURPOSE: Snapshot of running processes for orphan detection
# CREATED: 19 OCT 2026
# ============================================================================
"""
Process Snapshot

Reads OS processes with psutil and returns them as ProcessInfo records.
Processes that vanish or deny access while being inspected are skipped.
Only the watchdog's orphan query uses this.

- list_processes: scan of the process table, optionally pattern-filtered
- lookup_processes: direct lookup of known pids, whatever their command
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import psutil

from core.models import ProcessInfo

logger = logging.getLogger(__name__)

_ATTRS = ["pid", "username", "cpu_percent", "memory_percent", "cmdline", "name"]


def _command_line(info: Dict[str, Any]) -> str:
    cmdline = info.get("cmdline") or []
    if cmdline:
        return " ".join(str(part) for part in cmdline)
    return info.get("name") or ""


def _to_process_info(info: Dict[str, Any]) -> ProcessInfo:
    return ProcessInfo(
        pid=info["pid"],
        command=_command_line(info),
        user=info.get("username"),
        cpu=round(info.get("cpu_percent") or 0.0, 1),
        memory=round(info.get("memory_percent") or 0.0, 1),
    )


def list_processes(patterns: Optional[Iterable[str]] = None) -> List[ProcessInfo]:
    """
    Snapshot running processes.

    Args:
        patterns: When given, keep only processes whose command line
            contains at least one of these substrings

    Returns:
        ProcessInfo list; empty when the process table cannot be read
    """
    wanted = tuple(patterns) if patterns is not None else None
    processes: List[ProcessInfo] = []

    try:
        for proc in psutil.process_iter(_ATTRS):
            try:
                info = proc.info
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

            if wanted is not None and not any(p in _command_line(info) for p in wanted):
                continue
            processes.append(_to_process_info(info))
    except psutil.Error as e:
        logger.warning(f"Could not get process list: {e}")
        return []

    return processes


def lookup_processes(pids: Iterable[int]) -> List[ProcessInfo]:
    """Live processes among the given pids; exited and zombie pids are left out."""
    found: List[ProcessInfo] = []
    for pid in pids:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                if proc.status() == psutil.STATUS_ZOMBIE:
                    continue
                info = proc.as_dict(_ATTRS)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        found.append(_to_process_info(info))
    return found


__all__ = ["list_processes", "lookup_processes"]
