# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Infrastructure - Host integration
# PURPOSE: OS process enumeration
# CREATED: 19 OCT 2026
# ============================================================================
"""
Infrastructure module for the monitoring scheduler.

Provides:
- list_processes: psutil snapshot of running processes
- lookup_processes: psutil lookup of known pids

Usage:
    from infrastructure import list_processes

    processes = list_processes(patterns=("neo4j", "cypher-shell"))
"""

from infrastructure.processes import list_processes, lookup_processes

__all__ = [
    "list_processes",
    "lookup_processes",
]
