# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for timeouts, scheduling, watchdog, paths
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides the defaults for the monitoring scheduler and the watchdog.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Resolved once at startup; nothing downstream reads the environment
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

MINUTE_MS = 60 * 1000


@dataclass(frozen=True)
class TimeoutDefaults:
    """
    Defaults for the executor's per-task timeout.

    Resolution order: default, then averageDuration x buffer, then
    enforcedTimeout wins outright; the result is clamped to [min, max].
    """
    default_ms: int = 30 * MINUTE_MS
    min_ms: int = 5 * MINUTE_MS
    max_ms: int = 120 * MINUTE_MS
    average_duration_multiplier: float = 2.0

    @classmethod
    def from_env(cls) -> "TimeoutDefaults":
        """Create from environment variables."""
        return cls(
            default_ms=int(os.getenv("TASK_DEFAULT_TIMEOUT_MS", 30 * MINUTE_MS)),
            min_ms=int(os.getenv("TASK_MIN_TIMEOUT_MS", 5 * MINUTE_MS)),
            max_ms=int(os.getenv("TASK_MAX_TIMEOUT_MS", 120 * MINUTE_MS)),
        )


@dataclass(frozen=True)
class SchedulerDefaults:
    """Defaults for the tiered scheduler."""
    scheduler_name: str = "monitoringScheduler"

    # Background timers (seconds)
    state_save_interval_sec: float = 60.0
    health_check_interval_sec: float = 300.0

    # Circuit breaker: consecutive failures before dispatch is skipped
    max_consecutive_failures: int = 5

    # Sum of failure counters above which a critical alert is raised
    total_failure_alert_threshold: int = 10

    # Ring buffer size of the persisted task history
    history_limit: int = 100

    @classmethod
    def from_env(cls) -> "SchedulerDefaults":
        """Create from environment variables."""
        return cls(
            state_save_interval_sec=float(os.getenv("STATE_SAVE_INTERVAL_SEC", 60)),
            health_check_interval_sec=float(os.getenv("HEALTH_CHECK_INTERVAL_SEC", 300)),
            max_consecutive_failures=int(os.getenv("MAX_CONSECUTIVE_FAILURES", 5)),
            total_failure_alert_threshold=int(os.getenv("TOTAL_FAILURE_ALERT_THRESHOLD", 10)),
        )


@dataclass(frozen=True)
class WatchdogDefaults:
    """
    Defaults for the watchdog analyzer.

    expected_duration_minutes is separate from the Task
    Registry's averageDuration: it feeds the staleness heuristic only.
    """
    window_hours: float = 24.0
    stuck_threshold_minutes: int = 30

    expected_duration_minutes: Dict[str, int] = field(default_factory=lambda: {
        "calculateOwnerHops": 15,
        "calculateCustomerHops": 10,
        "calculateReportScores": 20,
        "processCustomer": 30,
        "syncWoT": 45,
        "reconciliation": 60,
        "systemResourceMonitor": 5,
        "taskWatchdog": 10,
        "neo4jStabilityMonitor": 15,
    })

    # Status escalation
    active_task_warning_threshold: int = 10
    completion_rate_warning_percent: int = 90

    # Process cross-reference
    pid_metadata_keys: Tuple[str, ...] = ("pid", "child_pid", "neo4j_pid")
    process_patterns: Tuple[str, ...] = ("brainstorm", "neo4j", "cypher-shell", "strfry")
    suspicious_patterns: Tuple[str, ...] = ("brainstorm", "cypher-shell", "neo4j")
    suspicious_exclusions: Tuple[str, ...] = ("systemd",)

    default_alert_limit: int = 50

    def expected_minutes_for(self, task_name: str) -> int:
        """Expected duration in minutes, falling back to the stuck floor."""
        return self.expected_duration_minutes.get(task_name, self.stuck_threshold_minutes)

    @classmethod
    def from_env(cls) -> "WatchdogDefaults":
        """Create from environment variables."""
        return cls(
            window_hours=float(os.getenv("WATCHDOG_WINDOW_HOURS", 24)),
            stuck_threshold_minutes=int(os.getenv("WATCHDOG_STUCK_THRESHOLD_MINUTES", 30)),
        )


@dataclass(frozen=True)
class ExecutorDefaults:
    """Defaults for spawning task scripts."""
    structured_logging_env: str = "BRAINSTORM_STRUCTURED_LOGGING"
    result_marker_prefix: str = "RESULT:"

    # Script suffix -> interpreter; unknown suffixes are executed directly
    interpreters: Dict[str, str] = field(default_factory=lambda: {
        ".js": "node",
        ".mjs": "node",
        ".sh": "bash",
        ".py": "python3",
    })

    # Max bytes of stderr quoted in a failure message
    stderr_excerpt_bytes: int = 2000

    @classmethod
    def from_env(cls) -> "ExecutorDefaults":
        """Create from environment variables."""
        return cls(
            result_marker_prefix=os.getenv("TASK_RESULT_MARKER", "RESULT:"),
        )


@dataclass(frozen=True)
class PathDefaults:
    """
    Filesystem locations.

    script_roots maps the placeholders used in registry script paths to
    concrete directories. Substitution happens once, at registry load.
    """
    log_dir: Path = Path("/var/log/brainstorm")
    registry_file: Optional[Path] = None
    script_roots: Dict[str, Path] = field(default_factory=dict)

    @property
    def task_queue_dir(self) -> Path:
        return self.log_dir / "taskQueue"

    @property
    def events_file(self) -> Path:
        return self.task_queue_dir / "events.jsonl"

    @property
    def state_file(self) -> Path:
        return self.task_queue_dir / "monitoringState.json"

    @property
    def scheduler_log_file(self) -> Path:
        return self.log_dir / "monitoringScheduler.log"

    @classmethod
    def from_env(cls) -> "PathDefaults":
        """Create from environment variables."""
        cwd = Path.cwd()
        base_dir = Path(os.getenv("BRAINSTORM_MODULE_BASE_DIR", cwd))
        src_dir = Path(os.getenv("BRAINSTORM_MODULE_SRC_DIR", base_dir / "src"))
        manage_dir = Path(os.getenv("BRAINSTORM_MODULE_MANAGE_DIR", src_dir / "manage"))
        registry = os.getenv("TASK_REGISTRY_PATH")
        return cls(
            log_dir=Path(os.getenv("BRAINSTORM_LOG_DIR", "/var/log/brainstorm")),
            registry_file=Path(registry) if registry else manage_dir / "taskQueue" / "taskRegistry.json",
            script_roots={
                "$BRAINSTORM_MODULE_SRC_DIR": src_dir,
                "$BRAINSTORM_MODULE_BASE_DIR": base_dir,
                "$BRAINSTORM_MODULE_MANAGE_DIR": manage_dir,
            },
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    timeouts: TimeoutDefaults = field(default_factory=TimeoutDefaults)
    scheduler: SchedulerDefaults = field(default_factory=SchedulerDefaults)
    watchdog: WatchdogDefaults = field(default_factory=WatchdogDefaults)
    executor: ExecutorDefaults = field(default_factory=ExecutorDefaults)
    paths: PathDefaults = field(default_factory=PathDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            timeouts=TimeoutDefaults.from_env(),
            scheduler=SchedulerDefaults.from_env(),
            watchdog=WatchdogDefaults.from_env(),
            executor=ExecutorDefaults.from_env(),
            paths=PathDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


__all__ = [
    "MINUTE_MS",
    "TimeoutDefaults",
    "SchedulerDefaults",
    "WatchdogDefaults",
    "ExecutorDefaults",
    "PathDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
