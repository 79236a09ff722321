# ============================================================================
# MONITORING SCHEDULER - MAIN ENTRY POINT
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Process entry point
# PURPOSE: Run the tiered scheduler, a single pass, or the watchdog API
# CREATED: 19 OCT 2026
# ============================================================================
"""
Monitoring Scheduler Main Entry Point

Usage:
    # Long-running scheduler for a deployment target
    python main.py owner

    # One pass over every tier, then exit
    python main.py owner --once

    # Serve the watchdog HTTP API instead of scheduling
    python main.py owner --serve-watchdog --port 8710

Exit codes:
    0  stopped by SIGINT/SIGTERM, or --once finished
    1  configuration error at startup, or fatal error while running

Environment Variables:
    BRAINSTORM_LOG_DIR: Log directory (events, state, log file mirror)
    BRAINSTORM_MODULE_BASE_DIR / _SRC_DIR / _MANAGE_DIR: script roots
    TASK_REGISTRY_PATH: Task registry JSON
    LOG_LEVEL: Diagnostic log level
    LOG_FORMAT: "json" for structured stdout logs
"""

import argparse
import asyncio
import dataclasses
import json
import os
import signal
import sys
import traceback
from pathlib import Path
from typing import List, Optional

from __version__ import __version__, BUILD_DATE
from core.config import Defaults, get_defaults
from core.contracts import Severity
from core.logging import ComponentType, configure_logging, get_logger
from repositories import EventLogRepository, RegistryError, RunStateRepository, TaskRegistry
from scheduler import Scheduler, TierConfigurationError, build_tiers
from services import EventService, WatchdogService
from worker import TaskExecutor

logger = get_logger(__name__, ComponentType.CLI)


# ============================================================================
# ARGUMENTS
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monitoring-scheduler",
        description="Tiered monitoring scheduler and task watchdog",
    )
    parser.add_argument("target", nargs="?", help="Deployment target label (e.g. owner)")
    parser.add_argument("--once", action="store_true", help="Run every tier once and exit")
    parser.add_argument("--registry", type=Path, help="Task registry JSON (overrides TASK_REGISTRY_PATH)")
    parser.add_argument("--log-dir", type=Path, help="Log directory (overrides BRAINSTORM_LOG_DIR)")
    parser.add_argument("--serve-watchdog", action="store_true", help="Serve the watchdog HTTP API")
    parser.add_argument("--host", default=os.environ.get("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", "8710")))
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__} ({BUILD_DATE})")
    return parser


def resolve_defaults(args: argparse.Namespace) -> Defaults:
    """Environment defaults with command line overrides applied."""
    defaults = get_defaults()
    overrides = {}
    if args.log_dir is not None:
        overrides["log_dir"] = args.log_dir
    if args.registry is not None:
        overrides["registry_file"] = args.registry
    if overrides:
        defaults = dataclasses.replace(defaults, paths=dataclasses.replace(defaults.paths, **overrides))
    return defaults


# ============================================================================
# WIRING
# ============================================================================

def build_scheduler(target: str, defaults: Defaults) -> Scheduler:
    """
    Load the registry and wire scheduler collaborators.

    Raises:
        RegistryError, TierConfigurationError: invalid configuration
    """
    paths = defaults.paths
    if paths.registry_file is None:
        raise RegistryError("No task registry configured")

    registry = TaskRegistry.load(paths.registry_file, paths.script_roots)
    tiers = build_tiers(registry)

    events = EventService(
        EventLogRepository(paths.events_file),
        source_name=defaults.scheduler.scheduler_name,
    )
    state = RunStateRepository(paths.state_file, history_limit=defaults.scheduler.history_limit)
    state.load_state()

    executor = TaskExecutor(
        events=events,
        defaults=defaults.executor,
        timeouts=defaults.timeouts,
    )
    return Scheduler(
        tiers,
        executor,
        state,
        events,
        defaults=defaults.scheduler,
        timeouts=defaults.timeouts,
        target=target,
    )


# ============================================================================
# RUN MODES
# ============================================================================

async def run_scheduler(scheduler: Scheduler) -> int:
    """Run until a signal (exit 0) or a fatal error (exit 1)."""
    events = scheduler.events
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()
    received: List[str] = []

    def _on_signal(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down gracefully")
        received.append(sig.name)
        shutdown.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        await scheduler.start()
        waiters = [
            asyncio.create_task(shutdown.wait()),
            asyncio.create_task(scheduler.wait_stopped()),
        ]
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()

        if scheduler.fatal_error is not None:
            raise scheduler.fatal_error

    except Exception as e:
        logger.exception("Uncaught exception in monitoring scheduler")
        await events.emit_health_alert(
            "SCHEDULER_FATAL",
            Severity.CRITICAL,
            "Uncaught exception in monitoring scheduler",
            {"error": str(e), "stack": traceback.format_exc()},
        )
        await scheduler.stop()
        return 1

    signame = received[0] if received else "stop"
    await events.emit_lifecycle(
        "shutdown",
        f"Received {signame}, shutting down gracefully",
        signal=signame,
    )
    await scheduler.stop()
    return 0


async def run_once(scheduler: Scheduler) -> int:
    status = await scheduler.run_once()
    print(json.dumps(status, indent=2, default=str))
    return 0


def serve_watchdog(defaults: Defaults, host: str, port: int) -> int:
    import uvicorn

    from api import create_app

    watchdog = WatchdogService(
        EventLogRepository(defaults.paths.events_file),
        defaults=defaults.watchdog,
    )
    uvicorn.run(create_app(watchdog), host=host, port=port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.target:
        parser.print_usage(sys.stderr)
        print("Example: monitoring-scheduler owner", file=sys.stderr)
        return 1

    defaults = resolve_defaults(args)
    configure_logging(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
        log_file=defaults.paths.scheduler_log_file,
    )

    logger.info("=" * 60)
    logger.info(f"Monitoring Scheduler v{__version__} (target={args.target})")
    logger.info("=" * 60)

    if args.serve_watchdog:
        return serve_watchdog(defaults, args.host, args.port)

    try:
        scheduler = build_scheduler(args.target, defaults)
    except (RegistryError, TierConfigurationError) as e:
        logger.error(f"Startup configuration error: {e}")
        return 1

    if args.once:
        return asyncio.run(run_once(scheduler))
    return asyncio.run(run_scheduler(scheduler))


if __name__ == "__main__":
    sys.exit(main())
