# ============================================================================
# SCHEDULER MODULE
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Tiered scheduling
# PURPOSE: Tier configuration and the scheduler loop
# CREATED: 19 OCT 2026
# ============================================================================
"""
Scheduler Module

Usage:
    from scheduler import Scheduler, build_tiers

    tiers = build_tiers(registry)
    scheduler = Scheduler(tiers, executor, state, events)
    await scheduler.start()
"""

from scheduler.tiers import (
    DEFAULT_TIERS,
    TierConfigurationError,
    TierSpec,
    build_tiers,
)
from scheduler.loop import (
    CANCELLED_MESSAGE,
    SKIP_ALREADY_RUNNING,
    SKIP_REPEATED_FAILURES,
    SKIP_TIER_BUSY,
    Scheduler,
)

__all__ = [
    "CANCELLED_MESSAGE",
    "DEFAULT_TIERS",
    "TierConfigurationError",
    "TierSpec",
    "build_tiers",
    "SKIP_ALREADY_RUNNING",
    "SKIP_REPEATED_FAILURES",
    "SKIP_TIER_BUSY",
    "Scheduler",
]
