# ============================================================================
# MONITORING TIERS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Static tier configuration
# PURPOSE: Tier layout and its validation against the Task Registry
# CREATED: 19 OCT 2026
# ============================================================================
"""
Monitoring Tiers

Tiers are static. A tier names its tasks; build_tiers() resolves the
names against the Task Registry and enforces that every task appears in
exactly one tier.

    tier1  every 2 min   critical  neo4jStabilityMonitor, systemResourceMonitor
    tier2  every 5 min   high      applicationHealthMonitor, databasePerformanceMonitor
    tier3  every 10 min  medium    networkConnectivityMonitor
    tier4  every 30 s    critical  taskWatchdog
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from core.config import MINUTE_MS
from core.contracts import TierPriority
from core.models import Tier
from repositories import RegistryError, TaskRegistry


class TierConfigurationError(Exception):
    """Tier layout is invalid or does not match the registry."""
    pass


@dataclass(frozen=True)
class TierSpec:
    """Tier layout before registry resolution."""
    name: str
    interval_ms: int
    priority: TierPriority
    task_names: Tuple[str, ...]


DEFAULT_TIERS: Tuple[TierSpec, ...] = (
    TierSpec(
        name="tier1",
        interval_ms=2 * MINUTE_MS,
        priority=TierPriority.CRITICAL,
        task_names=("neo4jStabilityMonitor", "systemResourceMonitor"),
    ),
    TierSpec(
        name="tier2",
        interval_ms=5 * MINUTE_MS,
        priority=TierPriority.HIGH,
        task_names=("applicationHealthMonitor", "databasePerformanceMonitor"),
    ),
    TierSpec(
        name="tier3",
        interval_ms=10 * MINUTE_MS,
        priority=TierPriority.MEDIUM,
        task_names=("networkConnectivityMonitor",),
    ),
    TierSpec(
        name="tier4",
        interval_ms=30 * 1000,
        priority=TierPriority.CRITICAL,
        task_names=("taskWatchdog",),
    ),
)


def build_tiers(
    registry: TaskRegistry,
    specs: Iterable[TierSpec] = DEFAULT_TIERS,
) -> List[Tier]:
    """
    Resolve tier specs into Tiers.

    Raises:
        TierConfigurationError: duplicate tier, non-positive interval,
            task in two tiers, or task missing from the registry
    """
    tiers: List[Tier] = []
    owner: Dict[str, str] = {}

    for spec in specs:
        if any(t.name == spec.name for t in tiers):
            raise TierConfigurationError(f"Duplicate tier: {spec.name}")
        if spec.interval_ms <= 0:
            raise TierConfigurationError(
                f"Tier {spec.name} has invalid interval {spec.interval_ms}ms"
            )

        tasks = []
        for task_name in spec.task_names:
            if task_name in owner:
                raise TierConfigurationError(
                    f"Task {task_name} is in both {owner[task_name]} and {spec.name}"
                )
            owner[task_name] = spec.name
            try:
                tasks.append(registry.require(task_name))
            except RegistryError as e:
                raise TierConfigurationError(f"Tier {spec.name}: {e}") from e

        tiers.append(Tier(
            name=spec.name,
            interval_ms=spec.interval_ms,
            priority=spec.priority,
            tasks=tasks,
        ))

    return tiers


__all__ = ["TierConfigurationError", "TierSpec", "DEFAULT_TIERS", "build_tiers"]
