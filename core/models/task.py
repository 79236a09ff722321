# ============================================================================
# TASK DEFINITION & TIER MODELS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core model - Static task catalogue
# PURPOSE: Registry entries, scheduling tiers, in-memory run records
# CREATED: 19 OCT 2026
# EXPORTS: TaskDefinition, Tier, RunRecord
# DEPENDENCIES: pydantic
# ============================================================================
"""
Task Definition Models

TaskDefinition is one entry of the Task Registry, resolved once at
startup. Tier groups task definitions under one interval and priority.
RunRecord is the in-memory marker of a task that is currently running.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.contracts import TierPriority


class TaskDefinition(BaseModel):
    """
    One task from the registry. Immutable for the process lifetime.

    Registry JSON:
        {"script": "...", "averageDuration": 240000,
         "enforcedTimeout": null, "categories": ["monitoring"]}
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=128)
    script_path: Path = Field(..., alias="script")
    expected_duration_ms: Optional[int] = Field(
        default=None,
        ge=0,
        alias="averageDuration",
        description="Observed average duration; drives the executor timeout",
    )
    enforced_timeout_ms: Optional[int] = Field(
        default=None,
        gt=0,
        alias="enforcedTimeout",
        description="Hard timeout override; wins over averageDuration",
    )
    categories: FrozenSet[str] = Field(default_factory=frozenset)
    description: Optional[str] = None

    @field_validator("expected_duration_ms", "enforced_timeout_ms", mode="before")
    @classmethod
    def _falsy_duration_is_unset(cls, value: Any) -> Any:
        # Registry uses 0 and null interchangeably for "not configured"
        if value in (0, "", None):
            return None
        return value

    def has_category(self, category: str) -> bool:
        return category in self.categories


class Tier(BaseModel):
    """A named group of tasks sharing one interval and priority."""

    model_config = ConfigDict(frozen=True)

    name: str
    interval_ms: int = Field(..., gt=0)
    priority: TierPriority
    tasks: List[TaskDefinition] = Field(default_factory=list)

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def task_names(self) -> List[str]:
        return [task.name for task in self.tasks]


class RunRecord(BaseModel):
    """
    A task currently running under the scheduler.

    Keyed by task name in the scheduler's run map; at most one per name.
    """

    task: TaskDefinition
    tier: str
    start_time: datetime
    timeout_ms: int
    pid: Optional[int] = None

    def running_ms(self, now: datetime) -> int:
        return int((now - self.start_time).total_seconds() * 1000)

    def is_overdue(self, now: datetime) -> bool:
        return self.running_ms(now) > self.timeout_ms

    def summary(self, now: datetime) -> Dict[str, Any]:
        return {
            "taskName": self.task.name,
            "tier": self.tier,
            "runningTime": self.running_ms(now),
            "timeout": self.timeout_ms,
            "pid": self.pid,
        }


__all__ = ["TaskDefinition", "Tier", "RunRecord"]
