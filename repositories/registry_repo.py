# ============================================================================
# TASK REGISTRY REPOSITORY
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core - Read-only task catalogue
# PURPOSE: Load taskRegistry.json into TaskDefinitions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Task Registry Repository

The registry is owned by another part of the platform; this side only
reads it. Script paths may contain placeholders such as
$BRAINSTORM_MODULE_SRC_DIR. They are substituted exactly once, here,
from the typed PathDefaults.script_roots mapping.

Registry JSON:
    {"tasks": {"<name>": {"script": "...", "averageDuration": 240000,
                          "enforcedTimeout": null, "categories": [...]}}}
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from core.models import TaskDefinition

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Registry missing, unreadable, or lacking a requested task."""
    pass


def expand_script_path(script: str, script_roots: Mapping[str, Path]) -> Path:
    """
    Substitute placeholder roots in a registry script path.

    Longest placeholders are replaced first so that a placeholder which
    prefixes another cannot clobber it.
    """
    expanded = script
    for placeholder in sorted(script_roots, key=len, reverse=True):
        expanded = expanded.replace(placeholder, str(script_roots[placeholder]))
    return Path(expanded)


class TaskRegistry:
    """Immutable mapping of task name -> TaskDefinition."""

    def __init__(self, tasks: Iterable[TaskDefinition]):
        self._tasks: Dict[str, TaskDefinition] = {}
        for task in tasks:
            if task.name in self._tasks:
                raise RegistryError(f"Duplicate task in registry: {task.name}")
            self._tasks[task.name] = task

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    def get(self, name: str) -> Optional[TaskDefinition]:
        return self._tasks.get(name)

    def require(self, name: str) -> TaskDefinition:
        task = self._tasks.get(name)
        if task is None:
            raise RegistryError(f"Task '{name}' not found in registry or missing script path")
        return task

    def names(self) -> List[str]:
        return sorted(self._tasks)

    def by_category(self, category: str) -> List[TaskDefinition]:
        return [t for t in self._tasks.values() if t.has_category(category)]

    # =========================================================================
    # LOADING
    # =========================================================================

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        script_roots: Optional[Mapping[str, Path]] = None,
    ) -> "TaskRegistry":
        """Build from parsed registry JSON."""
        raw_tasks = data.get("tasks")
        if not isinstance(raw_tasks, dict):
            raise RegistryError("Registry has no 'tasks' mapping")

        roots = script_roots or {}
        tasks = []
        for name, entry in raw_tasks.items():
            if not isinstance(entry, dict) or not entry.get("script"):
                logger.debug(f"Registry entry '{name}' has no script, skipping")
                continue
            fields = {
                "name": name,
                "script": expand_script_path(str(entry["script"]), roots),
                "averageDuration": entry.get("averageDuration"),
                "enforcedTimeout": entry.get("enforcedTimeout"),
                "categories": entry.get("categories") or [],
                "description": entry.get("description"),
            }
            try:
                tasks.append(TaskDefinition.model_validate(fields))
            except ValidationError as e:
                raise RegistryError(f"Invalid registry entry '{name}': {e}") from e

        return cls(tasks)

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        script_roots: Optional[Mapping[str, Path]] = None,
    ) -> "TaskRegistry":
        """Load the registry file; raises RegistryError on any failure."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except OSError as e:
            raise RegistryError(f"Failed to load task registry {path}: {e}") from e
        except ValueError as e:
            raise RegistryError(f"Task registry {path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise RegistryError(f"Task registry {path} must be a JSON object")

        registry = cls.from_dict(data, script_roots)
        logger.info(f"Loaded {len(registry)} tasks from registry {path}")
        return registry


__all__ = ["TaskRegistry", "RegistryError", "expand_script_path"]
