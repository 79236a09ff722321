# ============================================================================
# TASK REGISTRY AND TIER TESTS
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Tests - Registry loading and static tier layout
# PURPOSE: Verify placeholder expansion and tier validation
# CREATED: 19 OCT 2026
# ============================================================================
"""
Task Registry and Tier Tests

Run with:
    pytest tests/test_registry.py -v
"""

import json
from pathlib import Path

import pytest

from core.contracts import TierPriority
from repositories import RegistryError, TaskRegistry, expand_script_path
from scheduler import DEFAULT_TIERS, TierConfigurationError, TierSpec, build_tiers

MONITOR_TASKS = [
    "neo4jStabilityMonitor",
    "systemResourceMonitor",
    "applicationHealthMonitor",
    "databasePerformanceMonitor",
    "networkConnectivityMonitor",
    "taskWatchdog",
]


def _registry_data(names=MONITOR_TASKS):
    return {
        "tasks": {
            name: {
                "script": f"$BRAINSTORM_MODULE_SRC_DIR/monitors/{name}.sh",
                "averageDuration": 60000,
                "categories": ["monitoring"],
            }
            for name in names
        }
    }


# ============================================================================
# REGISTRY
# ============================================================================

class TestExpandScriptPath:

    def test_placeholders_substituted(self):
        roots = {
            "$BRAINSTORM_MODULE_SRC_DIR": Path("/usr/local/lib/brainstorm/src"),
            "$BRAINSTORM_MODULE_BASE_DIR": Path("/usr/local/lib/brainstorm"),
        }
        assert expand_script_path("$BRAINSTORM_MODULE_SRC_DIR/a.sh", roots) == Path(
            "/usr/local/lib/brainstorm/src/a.sh"
        )
        assert expand_script_path("$BRAINSTORM_MODULE_BASE_DIR/b.sh", roots) == Path(
            "/usr/local/lib/brainstorm/b.sh"
        )

    def test_longest_placeholder_first(self):
        roots = {"$DIR": Path("/short"), "$DIR_SRC": Path("/long")}
        assert expand_script_path("$DIR_SRC/x.sh", roots) == Path("/long/x.sh")

    def test_plain_path_untouched(self):
        assert expand_script_path("/opt/x.sh", {}) == Path("/opt/x.sh")


class TestTaskRegistry:

    def test_load_expands_and_validates(self, tmp_path):
        path = tmp_path / "taskRegistry.json"
        path.write_text(json.dumps(_registry_data()))

        registry = TaskRegistry.load(path, {"$BRAINSTORM_MODULE_SRC_DIR": Path("/src")})

        task = registry.require("taskWatchdog")
        assert task.script_path == Path("/src/monitors/taskWatchdog.sh")
        assert task.expected_duration_ms == 60000
        assert task.has_category("monitoring")
        assert len(registry) == 6
        assert len(registry.by_category("monitoring")) == 6

    def test_entries_without_script_skipped(self):
        registry = TaskRegistry.from_dict({
            "tasks": {"a": {"script": "/a.sh"}, "b": {"description": "no script"}, "c": "bogus"}
        })
        assert registry.names() == ["a"]

    def test_require_unknown_task(self):
        registry = TaskRegistry.from_dict({"tasks": {}})
        with pytest.raises(RegistryError, match="not found"):
            registry.require("nope")

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryError):
            TaskRegistry.load(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "taskRegistry.json"
        path.write_text("{")
        with pytest.raises(RegistryError, match="not valid JSON"):
            TaskRegistry.load(path)

    def test_no_tasks_mapping(self):
        with pytest.raises(RegistryError):
            TaskRegistry.from_dict({"tasks": []})

    def test_invalid_entry(self):
        with pytest.raises(RegistryError, match="Invalid registry entry"):
            TaskRegistry.from_dict({"tasks": {"a": {"script": "/a.sh", "enforcedTimeout": -5}}})


# ============================================================================
# TIERS
# ============================================================================

class TestBuildTiers:

    def test_default_layout(self):
        tiers = build_tiers(TaskRegistry.from_dict(_registry_data()))

        by_name = {tier.name: tier for tier in tiers}
        assert by_name["tier1"].interval_ms == 120000
        assert by_name["tier1"].priority == TierPriority.CRITICAL
        assert by_name["tier1"].task_names == ["neo4jStabilityMonitor", "systemResourceMonitor"]
        assert by_name["tier2"].interval_ms == 300000
        assert by_name["tier3"].task_names == ["networkConnectivityMonitor"]
        assert by_name["tier4"].interval_ms == 30000
        assert by_name["tier4"].task_names == ["taskWatchdog"]

    def test_every_task_in_exactly_one_tier(self):
        names = [name for spec in DEFAULT_TIERS for name in spec.task_names]
        assert sorted(names) == sorted(MONITOR_TASKS)

    def test_unknown_task_rejected(self):
        registry = TaskRegistry.from_dict(_registry_data(MONITOR_TASKS[:-1]))
        with pytest.raises(TierConfigurationError, match="taskWatchdog"):
            build_tiers(registry)

    def test_task_in_two_tiers_rejected(self):
        specs = (
            TierSpec("a", 1000, TierPriority.HIGH, ("taskWatchdog",)),
            TierSpec("b", 1000, TierPriority.HIGH, ("taskWatchdog",)),
        )
        with pytest.raises(TierConfigurationError, match="both"):
            build_tiers(TaskRegistry.from_dict(_registry_data()), specs)

    def test_duplicate_tier_rejected(self):
        specs = (
            TierSpec("a", 1000, TierPriority.HIGH, ()),
            TierSpec("a", 1000, TierPriority.HIGH, ()),
        )
        with pytest.raises(TierConfigurationError, match="Duplicate"):
            build_tiers(TaskRegistry.from_dict(_registry_data()), specs)

    def test_non_positive_interval_rejected(self):
        specs = (TierSpec("a", 0, TierPriority.HIGH, ()),)
        with pytest.raises(TierConfigurationError, match="interval"):
            build_tiers(TaskRegistry.from_dict(_registry_data()), specs)
