# ============================================================================
# EVENT LOG MODEL
# ============================================================================
# EPOCH: 1 - TIERED MONITORING
# STATUS: Core model - Append-only lifecycle events
# PURPOSE: One line of the JSON-Lines Event Log
# CREATED: 19 OCT 2026
# EXPORTS: TaskEvent, HealthAlertMetadata
# DEPENDENCIES: pydantic
# ============================================================================
"""
Event Log Model

TaskEvent is one line of events.jsonl. The Event Log is the ledger from
which every task status is reconstructed; events are never mutated.

Line format:
    {"timestamp":"<ISO8601>","taskName":"...","target":"system|<id>",
     "eventType":"TASK_START|...","message":"...","metadata":{...}}

Child scripts write into the same file and add their own keys
(scriptName, pid); unknown keys are preserved on read.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from core.contracts import EventType, Severity, SYSTEM_TARGET, to_iso, utc_now


class HealthAlertMetadata(BaseModel):
    """Recognized metadata fields of a HEALTH_ALERT event."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    alert_type: str = Field(default="UNKNOWN", alias="alertType")
    severity: Severity = Severity.INFO
    component: str = "unknown"
    message: str = "No message provided"
    recommended_action: str = Field(default="No action specified", alias="recommendedAction")
    additional_data: Dict[str, Any] = Field(default_factory=dict, alias="additionalData")

    @field_validator("severity", mode="before")
    @classmethod
    def _unknown_severity_is_info(cls, value: Any) -> Any:
        if isinstance(value, Severity):
            return value
        if isinstance(value, str) and value in {s.value for s in Severity}:
            return value
        return Severity.INFO

    def to_metadata(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TaskEvent(BaseModel):
    """
    A single Event Log record.

    event_type is a plain string on read: child scripts emit types
    beyond EventType (e.g. CHILD_TASK_START) and those lines stay valid.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    timestamp: datetime = Field(default_factory=utc_now)
    task_name: str = Field(..., alias="taskName")
    target: str = SYSTEM_TARGET
    event_type: str = Field(..., alias="eventType")
    message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    pid: Optional[int] = None

    @field_validator("timestamp", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("event_type", mode="before")
    @classmethod
    def _enum_to_value(cls, value: Any) -> Any:
        if isinstance(value, EventType):
            return value.value
        return value

    @field_validator("target", mode="before")
    @classmethod
    def _empty_target_is_system(cls, value: Any) -> Any:
        if value is None or value == "":
            return SYSTEM_TARGET
        return str(value)

    @field_validator("metadata", mode="before")
    @classmethod
    def _non_dict_metadata_is_empty(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return {}
        return value

    @field_validator("pid", mode="before")
    @classmethod
    def _unparseable_pid_is_none(cls, value: Any) -> Any:
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return to_iso(value)

    # ========================================================================
    # Accessors
    # ========================================================================

    def is_type(self, event_type: EventType) -> bool:
        return self.event_type == event_type.value

    @property
    def is_terminal(self) -> bool:
        return self.event_type in EventType.terminal()

    def metadata_pid(self, keys=("pid", "child_pid", "neo4j_pid")) -> Optional[int]:
        """First process id found under the given metadata keys."""
        for key in keys:
            value = self.metadata.get(key)
            if value in (None, ""):
                continue
            try:
                return int(value)
            except (TypeError, ValueError):
                continue
        return None

    def alert(self) -> HealthAlertMetadata:
        """Metadata parsed as a health alert (defaults for missing fields)."""
        return HealthAlertMetadata.model_validate(self.metadata)

    def to_json_line(self) -> str:
        """Serialize as one JSON line, newline-terminated."""
        return self.model_dump_json(by_alias=True, exclude_none=True) + "\n"

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def create(
        cls,
        event_type: EventType,
        task_name: str,
        message: Optional[str] = None,
        target: str = SYSTEM_TARGET,
        metadata: Optional[Dict[str, Any]] = None,
        pid: Optional[int] = None,
    ) -> "TaskEvent":
        """Create an event stamped with the current time."""
        return cls(
            task_name=task_name,
            target=target,
            event_type=event_type.value,
            message=message,
            metadata=metadata or {},
            pid=pid,
        )

    @classmethod
    def health_alert(
        cls,
        task_name: str,
        alert: HealthAlertMetadata,
        target: str = SYSTEM_TARGET,
        pid: Optional[int] = None,
    ) -> "TaskEvent":
        """Create a HEALTH_ALERT event from alert metadata."""
        return cls.create(
            EventType.HEALTH_ALERT,
            task_name,
            message=alert.message,
            target=target,
            metadata=alert.to_metadata(),
            pid=pid,
        )


__all__ = ["TaskEvent", "HealthAlertMetadata"]
