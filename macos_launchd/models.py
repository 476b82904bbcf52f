"""Data models for launchd jobs and their resolved state."""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ConfigDict


class DisabledState(str, Enum):
    """Three-valued 'Disabled' flag: a plist may set it, clear it, or omit it."""

    UNSET = "UNSET"
    TRUE = "TRUE"
    FALSE = "FALSE"

    @classmethod
    def from_value(cls, value: Any) -> "DisabledState":
        """Convert an optional plist value (None meaning absent) to a state."""
        if value is None:
            return cls.UNSET
        return cls.TRUE if bool(value) else cls.FALSE

    @classmethod
    def from_mapping(cls, mapping: Any) -> "DisabledState":
        """Read the 'Disabled' key of a plist dictionary, if any."""
        if not isinstance(mapping, dict) or "Disabled" not in mapping:
            return cls.UNSET
        return cls.from_value(mapping["Disabled"])

    @property
    def is_set(self) -> bool:
        return self is not DisabledState.UNSET

    def allows_enabled(self) -> bool:
        """True unless the flag is explicitly set to disabled."""
        return self is not DisabledState.TRUE


class JobDescriptor(BaseModel):
    """A job plist found on disk, keyed by its Label."""

    label: str = Field(description="Unique launchd job label")
    path: Path = Field(description="Path to the job's plist file")
    plist: dict[str, Any] = Field(
        default_factory=dict,
        description="Decoded plist contents, in file order"
    )

    @property
    def disabled(self) -> DisabledState:
        """The job plist's own 'Disabled' flag."""
        return DisabledState.from_mapping(self.plist)


class ServiceState(BaseModel):
    """Resolved state of a single job at the time of a query."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "label": "com.example.agent",
                "path": "/Library/LaunchAgents/com.example.agent.plist",
                "running": True,
                "enabled": False
            }
        }
    )

    label: str = Field(description="Unique launchd job label")
    path: str = Field(description="Path to the job's plist file")
    running: bool = Field(description="Whether launchd currently has the job loaded")
    enabled: bool = Field(description="Whether the job is allowed to load")
