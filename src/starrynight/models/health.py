"""Health report models."""

import time
from typing import Any

from pydantic import BaseModel, Field

from .enums import HealthLevel, SystemState


class HealthResult(BaseModel):
    """Result returned by a managed system's health_check()."""

    healthy: bool = Field(description="Whether the system is working as intended")
    details: str = Field(default="", description="Short human-readable status")
    issues: list[str] = Field(default_factory=list, description="Problems found by the check")
    metrics: dict[str, Any] = Field(default_factory=dict, description="System-specific numbers")

    @classmethod
    def ok(cls, details: str = "ok", **metrics: Any) -> "HealthResult":
        return cls(healthy=True, details=details, metrics=metrics)

    @classmethod
    def failing(cls, *issues: str, **metrics: Any) -> "HealthResult":
        return cls(healthy=False, details=issues[0] if issues else "unhealthy",
                   issues=list(issues), metrics=metrics)


class SystemHealthReport(BaseModel):
    """Health of one system as seen by the coordinator."""

    name: str
    state: SystemState
    healthy: bool
    critical: bool = True
    details: str = ""
    issues: list[str] = Field(default_factory=list)
    last_error: str | None = None


class PhaseHealth(BaseModel):
    """Aggregated health of the systems in one phase."""

    phase: str
    healthy: bool
    systems: list[str] = Field(default_factory=list)
    unhealthy: list[str] = Field(default_factory=list)


class CoordinatorHealth(BaseModel):
    """Aggregated health across every managed system.

    `healthy` is the AND of every system's health; `overall` grades how
    bad it is.
    """

    healthy: bool
    overall: HealthLevel
    phases: dict[str, PhaseHealth] = Field(default_factory=dict)
    system_status: dict[str, SystemHealthReport] = Field(default_factory=dict)
    issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    timestamp: float = Field(default_factory=time.time)
