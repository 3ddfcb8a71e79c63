"""Data models for StarryNight."""

from .config import CoordinatorConfig, EventBusConfig, OrchestrationConfig
from .enums import PHASE_ORDER, HealthLevel, InitializationPhase, SystemState, phase_index
from .health import CoordinatorHealth, HealthResult, PhaseHealth, SystemHealthReport
from .settings import COLOR_AFFECTING_SETTINGS, DEFAULT_SETTINGS_PATH, UserSettings

__all__ = [
    "COLOR_AFFECTING_SETTINGS",
    "DEFAULT_SETTINGS_PATH",
    "PHASE_ORDER",
    "CoordinatorConfig",
    "CoordinatorHealth",
    "EventBusConfig",
    "HealthLevel",
    "HealthResult",
    "InitializationPhase",
    "OrchestrationConfig",
    "PhaseHealth",
    "SystemHealthReport",
    "SystemState",
    "UserSettings",
    "phase_index",
]
