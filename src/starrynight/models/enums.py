"""Enumerations shared by the orchestration layer."""

from enum import Enum


class SystemState(str, Enum):
    """Lifecycle state of a managed system."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    DEGRADED = "degraded"  # Initialized, but its last health check failed
    FAILED = "failed"
    DESTROYED = "destroyed"

    @property
    def is_live(self) -> bool:
        """True for states in which the system instance is usable."""
        return self in (SystemState.READY, SystemState.DEGRADED)


class InitializationPhase(str, Enum):
    """Initialization phases, plus the coordinator's idle/completed markers."""

    IDLE = "idle"
    CORE = "core"
    SERVICES = "services"
    VISUAL_SYSTEMS = "visual-systems"
    INTEGRATION = "integration"
    COMPLETED = "completed"


# Phases a descriptor may belong to, in initialization order
PHASE_ORDER: tuple[InitializationPhase, ...] = (
    InitializationPhase.CORE,
    InitializationPhase.SERVICES,
    InitializationPhase.VISUAL_SYSTEMS,
    InitializationPhase.INTEGRATION,
)


def phase_index(phase: InitializationPhase) -> int:
    """Position of a descriptor phase in PHASE_ORDER."""
    return PHASE_ORDER.index(phase)


class HealthLevel(str, Enum):
    """Overall health summary of the coordinator."""

    EXCELLENT = "excellent"  # Every system ready and healthy
    GOOD = "good"  # Only non-critical systems affected
    DEGRADED = "degraded"  # A critical system is degraded but alive
    CRITICAL = "critical"  # A critical system failed or never started
