"""System descriptors and per-system runtime records."""

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from starrynight.exceptions import ConfigurationError, SystemContractError
from starrynight.models.enums import PHASE_ORDER, InitializationPhase, SystemState
from starrynight.models.health import HealthResult
from starrynight.orchestration.registry import SharedService
from starrynight.protocols.systems import LIFECYCLE_OPERATIONS, ManagedSystem

if TYPE_CHECKING:
    from starrynight.events.bus import UnifiedEventBus
    from starrynight.events.migration import EventMigrationManager
    from starrynight.models.config import CoordinatorConfig
    from starrynight.orchestration.registry import SharedServiceRegistry


@dataclass(frozen=True)
class SystemContext:
    """What a managed system receives when it is constructed."""

    bus: "UnifiedEventBus"
    services: "SharedServiceRegistry"
    config: "CoordinatorConfig"
    migration: "EventMigrationManager | None" = None
    name: str = ""


SystemFactory = Callable[[SystemContext], ManagedSystem]


def missing_operations(target: Any) -> list[str]:
    """Lifecycle operations that target (class or instance) does not provide."""
    return [op for op in LIFECYCLE_OPERATIONS if not callable(getattr(target, op, None))]


def validate_system_contract(name: str, target: Any) -> None:
    """
    Check that a class or instance structurally satisfies ManagedSystem.

    Raises:
        SystemContractError: If any lifecycle operation is missing
    """
    missing = missing_operations(target)
    if missing:
        raise SystemContractError(name, missing)


@dataclass(frozen=True)
class SystemDescriptor:
    """
    Static description of a managed system.

    Attributes:
        name: Unique system name (also its event subscriber name by convention)
        system_class: Class implementing ManagedSystem; checked on creation of the descriptor
        phase: Initialization phase the system belongs to
        dependencies: Names of systems that must be ready first
        shared_service: Registry key the instance is published under, if any
        critical: Whether a failure of this system makes overall health critical
        factory: Optional constructor used instead of system_class(context)
    """

    name: str
    system_class: type
    phase: InitializationPhase
    dependencies: tuple[str, ...] = ()
    shared_service: SharedService | str | None = None
    critical: bool = True
    factory: SystemFactory | None = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        try:
            phase = InitializationPhase(self.phase)
        except ValueError:
            raise ConfigurationError(f"System '{self.name}' has unknown phase {self.phase!r}") from None
        if phase not in PHASE_ORDER:
            raise ConfigurationError(f"System '{self.name}' cannot be assigned to phase '{phase.value}'")
        object.__setattr__(self, "phase", phase)

        if not inspect.isclass(self.system_class):
            raise ConfigurationError(f"System '{self.name}' system_class must be a class")
        validate_system_contract(self.name, self.system_class)

    def create(self, context: SystemContext) -> ManagedSystem:
        """Construct the system and re-check the contract on the instance."""
        instance = self.factory(context) if self.factory else self.system_class(context)
        validate_system_contract(self.name, instance)
        return instance


@dataclass
class SystemRecord:
    """Mutable runtime state of one managed system."""

    descriptor: SystemDescriptor
    state: SystemState = SystemState.UNINITIALIZED
    instance: ManagedSystem | None = None
    error: str | None = None
    init_duration_ms: float | None = None
    last_health: HealthResult | None = None

    @property
    def name(self) -> str:
        return self.descriptor.name

    def reset(self) -> None:
        self.state = SystemState.UNINITIALIZED
        self.instance = None
        self.error = None
        self.init_duration_ms = None
        self.last_health = None
