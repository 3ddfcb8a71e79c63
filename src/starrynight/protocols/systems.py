"""Protocols implemented by managed systems and coordinator observers."""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:
    from starrynight.models.health import CoordinatorHealth, HealthResult

# Lifecycle operations every managed system must provide
LIFECYCLE_OPERATIONS = ("initialize", "update_animation", "health_check", "destroy")


@runtime_checkable
class ManagedSystem(Protocol):
    """
    A subsystem whose lifecycle is owned by the SystemCoordinator.

    Each operation may be a plain method or a coroutine function; the
    coordinator awaits whatever comes back.

    Lifecycle:
        - Constructed by the coordinator with a SystemContext. Construction
          must not subscribe to events or touch shared services.
        - initialize() runs once, after every dependency is ready.
        - update_animation() is called on every tick while the system is ready.
        - destroy() runs in reverse initialization order and must release
          every subscription the system made.
    """

    def initialize(self) -> Awaitable[None] | None:
        ...

    def update_animation(self, delta_ms: float) -> None:
        """
        Advance per-frame state.

        Args:
            delta_ms: Milliseconds since the previous tick
        """
        ...

    def health_check(self) -> "HealthResult | Awaitable[HealthResult]":
        ...

    def destroy(self) -> Awaitable[None] | None:
        ...


@runtime_checkable
class DegradableSystem(Protocol):
    """
    Optional hooks called when a system enters or leaves the degraded state.

    Degraded systems stop receiving update_animation() ticks. What else they
    switch off is up to each system.
    """

    def on_degraded(self, reason: str) -> None:
        ...

    def on_recovered(self) -> None:
        ...


@runtime_checkable
class HealthObserver(Protocol):
    """
    Receives every aggregated health report produced by the coordinator.

    Error Handling:
        Exceptions raised by observers are logged and do not affect the
        health check or other observers.
    """

    def on_health_report(self, report: "CoordinatorHealth") -> None:
        ...


# Refresh callback for color-dependent systems; receives the trigger name
ColorRefreshCallback = Callable[[str], Any]
