"""Lifecycle and shared-service exceptions.

These describe a system set that is well-formed but failed at run time:
a system that raised or timed out during initialization, a phase whose
failures stop the sequence, or a shared service requested at the wrong time.
"""

from typing import Sequence

from .base import StarryNightError


class LifecycleError(StarryNightError):
    """Base class for errors raised while systems start or stop."""
    pass


class InitializationError(LifecycleError):
    """A single system failed to initialize."""

    def __init__(self, system: str, reason: str):
        super().__init__(
            user_message=f"System '{system}' failed to initialize: {reason}",
            recoverable=True,
            recovery_hint="Call destroy() on the coordinator before retrying",
        )
        self.system = system
        self.reason = reason


class SystemTimeoutError(InitializationError):
    """A system did not become ready within its time budget."""

    def __init__(self, system: str, timeout: float):
        super().__init__(system, f"not ready after {timeout:g}s")
        self.timeout = timeout


class DependencyFailedError(InitializationError):
    """A system was skipped because one of its dependencies failed."""

    def __init__(self, system: str, dependency: str):
        super().__init__(system, f"dependency '{dependency}' is not ready")
        self.dependency = dependency


class PhaseFailedError(LifecycleError):
    """Initialization stopped because a gated phase had failures."""

    def __init__(self, phase: str, failures: Sequence[InitializationError]):
        names = ", ".join(f.system for f in failures)
        super().__init__(
            user_message=f"Initialization phase '{phase}' failed ({names})",
            technical_message="; ".join(f.user_message for f in failures),
            recovery_hint="Call destroy() before retrying, or disable sequential enforcement",
        )
        self.phase = phase
        self.failures = list(failures)


class CoordinatorStateError(LifecycleError):
    """Operation is not valid in the coordinator's current state."""
    pass


class ServiceError(StarryNightError):
    """Base class for shared service registry errors."""
    pass


class ServiceUnavailableError(ServiceError):
    """A shared service was requested before its owner was ready, or after destroy."""

    def __init__(self, key: str):
        super().__init__(
            user_message=f"Shared service '{key}' is not available",
            recovery_hint="Wait for initialize() to complete before requesting shared services",
        )
        self.key = key


class ServiceAlreadyRegisteredError(ServiceError):
    """A shared service key was written twice."""

    def __init__(self, key: str):
        super().__init__(
            user_message=f"Shared service '{key}' is already registered",
        )
        self.key = key
