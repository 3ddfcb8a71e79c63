"""Configuration-related exceptions.

Configuration errors describe a system set that can never start correctly.
They are raised at coordinator construction or at the start of a phase and
are never retried:

- ConfigurationError: Base class for configuration errors
- ConfigFileInvalidError: Config file has invalid syntax
- ConfigValidationError: Config values fail validation
- CircularDependencyError: Descriptor dependencies form a cycle
- MissingDependencyError: A descriptor depends on an unknown system
- PhaseOrderError: A descriptor depends on a same-or-later phase peer
- SystemContractError: A system class lacks a lifecycle operation
- DuplicateSystemError: Two descriptors share a name
- DuplicateSharedServiceError: Two descriptors publish the same shared service
- UnknownEventError: An event type outside the closed event set
"""

from typing import Any, Optional, Sequence

from .base import StarryNightError


class ConfigurationError(StarryNightError):
    """Configuration is invalid or cannot be loaded."""
    pass


class ConfigFileInvalidError(ConfigurationError):
    """Configuration file has invalid JSON syntax."""

    def __init__(self, file_path: str, parse_error: str):
        """
        Initialize config file invalid error.

        Args:
            file_path: Path to the invalid config file
            parse_error: The parsing error message
        """
        user_msg = "Configuration file has invalid syntax"
        recovery = (
            "Check for common JSON errors:\n"
            "  - Trailing commas (remove commas after last item)\n"
            "  - Missing quotes around strings\n"
            f"  - Edit or delete: {file_path}"
        )

        if "trailing comma" in parse_error.lower():
            user_msg = "Configuration file has a trailing comma"
            recovery = f"Remove the trailing comma from {file_path}"
        elif "empty" in parse_error.lower():
            user_msg = "Configuration file is empty"
            recovery = f"Delete {file_path} to regenerate defaults"

        super().__init__(
            user_message=user_msg,
            technical_message=f"JSON parse error in {file_path}: {parse_error}",
            recoverable=True,
            recovery_hint=recovery
        )
        self.file_path = file_path
        self.parse_error = parse_error


class ConfigValidationError(ConfigurationError):
    """Configuration values fail validation."""

    def __init__(self, field: str, value: Any, error_msg: str, file_path: Optional[str] = None):
        """
        Initialize config validation error.

        Args:
            field: The configuration field that failed validation
            value: The invalid value
            error_msg: Why the value is invalid
            file_path: Path to the config file (optional)
        """
        recovery = f"Update the '{field}' value in your configuration"
        if file_path:
            recovery += f"\nConfig file: {file_path}"

        if "timeout" in field.lower():
            recovery += "\nTimeouts are given in seconds and must be positive"
        elif "visual_guide_mode" in field.lower():
            recovery += "\nRun 'starrynight settings show' to see the current values"

        super().__init__(
            user_message=f"Invalid configuration value for '{field}': {error_msg}",
            technical_message=f"Config validation failed for {field}={value!r}: {error_msg}",
            recoverable=True,
            recovery_hint=recovery
        )
        self.field = field
        self.value = value
        self.file_path = file_path


class CircularDependencyError(ConfigurationError):
    """System dependencies form a cycle."""

    def __init__(self, cycle: Sequence[str]):
        path = " -> ".join(cycle)
        super().__init__(
            user_message=f"Circular system dependency: {path}",
            technical_message=f"Dependency graph contains cycle {list(cycle)}",
            recovery_hint="Remove one of the dependencies in the cycle",
        )
        self.cycle = list(cycle)


class MissingDependencyError(ConfigurationError):
    """A system depends on a name with no descriptor."""

    def __init__(self, system: str, dependency: str):
        super().__init__(
            user_message=f"System '{system}' depends on unknown system '{dependency}'",
            recovery_hint=f"Register a descriptor named '{dependency}' or drop the dependency",
        )
        self.system = system
        self.dependency = dependency


class PhaseOrderError(ConfigurationError):
    """A system depends on a peer that cannot be ready before it starts."""

    def __init__(self, system: str, dependency: str, phase: str, dependency_phase: str):
        super().__init__(
            user_message=(
                f"System '{system}' ({phase}) depends on '{dependency}' "
                f"({dependency_phase}), which is not initialized in an earlier phase"
            ),
            recovery_hint=f"Move '{dependency}' to a phase before '{phase}'",
        )
        self.system = system
        self.dependency = dependency
        self.phase = phase
        self.dependency_phase = dependency_phase


class SystemContractError(ConfigurationError):
    """A managed system does not provide the lifecycle operations."""

    def __init__(self, system: str, missing: Sequence[str]):
        names = ", ".join(missing)
        super().__init__(
            user_message=f"System '{system}' is missing lifecycle operations: {names}",
            technical_message=f"{system} fails ManagedSystem contract (missing {list(missing)})",
            recovery_hint="Implement initialize, update_animation, health_check and destroy",
        )
        self.system = system
        self.missing = list(missing)


class DuplicateSystemError(ConfigurationError):
    """Two descriptors use the same system name."""

    def __init__(self, system: str):
        super().__init__(
            user_message=f"System '{system}' is registered more than once",
        )
        self.system = system


class DuplicateSharedServiceError(ConfigurationError):
    """Two descriptors publish the same shared service key."""

    def __init__(self, key: str, first: str, second: str):
        super().__init__(
            user_message=f"Shared service '{key}' is provided by both '{first}' and '{second}'",
            recovery_hint=f"Remove shared_service='{key}' from one of the two descriptors",
        )
        self.key = key
        self.first = first
        self.second = second


class UnknownEventError(ConfigurationError):
    """Event type outside the closed set of unified events."""

    def __init__(self, event_type: Any):
        super().__init__(
            user_message=f"Unknown event type: {event_type!r}",
            recovery_hint="Run 'starrynight events list' to see valid event types",
        )
        self.event_type = event_type
