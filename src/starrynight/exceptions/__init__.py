"""
Custom exception hierarchy for StarryNight.

## Exception Hierarchy

```
StarryNightError (base)
├── ConfigurationError              (fatal, never retried)
│   ├── ConfigFileInvalidError
│   ├── ConfigValidationError
│   ├── CircularDependencyError
│   ├── MissingDependencyError
│   ├── PhaseOrderError
│   ├── SystemContractError
│   ├── DuplicateSystemError
│   ├── DuplicateSharedServiceError
│   └── UnknownEventError
├── LifecycleError
│   ├── InitializationError         (recoverable after destroy())
│   │   ├── SystemTimeoutError
│   │   └── DependencyFailedError
│   ├── PhaseFailedError
│   └── CoordinatorStateError
└── ServiceError
    ├── ServiceUnavailableError
    └── ServiceAlreadyRegisteredError
```

Handler errors raised inside event subscribers are never raised to the
emitter; the bus records them and republishes them as `system:error`.

See `starrynight.exceptions.handlers` for the helpers that handle these
exceptions systematically.
"""

from .base import StarryNightError
from .config import (
    CircularDependencyError,
    ConfigFileInvalidError,
    ConfigurationError,
    ConfigValidationError,
    DuplicateSharedServiceError,
    DuplicateSystemError,
    MissingDependencyError,
    PhaseOrderError,
    SystemContractError,
    UnknownEventError,
)
from .handlers import (
    ErrorCollector,
    ErrorContext,
    collect_errors,
    format_error_for_display,
    handle_errors,
    wrap_pydantic_error,
)
from .lifecycle import (
    CoordinatorStateError,
    DependencyFailedError,
    InitializationError,
    LifecycleError,
    PhaseFailedError,
    ServiceAlreadyRegisteredError,
    ServiceError,
    ServiceUnavailableError,
    SystemTimeoutError,
)

__all__ = [
    # Base
    "StarryNightError",
    # Config
    "CircularDependencyError",
    "ConfigFileInvalidError",
    "ConfigValidationError",
    "ConfigurationError",
    "DuplicateSharedServiceError",
    "DuplicateSystemError",
    "MissingDependencyError",
    "PhaseOrderError",
    "SystemContractError",
    "UnknownEventError",
    # Lifecycle
    "CoordinatorStateError",
    "DependencyFailedError",
    "InitializationError",
    "LifecycleError",
    "PhaseFailedError",
    "SystemTimeoutError",
    # Services
    "ServiceAlreadyRegisteredError",
    "ServiceError",
    "ServiceUnavailableError",
    # Handlers
    "ErrorCollector",
    "ErrorContext",
    "collect_errors",
    "format_error_for_display",
    "handle_errors",
    "wrap_pydantic_error",
]
