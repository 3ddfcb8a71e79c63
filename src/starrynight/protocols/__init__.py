"""Protocol definitions for StarryNight."""

from .systems import (
    LIFECYCLE_OPERATIONS,
    ColorRefreshCallback,
    DegradableSystem,
    HealthObserver,
    ManagedSystem,
)

__all__ = [
    "LIFECYCLE_OPERATIONS",
    "ColorRefreshCallback",
    "DegradableSystem",
    "HealthObserver",
    "ManagedSystem",
]
