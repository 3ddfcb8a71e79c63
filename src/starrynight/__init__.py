"""StarryNight: system orchestration core for a music-reactive theme."""

__version__ = "0.1.0"

from .events import EventMigrationManager, UnifiedEvent, UnifiedEventBus
from .models import CoordinatorConfig, UserSettings
from .orchestration import SharedService, SystemCoordinator, SystemDescriptor

__all__ = [
    "CoordinatorConfig",
    "EventMigrationManager",
    "SharedService",
    "SystemCoordinator",
    "SystemDescriptor",
    "UnifiedEvent",
    "UnifiedEventBus",
    "UserSettings",
]
