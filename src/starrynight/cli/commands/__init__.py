"""CLI commands for starrynight."""

from .events import events_group
from .run import health, run
from .settings import settings_group

__all__ = ["events_group", "health", "run", "settings_group"]
