"""Shared service registry.

Holds the single live instance of each shared service. A key is written
once, by the coordinator, when the owning system becomes ready; every
later read returns that same object until destroy() invalidates all handles.
"""

import logging
from enum import Enum
from threading import Lock
from typing import Any

from starrynight.exceptions import ServiceAlreadyRegisteredError, ServiceUnavailableError

logger = logging.getLogger(__name__)


class SharedService(str, Enum):
    """Keys of the built-in shared services."""

    PERFORMANCE_MONITOR = "performance_monitor"
    CSS_VARIABLES = "css_variables"
    SETTINGS = "settings"
    MUSIC_SYNC = "music_sync"
    COLOR_HARMONY = "color_harmony"


def service_key(key: SharedService | str) -> str:
    """Registry name of a shared service key (enum members use their value)."""
    return key.value if isinstance(key, SharedService) else str(key)


class SharedServiceRegistry:
    """
    Write-once map from service key to instance.

    Threading:
        All operations are protected by a lock.
    """

    def __init__(self):
        self._lock = Lock()
        self._services: dict[str, Any] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        """Incremented each time every handle is invalidated."""
        return self._generation

    def register(self, key: SharedService | str, instance: Any) -> None:
        """
        Publish the instance for key.

        Raises:
            ServiceAlreadyRegisteredError: If key already has an instance
        """
        name = service_key(key)
        with self._lock:
            if name in self._services:
                raise ServiceAlreadyRegisteredError(name)
            self._services[name] = instance
        logger.debug(f"Registered shared service {name}: {type(instance).__name__}")

    def get(self, key: SharedService | str) -> Any:
        """
        Raises:
            ServiceUnavailableError: If nothing is registered under key
        """
        name = service_key(key)
        with self._lock:
            try:
                return self._services[name]
            except KeyError:
                raise ServiceUnavailableError(name) from None

    def get_optional(self, key: SharedService | str, default: Any = None) -> Any:
        with self._lock:
            return self._services.get(service_key(key), default)

    def has(self, key: SharedService | str) -> bool:
        with self._lock:
            return service_key(key) in self._services

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._services)

    def invalidate_all(self) -> int:
        """Drop every handle. Returns how many were dropped."""
        with self._lock:
            count = len(self._services)
            self._services.clear()
            self._generation += 1
        if count:
            logger.info(f"Invalidated {count} shared service handle(s)")
        return count

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (str, SharedService)) and self.has(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)
