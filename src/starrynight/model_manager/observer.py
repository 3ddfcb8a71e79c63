"""Thread-safe observer list.

Used by the settings store and by the coordinator's health reporting: a
snapshot of the observers is taken under the lock and callbacks run after
the lock is released, each one isolated from the others.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=object)


class ObserverManager(Generic[T]):
    """
    Generic observer list with thread-safe registration and notification.

    Type Parameters:
        T: The observer protocol type (e.g., ModelObserver, HealthObserver)

    Example:
        ```python
        self._observers = ObserverManager[HealthObserver](observer_type_name="health")
        self._observers.register(observer)
        self._observers.notify("on_health_report", report)
        ```
    """

    def __init__(self, lock: Lock | None = None, observer_type_name: str = "observer"):
        """
        Args:
            lock: Lock to share with the owner. A private lock is created if None.
                  It must not be held by the caller of notify().
            observer_type_name: Label used in log messages (e.g. "model", "health")
        """
        self._observers: list[T] = []
        self._lock = lock or Lock()
        self._observer_type_name = observer_type_name

    def register(self, observer: T) -> bool:
        """Register an observer. Returns False if it was already registered."""
        with self._lock:
            if observer in self._observers:
                logger.debug(f"{self._observer_type_name} observer already registered: {observer}")
                return False
            self._observers.append(observer)
        logger.debug(f"Registered {self._observer_type_name} observer: {observer}")
        return True

    def unregister(self, observer: T) -> bool:
        """Unregister an observer. Unknown observers are ignored."""
        with self._lock:
            if observer not in self._observers:
                return False
            self._observers.remove(observer)
        logger.debug(f"Unregistered {self._observer_type_name} observer: {observer}")
        return True

    def notify(self, callback_name: str, *args: Any, **kwargs: Any) -> int:
        """
        Call `callback_name` on every observer, in registration order.

        Returns:
            Number of observers whose callback raised

        Error Handling:
            A raising observer is logged and skipped; the remaining observers
            are still notified.
        """
        with self._lock:
            observers = list(self._observers)

        failures = 0
        for observer in observers:
            try:
                getattr(observer, callback_name)(*args, **kwargs)
            except Exception as e:
                failures += 1
                logger.error(
                    f"Error notifying {self._observer_type_name} observer {observer} "
                    f"via {callback_name}: {e}",
                    exc_info=True,
                )
        return failures

    def clear(self) -> int:
        """Remove all observers and return how many were removed."""
        with self._lock:
            count = len(self._observers)
            self._observers.clear()
        if count:
            logger.debug(f"Cleared {count} {self._observer_type_name} observer(s)")
        return count

    def __contains__(self, observer: T) -> bool:
        with self._lock:
            return observer in self._observers

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)
