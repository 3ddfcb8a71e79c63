"""Common plumbing for the built-in managed systems."""

import logging
from typing import Any

from starrynight.events.types import EventHandler, UnifiedEvent
from starrynight.models.health import HealthResult
from starrynight.orchestration.descriptor import SystemContext

logger = logging.getLogger(__name__)


class BaseSystem:
    """
    Base class for built-in systems.

    Subclasses override `_setup`, `_teardown` and `_check_health` rather than
    the lifecycle methods themselves. Every subscription is made under the
    system's subscriber name (its descriptor name when it has one), so
    destroy() releases all of them with a single unsubscribe_all().
    """

    subscriber_name: str = ""

    def __init__(self, context: SystemContext):
        self.context = context
        self.bus = context.bus
        self.config = context.config
        self._initialized = False
        self._degraded_reason: str | None = None
        self.subscriber_name = context.name or self.subscriber_name or type(self).__name__

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_degraded(self) -> bool:
        return self._degraded_reason is not None

    def subscribe(self, event: UnifiedEvent, handler: EventHandler) -> str:
        return self.bus.subscribe(event, handler, self.subscriber_name)

    def publish(self, event: UnifiedEvent, payload: Any) -> int:
        return self.bus.emit_sync(event, payload)

    # =================================================================
    # Lifecycle
    # =================================================================

    def initialize(self) -> None:
        self._setup()
        self._initialized = True
        logger.debug(f"{self.subscriber_name} initialized")

    def update_animation(self, delta_ms: float) -> None:
        pass

    def health_check(self) -> HealthResult:
        if not self._initialized:
            return HealthResult.failing(f"{self.subscriber_name} is not initialized")
        return self._check_health()

    def on_degraded(self, reason: str) -> None:
        self._degraded_reason = reason
        logger.warning(f"{self.subscriber_name} degraded: {reason}")

    def on_recovered(self) -> None:
        self._degraded_reason = None
        logger.info(f"{self.subscriber_name} recovered")

    def destroy(self) -> None:
        try:
            self._teardown()
        finally:
            removed = self.bus.unsubscribe_all(self.subscriber_name)
            self._initialized = False
            logger.debug(f"{self.subscriber_name} destroyed ({removed} subscriptions released)")

    # =================================================================
    # Hooks
    # =================================================================

    def _setup(self) -> None:
        pass

    def _teardown(self) -> None:
        pass

    def _check_health(self) -> HealthResult:
        return HealthResult.ok()
