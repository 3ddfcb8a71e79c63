"""Unified event bus.

A single typed publish/subscribe channel shared by every managed system.

Dispatch model:
    - Subscribers are kept per event type in subscription order.
    - An emission takes a snapshot of the subscriber list under the lock and
      calls handlers after the lock is released. Subscribing or unsubscribing
      from inside a handler only affects later emissions.
    - Each handler is isolated. A raising handler is logged, recorded as a
      HandlerFailure and republished as `system:error`; the remaining
      handlers still run and the emitter never sees the exception.

Two emission modes:
    - emit_sync(): dispatches immediately on the caller's stack. A handler
      returning an awaitable has it scheduled on the running loop, so the
      dispatch itself never suspends.
    - emit(): deferred. Events go into a bounded FIFO drained by one task at
      a time, awaiting async handlers in order. Two events never interleave.
"""

import asyncio
import inspect
import itertools
import logging
import time
from collections import Counter, deque
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from starrynight.events.types import (
    EVENT_PAYLOADS,
    EventHandler,
    EventPayload,
    SystemErrorPayload,
    UnifiedEvent,
    coerce_event,
)
from starrynight.exceptions import UnknownEventError
from starrynight.models.config import EventBusConfig

logger = logging.getLogger(__name__)

# Seconds after which a never-triggered subscription counts as abandoned
ABANDONED_SUBSCRIPTION_AGE = 300.0


@dataclass
class Subscription:
    """A registered handler for one event type."""

    id: str
    event_type: UnifiedEvent
    handler: EventHandler
    subscriber_name: str
    once: bool = False
    created_at: float = field(default_factory=time.time)
    last_triggered: float | None = None
    trigger_count: int = 0


@dataclass(frozen=True)
class HandlerFailure:
    """A handler exception captured during dispatch."""

    subscriber_name: str
    event_type: UnifiedEvent
    subscription_id: str
    error: str
    timestamp: float = field(default_factory=time.time)


class BusMetrics(BaseModel):
    """Snapshot of bus counters."""

    active_subscriptions: int = 0
    total_subscriptions: int = Field(default=0, description="Subscriptions ever created")
    total_events: int = Field(default=0, description="Events dispatched")
    memory_usage: int = Field(default=0, description="Estimated bytes held by subscriptions")
    handler_failures: int = 0
    dropped_events: int = Field(default=0, description="Invalid payloads and queue overflow")
    queued_events: int = 0
    top_events: dict[str, int] = Field(default_factory=dict)


class UnifiedEventBus:
    """
    Typed publish/subscribe bus.

    Example:
        ```python
        bus = UnifiedEventBus()
        sub_id = bus.subscribe(UnifiedEvent.MUSIC_BEAT, on_beat, "BeatVisualizer")
        bus.emit_sync("music:beat", {"bpm": 120, "intensity": 0.7, "confidence": 0.9})
        bus.unsubscribe_all("BeatVisualizer")
        ```

    Threading:
        Subscriber-list mutations are protected by a lock that is never held
        while a handler runs.
    """

    def __init__(self, config: EventBusConfig | None = None):
        self._config = config or EventBusConfig()
        self._lock = Lock()
        self._subscriptions: dict[UnifiedEvent, dict[str, Subscription]] = {}
        self._index: dict[str, UnifiedEvent] = {}
        self._ids = itertools.count(1)

        self._queue: deque[tuple[UnifiedEvent, EventPayload]] = deque()
        self._draining = False
        self._pending_tasks: set[asyncio.Task] = set()

        self._failures: deque[HandlerFailure] = deque(maxlen=self._config.max_recorded_failures)
        self._destroyed = False
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._event_counts: Counter[str] = Counter()
        self._total_events = 0
        self._total_subscriptions = 0
        self._failure_count = 0
        self._dropped = 0
        self._failures.clear()

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    # =================================================================
    # Subscriptions
    # =================================================================

    def subscribe(
        self,
        event_type: UnifiedEvent | str,
        handler: EventHandler,
        subscriber_name: str = "anonymous",
        *,
        once: bool = False,
    ) -> str:
        """
        Register a handler for an event type.

        Args:
            event_type: UnifiedEvent member or its wire name
            handler: Called with the validated payload model
            subscriber_name: Owner label used by unsubscribe_all and diagnostics
            once: Remove the subscription after its first delivery

        Returns:
            Unique subscription id

        Raises:
            UnknownEventError: If event_type is not a unified event
            TypeError: If handler is not callable
        """
        event = coerce_event(event_type)
        if not callable(handler):
            raise TypeError(f"Handler for {event.value} must be callable, got {handler!r}")

        subscription = Subscription(
            id=f"{subscriber_name}:{event.value}:{next(self._ids)}",
            event_type=event,
            handler=handler,
            subscriber_name=subscriber_name,
            once=once,
        )

        with self._lock:
            if self._destroyed:
                logger.warning(f"Ignoring subscription from {subscriber_name} to {event.value}: bus destroyed")
                return subscription.id
            self._subscriptions.setdefault(event, {})[subscription.id] = subscription
            self._index[subscription.id] = event
            self._total_subscriptions += 1

        logger.debug(f"{subscriber_name} subscribed to {event.value} ({subscription.id})")
        return subscription.id

    def once(self, event_type: UnifiedEvent | str, handler: EventHandler, subscriber_name: str = "anonymous") -> str:
        """Subscribe for a single delivery."""
        return self.subscribe(event_type, handler, subscriber_name, once=True)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove one subscription. Unknown ids are ignored."""
        with self._lock:
            removed = self._remove_locked(subscription_id)
        if removed:
            logger.debug(f"Unsubscribed {subscription_id}")
        return removed

    def unsubscribe_all(self, subscriber_name: str) -> int:
        """Remove every subscription owned by subscriber_name. Returns how many were removed."""
        with self._lock:
            ids = [
                sub_id
                for subs in self._subscriptions.values()
                for sub_id, sub in subs.items()
                if sub.subscriber_name == subscriber_name
            ]
            for sub_id in ids:
                self._remove_locked(sub_id)

        if ids:
            logger.debug(f"Removed {len(ids)} subscription(s) for {subscriber_name}")
        return len(ids)

    def _remove_locked(self, subscription_id: str) -> bool:
        event = self._index.pop(subscription_id, None)
        if event is None:
            return False
        subs = self._subscriptions[event]
        del subs[subscription_id]
        if not subs:
            del self._subscriptions[event]
        return True

    def get_active_subscriptions(self) -> list[Subscription]:
        """All live subscriptions, grouped by event type in subscription order."""
        with self._lock:
            return [sub for subs in self._subscriptions.values() for sub in subs.values()]

    def cleanup_abandoned_subscriptions(self, max_age: float = ABANDONED_SUBSCRIPTION_AGE) -> int:
        """
        Remove subscriptions that have never been triggered and are older
        than max_age seconds.

        Returns:
            Number of subscriptions removed
        """
        cutoff = time.time() - max_age
        with self._lock:
            ids = [
                sub.id
                for subs in self._subscriptions.values()
                for sub in subs.values()
                if sub.last_triggered is None and sub.created_at < cutoff
            ]
            for sub_id in ids:
                self._remove_locked(sub_id)

        if ids:
            logger.info(f"Removed {len(ids)} abandoned subscription(s): {ids}")
        return len(ids)

    def subscriber_count(self, event_type: UnifiedEvent | str) -> int:
        event = coerce_event(event_type)
        with self._lock:
            return len(self._subscriptions.get(event, {}))

    # =================================================================
    # Emission
    # =================================================================

    def emit_sync(
        self,
        event_type: UnifiedEvent | str,
        payload: EventPayload | Mapping[str, Any],
        *,
        subscribers: Collection[str] | None = None,
    ) -> int:
        """
        Dispatch an event to its subscribers before returning.

        Args:
            event_type: UnifiedEvent member or wire name
            payload: Payload model instance, or a mapping validated against it
            subscribers: Restrict delivery to these subscriber names

        Returns:
            Number of handlers invoked. Unknown events, invalid payloads and a
            destroyed bus all yield 0.
        """
        prepared = self._prepare(event_type, payload)
        if prepared is None:
            return 0
        event, model = prepared

        invoked = 0
        for subscription in self._snapshot(event, subscribers):
            invoked += 1
            result = self._invoke(subscription, model)
            if inspect.isawaitable(result):
                self._schedule(result, subscription)
        return invoked

    async def emit(
        self,
        event_type: UnifiedEvent | str,
        payload: EventPayload | Mapping[str, Any],
    ) -> None:
        """
        Queue an event for ordered, async-safe dispatch.

        When no drain is in progress the caller drains the queue itself,
        including events queued by handlers while it runs. Otherwise the
        event is dispatched by the active drain.
        """
        prepared = self._prepare(event_type, payload)
        if prepared is None:
            return

        with self._lock:
            if len(self._queue) >= self._config.max_queue_size:
                self._dropped += 1
                logger.warning(
                    f"Event queue full ({self._config.max_queue_size}), dropping {prepared[0].value}"
                )
                return
            self._queue.append(prepared)
            if self._draining:
                return
            self._draining = True

        await self._drain()

    async def _drain(self) -> None:
        """
        Dispatch queued events until the queue is empty.

        If the draining task is cancelled, events queued by other callers
        are handed to a new drain task on the running loop.
        """
        try:
            while True:
                with self._lock:
                    if self._destroyed or not self._queue:
                        break
                    event, model = self._queue.popleft()

                for subscription in self._snapshot(event, None):
                    result = self._invoke(subscription, model)
                    if inspect.isawaitable(result):
                        await self._await_handler(result, subscription)
        finally:
            with self._lock:
                resume = bool(self._queue) and not self._destroyed
                self._draining = resume
            if resume:
                logger.debug("Drain interrupted; resuming queued events in a new task")
                task = asyncio.get_running_loop().create_task(self._drain())
                self._pending_tasks.add(task)
                task.add_done_callback(self._pending_tasks.discard)

    def _prepare(
        self, event_type: UnifiedEvent | str, payload: Any
    ) -> tuple[UnifiedEvent, EventPayload] | None:
        if self._destroyed:
            logger.debug(f"Bus destroyed, ignoring {event_type}")
            return None

        try:
            event = coerce_event(event_type)
        except UnknownEventError:
            logger.error(f"Dropping emission of unknown event type {event_type!r}")
            self._count_drop()
            return None

        model_type = EVENT_PAYLOADS[event]
        if isinstance(payload, model_type):
            return event, payload

        if not isinstance(payload, Mapping):
            logger.error(f"Dropping {event.value}: payload must be a mapping, got {type(payload).__name__}")
            self._count_drop()
            return None

        try:
            return event, model_type.model_validate(dict(payload))
        except ValidationError as e:
            logger.error(f"Dropping {event.value}: invalid payload: {e}")
            self._count_drop()
            return None

    def _count_drop(self) -> None:
        with self._lock:
            self._dropped += 1

    def _snapshot(self, event: UnifiedEvent, only: Collection[str] | None) -> list[Subscription]:
        with self._lock:
            self._total_events += 1
            self._event_counts[event.value] += 1
            snapshot = [
                sub
                for sub in self._subscriptions.get(event, {}).values()
                if only is None or sub.subscriber_name in only
            ]
            for sub in snapshot:
                if sub.once:
                    self._remove_locked(sub.id)
        return snapshot

    def _invoke(self, subscription: Subscription, payload: EventPayload) -> Any:
        subscription.trigger_count += 1
        subscription.last_triggered = time.time()
        try:
            return subscription.handler(payload)
        except Exception as e:
            self._record_failure(subscription, e)
            return None

    def _schedule(self, awaitable: Any, subscription: Subscription) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                f"Handler {subscription.subscriber_name} returned an awaitable for "
                f"{subscription.event_type.value} outside a running event loop; discarding it"
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = loop.create_task(self._await_handler(awaitable, subscription))
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)

    async def _await_handler(self, awaitable: Any, subscription: Subscription) -> None:
        try:
            await awaitable
        except Exception as e:
            self._record_failure(subscription, e)

    def _record_failure(self, subscription: Subscription, error: Exception) -> None:
        event = subscription.event_type
        logger.error(
            f"Handler '{subscription.subscriber_name}' failed on {event.value}: {error}",
            exc_info=error,
        )
        with self._lock:
            self._failure_count += 1
            self._failures.append(
                HandlerFailure(
                    subscriber_name=subscription.subscriber_name,
                    event_type=event,
                    subscription_id=subscription.id,
                    error=f"{type(error).__name__}: {error}",
                )
            )

        # A failing system:error handler is only logged
        if event is not UnifiedEvent.SYSTEM_ERROR:
            self.emit_sync(
                UnifiedEvent.SYSTEM_ERROR,
                SystemErrorPayload(
                    system_name=subscription.subscriber_name,
                    error=str(error),
                    severity="error",
                    event_type=event.value,
                ),
            )

    # =================================================================
    # Introspection / teardown
    # =================================================================

    @property
    def recent_failures(self) -> list[HandlerFailure]:
        with self._lock:
            return list(self._failures)

    def get_metrics(self) -> BusMetrics:
        with self._lock:
            active = len(self._index)
            return BusMetrics(
                active_subscriptions=active,
                total_subscriptions=self._total_subscriptions,
                total_events=self._total_events,
                memory_usage=active * self._config.bytes_per_subscription,
                handler_failures=self._failure_count,
                dropped_events=self._dropped,
                queued_events=len(self._queue),
                top_events=dict(self._event_counts.most_common(10)),
            )

    def destroy(self) -> None:
        """
        Drop every subscription and queued event and stop dispatching.

        Safe to call more than once; later calls change nothing.
        """
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
            self._subscriptions.clear()
            self._index.clear()
            self._queue.clear()
            self._reset_counters()
            pending = list(self._pending_tasks)
            self._pending_tasks.clear()

        for task in pending:
            task.cancel()
        logger.info("Event bus destroyed")
