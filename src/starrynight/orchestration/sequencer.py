"""Phase sequencer.

Initializes systems phase by phase, concurrently within a phase, and tears
them down in reverse order.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from starrynight.events.bus import UnifiedEventBus
from starrynight.events.types import UnifiedEvent
from starrynight.exceptions import (
    ConfigurationError,
    DependencyFailedError,
    ErrorCollector,
    InitializationError,
    PhaseFailedError,
    PhaseOrderError,
    SystemTimeoutError,
    collect_errors,
)
from starrynight.models.config import OrchestrationConfig
from starrynight.models.enums import PHASE_ORDER, InitializationPhase, SystemState, phase_index
from starrynight.orchestration.descriptor import SystemDescriptor, SystemRecord
from starrynight.orchestration.graph import DependencyGraph
from starrynight.protocols.systems import ManagedSystem

logger = logging.getLogger(__name__)

InstanceFactory = Callable[[SystemDescriptor], ManagedSystem]
ReadyCallback = Callable[[SystemRecord], None]


async def call_maybe_async(func: Callable[..., Any], *args: Any) -> Any:
    """Call func and await the result if it is awaitable."""
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class PhaseSequencer:
    """
    Runs system initialization in phase order.

    Rules:
        - A phase starts only after the previous one has settled.
        - Before any member of a phase starts, every member's dependencies
          are checked. A dependency that is not ready because it is in the
          same (or a later) phase is a configuration error; one that failed
          in an earlier phase fails its dependent.
        - Members of a phase initialize concurrently. Each one is bounded
          by system_readiness_timeout and the whole phase by
          phase_transition_timeout.
        - With enforce_sequential_initialization, a phase with failures
          raises PhaseFailedError and later phases never start.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        records: dict[str, SystemRecord],
        config: OrchestrationConfig,
        bus: UnifiedEventBus | None = None,
    ):
        self._graph = graph
        self._records = records
        self._config = config
        self._bus = bus
        self._current_phase = InitializationPhase.IDLE

    @property
    def current_phase(self) -> InitializationPhase:
        return self._current_phase

    # =================================================================
    # Initialization
    # =================================================================

    async def run(
        self,
        create_instance: InstanceFactory,
        on_ready: ReadyCallback | None = None,
    ) -> list[InitializationError]:
        """
        Initialize every phase.

        Returns:
            Failures tolerated because gating is disabled

        Raises:
            PhaseOrderError: A dependency cannot be ready before its dependent starts
            PhaseFailedError: A phase had failures and gating is enforced
        """
        tolerated: list[InitializationError] = []

        for phase in PHASE_ORDER:
            members = self._graph.phase_members(phase)
            if not members:
                continue

            self._current_phase = phase
            logger.info(f"Starting phase '{phase.value}': {[d.name for d in members]}")
            started = time.perf_counter()

            failures = self._check_dependencies(members)
            runnable = [d for d in members if self._records[d.name].state is SystemState.UNINITIALIZED]
            failures += await self._run_phase(phase, runnable, create_instance, on_ready)

            elapsed = (time.perf_counter() - started) * 1000
            if failures and self._config.enforce_sequential_initialization:
                logger.error(f"Phase '{phase.value}' failed after {elapsed:.1f}ms; stopping initialization")
                raise PhaseFailedError(phase.value, failures)
            if failures:
                logger.warning(
                    f"Phase '{phase.value}' finished with {len(failures)} failure(s); continuing"
                )
                tolerated.extend(failures)
            else:
                logger.info(f"Phase '{phase.value}' completed in {elapsed:.1f}ms")

        self._current_phase = InitializationPhase.COMPLETED
        return tolerated

    def _check_dependencies(self, members: list[SystemDescriptor]) -> list[InitializationError]:
        member_names = {d.name for d in members}
        failures: list[InitializationError] = []

        for descriptor in members:
            for dependency in descriptor.dependencies:
                target = self._records[dependency]
                if target.state.is_live:
                    continue
                if dependency in member_names or phase_index(target.descriptor.phase) > phase_index(descriptor.phase):
                    raise PhaseOrderError(
                        descriptor.name,
                        dependency,
                        descriptor.phase.value,
                        target.descriptor.phase.value,
                    )
                error = DependencyFailedError(descriptor.name, dependency)
                self._mark_failed(self._records[descriptor.name], error)
                failures.append(error)
                break

        return failures

    async def _run_phase(
        self,
        phase: InitializationPhase,
        descriptors: list[SystemDescriptor],
        create_instance: InstanceFactory,
        on_ready: ReadyCallback | None,
    ) -> list[InitializationError]:
        if not descriptors:
            return []

        tasks = {
            asyncio.create_task(
                self._initialize_system(d, create_instance, on_ready), name=f"initialize:{d.name}"
            ): d
            for d in descriptors
        }
        _, pending = await asyncio.wait(tasks, timeout=self._config.phase_transition_timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        failures: list[InitializationError] = []
        config_error: ConfigurationError | None = None
        for task, descriptor in tasks.items():
            if task in pending:
                error = SystemTimeoutError(descriptor.name, self._config.phase_transition_timeout)
                logger.error(f"Phase '{phase.value}' timed out waiting for {descriptor.name}")
                await self._release(self._records[descriptor.name])
                self._mark_failed(self._records[descriptor.name], error)
                failures.append(error)
                continue

            # Every task result is retrieved before a configuration error propagates
            try:
                error = task.result()
            except ConfigurationError as e:
                config_error = config_error or e
                continue
            if error is not None:
                failures.append(error)

        if config_error is not None:
            raise config_error
        return failures

    async def _initialize_system(
        self,
        descriptor: SystemDescriptor,
        create_instance: InstanceFactory,
        on_ready: ReadyCallback | None,
    ) -> InitializationError | None:
        record = self._records[descriptor.name]
        record.state = SystemState.INITIALIZING
        timeout = self._config.system_readiness_timeout
        started = time.perf_counter()

        try:
            if record.instance is None:
                record.instance = create_instance(descriptor)
            await asyncio.wait_for(call_maybe_async(record.instance.initialize), timeout=timeout)
            if on_ready is not None:
                on_ready(record)
        except ConfigurationError:
            await self._release(record)
            record.state = SystemState.FAILED
            raise
        except TimeoutError:
            error: InitializationError = SystemTimeoutError(descriptor.name, timeout)
        except Exception as e:
            logger.error(f"System {descriptor.name} raised during initialize: {e}", exc_info=True)
            error = InitializationError(descriptor.name, str(e) or type(e).__name__)
        else:
            record.state = SystemState.READY
            record.error = None
            record.init_duration_ms = (time.perf_counter() - started) * 1000
            logger.info(f"System {descriptor.name} ready in {record.init_duration_ms:.1f}ms")
            self._publish(UnifiedEvent.SYSTEM_INITIALIZED, {
                "systemName": descriptor.name,
                "details": f"phase={descriptor.phase.value}",
            })
            return None

        await self._release(record)
        self._mark_failed(record, error)
        return error

    async def _release(self, record: SystemRecord) -> None:
        """
        Destroy a system that failed part-way through initialize().

        Whatever it subscribed before failing is removed with it, so a
        failed system never keeps receiving events. The record no longer
        holds the instance, so teardown does not destroy it a second time.
        """
        instance, record.instance = record.instance, None
        if instance is not None:
            try:
                await asyncio.wait_for(
                    call_maybe_async(instance.destroy), timeout=self._config.system_readiness_timeout
                )
            except Exception as e:
                logger.error(f"Failed to destroy {record.name} after failed initialization: {e}", exc_info=True)
            else:
                logger.debug(f"System {record.name} released after failed initialization")
        if self._bus is not None:
            self._bus.unsubscribe_all(record.name)

    def _mark_failed(self, record: SystemRecord, error: InitializationError) -> None:
        record.state = SystemState.FAILED
        record.error = error.user_message
        logger.error(error.user_message)
        self._publish(UnifiedEvent.SYSTEM_ERROR, {
            "systemName": record.name,
            "error": error.user_message,
            "severity": "critical" if record.descriptor.critical else "error",
        })

    def _publish(self, event: UnifiedEvent, payload: dict[str, Any]) -> None:
        if self._bus is not None:
            self._bus.emit_sync(event, payload)

    # =================================================================
    # Teardown
    # =================================================================

    async def teardown(self) -> ErrorCollector:
        """
        Destroy every constructed system in reverse initialization order.

        A raising destroy() is logged and collected; the remaining systems
        are still destroyed. Every record ends in the destroyed state.
        """
        collector = collect_errors("destroy systems")

        for descriptor in self._graph.teardown_order():
            record = self._records[descriptor.name]
            instance = record.instance
            if instance is not None:
                with collector.try_operation(f"destroy {descriptor.name}"):
                    await call_maybe_async(instance.destroy)
                self._publish(UnifiedEvent.SYSTEM_DESTROYED, {"systemName": descriptor.name})
                logger.debug(f"System {descriptor.name} destroyed")
            record.instance = None
            record.state = SystemState.DESTROYED

        self._current_phase = InitializationPhase.IDLE
        if collector.has_errors:
            logger.error(collector.get_summary())
        return collector
