"""System coordinator.

The single entry point that owns the lifecycle of every managed system:
phased initialization, shared service handles, health aggregation, the
color-dependent refresh extension point, animation ticks and teardown.
"""

import asyncio
import contextlib
import inspect
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from starrynight.events.bus import BusMetrics, UnifiedEventBus
from starrynight.events.migration import EventMigrationManager, MigrationMetrics
from starrynight.events.types import (
    ColorsAppliedPayload,
    ColorsHarmonizedPayload,
    SettingsChangedPayload,
    UnifiedEvent,
)
from starrynight.exceptions import CoordinatorStateError, ErrorContext
from starrynight.model_manager.observer import ObserverManager
from starrynight.models.config import CoordinatorConfig
from starrynight.models.enums import PHASE_ORDER, HealthLevel, InitializationPhase, SystemState
from starrynight.models.health import CoordinatorHealth, HealthResult, PhaseHealth, SystemHealthReport
from starrynight.models.settings import COLOR_AFFECTING_SETTINGS
from starrynight.orchestration.descriptor import SystemContext, SystemDescriptor, SystemRecord
from starrynight.orchestration.graph import DependencyGraph
from starrynight.orchestration.registry import SharedService, SharedServiceRegistry
from starrynight.orchestration.sequencer import PhaseSequencer, call_maybe_async
from starrynight.protocols.systems import ColorRefreshCallback, DegradableSystem, HealthObserver, ManagedSystem

logger = logging.getLogger(__name__)

COORDINATOR_SUBSCRIBER = "SystemCoordinator"


@dataclass
class ColorDependentSystem:
    name: str
    refresh_callback: ColorRefreshCallback | None = None


class RefreshResult(BaseModel):
    """Outcome of refresh_color_dependent_systems()."""

    trigger: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: dict[str, str] = Field(default_factory=dict)


class CoordinatorMetrics(BaseModel):
    total_systems: int
    ready: int
    degraded: int
    failed: int
    initialization_time_ms: float | None = None
    shared_services: list[str] = Field(default_factory=list)
    color_dependent_systems: int = 0
    refresh_count: int = 0
    bus: BusMetrics
    migration: MigrationMetrics


class SystemCoordinator:
    """
    Facade over the dependency graph, phase sequencer, shared service
    registry, event bus and migration layer.

    Example:
        ```python
        coordinator = SystemCoordinator(CoordinatorConfig(settings_path=path))
        await coordinator.initialize()
        music = coordinator.get_shared_music_sync_service()
        music.process_beat(bpm=128, intensity=0.8)
        report = await coordinator.health_check()
        await coordinator.destroy()
        ```

    Construction validates the descriptor set (cycles, unknown dependencies,
    phase order, lifecycle contract) and raises ConfigurationError on any
    problem. Nothing is constructed or subscribed until initialize().
    """

    def __init__(
        self,
        config: CoordinatorConfig | None = None,
        descriptors: Iterable[SystemDescriptor] | None = None,
        *,
        event_bus: UnifiedEventBus | None = None,
    ):
        self._config = config or CoordinatorConfig()
        if descriptors is None:
            from starrynight.services import default_descriptors

            descriptors = default_descriptors()

        self._graph = DependencyGraph(
            descriptors, validate_phases=self._config.orchestration.dependency_validation
        )
        self._records = {d.name: SystemRecord(d) for d in self._graph}

        self._owns_bus = event_bus is None
        self._bus = event_bus or UnifiedEventBus(self._config.event_bus)
        self._migration = EventMigrationManager(self._bus)
        self._services = SharedServiceRegistry()
        self._sequencer = PhaseSequencer(self._graph, self._records, self._config.orchestration, self._bus)

        self._health_observers = ObserverManager[HealthObserver](observer_type_name="health")
        self._color_dependents: dict[str, ColorDependentSystem] = {}
        self._last_harmonized: ColorsHarmonizedPayload | None = None
        self._last_applied: ColorsAppliedPayload | None = None
        self._background: set[asyncio.Task] = set()
        self._monitor_task: asyncio.Task | None = None

        self._initialized = False
        self._initializing = False
        self._needs_destroy = False
        self._destroyed = False
        self._init_time_ms: float | None = None
        self._last_health: CoordinatorHealth | None = None
        self._refresh_count = 0

        logger.debug(f"SystemCoordinator created with {len(self._graph)} systems")

    # =================================================================
    # Introspection
    # =================================================================

    @property
    def config(self) -> CoordinatorConfig:
        return self._config

    @property
    def event_bus(self) -> UnifiedEventBus:
        return self._bus

    @property
    def migration(self) -> EventMigrationManager:
        return self._migration

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def current_phase(self) -> InitializationPhase:
        return self._sequencer.current_phase

    @property
    def last_health(self) -> CoordinatorHealth | None:
        return self._last_health

    @property
    def is_monitoring(self) -> bool:
        """True while the periodic health check task is running."""
        return self._monitor_task is not None and not self._monitor_task.done()

    def get_system_state(self, name: str) -> SystemState:
        try:
            return self._records[name].state
        except KeyError:
            raise KeyError(f"Unknown system: {name}") from None

    def get_all_system_states(self) -> dict[str, SystemState]:
        return {name: record.state for name, record in self._records.items()}

    def get_system(self, name: str) -> ManagedSystem | None:
        """Live instance of a system, or None when it is not constructed."""
        record = self._records.get(name)
        return record.instance if record else None

    def get_metrics(self) -> CoordinatorMetrics:
        states = [record.state for record in self._records.values()]
        return CoordinatorMetrics(
            total_systems=len(states),
            ready=states.count(SystemState.READY),
            degraded=states.count(SystemState.DEGRADED),
            failed=states.count(SystemState.FAILED),
            initialization_time_ms=self._init_time_ms,
            shared_services=self._services.keys(),
            color_dependent_systems=len(self._color_dependents),
            refresh_count=self._refresh_count,
            bus=self._bus.get_metrics(),
            migration=self._migration.get_metrics(),
        )

    # =================================================================
    # Lifecycle
    # =================================================================

    async def initialize(self) -> None:
        """
        Initialize every system, phase by phase.

        Raises:
            ConfigurationError: Dependency problems found while sequencing
            PhaseFailedError: A phase failed with sequential enforcement on
            CoordinatorStateError: A previous initialize() failed and
                destroy() has not been called since
        """
        if self._initialized:
            logger.warning("SystemCoordinator already initialized")
            return
        if self._initializing:
            raise CoordinatorStateError("SystemCoordinator initialization is already in progress")
        if self._needs_destroy:
            raise CoordinatorStateError(
                "A previous initialization failed",
                recovery_hint="Call destroy() before retrying initialize()",
            )
        if self._destroyed:
            self._reset_after_destroy()

        logger.info(f"Initializing {len(self._graph)} systems")
        self._initializing = True
        started = time.perf_counter()
        try:
            tolerated = await self._sequencer.run(self._create_instance, self._on_system_ready)
        except Exception:
            self._needs_destroy = True
            raise
        finally:
            self._initializing = False

        self._init_time_ms = (time.perf_counter() - started) * 1000
        self._record_init_timings()
        self._wire_internal_subscriptions()
        for name in self._config.color_dependent_systems:
            self.register_color_dependent_system(name)

        self._initialized = True
        ready = sum(1 for r in self._records.values() if r.state is SystemState.READY)
        logger.info(
            f"SystemCoordinator initialized in {self._init_time_ms:.1f}ms "
            f"({ready}/{len(self._records)} ready, {len(tolerated)} failed)"
        )
        self._bus.emit_sync(UnifiedEvent.SYSTEM_INITIALIZED, {
            "systemName": COORDINATOR_SUBSCRIBER,
            "details": f"{ready}/{len(self._records)} systems ready",
        })
        await self.health_check()
        self._start_monitoring()

    def _reset_after_destroy(self) -> None:
        if self._owns_bus:
            self._bus = UnifiedEventBus(self._config.event_bus)
        self._migration = EventMigrationManager(self._bus)
        self._sequencer = PhaseSequencer(self._graph, self._records, self._config.orchestration, self._bus)
        for record in self._records.values():
            record.reset()
        self._init_time_ms = None
        self._last_health = None
        self._refresh_count = 0
        self._destroyed = False

    def _create_instance(self, descriptor: SystemDescriptor) -> ManagedSystem:
        context = SystemContext(
            bus=self._bus,
            services=self._services,
            config=self._config,
            migration=self._migration,
            name=descriptor.name,
        )
        return descriptor.create(context)

    def _on_system_ready(self, record: SystemRecord) -> None:
        key = record.descriptor.shared_service
        if key is not None:
            self._services.register(key, record.instance)

    def _record_init_timings(self) -> None:
        monitor = self._services.get_optional(SharedService.PERFORMANCE_MONITOR)
        if monitor is None or not hasattr(monitor, "record_operation"):
            return
        for record in self._records.values():
            if record.init_duration_ms is not None:
                monitor.record_operation(f"initialize:{record.name}", record.init_duration_ms)

    def _wire_internal_subscriptions(self) -> None:
        self._bus.subscribe(UnifiedEvent.COLORS_HARMONIZED, self._on_colors_harmonized, COORDINATOR_SUBSCRIBER)
        self._bus.subscribe(UnifiedEvent.COLORS_APPLIED, self._on_colors_applied, COORDINATOR_SUBSCRIBER)
        self._bus.subscribe(UnifiedEvent.SETTINGS_CHANGED, self._on_setting_changed, COORDINATOR_SUBSCRIBER)

    def _on_colors_harmonized(self, payload: ColorsHarmonizedPayload) -> None:
        self._last_harmonized = payload

    def _on_colors_applied(self, payload: ColorsAppliedPayload) -> None:
        self._last_applied = payload

    def _on_setting_changed(self, payload: SettingsChangedPayload) -> None:
        if payload.setting_key not in COLOR_AFFECTING_SETTINGS or not self._color_dependents:
            return
        self._run_in_background(self.refresh_color_dependent_systems(f"setting:{payload.setting_key}"))

    def _run_in_background(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping background task")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = loop.create_task(awaitable)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _start_monitoring(self) -> None:
        interval = self._config.health_check_interval
        if interval is None:
            return
        self._monitor_task = asyncio.get_running_loop().create_task(
            self._monitor_health(interval), name="coordinator:health-monitor"
        )
        logger.info(f"Health monitoring every {interval:g}s")

    async def _monitor_health(self, interval: float) -> None:
        cleanup_age = self._config.abandoned_subscription_age
        while True:
            await asyncio.sleep(interval)
            try:
                await self.health_check()
            except Exception as e:
                logger.error(f"Periodic health check failed: {e}", exc_info=True)
            if cleanup_age is not None:
                self._bus.cleanup_abandoned_subscriptions(cleanup_age)

    async def _stop_monitoring(self) -> None:
        task, self._monitor_task = self._monitor_task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug("Health monitoring stopped")

    async def destroy(self) -> None:
        """
        Tear everything down in reverse initialization order.

        Safe to call repeatedly and after a failed initialize(). Errors from
        individual systems are logged and do not stop the teardown.
        """
        if self._destroyed:
            logger.debug("SystemCoordinator already destroyed")
            return

        logger.info("Destroying SystemCoordinator")
        await self._stop_monitoring()
        for task in list(self._background):
            task.cancel()
        self._background.clear()

        self._bus.unsubscribe_all(COORDINATOR_SUBSCRIBER)
        await self._sequencer.teardown()

        self._services.invalidate_all()
        self._color_dependents.clear()
        self._last_harmonized = None
        self._last_applied = None

        self._bus.emit_sync(UnifiedEvent.SYSTEM_DESTROYED, {"systemName": COORDINATOR_SUBSCRIBER})
        self._migration.destroy()
        if self._owns_bus:
            self._bus.destroy()

        self._initialized = False
        self._needs_destroy = False
        self._destroyed = True
        logger.info("SystemCoordinator destroyed")

    # =================================================================
    # Animation
    # =================================================================

    def update_animation(self, delta_ms: float) -> None:
        """Tick every ready system in initialization order. Degraded systems are skipped."""
        if not self._initialized:
            return
        for descriptor in self._graph:
            record = self._records[descriptor.name]
            if record.state is not SystemState.READY or record.instance is None:
                continue
            try:
                result = record.instance.update_animation(delta_ms)
                if inspect.isawaitable(result):
                    self._run_in_background(result)
            except Exception as e:
                logger.error(f"update_animation failed for {record.name}: {e}", exc_info=True)

    # =================================================================
    # Health
    # =================================================================

    def register_health_observer(self, observer: HealthObserver) -> None:
        self._health_observers.register(observer)

    def unregister_health_observer(self, observer: HealthObserver) -> None:
        self._health_observers.unregister(observer)

    async def health_check(self) -> CoordinatorHealth:
        """
        Check every system and aggregate the results.

        A system that fails its check moves from ready to degraded; a
        degraded system that passes moves back to ready. Systems that are
        not live count as unhealthy.
        """
        statuses: dict[str, SystemHealthReport] = {}
        for descriptor in self._graph:
            statuses[descriptor.name] = await self._check_system(self._records[descriptor.name])

        phases: dict[str, PhaseHealth] = {}
        for phase in PHASE_ORDER:
            members = [d.name for d in self._graph.phase_members(phase)]
            if members:
                unhealthy = [name for name in members if not statuses[name].healthy]
                phases[phase.value] = PhaseHealth(
                    phase=phase.value, healthy=not unhealthy, systems=members, unhealthy=unhealthy
                )

        issues = [f"{s.name}: {s.details}" for s in statuses.values() if not s.healthy]
        report = CoordinatorHealth(
            healthy=not issues,
            overall=self._grade(statuses.values()),
            phases=phases,
            system_status=statuses,
            issues=issues,
            recommendations=self._recommendations(statuses.values()),
        )
        self._last_health = report
        self._health_observers.notify("on_health_report", report)

        if not report.healthy:
            logger.warning(f"Health check: {report.overall.value} ({len(issues)} issue(s))")
        return report

    async def _check_system(self, record: SystemRecord) -> SystemHealthReport:
        descriptor = record.descriptor
        if not record.state.is_live or record.instance is None:
            return SystemHealthReport(
                name=record.name,
                state=record.state,
                healthy=False,
                critical=descriptor.critical,
                details=f"system is {record.state.value}",
                last_error=record.error,
            )

        try:
            result = _coerce_health(await asyncio.wait_for(
                call_maybe_async(record.instance.health_check),
                timeout=self._config.orchestration.system_readiness_timeout,
            ))
        except Exception as e:
            logger.error(f"Health check of {record.name} raised: {e}", exc_info=True)
            result = HealthResult.failing(f"health check raised {type(e).__name__}: {e}")

        record.last_health = result
        self._apply_health_transition(record, result)
        return SystemHealthReport(
            name=record.name,
            state=record.state,
            healthy=result.healthy,
            critical=descriptor.critical,
            details=result.details,
            issues=result.issues,
            last_error=record.error,
        )

    def _apply_health_transition(self, record: SystemRecord, result: HealthResult) -> None:
        if not result.healthy and record.state is SystemState.READY:
            record.state = SystemState.DEGRADED
            logger.warning(f"System {record.name} degraded: {result.details}")
            self._notify_degradation(record, result.details)
        elif result.healthy and record.state is SystemState.DEGRADED:
            record.state = SystemState.READY
            logger.info(f"System {record.name} recovered")
            self._notify_degradation(record, None)

    def _notify_degradation(self, record: SystemRecord, reason: str | None) -> None:
        """Call on_degraded(reason), or on_recovered() when reason is None."""
        instance = record.instance
        if not isinstance(instance, DegradableSystem):
            return
        hook = "on_recovered" if reason is None else "on_degraded"
        with ErrorContext(f"call {record.name}.{hook}", logger_instance=logger, re_raise=False):
            if reason is None:
                instance.on_recovered()
            else:
                instance.on_degraded(reason)

    @staticmethod
    def _grade(statuses: Iterable[SystemHealthReport]) -> HealthLevel:
        statuses = list(statuses)
        if all(s.healthy for s in statuses):
            return HealthLevel.EXCELLENT
        if any(s.critical and not s.state.is_live for s in statuses):
            return HealthLevel.CRITICAL
        if any(s.critical and not s.healthy for s in statuses):
            return HealthLevel.DEGRADED
        return HealthLevel.GOOD

    @staticmethod
    def _recommendations(statuses: Iterable[SystemHealthReport]) -> list[str]:
        recommendations = []
        for status in statuses:
            if status.state is SystemState.FAILED:
                recommendations.append(f"{status.name} failed; call destroy() and initialize() to retry")
            elif not status.healthy and status.state.is_live:
                recommendations.append(f"Investigate {status.name}: {status.details}")
        return recommendations

    # =================================================================
    # Shared services
    # =================================================================

    def get_shared_service(self, key: SharedService | str) -> Any:
        """
        Raises:
            ServiceUnavailableError: Before the owning system is ready, or after destroy()
        """
        return self._services.get(key)

    def get_shared_music_sync_service(self):
        return self._services.get(SharedService.MUSIC_SYNC)

    def get_shared_color_harmony_engine(self):
        return self._services.get(SharedService.COLOR_HARMONY)

    def get_shared_performance_monitor(self):
        return self._services.get(SharedService.PERFORMANCE_MONITOR)

    def get_shared_settings_manager(self):
        return self._services.get(SharedService.SETTINGS)

    def get_shared_css_variable_applier(self):
        return self._services.get(SharedService.CSS_VARIABLES)

    # =================================================================
    # Color-dependent systems
    # =================================================================

    def register_color_dependent_system(
        self, name: str, refresh_callback: ColorRefreshCallback | None = None
    ) -> None:
        """
        Add a system to be re-notified when colors need refreshing.

        name is matched against event subscriber names; refresh_callback,
        if given, is called with the trigger name on every refresh.
        """
        existing = self._color_dependents.get(name)
        if existing is not None:
            if refresh_callback is not None:
                existing.refresh_callback = refresh_callback
            return
        self._color_dependents[name] = ColorDependentSystem(name, refresh_callback)
        logger.debug(f"Registered color-dependent system {name}")

    def unregister_color_dependent_system(self, name: str) -> bool:
        return self._color_dependents.pop(name, None) is not None

    def get_color_dependent_systems(self) -> list[str]:
        return list(self._color_dependents)

    async def refresh_color_dependent_systems(self, trigger: str = "manual") -> RefreshResult:
        """
        Re-deliver the latest harmonized and applied palettes to the
        registered systems only, then run their refresh callbacks.

        A failing handler or callback counts as a failure for that system
        and does not stop the others.
        """
        dependents = list(self._color_dependents.values())
        if not dependents:
            return RefreshResult(trigger=trigger)

        names = [d.name for d in dependents]
        failures_before = self._bus.get_metrics().handler_failures
        if self._last_harmonized is not None:
            self._bus.emit_sync(UnifiedEvent.COLORS_HARMONIZED, self._last_harmonized, subscribers=names)
        if self._last_applied is not None:
            self._bus.emit_sync(UnifiedEvent.COLORS_APPLIED, self._last_applied, subscribers=names)

        new_failures = self._bus.get_metrics().handler_failures - failures_before
        recent = self._bus.recent_failures[-new_failures:] if new_failures else []
        failures = {f.subscriber_name: f.error for f in recent if f.subscriber_name in names}
        for dependent in dependents:
            if dependent.refresh_callback is None or dependent.name in failures:
                continue
            try:
                await call_maybe_async(dependent.refresh_callback, trigger)
            except Exception as e:
                logger.error(f"Color refresh of {dependent.name} failed: {e}", exc_info=True)
                failures[dependent.name] = f"{type(e).__name__}: {e}"

        self._refresh_count += 1
        result = RefreshResult(
            trigger=trigger,
            total=len(dependents),
            succeeded=len(dependents) - len(failures),
            failed=len(failures),
            failures=failures,
        )
        logger.info(
            f"Color refresh '{trigger}': {result.succeeded}/{result.total} systems refreshed"
        )
        return result


def _coerce_health(result: Any) -> HealthResult:
    if isinstance(result, HealthResult):
        return result
    if isinstance(result, Mapping):
        return HealthResult.model_validate(result)
    if isinstance(result, bool):
        return HealthResult(healthy=result, details="ok" if result else "unhealthy")
    raise TypeError(f"health_check() returned {type(result).__name__}, expected HealthResult")
