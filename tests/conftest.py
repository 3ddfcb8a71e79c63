"""Pytest fixtures for tests."""

import asyncio
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest
import pytest_asyncio

from starrynight.events import UnifiedEventBus
from starrynight.models import CoordinatorConfig, HealthResult, OrchestrationConfig
from starrynight.orchestration import SystemCoordinator, SystemDescriptor


class FakeSystem:
    """Managed system that records its lifecycle calls into a shared log."""

    def __init__(
        self,
        context,
        name: str,
        log: list,
        *,
        init_delay: float = 0.0,
        fail_init: bool = False,
        fail_destroy: bool = False,
        fail_tick: bool = False,
        healthy: bool = True,
        subscribe_to=None,
    ):
        self.context = context
        self.name = name
        self.log = log
        self.init_delay = init_delay
        self.fail_init = fail_init
        self.fail_destroy = fail_destroy
        self.fail_tick = fail_tick
        self.healthy = healthy
        self.subscribe_to = subscribe_to
        self.received: list = []
        self.ticks = 0
        self.degraded_reasons: list[str] = []
        self.recoveries = 0

    async def initialize(self):
        self.log.append(("start", self.name))
        if self.subscribe_to is not None:
            self.context.bus.subscribe(self.subscribe_to, self.received.append, self.name)
        if self.init_delay:
            await asyncio.sleep(self.init_delay)
        if self.fail_init:
            raise RuntimeError(f"{self.name} exploded")
        self.log.append(("ready", self.name))

    def update_animation(self, delta_ms):
        if self.fail_tick:
            raise RuntimeError("tick failed")
        self.ticks += 1

    def health_check(self):
        if self.healthy:
            return HealthResult.ok(f"{self.name} ok")
        return HealthResult.failing(f"{self.name} is struggling")

    def on_degraded(self, reason):
        self.degraded_reasons.append(reason)

    def on_recovered(self):
        self.recoveries += 1

    def destroy(self):
        self.log.append(("destroy", self.name))
        if self.fail_destroy:
            raise RuntimeError(f"{self.name} refused to die")


class FakeSystems:
    """Builds descriptors for FakeSystem and keeps the created instances."""

    def __init__(self):
        self.log: list[tuple[str, str]] = []
        self.instances: dict[str, FakeSystem] = {}

    def descriptor(
        self,
        name: str,
        phase: str = "core",
        dependencies: tuple[str, ...] = (),
        *,
        critical: bool = True,
        shared_service: str | None = None,
        **behaviour,
    ) -> SystemDescriptor:
        def factory(context):
            system = FakeSystem(context, name, self.log, **behaviour)
            self.instances[name] = system
            return system

        return SystemDescriptor(
            name=name,
            system_class=FakeSystem,
            phase=phase,
            dependencies=dependencies,
            shared_service=shared_service,
            critical=critical,
            factory=factory,
        )

    def events(self, kind: str) -> list[str]:
        return [name for event, name in self.log if event == kind]


@pytest.fixture
def temp_dir():
    """Create a temporary directory that gets cleaned up."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def bus():
    """A fresh event bus, destroyed after the test."""
    event_bus = UnifiedEventBus()
    yield event_bus
    event_bus.destroy()


@pytest.fixture
def fast_config():
    """Coordinator config with short timeouts and in-memory settings."""
    return CoordinatorConfig(
        orchestration=OrchestrationConfig(
            system_readiness_timeout=0.2,
            phase_transition_timeout=0.5,
        ),
    )


@pytest.fixture
def fakes():
    """Factory for fake managed systems sharing one lifecycle log."""
    return FakeSystems()


@pytest_asyncio.fixture
async def coordinator(fast_config):
    """Coordinator with the default systems, initialized and destroyed after the test."""
    coordinator = SystemCoordinator(fast_config)
    await coordinator.initialize()
    yield coordinator
    await coordinator.destroy()
