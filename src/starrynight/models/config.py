"""Coordinator configuration models."""

from pathlib import Path

from pydantic import BaseModel, Field, field_serializer

from starrynight.model_manager.persistence import PydanticPersistence

DEFAULT_CONFIG_PATH = Path.home() / ".starrynight" / "config.json"

DEFAULT_COLOR_DEPENDENT_SYSTEMS = ["MusicColorBridge"]


class OrchestrationConfig(BaseModel):
    """How the phase sequencer runs."""

    enforce_sequential_initialization: bool = Field(
        default=True,
        description="Stop after a phase with failures instead of starting the next one",
    )
    dependency_validation: bool = Field(
        default=True,
        description="Reject same-or-later phase dependencies when the coordinator is built",
    )
    system_readiness_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds a single system may spend in initialize()",
    )
    phase_transition_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds a whole phase may take before stragglers are marked failed",
    )


class EventBusConfig(BaseModel):
    """Event bus limits."""

    max_queue_size: int = Field(default=1000, gt=0, description="Deferred emit queue bound")
    max_recorded_failures: int = Field(
        default=100, gt=0, description="How many handler failures to keep for inspection"
    )
    bytes_per_subscription: int = Field(
        default=256, ge=0, description="Per-subscription size used for the memory estimate"
    )


class CoordinatorConfig(BaseModel):
    """System coordinator configuration."""

    orchestration: OrchestrationConfig = Field(default_factory=OrchestrationConfig)
    event_bus: EventBusConfig = Field(default_factory=EventBusConfig)

    settings_path: Path | None = Field(
        default=None,
        description="User settings file (None keeps settings in memory only)",
    )
    auto_save_settings: bool = Field(
        default=True,
        description="Write settings to disk after every change",
    )
    min_healthy_fps: float = Field(
        default=30.0,
        ge=0,
        description="Average frame rate below which the performance monitor reports unhealthy",
    )
    color_dependent_systems: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COLOR_DEPENDENT_SYSTEMS),
        description="Subscriber names re-notified when colors must be refreshed",
    )
    health_check_interval: float | None = Field(
        default=None,
        gt=0,
        description="Seconds between background health checks (None disables monitoring)",
    )
    abandoned_subscription_age: float | None = Field(
        default=None,
        gt=0,
        description=(
            "With monitoring on, remove subscriptions never triggered for this many "
            "seconds (None keeps them)"
        ),
    )

    @field_serializer("settings_path")
    def serialize_path(self, path: Path | None) -> str | None:
        return str(path) if path is not None else None

    @classmethod
    def load_or_default(cls, path: Path | None = None) -> "CoordinatorConfig":
        """Load config from file or return defaults when the file is missing."""
        return PydanticPersistence.load_json_or_default(path or DEFAULT_CONFIG_PATH, cls)

    def save(self, path: Path | None = None) -> None:
        PydanticPersistence.save_json(self, path or DEFAULT_CONFIG_PATH)
