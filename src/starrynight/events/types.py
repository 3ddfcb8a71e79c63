"""Unified event types and their payload schemas.

Every event on the bus is one of the UnifiedEvent members, and every
member has exactly one payload model. Payload fields are snake_case in
Python and camelCase on the wire (`track_uri` / `trackUri`); producers may
use either spelling.
"""

import time
from enum import Enum
from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from starrynight.exceptions import UnknownEventError


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


class UnifiedEvent(str, Enum):
    """Closed set of events carried by the bus."""

    # Color pipeline
    COLORS_EXTRACTED = "colors:extracted"  # Raw palette from album art
    COLORS_HARMONIZED = "colors:harmonized"  # Palette processed into an accent + strategies
    COLORS_APPLIED = "colors:applied"  # Theme variables written to the style scope

    # Music
    MUSIC_BEAT = "music:beat"
    MUSIC_ENERGY = "music:energy"
    MUSIC_TRACK_CHANGED = "music:track-changed"
    MUSIC_STATE_CHANGED = "music:state-changed"

    # Settings
    SETTINGS_CHANGED = "settings:changed"
    SETTINGS_VISUAL_GUIDE_CHANGED = "settings:visual-guide-changed"

    # Performance
    PERFORMANCE_FRAME = "performance:frame"
    PERFORMANCE_THRESHOLD_EXCEEDED = "performance:threshold-exceeded"

    # Visual effects
    VISUAL_INTENSITY_CHANGED = "visual-effects:intensity-changed"
    VISUAL_FIELD_UPDATED = "visual-effects:field-updated"

    # System lifecycle
    SYSTEM_INITIALIZED = "system:initialized"
    SYSTEM_DESTROYED = "system:destroyed"
    SYSTEM_ERROR = "system:error"

    @property
    def category(self) -> str:
        return self.value.split(":", 1)[0]


class EventPayload(BaseModel):
    """Base class for all payloads. Instances are immutable once published."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """camelCase dict, the shape legacy consumers expect."""
        return self.model_dump(by_alias=True)


# =================================================================
# Colors
# =================================================================

class ColorsExtractedPayload(EventPayload):
    raw_colors: dict[str, str]
    track_uri: str
    timestamp: float = Field(default_factory=now_ms)
    music_data: dict[str, Any] | None = None


class ColorsHarmonizedPayload(EventPayload):
    processed_colors: dict[str, str]
    accent_hex: str
    accent_rgb: str
    strategies: list[str]
    css_variables: dict[str, str] = Field(default_factory=dict)
    processing_time: float = 0.0
    track_uri: str = "unknown"
    timestamp: float = Field(default_factory=now_ms)


class ColorsAppliedPayload(EventPayload):
    css_variables: dict[str, str]
    accent_hex: str
    accent_rgb: str
    strategies: list[str] = Field(default_factory=list)
    track_uri: str = "unknown"
    applied_at: float = Field(default_factory=now_ms)


# =================================================================
# Music
# =================================================================

class MusicBeatPayload(EventPayload):
    bpm: float
    intensity: float
    confidence: float = 1.0
    timestamp: float = Field(default_factory=now_ms)


class MusicEnergyPayload(EventPayload):
    energy: float
    valence: float
    tempo: float
    timestamp: float = Field(default_factory=now_ms)


class MusicTrackChangedPayload(EventPayload):
    track_uri: str
    artist: str
    title: str
    album_art: str | None = None
    timestamp: float = Field(default_factory=now_ms)


class MusicStateChangedPayload(EventPayload):
    is_playing: bool
    position: float
    duration: float
    timestamp: float = Field(default_factory=now_ms)


# =================================================================
# Settings
# =================================================================

class SettingsChangedPayload(EventPayload):
    setting_key: str
    old_value: Any = None
    new_value: Any = None
    timestamp: float = Field(default_factory=now_ms)


class VisualGuideChangedPayload(EventPayload):
    old_mode: str
    new_mode: str
    timestamp: float = Field(default_factory=now_ms)


# =================================================================
# Performance / visual effects
# =================================================================

class PerformanceFramePayload(EventPayload):
    delta_time: float
    fps: float
    memory_usage: float = 0.0
    timestamp: float = Field(default_factory=now_ms)


class PerformanceThresholdPayload(EventPayload):
    metric: str
    value: float
    threshold: float
    timestamp: float = Field(default_factory=now_ms)


class VisualIntensityPayload(EventPayload):
    intensity: float
    source: str = "unknown"
    timestamp: float = Field(default_factory=now_ms)


class VisualFieldPayload(EventPayload):
    field_name: str
    values: dict[str, float] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=now_ms)


# =================================================================
# System lifecycle
# =================================================================

class SystemInitializedPayload(EventPayload):
    system_name: str
    details: str = ""
    timestamp: float = Field(default_factory=now_ms)


class SystemDestroyedPayload(EventPayload):
    system_name: str
    timestamp: float = Field(default_factory=now_ms)


class SystemErrorPayload(EventPayload):
    system_name: str
    error: str
    severity: Literal["info", "warning", "error", "critical"] = "error"
    event_type: str | None = None
    timestamp: float = Field(default_factory=now_ms)


EVENT_PAYLOADS: dict[UnifiedEvent, type[EventPayload]] = {
    UnifiedEvent.COLORS_EXTRACTED: ColorsExtractedPayload,
    UnifiedEvent.COLORS_HARMONIZED: ColorsHarmonizedPayload,
    UnifiedEvent.COLORS_APPLIED: ColorsAppliedPayload,
    UnifiedEvent.MUSIC_BEAT: MusicBeatPayload,
    UnifiedEvent.MUSIC_ENERGY: MusicEnergyPayload,
    UnifiedEvent.MUSIC_TRACK_CHANGED: MusicTrackChangedPayload,
    UnifiedEvent.MUSIC_STATE_CHANGED: MusicStateChangedPayload,
    UnifiedEvent.SETTINGS_CHANGED: SettingsChangedPayload,
    UnifiedEvent.SETTINGS_VISUAL_GUIDE_CHANGED: VisualGuideChangedPayload,
    UnifiedEvent.PERFORMANCE_FRAME: PerformanceFramePayload,
    UnifiedEvent.PERFORMANCE_THRESHOLD_EXCEEDED: PerformanceThresholdPayload,
    UnifiedEvent.VISUAL_INTENSITY_CHANGED: VisualIntensityPayload,
    UnifiedEvent.VISUAL_FIELD_UPDATED: VisualFieldPayload,
    UnifiedEvent.SYSTEM_INITIALIZED: SystemInitializedPayload,
    UnifiedEvent.SYSTEM_DESTROYED: SystemDestroyedPayload,
    UnifiedEvent.SYSTEM_ERROR: SystemErrorPayload,
}

EventHandler = Callable[[EventPayload], Any]


def coerce_event(event_type: "UnifiedEvent | str") -> UnifiedEvent:
    """
    Resolve an event type given as enum member or wire name.

    Raises:
        UnknownEventError: If the name is not a unified event
    """
    if isinstance(event_type, UnifiedEvent):
        return event_type
    try:
        return UnifiedEvent(event_type)
    except ValueError:
        raise UnknownEventError(event_type) from None


def payload_model(event_type: "UnifiedEvent | str") -> type[EventPayload]:
    """Payload schema for an event type."""
    return EVENT_PAYLOADS[coerce_event(event_type)]
