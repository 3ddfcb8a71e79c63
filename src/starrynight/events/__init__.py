"""
Unified event bus and legacy event migration.

Public API:
    - UnifiedEventBus: typed publish/subscribe with isolated handlers
    - UnifiedEvent, EventPayload and the per-event payload models
    - EventMigrationManager, LegacyEventMapping: legacy name translation
"""

from starrynight.events.bus import BusMetrics, HandlerFailure, Subscription, UnifiedEventBus
from starrynight.events.migration import (
    EventMigrationManager,
    LegacyEventMapping,
    MigrationMetrics,
    default_mappings,
)
from starrynight.events.types import (
    EVENT_PAYLOADS,
    ColorsAppliedPayload,
    ColorsExtractedPayload,
    ColorsHarmonizedPayload,
    EventHandler,
    EventPayload,
    MusicBeatPayload,
    MusicEnergyPayload,
    MusicStateChangedPayload,
    MusicTrackChangedPayload,
    PerformanceFramePayload,
    PerformanceThresholdPayload,
    SettingsChangedPayload,
    SystemDestroyedPayload,
    SystemErrorPayload,
    SystemInitializedPayload,
    UnifiedEvent,
    VisualFieldPayload,
    VisualGuideChangedPayload,
    VisualIntensityPayload,
    coerce_event,
    payload_model,
)

__all__ = [
    "EVENT_PAYLOADS",
    "BusMetrics",
    "ColorsAppliedPayload",
    "ColorsExtractedPayload",
    "ColorsHarmonizedPayload",
    "EventHandler",
    "EventMigrationManager",
    "EventPayload",
    "HandlerFailure",
    "LegacyEventMapping",
    "MigrationMetrics",
    "MusicBeatPayload",
    "MusicEnergyPayload",
    "MusicStateChangedPayload",
    "MusicTrackChangedPayload",
    "PerformanceFramePayload",
    "PerformanceThresholdPayload",
    "SettingsChangedPayload",
    "Subscription",
    "SystemDestroyedPayload",
    "SystemErrorPayload",
    "SystemInitializedPayload",
    "UnifiedEvent",
    "UnifiedEventBus",
    "VisualFieldPayload",
    "VisualGuideChangedPayload",
    "VisualIntensityPayload",
    "coerce_event",
    "default_mappings",
    "payload_model",
]
