"""Event migration layer.

Accepts events under their legacy names and payload shapes, transforms them
with the rules in `starrynight.events.rules` and republishes them on the
unified bus. Producers that have not been migrated keep calling
`emit_legacy_event` (or a callable from `legacy_emitter`) and consumers only
ever see unified events.
"""

import functools
import logging
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from starrynight.events import rules
from starrynight.events.bus import UnifiedEventBus
from starrynight.events.types import UnifiedEvent, payload_model

logger = logging.getLogger(__name__)

Rule = Callable[[Mapping[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class LegacyEventMapping:
    """
    Translation of one legacy event name into one or more unified events.

    Attributes:
        legacy_event: Name the legacy producer emits
        targets: (unified event, rule) pairs, published in order
        deprecated: Legacy name is scheduled for removal
        removal_version: Version that drops the legacy name
    """

    legacy_event: str
    targets: tuple[tuple[UnifiedEvent, Rule], ...]
    deprecated: bool = False
    removal_version: str | None = None

    @classmethod
    def single(cls, legacy_event: str, event: UnifiedEvent, rule: Rule, **kwargs: Any) -> "LegacyEventMapping":
        return cls(legacy_event, ((event, rule),), **kwargs)

    @property
    def unified_events(self) -> list[UnifiedEvent]:
        return [event for event, _ in self.targets]


class MigrationMetrics(BaseModel):
    total_legacy_events: int = 0
    total_unified_events: int = Field(default=0, description="Unified events published from legacy input")
    conversion_rate: float = Field(default=0.0, description="Unified events per 100 legacy events")
    deprecated_events_used: int = 0
    dropped_events: int = Field(default=0, description="Malformed payloads and failed transforms")
    unmapped_events: int = 0
    systems_migrated: int = 0
    systems_pending: int = 0


class DeprecatedEventReport(BaseModel):
    legacy_event: str
    unified_equivalents: list[str]
    removal_version: str | None = None
    usage_count: int = 0


class MigrationReport(BaseModel):
    total_mappings: int
    deprecated_mappings: int
    conversion_rate: float
    systems_migrated: list[str]
    systems_pending: list[str]
    migration_progress: float = Field(description="Percent of known systems migrated")
    unmapped_events: dict[str, int] = Field(default_factory=dict)


# Pass-through rules for producers that already use unified names
_UNIFIED_RULES: dict[UnifiedEvent, Rule] = {
    UnifiedEvent.COLORS_EXTRACTED: rules.colors_extracted,
    UnifiedEvent.COLORS_HARMONIZED: rules.colors_harmonized,
    UnifiedEvent.MUSIC_BEAT: rules.music_beat,
    UnifiedEvent.MUSIC_ENERGY: rules.music_energy,
    UnifiedEvent.MUSIC_TRACK_CHANGED: rules.music_track_changed,
    UnifiedEvent.MUSIC_STATE_CHANGED: rules.music_state_changed,
    UnifiedEvent.SETTINGS_CHANGED: rules.settings_changed,
    UnifiedEvent.PERFORMANCE_FRAME: rules.performance_frame,
}


def default_mappings() -> list[LegacyEventMapping]:
    """The built-in legacy event table."""
    single = LegacyEventMapping.single
    mappings = [
        # Colors
        single("colors-extracted", UnifiedEvent.COLORS_EXTRACTED, rules.colors_extracted),
        single("colors/extracted", UnifiedEvent.COLORS_EXTRACTED, rules.colors_extracted),
        single("colors-harmonized", UnifiedEvent.COLORS_HARMONIZED, rules.colors_harmonized),
        single("colors/harmonized", UnifiedEvent.COLORS_HARMONIZED, rules.colors_harmonized),
        single("colorConsciousnessUpdate", UnifiedEvent.COLORS_HARMONIZED, rules.colors_harmonized,
               deprecated=True, removal_version="2.0.0"),
        # Music
        LegacyEventMapping("music-sync:beat", (
            (UnifiedEvent.MUSIC_BEAT, rules.music_beat),
            (UnifiedEvent.MUSIC_ENERGY, rules.music_energy),
        )),
        single("music-sync:energy-changed", UnifiedEvent.MUSIC_ENERGY, rules.music_energy),
        single("beat/frame", UnifiedEvent.MUSIC_BEAT, rules.music_beat),
        single("beat/bpm", UnifiedEvent.MUSIC_BEAT, rules.music_beat),
        LegacyEventMapping("beat/intensity", (
            (UnifiedEvent.MUSIC_ENERGY, rules.music_energy),
            (UnifiedEvent.VISUAL_INTENSITY_CHANGED, rules.visual_intensity),
        )),
        single("music:genre-change", UnifiedEvent.MUSIC_ENERGY, rules.music_energy),
        single("music-state-change", UnifiedEvent.MUSIC_STATE_CHANGED, rules.music_state_changed),
        single("music:now-playing-changed", UnifiedEvent.MUSIC_TRACK_CHANGED, rules.music_track_changed),
        # Settings
        single("year3000SystemSettingsChanged", UnifiedEvent.SETTINGS_CHANGED, rules.settings_changed),
        single("year3000ArtisticModeChanged", UnifiedEvent.SETTINGS_VISUAL_GUIDE_CHANGED,
               rules.visual_guide_changed),
        # Performance / visual effects
        single("colorharmony/frame", UnifiedEvent.PERFORMANCE_FRAME, rules.performance_frame,
               deprecated=True, removal_version="2.0.0"),
        single("emotionalMoment", UnifiedEvent.VISUAL_FIELD_UPDATED,
               rules.visual_field("emotional-moment"), deprecated=True, removal_version="2.0.0"),
        single("gentleTransition", UnifiedEvent.VISUAL_FIELD_UPDATED,
               rules.visual_field("gentle-transition"), deprecated=True, removal_version="2.0.0"),
    ]
    mappings.extend(single(event.value, event, rule) for event, rule in _UNIFIED_RULES.items())
    return mappings


class EventMigrationManager:
    """
    Bridge from legacy event names to the unified bus.

    emit_legacy_event never raises: malformed payloads, unknown names and
    failing transforms are logged, counted and dropped.
    """

    def __init__(self, bus: UnifiedEventBus, mappings: Iterable[LegacyEventMapping] | None = None):
        self._bus = bus
        self._lock = Lock()
        self._mappings: dict[str, LegacyEventMapping] = {}
        for mapping in default_mappings() if mappings is None else mappings:
            self._mappings[mapping.legacy_event] = mapping

        self._migrated: list[str] = []
        self._pending: list[str] = []
        self._reset_metrics()
        self._destroyed = False

    def _reset_metrics(self) -> None:
        self._legacy_count = 0
        self._unified_count = 0
        self._deprecated_count = 0
        self._dropped = 0
        self._usage: Counter[str] = Counter()
        self._unmapped: Counter[str] = Counter()

    # =================================================================
    # Translation
    # =================================================================

    def emit_legacy_event(self, legacy_name: str, legacy_payload: Any) -> bool:
        """
        Translate a legacy event and publish the unified event(s) it maps to.

        Returns:
            True if at least one unified event was published
        """
        if self._destroyed:
            logger.debug(f"Migration layer destroyed, ignoring legacy event {legacy_name!r}")
            return False

        with self._lock:
            self._legacy_count += 1
            self._usage[legacy_name] += 1
            mapping = self._mappings.get(legacy_name)
            if mapping is None:
                self._unmapped[legacy_name] += 1
            elif mapping.deprecated:
                self._deprecated_count += 1

        if mapping is None:
            logger.warning(f"No unified mapping for legacy event {legacy_name!r}; dropping it")
            return False

        if mapping.deprecated:
            logger.warning(
                f"Legacy event {legacy_name!r} is deprecated "
                f"(removal in {mapping.removal_version or 'a future version'}); "
                f"use {', '.join(e.value for e in mapping.unified_events)}"
            )

        if not isinstance(legacy_payload, Mapping):
            logger.error(
                f"Dropping legacy event {legacy_name!r}: payload must be a mapping, "
                f"got {type(legacy_payload).__name__}"
            )
            self._count_drop()
            return False

        published = 0
        for event, rule in mapping.targets:
            try:
                payload = payload_model(event).model_validate(rule(legacy_payload))
            except ValidationError as e:
                logger.error(f"Dropping {legacy_name!r} -> {event.value}: transformed payload invalid: {e}")
                self._count_drop()
                continue
            except Exception as e:
                logger.error(f"Transform for {legacy_name!r} -> {event.value} failed: {e}", exc_info=True)
                self._count_drop()
                continue

            self._bus.emit_sync(event, payload)
            published += 1

        with self._lock:
            self._unified_count += published

        if published:
            logger.debug(f"Legacy {legacy_name!r} published as {published} unified event(s)")
        return published > 0

    def legacy_emitter(self, legacy_name: str) -> Callable[[Any], bool]:
        """Callable a legacy producer can keep invoking with just its payload."""
        return functools.partial(self.emit_legacy_event, legacy_name)

    def _count_drop(self) -> None:
        with self._lock:
            self._dropped += 1

    # =================================================================
    # Mapping table
    # =================================================================

    def add_event_mapping(self, mapping: LegacyEventMapping) -> None:
        """Add or replace the mapping for mapping.legacy_event."""
        with self._lock:
            replaced = mapping.legacy_event in self._mappings
            self._mappings[mapping.legacy_event] = mapping
        logger.info(f"{'Replaced' if replaced else 'Added'} mapping for legacy event {mapping.legacy_event!r}")

    def remove_event_mapping(self, legacy_name: str) -> bool:
        with self._lock:
            removed = self._mappings.pop(legacy_name, None) is not None
        if removed:
            logger.info(f"Removed mapping for legacy event {legacy_name!r}")
        return removed

    def get_mapping(self, legacy_name: str) -> LegacyEventMapping | None:
        with self._lock:
            return self._mappings.get(legacy_name)

    @property
    def mappings(self) -> list[LegacyEventMapping]:
        with self._lock:
            return list(self._mappings.values())

    # =================================================================
    # Migration tracking
    # =================================================================

    def register_migrated_system(self, system_name: str) -> None:
        with self._lock:
            if system_name in self._pending:
                self._pending.remove(system_name)
            if system_name not in self._migrated:
                self._migrated.append(system_name)
        logger.info(f"System {system_name} migrated to the unified event bus")

    def register_pending_system(self, system_name: str) -> None:
        with self._lock:
            if system_name not in self._pending and system_name not in self._migrated:
                self._pending.append(system_name)

    def get_metrics(self) -> MigrationMetrics:
        with self._lock:
            return MigrationMetrics(
                total_legacy_events=self._legacy_count,
                total_unified_events=self._unified_count,
                conversion_rate=(
                    self._unified_count / self._legacy_count * 100 if self._legacy_count else 0.0
                ),
                deprecated_events_used=self._deprecated_count,
                dropped_events=self._dropped,
                unmapped_events=sum(self._unmapped.values()),
                systems_migrated=len(self._migrated),
                systems_pending=len(self._pending),
            )

    def get_deprecated_events_report(self) -> list[DeprecatedEventReport]:
        with self._lock:
            return [
                DeprecatedEventReport(
                    legacy_event=m.legacy_event,
                    unified_equivalents=[e.value for e in m.unified_events],
                    removal_version=m.removal_version,
                    usage_count=self._usage[m.legacy_event],
                )
                for m in self._mappings.values()
                if m.deprecated
            ]

    def get_migration_report(self) -> MigrationReport:
        metrics = self.get_metrics()
        with self._lock:
            total_systems = len(self._migrated) + len(self._pending)
            return MigrationReport(
                total_mappings=len(self._mappings),
                deprecated_mappings=sum(1 for m in self._mappings.values() if m.deprecated),
                conversion_rate=metrics.conversion_rate,
                systems_migrated=list(self._migrated),
                systems_pending=list(self._pending),
                migration_progress=len(self._migrated) / total_systems * 100 if total_systems else 0.0,
                unmapped_events=dict(self._unmapped),
            )

    def generate_migration_guide(self, system_name: str, current_events: Iterable[str]) -> str:
        """Markdown guide mapping a system's legacy events to unified ones."""
        lines = [f"# Event Migration Guide for {system_name}", "", "## Current Events Used"]
        for legacy_name in current_events:
            mapping = self.get_mapping(legacy_name)
            if mapping is None:
                lines.append(f"- `{legacy_name}` -> NO MAPPING FOUND (needs a custom migration rule)")
                continue
            targets = ", ".join(f"`{e.value}`" for e in mapping.unified_events)
            line = f"- `{legacy_name}` -> {targets}"
            if mapping.deprecated:
                line += f" **DEPRECATED** (removed in {mapping.removal_version or 'a future version'})"
            lines.append(line)

        lines += [
            "",
            "## Migration Steps",
            "1. Replace legacy listeners with `bus.subscribe(UnifiedEvent..., handler, subscriber_name)`",
            "2. Replace legacy dispatches with `bus.emit_sync(...)` or `await bus.emit(...)`",
            "3. Use the unified event names listed above",
            "4. Update payloads to the unified payload models",
            f"5. Call `migration.register_migrated_system('{system_name}')`",
        ]
        return "\n".join(lines) + "\n"

    def destroy(self) -> None:
        """Clear mappings and metrics. Later legacy events are dropped."""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
            self._mappings.clear()
            self._migrated.clear()
            self._pending.clear()
            self._reset_metrics()
        logger.info("Event migration layer destroyed")
