"""Tests for the legacy event migration layer."""

from unittest.mock import Mock

import pytest

from starrynight.events import (
    ColorsExtractedPayload,
    EventMigrationManager,
    LegacyEventMapping,
    UnifiedEvent,
)
from starrynight.events import rules
from starrynight.events.rules import DEFAULT_ACCENT_HEX, DEFAULT_ACCENT_RGB, NEUTRAL_VALENCE


@pytest.fixture
def migration(bus):
    manager = EventMigrationManager(bus)
    yield manager
    manager.destroy()


def record(bus, event: UnifiedEvent) -> list:
    received = []
    bus.subscribe(event, received.append, f"recorder:{event.value}")
    return received


class TestTranslation:
    """Test legacy -> unified translation."""

    @pytest.mark.unit
    def test_colors_extracted_with_legacy_field_names(self, bus, migration):
        received = record(bus, UnifiedEvent.COLORS_EXTRACTED)

        ok = migration.emit_legacy_event(
            "colors/extracted", {"colors": {"VIBRANT": "#7aa2f7"}, "uri": "spotify:track:1"}
        )

        assert ok is True
        assert isinstance(received[0], ColorsExtractedPayload)
        assert received[0].raw_colors == {"VIBRANT": "#7aa2f7"}
        assert received[0].track_uri == "spotify:track:1"

    @pytest.mark.unit
    def test_empty_payload_gets_defaults(self, bus, migration):
        received = record(bus, UnifiedEvent.COLORS_EXTRACTED)

        assert migration.emit_legacy_event("colors-extracted", {}) is True

        assert received[0].track_uri == "unknown"
        assert received[0].raw_colors == {}
        assert received[0].timestamp > 0

    @pytest.mark.unit
    def test_harmonized_defaults_use_fallback_accent(self, bus, migration):
        received = record(bus, UnifiedEvent.COLORS_HARMONIZED)

        migration.emit_legacy_event("colors-harmonized", {})

        assert received[0].accent_hex == DEFAULT_ACCENT_HEX
        assert received[0].accent_rgb == DEFAULT_ACCENT_RGB
        assert received[0].processed_colors == {}

    @pytest.mark.unit
    def test_beat_fans_out_to_beat_and_energy(self, bus, migration):
        beats = record(bus, UnifiedEvent.MUSIC_BEAT)
        energy = record(bus, UnifiedEvent.MUSIC_ENERGY)

        migration.emit_legacy_event("music-sync:beat", {"bpm": 128, "intensity": 0.7})

        assert beats[0].bpm == 128
        assert beats[0].intensity == 0.7
        assert beats[0].confidence == 0
        assert energy[0].energy == 0.7
        assert energy[0].valence == NEUTRAL_VALENCE
        assert energy[0].tempo == 128

    @pytest.mark.unit
    def test_non_numeric_values_default_to_zero(self, bus, migration):
        beats = record(bus, UnifiedEvent.MUSIC_BEAT)

        migration.emit_legacy_event("beat/bpm", {"bpm": "fast", "intensity": float("nan")})

        assert beats[0].bpm == 0
        assert beats[0].intensity == 0

    @pytest.mark.unit
    def test_huge_integer_defaults_instead_of_dropping_the_event(self, bus, migration):
        beats = record(bus, UnifiedEvent.MUSIC_BEAT)
        energy = record(bus, UnifiedEvent.MUSIC_ENERGY)

        ok = migration.emit_legacy_event("music-sync:beat", {"bpm": 10**400, "intensity": 0.5})

        assert ok is True
        assert beats[0].bpm == 0
        assert beats[0].intensity == 0.5
        assert energy[0].tempo == 0
        assert migration.get_metrics().dropped_events == 0

    @pytest.mark.unit
    def test_number_rule_handles_overflow(self):
        assert rules.number({"bpm": 10**400}, "bpm", default=60.0) == 60.0
        assert rules.number({"bpm": -(10**400)}, "bpm") == 0.0

    @pytest.mark.unit
    def test_unified_names_pass_through(self, bus, migration):
        beats = record(bus, UnifiedEvent.MUSIC_BEAT)

        assert migration.emit_legacy_event("music:beat", {"bpm": 99}) is True
        assert beats[0].bpm == 99

    @pytest.mark.unit
    def test_visual_field_rule_keeps_numeric_entries(self, bus, migration):
        fields = record(bus, UnifiedEvent.VISUAL_FIELD_UPDATED)

        migration.emit_legacy_event("emotionalMoment", {"warmth": 0.4, "label": "calm", "flag": True})

        assert fields[0].field_name == "emotional-moment"
        assert fields[0].values == {"warmth": 0.4}

    @pytest.mark.unit
    def test_legacy_emitter(self, bus, migration):
        energy = record(bus, UnifiedEvent.MUSIC_ENERGY)
        emit = migration.legacy_emitter("music-sync:energy-changed")

        emit({"energy": 0.3, "valence": 0.9})

        assert energy[0].energy == 0.3
        assert energy[0].valence == 0.9


class TestDroppedInput:
    """Test that bad input never raises."""

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", [None, "colors", 42, ["VIBRANT"]])
    def test_non_mapping_payload_is_dropped(self, bus, migration, payload):
        handler = Mock()
        bus.subscribe(UnifiedEvent.COLORS_EXTRACTED, handler, "A")

        assert migration.emit_legacy_event("colors-extracted", payload) is False

        handler.assert_not_called()
        assert migration.get_metrics().dropped_events == 1

    @pytest.mark.unit
    def test_unmapped_event_is_counted(self, migration):
        assert migration.emit_legacy_event("year3000:quantum-flux", {}) is False

        metrics = migration.get_metrics()
        assert metrics.unmapped_events == 1
        assert migration.get_migration_report().unmapped_events == {"year3000:quantum-flux": 1}

    @pytest.mark.unit
    def test_failing_rule_is_contained(self, bus, migration):
        def broken_rule(payload):
            raise KeyError("missing")

        migration.add_event_mapping(
            LegacyEventMapping.single("broken", UnifiedEvent.MUSIC_BEAT, broken_rule)
        )

        assert migration.emit_legacy_event("broken", {"bpm": 1}) is False
        assert migration.get_metrics().dropped_events == 1


class TestMetricsAndReports:
    """Test migration metrics and reporting."""

    @pytest.mark.unit
    def test_conversion_rate(self, migration):
        migration.emit_legacy_event("music-sync:beat", {"bpm": 120})  # 2 unified events
        migration.emit_legacy_event("beat/bpm", {"bpm": 120})  # 1 unified event

        metrics = migration.get_metrics()
        assert metrics.total_legacy_events == 2
        assert metrics.total_unified_events == 3
        assert metrics.conversion_rate == pytest.approx(150.0)

    @pytest.mark.unit
    def test_deprecated_usage_report(self, migration):
        migration.emit_legacy_event("colorConsciousnessUpdate", {})
        migration.emit_legacy_event("colorConsciousnessUpdate", {})

        assert migration.get_metrics().deprecated_events_used == 2
        report = {r.legacy_event: r for r in migration.get_deprecated_events_report()}
        assert report["colorConsciousnessUpdate"].usage_count == 2
        assert report["colorConsciousnessUpdate"].unified_equivalents == ["colors:harmonized"]
        assert report["gentleTransition"].usage_count == 0

    @pytest.mark.unit
    def test_system_migration_progress(self, migration):
        migration.register_pending_system("BeatSyncVisualSystem")
        migration.register_pending_system("GradientConductor")
        migration.register_migrated_system("BeatSyncVisualSystem")

        report = migration.get_migration_report()
        assert report.systems_migrated == ["BeatSyncVisualSystem"]
        assert report.systems_pending == ["GradientConductor"]
        assert report.migration_progress == pytest.approx(50.0)

    @pytest.mark.unit
    def test_mapping_table_changes(self, migration):
        custom = LegacyEventMapping.single("myTheme:pulse", UnifiedEvent.MUSIC_BEAT, rules.music_beat)
        migration.add_event_mapping(custom)

        assert migration.get_mapping("myTheme:pulse") is custom
        assert migration.remove_event_mapping("myTheme:pulse") is True
        assert migration.remove_event_mapping("myTheme:pulse") is False
        assert migration.get_mapping("myTheme:pulse") is None

    @pytest.mark.unit
    def test_migration_guide(self, migration):
        guide = migration.generate_migration_guide(
            "GradientConductor", ["music-sync:beat", "gentleTransition", "made-up-event"]
        )

        assert guide.startswith("# Event Migration Guide for GradientConductor")
        assert "`music:beat`, `music:energy`" in guide
        assert "**DEPRECATED**" in guide
        assert "`made-up-event` -> NO MAPPING FOUND" in guide

    @pytest.mark.unit
    def test_destroy(self, bus, migration):
        handler = Mock()
        bus.subscribe(UnifiedEvent.MUSIC_BEAT, handler, "A")
        migration.emit_legacy_event("beat/bpm", {"bpm": 1})

        migration.destroy()
        migration.destroy()

        assert migration.emit_legacy_event("beat/bpm", {"bpm": 2}) is False
        assert handler.call_count == 1
        assert migration.get_metrics().total_legacy_events == 0
        assert migration.mappings == []
