"""End-to-end tests of the built-in systems wired through the coordinator."""

import pytest

from starrynight.events import UnifiedEvent
from starrynight.events.rules import DEFAULT_ACCENT_HEX

PALETTE = {"VIBRANT": "#7aa2f7", "PROMINENT": "#bb9af7", "DARK_VIBRANT": "#1a1b26"}


def record(coordinator, *events):
    received = {event: [] for event in events}
    for event in events:
        coordinator.event_bus.subscribe(event, received[event].append, "Recorder")
    return received


def extract(coordinator, colors, track_uri="spotify:track:1"):
    return coordinator.event_bus.emit_sync(
        UnifiedEvent.COLORS_EXTRACTED, {"rawColors": colors, "trackUri": track_uri}
    )


class TestColorPipeline:
    """Test extracted -> harmonized -> applied."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_each_stage_fires_once(self, coordinator):
        received = record(
            coordinator,
            UnifiedEvent.COLORS_EXTRACTED,
            UnifiedEvent.COLORS_HARMONIZED,
            UnifiedEvent.COLORS_APPLIED,
        )

        extract(coordinator, PALETTE)

        assert [len(v) for v in received.values()] == [1, 1, 1]
        applied = received[UnifiedEvent.COLORS_APPLIED][0]
        assert applied.accent_hex == "#7aa2f7"
        assert applied.accent_rgb == "122,162,247"
        assert applied.strategies == ["analogous-flow"]
        assert applied.track_uri == "spotify:track:1"

        css = coordinator.get_shared_css_variable_applier()
        assert css.get_variable("VIBRANT") == "#7aa2f7"
        assert css.get_variable("DARK_VIBRANT") == "#1a1b26"
        assert css.get_variable("accent-hex") == "#7aa2f7"
        assert css.scope.get_property_value("--sn-accent-rgb") == "122,162,247"
        assert coordinator.get_system("MusicColorBridge").current_accent == "#7aa2f7"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_invalid_colors_are_dropped(self, coordinator):
        received = record(coordinator, UnifiedEvent.COLORS_HARMONIZED)

        extract(coordinator, {"VIBRANT": "not-a-color", "MUTED": "ABC"})

        harmonized = received[UnifiedEvent.COLORS_HARMONIZED][0]
        assert harmonized.processed_colors == {"MUTED": "#aabbcc"}
        assert harmonized.accent_hex == "#aabbcc"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_fallback_accent_when_nothing_usable(self, coordinator):
        received = record(coordinator, UnifiedEvent.COLORS_HARMONIZED)

        extract(coordinator, {"VIBRANT": "nope"})

        harmonized = received[UnifiedEvent.COLORS_HARMONIZED][0]
        assert harmonized.accent_hex == DEFAULT_ACCENT_HEX
        assert "fallback-accent" in harmonized.strategies
        css = coordinator.get_shared_css_variable_applier()
        assert css.get_variable("accent-hex") == DEFAULT_ACCENT_HEX

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_accent_preference_and_harmonic_mode(self, coordinator):
        settings = coordinator.get_shared_settings_manager()
        settings.update({"accent_preference": "prominent", "harmonic_mode": "triadic-trinity"})
        received = record(coordinator, UnifiedEvent.COLORS_HARMONIZED)

        extract(coordinator, PALETTE)

        harmonized = received[UnifiedEvent.COLORS_HARMONIZED][0]
        assert harmonized.accent_hex == "#bb9af7"
        assert harmonized.strategies == ["triadic-trinity"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_degraded_engine_uses_fallback_accent(self, coordinator):
        engine = coordinator.get_shared_color_harmony_engine()
        engine.on_degraded("too slow")

        assert engine.harmonize(PALETTE).accent_hex == DEFAULT_ACCENT_HEX

        engine.on_recovered()
        assert engine.harmonize(PALETTE).accent_hex == "#7aa2f7"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_legacy_event_reaches_the_theme(self, coordinator):
        ok = coordinator.migration.emit_legacy_event(
            "colors/extracted", {"colors": PALETTE, "uri": "spotify:track:9"}
        )

        assert ok is True
        css = coordinator.get_shared_css_variable_applier()
        assert css.get_variable("PROMINENT") == "#bb9af7"
        assert coordinator.get_metrics().migration.total_legacy_events == 1


class TestMusicIntegration:
    """Test music events flowing into theme variables."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_beat_and_energy_set_variables(self, coordinator):
        music = coordinator.get_shared_music_sync_service()
        css = coordinator.get_shared_css_variable_applier()

        assert music.process_beat(bpm=128, intensity=0.8) is True
        assert music.process_audio_features(energy=0.6, valence=1.4)

        assert css.scope.get_property_value("--sn-music-bpm") == "128"
        assert css.scope.get_property_value("--sn-beat-intensity") == "0.800"
        assert css.scope.get_property_value("--sn-music-energy") == "0.600"
        assert css.scope.get_property_value("--sn-music-valence") == "1.000"
        monitor = coordinator.get_shared_performance_monitor()
        assert monitor.operation_stats("music:process_beat")["count"] == 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_energy_marks_harmonized_strategies(self, coordinator):
        coordinator.get_shared_music_sync_service().process_audio_features(energy=0.9, valence=0.2)
        received = record(coordinator, UnifiedEvent.COLORS_HARMONIZED)

        extract(coordinator, PALETTE)

        assert "music-energy" in received[UnifiedEvent.COLORS_HARMONIZED][0].strategies

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_disabled_music_sync_publishes_nothing(self, coordinator):
        received = record(coordinator, UnifiedEvent.MUSIC_BEAT)
        music = coordinator.get_shared_music_sync_service()

        coordinator.get_shared_settings_manager().set("enable_music_sync", False)

        assert music.enabled is False
        assert music.process_beat(bpm=120, intensity=0.5) is False
        assert received[UnifiedEvent.MUSIC_BEAT] == []

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_track_change_resets_palette(self, coordinator):
        engine = coordinator.get_shared_color_harmony_engine()
        extract(coordinator, PALETTE)
        assert engine.last_harmonized is not None

        coordinator.get_shared_music_sync_service().set_track("spotify:track:2", "Artist", "Title")

        assert engine.last_harmonized is None
        assert coordinator.get_system("MusicColorBridge").current_track == "spotify:track:2"
