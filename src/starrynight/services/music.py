"""Music playback state and beat publishing."""

import logging
from contextlib import nullcontext

from starrynight.events.types import (
    MusicBeatPayload,
    MusicEnergyPayload,
    MusicStateChangedPayload,
    MusicTrackChangedPayload,
    SettingsChangedPayload,
    UnifiedEvent,
)
from starrynight.models.health import HealthResult
from starrynight.orchestration.descriptor import SystemContext
from starrynight.orchestration.registry import SharedService
from starrynight.services.base import BaseSystem

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class MusicSyncService(BaseSystem):
    """
    Single source of playback-derived events.

    Producers (player hooks, analysis callbacks) call the process_* methods;
    the service normalizes the numbers and publishes unified music events.
    Beat and energy events are suppressed while enable_music_sync is off.
    """

    def __init__(self, context: SystemContext):
        super().__init__(context)
        self._enabled = True
        self.bpm = 0.0
        self.energy = 0.0
        self.valence = 0.5
        self.track_uri = "unknown"
        self.is_playing = False
        self.position_ms = 0.0
        self.duration_ms = 0.0
        self.beat_count = 0

    def _setup(self) -> None:
        settings = self.context.services.get_optional(SharedService.SETTINGS)
        if settings is not None:
            self._enabled = bool(settings.get("enable_music_sync", True))
        self.subscribe(UnifiedEvent.SETTINGS_CHANGED, self._on_setting_changed)

    def _on_setting_changed(self, payload: SettingsChangedPayload) -> None:
        if payload.setting_key == "enable_music_sync":
            self._enabled = bool(payload.new_value)
            logger.info(f"Music sync {'enabled' if self._enabled else 'disabled'}")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _timed(self, name: str):
        monitor = self.context.services.get_optional(SharedService.PERFORMANCE_MONITOR)
        if monitor is None:
            return nullcontext()
        return monitor.time_operation(name)

    # =================================================================
    # Producers
    # =================================================================

    def process_beat(self, bpm: float, intensity: float, confidence: float = 1.0) -> bool:
        """Publish a beat. Returns False when music sync is disabled."""
        if not self._enabled:
            return False
        with self._timed("music:process_beat"):
            self.bpm = max(0.0, float(bpm))
            self.beat_count += 1
            self.publish(
                UnifiedEvent.MUSIC_BEAT,
                MusicBeatPayload(bpm=self.bpm, intensity=_clamp(intensity), confidence=_clamp(confidence)),
            )
        return True

    def process_audio_features(self, energy: float, valence: float, tempo: float | None = None) -> bool:
        """Publish an energy estimate. Returns False when music sync is disabled."""
        if not self._enabled:
            return False
        self.energy = _clamp(energy)
        self.valence = _clamp(valence)
        if tempo is not None:
            self.bpm = max(0.0, float(tempo))
        self.publish(
            UnifiedEvent.MUSIC_ENERGY,
            MusicEnergyPayload(energy=self.energy, valence=self.valence, tempo=self.bpm),
        )
        return True

    def set_track(
        self,
        track_uri: str,
        artist: str = "Unknown Artist",
        title: str = "Unknown Title",
        album_art: str | None = None,
    ) -> None:
        if track_uri == self.track_uri:
            return
        self.track_uri = track_uri
        self.position_ms = 0.0
        self.publish(
            UnifiedEvent.MUSIC_TRACK_CHANGED,
            MusicTrackChangedPayload(track_uri=track_uri, artist=artist, title=title, album_art=album_art),
        )

    def update_playback_state(self, is_playing: bool, position_ms: float, duration_ms: float) -> None:
        self.is_playing = is_playing
        self.position_ms = max(0.0, position_ms)
        self.duration_ms = max(0.0, duration_ms)
        self.publish(
            UnifiedEvent.MUSIC_STATE_CHANGED,
            MusicStateChangedPayload(is_playing=is_playing, position=self.position_ms, duration=self.duration_ms),
        )

    def update_animation(self, delta_ms: float) -> None:
        if self.is_playing:
            self.position_ms = min(self.position_ms + delta_ms, self.duration_ms or float("inf"))

    def _check_health(self) -> HealthResult:
        return HealthResult.ok(
            "music sync enabled" if self._enabled else "music sync disabled",
            beats=self.beat_count,
            bpm=self.bpm,
        )
