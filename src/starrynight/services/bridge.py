"""Integration glue between music events and the theme."""

import logging

from starrynight.events.types import (
    ColorsAppliedPayload,
    MusicBeatPayload,
    MusicEnergyPayload,
    MusicTrackChangedPayload,
    UnifiedEvent,
)
from starrynight.models.health import HealthResult
from starrynight.orchestration.descriptor import SystemContext
from starrynight.orchestration.registry import SharedService
from starrynight.services.base import BaseSystem

logger = logging.getLogger(__name__)


class MusicColorBridge(BaseSystem):
    """
    Publishes `--sn-music-*` theme variables from beat and energy events,
    forgets the harmonized palette when the track changes, and tracks the
    accent currently applied to the theme.
    """

    def __init__(self, context: SystemContext):
        super().__init__(context)
        self.current_accent: str | None = None
        self.current_track: str | None = None
        self.applied_count = 0

    def _setup(self) -> None:
        self._css = self.context.services.get(SharedService.CSS_VARIABLES)
        self._harmony = self.context.services.get(SharedService.COLOR_HARMONY)
        self.subscribe(UnifiedEvent.MUSIC_BEAT, self._on_beat)
        self.subscribe(UnifiedEvent.MUSIC_ENERGY, self._on_energy)
        self.subscribe(UnifiedEvent.MUSIC_TRACK_CHANGED, self._on_track_changed)
        self.subscribe(UnifiedEvent.COLORS_APPLIED, self._on_colors_applied)

    def _on_beat(self, payload: MusicBeatPayload) -> None:
        self._css.apply_variables({
            "--sn-music-bpm": f"{payload.bpm:g}",
            "--sn-beat-intensity": f"{payload.intensity:.3f}",
        })

    def _on_energy(self, payload: MusicEnergyPayload) -> None:
        self._css.apply_variables({
            "--sn-music-energy": f"{payload.energy:.3f}",
            "--sn-music-valence": f"{payload.valence:.3f}",
        })

    def _on_track_changed(self, payload: MusicTrackChangedPayload) -> None:
        self.current_track = payload.track_uri
        self._harmony.reset_palette()
        logger.debug(f"Track changed to {payload.track_uri}; palette reset")

    def _on_colors_applied(self, payload: ColorsAppliedPayload) -> None:
        self.current_accent = payload.accent_hex
        self.applied_count += 1

    def _check_health(self) -> HealthResult:
        return HealthResult.ok(
            f"accent {self.current_accent or 'not set'}",
            applied=self.applied_count,
        )
