"""Palette harmonization.

Turns a raw extracted palette into a harmonized one: valid hex values are
normalized, an accent is chosen by key priority and the active strategy
names are attached. No color-space math happens here.
"""

import logging
import re
import time

from starrynight.events.rules import DEFAULT_ACCENT_HEX
from starrynight.events.types import (
    ColorsExtractedPayload,
    ColorsHarmonizedPayload,
    MusicEnergyPayload,
    UnifiedEvent,
)
from starrynight.models.health import HealthResult
from starrynight.orchestration.descriptor import SystemContext
from starrynight.orchestration.registry import SharedService
from starrynight.services.base import BaseSystem

logger = logging.getLogger(__name__)

# Palette keys tried in order when no accent preference is set
ACCENT_PRIORITY = ("VIBRANT", "PROMINENT", "PRIMARY", "LIGHT_VIBRANT", "DARK_VIBRANT", "DESATURATED", "MUTED")

_HEX = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def normalize_hex(value: str) -> str | None:
    """`ABC` -> `#aabbcc`; None for anything that is not a hex color."""
    match = _HEX.match(value.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return f"#{digits.lower()}"


def hex_to_rgb(hex_color: str) -> str:
    """`#cba6f7` -> `203,166,247`."""
    digits = hex_color.lstrip("#")
    return ",".join(str(int(digits[i:i + 2], 16)) for i in (0, 2, 4))


class ColorHarmonyEngine(BaseSystem):
    """
    Handles `colors:extracted` and publishes `colors:harmonized` synchronously.

    While degraded only the fallback accent is used.
    """

    def __init__(self, context: SystemContext):
        super().__init__(context)
        self._last_harmonized: ColorsHarmonizedPayload | None = None
        self._last_energy: float | None = None
        self._processed = 0
        self._rejected_colors = 0

    def _setup(self) -> None:
        self._settings = self.context.services.get_optional(SharedService.SETTINGS)
        self.subscribe(UnifiedEvent.COLORS_EXTRACTED, self._on_colors_extracted)
        self.subscribe(UnifiedEvent.MUSIC_ENERGY, self._on_music_energy)

    @property
    def last_harmonized(self) -> ColorsHarmonizedPayload | None:
        return self._last_harmonized

    def reset_palette(self) -> None:
        """Forget the last palette (e.g. after a track change)."""
        self._last_harmonized = None
        self._last_energy = None

    def _setting(self, key: str, default: str) -> str:
        if self._settings is None:
            return default
        return str(self._settings.get(key, default))

    def _on_music_energy(self, payload: MusicEnergyPayload) -> None:
        self._last_energy = payload.energy

    def _on_colors_extracted(self, payload: ColorsExtractedPayload) -> None:
        harmonized = self.harmonize(payload.raw_colors, payload.track_uri)
        self.publish(UnifiedEvent.COLORS_HARMONIZED, harmonized)

    def harmonize(self, raw_colors: dict[str, str], track_uri: str = "unknown") -> ColorsHarmonizedPayload:
        started = time.perf_counter()

        processed: dict[str, str] = {}
        for key, value in raw_colors.items():
            normalized = normalize_hex(value)
            if normalized is None:
                self._rejected_colors += 1
                logger.debug(f"Ignoring non-hex palette entry {key}={value!r}")
                continue
            processed[key] = normalized

        accent_key = self._pick_accent_key(processed)
        accent = processed[accent_key] if accent_key else DEFAULT_ACCENT_HEX

        strategies = [self._setting("harmonic_mode", "analogous-flow")]
        if accent_key is None:
            strategies.append("fallback-accent")
        if self._last_energy is not None:
            strategies.append("music-energy")

        harmonized = ColorsHarmonizedPayload(
            processed_colors=processed,
            accent_hex=accent,
            accent_rgb=hex_to_rgb(accent),
            strategies=strategies,
            processing_time=(time.perf_counter() - started) * 1000,
            track_uri=track_uri,
        )
        self._last_harmonized = harmonized
        self._processed += 1
        return harmonized

    def _pick_accent_key(self, processed: dict[str, str]) -> str | None:
        if self.is_degraded or not processed:
            return None

        by_upper = {key.upper(): key for key in processed}
        preference = self._setting("accent_preference", "dynamic").upper()
        if preference != "DYNAMIC" and preference in by_upper:
            return by_upper[preference]

        for candidate in ACCENT_PRIORITY:
            if candidate in by_upper:
                return by_upper[candidate]
        return next(iter(processed))

    def _check_health(self) -> HealthResult:
        return HealthResult.ok(
            f"{self._processed} palettes harmonized",
            palettes=self._processed,
            rejected_colors=self._rejected_colors,
        )
