"""Legacy payload transformation rules.

Each rule takes a legacy payload mapping and returns a wire-shaped dict for
one unified event. Rules are pure and never raise on odd input: every field
has an explicit default and alternate legacy spellings are honoured.

Defaults:
    - text identifiers (track uri, setting key, modes): "unknown"
    - mappings (palettes, css variables): {}
    - numbers: 0
    - valence (never carried by beat producers): NEUTRAL_VALENCE
    - accent: DEFAULT_ACCENT_HEX / DEFAULT_ACCENT_RGB
    - timestamp: now
"""

import math
from collections.abc import Mapping
from typing import Any

from starrynight.events.types import now_ms

DEFAULT_ACCENT_HEX = "#cba6f7"
DEFAULT_ACCENT_RGB = "203,166,247"
NEUTRAL_VALENCE = 0.5
UNKNOWN = "unknown"


# =================================================================
# Field helpers
# =================================================================

def first(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-None value among keys."""
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return default


def number(payload: Mapping[str, Any], *keys: str, default: float = 0.0) -> float:
    value = first(payload, *keys)
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return result if math.isfinite(result) else default


def text(payload: Mapping[str, Any], *keys: str, default: str = UNKNOWN) -> str:
    value = first(payload, *keys)
    if value is None or value == "":
        return default
    return str(value)


def mapping(payload: Mapping[str, Any], *keys: str) -> dict[str, Any]:
    value = first(payload, *keys)
    return dict(value) if isinstance(value, Mapping) else {}


def color_map(payload: Mapping[str, Any], *keys: str) -> dict[str, str]:
    """String-valued palette entries only."""
    return {str(k): v for k, v in mapping(payload, *keys).items() if isinstance(v, str)}


def timestamp(payload: Mapping[str, Any]) -> float:
    return number(payload, "timestamp", "time", default=now_ms())


# =================================================================
# Colors
# =================================================================

def colors_extracted(payload: Mapping[str, Any]) -> dict[str, Any]:
    music_data = first(payload, "musicData", "music_data")
    return {
        "rawColors": color_map(payload, "rawColors", "colors", "raw_colors", "palette"),
        "trackUri": text(payload, "trackUri", "uri", "track_uri"),
        "timestamp": timestamp(payload),
        "musicData": dict(music_data) if isinstance(music_data, Mapping) else None,
    }


def colors_harmonized(payload: Mapping[str, Any]) -> dict[str, Any]:
    strategies = first(payload, "strategies", "strategy")
    if isinstance(strategies, str):
        strategies = [strategies]
    elif not isinstance(strategies, (list, tuple)) or not strategies:
        strategies = [UNKNOWN]

    return {
        "processedColors": color_map(payload, "processedColors", "colors", "palette"),
        "cssVariables": color_map(payload, "cssVariables", "css_variables"),
        "accentHex": text(payload, "accentHex", "accent", "accent_hex", default=DEFAULT_ACCENT_HEX),
        "accentRgb": text(payload, "accentRgb", "rgb", "accent_rgb", default=DEFAULT_ACCENT_RGB),
        "strategies": [str(s) for s in strategies],
        "processingTime": number(payload, "processingTime", "processing_time"),
        "trackUri": text(payload, "trackUri", "uri", "track_uri"),
        "timestamp": timestamp(payload),
    }


# =================================================================
# Music
# =================================================================

def music_beat(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "bpm": number(payload, "bpm", "tempo"),
        "intensity": number(payload, "intensity", "energy", "value"),
        "confidence": number(payload, "confidence"),
        "timestamp": timestamp(payload),
    }


def music_energy(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "energy": number(payload, "energy", "intensity", "value"),
        "valence": number(payload, "valence", default=NEUTRAL_VALENCE),
        "tempo": number(payload, "tempo", "bpm"),
        "timestamp": timestamp(payload),
    }


def music_state_changed(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "isPlaying": bool(first(payload, "isPlaying", "is_playing", "playing", default=False)),
        "position": number(payload, "position", "progress"),
        "duration": number(payload, "duration"),
        "timestamp": timestamp(payload),
    }


def music_track_changed(payload: Mapping[str, Any]) -> dict[str, Any]:
    album_art = first(payload, "albumArt", "album_art", "imageUrl")
    return {
        "trackUri": text(payload, "trackUri", "uri", "track_uri"),
        "artist": text(payload, "artist", "artistName", default="Unknown Artist"),
        "title": text(payload, "title", "name", "trackName", default="Unknown Title"),
        "albumArt": album_art if isinstance(album_art, str) else None,
        "timestamp": timestamp(payload),
    }


# =================================================================
# Settings / performance / visual effects
# =================================================================

def settings_changed(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "settingKey": text(payload, "settingKey", "key", "setting"),
        "oldValue": first(payload, "oldValue", "previousValue", "old_value"),
        "newValue": first(payload, "newValue", "value", "new_value"),
        "timestamp": timestamp(payload),
    }


def visual_guide_changed(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "oldMode": text(payload, "oldMode", "previousMode", "old_mode"),
        "newMode": text(payload, "newMode", "mode", "artisticMode", "new_mode"),
        "timestamp": timestamp(payload),
    }


def performance_frame(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "deltaTime": number(payload, "deltaTime", "delta", "deltaMs"),
        "fps": number(payload, "fps", "frameRate"),
        "memoryUsage": number(payload, "memoryUsage", "memory"),
        "timestamp": timestamp(payload),
    }


def visual_intensity(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "intensity": number(payload, "intensity", "value", "energy"),
        "source": text(payload, "source", default="legacy"),
        "timestamp": timestamp(payload),
    }


def visual_field(field_name: str):
    """Rule publishing every numeric entry of the payload under field_name."""

    def rule(payload: Mapping[str, Any]) -> dict[str, Any]:
        values = {
            str(k): float(v)
            for k, v in payload.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool) and k != "timestamp"
        }
        return {"fieldName": field_name, "values": values, "timestamp": timestamp(payload)}

    rule.__name__ = f"visual_field_{field_name.replace('-', '_')}"
    return rule
