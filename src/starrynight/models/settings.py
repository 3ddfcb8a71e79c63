"""User preference model."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_SETTINGS_PATH = Path.home() / ".starrynight" / "settings.json"

VisualGuideMode = Literal["minimal", "balanced", "cosmic", "cinematic"]
HarmonicMode = Literal["analogous-flow", "triadic-trinity", "complementary-yin-yang", "monochromatic"]
GradientIntensity = Literal["disabled", "minimal", "balanced", "intense"]

# Settings whose change requires color-dependent systems to re-read the palette
COLOR_AFFECTING_SETTINGS = frozenset(
    {"harmonic_mode", "accent_preference", "visual_guide_mode", "gradient_intensity"}
)


class UserSettings(BaseModel):
    """Persisted user preferences."""

    visual_guide_mode: VisualGuideMode = Field(
        default="balanced",
        description="Overall visual intensity preset",
    )
    visual_effects_level: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Global multiplier for visual effects (0.0 - 1.0)",
    )
    harmonic_mode: HarmonicMode = Field(
        default="analogous-flow",
        description="Harmony strategy name attached to harmonized palettes",
    )
    accent_preference: str = Field(
        default="dynamic",
        description="Palette key to use as accent, or 'dynamic' to pick by priority",
    )
    gradient_intensity: GradientIntensity = Field(
        default="balanced",
        description="Strength of background gradients",
    )
    enable_music_sync: bool = Field(
        default=True,
        description="Publish beat and energy events from playback",
    )
