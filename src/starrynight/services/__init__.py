"""Built-in managed systems and their default descriptor set."""

from starrynight.models.enums import InitializationPhase
from starrynight.orchestration.descriptor import SystemDescriptor
from starrynight.orchestration.registry import SharedService
from starrynight.services.base import BaseSystem
from starrynight.services.bridge import MusicColorBridge
from starrynight.services.css import CSSVariableApplier, StyleScope, css_variable_name
from starrynight.services.harmony import ColorHarmonyEngine, hex_to_rgb, normalize_hex
from starrynight.services.music import MusicSyncService
from starrynight.services.performance import PerformanceMonitor
from starrynight.services.settings import SettingsManager


def default_descriptors() -> list[SystemDescriptor]:
    """Descriptor set used when the coordinator is built without one."""
    return [
        SystemDescriptor(
            name="PerformanceMonitor",
            system_class=PerformanceMonitor,
            phase=InitializationPhase.CORE,
            shared_service=SharedService.PERFORMANCE_MONITOR,
            critical=False,
        ),
        SystemDescriptor(
            name="SettingsManager",
            system_class=SettingsManager,
            phase=InitializationPhase.CORE,
            shared_service=SharedService.SETTINGS,
        ),
        SystemDescriptor(
            name="CSSVariableApplier",
            system_class=CSSVariableApplier,
            phase=InitializationPhase.SERVICES,
            dependencies=("PerformanceMonitor",),
            shared_service=SharedService.CSS_VARIABLES,
        ),
        SystemDescriptor(
            name="MusicSyncService",
            system_class=MusicSyncService,
            phase=InitializationPhase.SERVICES,
            dependencies=("PerformanceMonitor", "SettingsManager"),
            shared_service=SharedService.MUSIC_SYNC,
        ),
        SystemDescriptor(
            name="ColorHarmonyEngine",
            system_class=ColorHarmonyEngine,
            phase=InitializationPhase.VISUAL_SYSTEMS,
            dependencies=("MusicSyncService", "CSSVariableApplier"),
            shared_service=SharedService.COLOR_HARMONY,
        ),
        SystemDescriptor(
            name="MusicColorBridge",
            system_class=MusicColorBridge,
            phase=InitializationPhase.INTEGRATION,
            dependencies=("MusicSyncService", "ColorHarmonyEngine", "CSSVariableApplier"),
            critical=False,
        ),
    ]


__all__ = [
    "BaseSystem",
    "CSSVariableApplier",
    "ColorHarmonyEngine",
    "MusicColorBridge",
    "MusicSyncService",
    "PerformanceMonitor",
    "SettingsManager",
    "StyleScope",
    "css_variable_name",
    "default_descriptors",
    "hex_to_rgb",
    "normalize_hex",
]
