"""User settings service."""

import logging
from typing import Any

from starrynight.events.types import SettingsChangedPayload, UnifiedEvent, VisualGuideChangedPayload
from starrynight.exceptions import handle_errors
from starrynight.model_manager import ModelEvent, ModelManagerService, PydanticPersistence
from starrynight.models.health import HealthResult
from starrynight.models.settings import UserSettings
from starrynight.orchestration.descriptor import SystemContext
from starrynight.services.base import BaseSystem

logger = logging.getLogger(__name__)


class SettingsManager(BaseSystem):
    """
    Owns the user settings store and announces every change on the bus.

    Each changed key produces one `settings:changed`; a change of
    visual_guide_mode additionally produces `settings:visual-guide-changed`.
    With a settings path configured, the file is created with defaults when
    missing and, if auto_save_settings is set, rewritten after each change.
    """

    def __init__(self, context: SystemContext, store: ModelManagerService[UserSettings] | None = None):
        super().__init__(context)
        self._store = store
        self._save_failed = False

    def _setup(self) -> None:
        if self._store is None:
            path = self.config.settings_path
            if path is not None:
                settings = PydanticPersistence.ensure_valid_or_create(
                    path, UserSettings, auto_save=self.config.auto_save_settings
                )
            else:
                settings = UserSettings()
            self._store = ModelManagerService[UserSettings](UserSettings, settings, path)
        self._store.register_observer(self)

    def _teardown(self) -> None:
        if self._store is not None:
            self._store.unregister_observer(self)

    @property
    def store(self) -> ModelManagerService[UserSettings]:
        if self._store is None:
            raise RuntimeError("SettingsManager is not initialized")
        return self._store

    @property
    def settings(self) -> UserSettings:
        return self.store.get_model()

    def get(self, key: str, default: Any = None) -> Any:
        return self.store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.store.set(key, value)

    def update(self, values: dict[str, Any]) -> None:
        self.store.update(values)

    def reset(self) -> None:
        self.store.reset()

    def save(self) -> None:
        self.store.save()

    # =================================================================
    # ModelObserver
    # =================================================================

    def on_model_event(self, event: ModelEvent, **kwargs: Any) -> None:
        if event is ModelEvent.MODEL_UPDATED:
            self._publish_changes(kwargs["old_values"], kwargs["values"])
            self._auto_save()
        elif event is ModelEvent.MODEL_RESET:
            self._publish_changes(kwargs["old_values"], kwargs["model"].model_dump())
            self._auto_save()

    def _publish_changes(self, old_values: dict[str, Any], new_values: dict[str, Any]) -> None:
        for key, new_value in new_values.items():
            old_value = old_values.get(key)
            if old_value == new_value:
                continue
            self.publish(
                UnifiedEvent.SETTINGS_CHANGED,
                SettingsChangedPayload(setting_key=key, old_value=old_value, new_value=new_value),
            )
            if key == "visual_guide_mode":
                self.publish(
                    UnifiedEvent.SETTINGS_VISUAL_GUIDE_CHANGED,
                    VisualGuideChangedPayload(old_mode=str(old_value), new_mode=str(new_value)),
                )

    def _auto_save(self) -> None:
        if not self.config.auto_save_settings or self.store.default_path is None:
            return
        self._save_failed = not self._write_settings()

    @handle_errors(operation_name="auto-save settings", fallback_value=False, re_raise=False)
    def _write_settings(self) -> bool:
        self.store.save()
        return True

    def _check_health(self) -> HealthResult:
        path = self.store.default_path
        if self._save_failed:
            return HealthResult.failing(f"last auto-save to {path} failed")
        return HealthResult.ok(f"settings at {path}" if path else "in-memory settings")
