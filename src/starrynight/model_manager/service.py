"""Model manager service for pydantic models (user settings, coordinator config)."""

import logging
from pathlib import Path
from threading import Lock
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from starrynight.model_manager.observer import ObserverManager
from starrynight.model_manager.persistence import PydanticPersistence
from starrynight.model_manager.protocols import ModelEvent, ModelObserver

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=BaseModel)

class ModelManagerService(Generic[ModelType]):
    """
    Generic store for a single pydantic model instance.

    Every write re-validates the whole model, so the stored instance is
    always valid. Observers receive a ModelEvent after the lock is released.
    Writes that leave every value unchanged do not notify.

    Usage Example:
        ```python
        store = ModelManagerService[UserSettings](UserSettings, UserSettings(), path)
        store.register_observer(observer)
        store.set("visual_guide_mode", "cosmic")
        store.save()
        ```
    """

    def __init__(
        self,
        model_type: type[ModelType],
        initial_model: ModelType,
        default_path: Path | None = None,
    ):
        self._model_type = model_type
        self._model = initial_model
        self._default_path = default_path
        self._lock = Lock()
        self._observers = ObserverManager[ModelObserver](observer_type_name="model")

        logger.debug(f"ModelManagerService initialized with {model_type.__name__}")

    @property
    def default_path(self) -> Path | None:
        return self._default_path

    def register_observer(self, observer: ModelObserver) -> None:
        self._observers.register(observer)

    def unregister_observer(self, observer: ModelObserver) -> None:
        self._observers.unregister(observer)

    def _notify_observers(self, event: ModelEvent, **kwargs: Any) -> None:
        self._observers.notify("on_model_event", event, **kwargs)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return getattr(self._model, key, default)

    def get_all(self) -> dict[str, Any]:
        """Snapshot of all field values."""
        with self._lock:
            return self._model.model_dump()

    def get_model(self) -> ModelType:
        """Deep copy of the current model."""
        with self._lock:
            return self._model.model_copy(deep=True)

    def set(self, key: str, value: Any) -> None:
        """
        Set one field.

        Raises:
            AttributeError: If the model has no such field
            ValidationError: If the value fails validation
        """
        self.update({key: value})

    def update(self, values: dict[str, Any]) -> None:
        """
        Set several fields atomically (all or nothing).

        Raises:
            AttributeError: If any key is not a model field
            ValidationError: If the resulting model fails validation

        Events:
            One MODEL_UPDATED carrying only the keys whose value changed
        """
        with self._lock:
            for key in values:
                if key not in self._model_type.model_fields:
                    raise AttributeError(f"'{self._model_type.__name__}' has no field '{key}'")

            old_dump = self._model.model_dump()
            try:
                self._model = self._model_type.model_validate({**old_dump, **values})
            except ValidationError as e:
                logger.error(f"Validation error updating {list(values)}: {e}")
                raise
            new_dump = self._model.model_dump()

        changed = [key for key in values if old_dump[key] != new_dump[key]]
        if not changed:
            logger.debug(f"Model update left values unchanged: {list(values)}")
            return

        self._notify_observers(
            ModelEvent.MODEL_UPDATED,
            keys=changed,
            values={key: new_dump[key] for key in changed},
            old_values={key: old_dump[key] for key in changed},
        )
        logger.debug(f"Model updated: {changed}")

    def reset(self) -> None:
        """Reset the model to defaults. Emits MODEL_RESET."""
        with self._lock:
            old_values = self._model.model_dump()
            self._model = self._model_type()
            model_copy = self._model.model_copy(deep=True)

        self._notify_observers(ModelEvent.MODEL_RESET, model=model_copy, old_values=old_values)
        logger.info(f"{self._model_type.__name__} reset to defaults")

    def _resolve_path(self, path: Path | None) -> Path:
        file_path = path or self._default_path
        if file_path is None:
            raise ValueError(f"No path given and {self._model_type.__name__} store has no default_path")
        return Path(file_path)

    def load(self, path: Path | None = None) -> None:
        """
        Replace the model with the file's content. Emits MODEL_LOADED.

        Raises:
            ValueError: If no path is given and no default_path is set
            FileNotFoundError: If the file doesn't exist
            ConfigurationError: If the file is invalid
        """
        file_path = self._resolve_path(path)
        new_model = PydanticPersistence.load_json(file_path, self._model_type)

        with self._lock:
            self._model = new_model

        self._notify_observers(ModelEvent.MODEL_LOADED, path=file_path)
        logger.info(f"{self._model_type.__name__} loaded from {file_path}")

    def save(self, path: Path | None = None) -> None:
        """Write the model to disk (atomic, with .bak). Emits MODEL_SAVED."""
        file_path = self._resolve_path(path)

        with self._lock:
            model_copy = self._model.model_copy(deep=True)

        PydanticPersistence.save_json(model_copy, file_path)

        self._notify_observers(ModelEvent.MODEL_SAVED, path=file_path)
        logger.info(f"{self._model_type.__name__} saved to {file_path}")
