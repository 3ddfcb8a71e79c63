"""Store events and the observer protocol for ModelManagerService."""

from enum import Enum
from typing import Protocol, runtime_checkable


class ModelEvent(Enum):
    """What happened to the stored model."""

    MODEL_LOADED = "model_loaded"
    MODEL_SAVED = "model_saved"
    MODEL_UPDATED = "model_updated"
    MODEL_RESET = "model_reset"


@runtime_checkable
class ModelObserver(Protocol):
    """
    Receives store events.

    Keyword arguments per event:
        - MODEL_UPDATED: 'keys', 'values' (new values), 'old_values'
        - MODEL_LOADED / MODEL_SAVED: 'path'
        - MODEL_RESET: 'model' (the new default model), 'old_values'

    Called on the thread that changed the store, after its lock is released.
    A raising observer is logged and skipped.
    """

    def on_model_event(self, event: ModelEvent, **kwargs) -> None:
        ...
