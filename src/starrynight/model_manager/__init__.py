"""
Model management for pydantic-based state.

Public API:
    - ModelManagerService: validated get/set/update/reset/load/save with observers
    - ModelObserver, ModelEvent: change notification protocol
    - ObserverManager: thread-safe observer list
    - PydanticPersistence: atomic JSON load/save with backups
"""

from starrynight.model_manager.observer import ObserverManager
from starrynight.model_manager.persistence import PydanticPersistence
from starrynight.model_manager.protocols import ModelEvent, ModelObserver
from starrynight.model_manager.service import ModelManagerService

__all__ = [
    "ModelEvent",
    "ModelManagerService",
    "ModelObserver",
    "ObserverManager",
    "PydanticPersistence",
]
