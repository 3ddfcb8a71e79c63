"""JSON persistence for the settings store and the coordinator configuration.

Writes are atomic (temp file, then rename) and keep the previous file as
`<name>.bak`. A file that exists but cannot be loaded is never replaced
by defaults: it stays on disk until the next explicit save, which backs
it up first.
"""

import logging
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from starrynight.exceptions import ConfigFileInvalidError, ConfigurationError, wrap_pydantic_error

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def _sibling(path: Path, suffix: str) -> Path:
    return path.with_suffix(path.suffix + suffix)


class PydanticPersistence:
    """
    Stateless load/save helpers for pydantic models.

    Example:
        ```python
        settings = PydanticPersistence.ensure_valid_or_create(path, UserSettings)
        PydanticPersistence.save_json(settings, path)
        ```
    """

    @staticmethod
    def _default(model_type: type[T], default_factory: Callable[[], T] | None) -> T:
        return default_factory() if default_factory is not None else model_type()

    @staticmethod
    def load_json(path: Path, model_type: type[T]) -> T:
        """
        Load and validate a model from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigFileInvalidError: If the file is empty, unreadable or not valid JSON
            ConfigValidationError: If the content fails model validation
        """
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Could not read {path}: {e}")
            raise ConfigFileInvalidError(str(path), f"Unreadable file: {e}") from e

        if not content.strip():
            raise ConfigFileInvalidError(str(path), "File is empty")

        try:
            model = model_type.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Validation error loading {model_type.__name__} from {path}: {e}")
            raise wrap_pydantic_error(e, str(path)) from e

        logger.debug(f"Loaded {model_type.__name__} from {path}")
        return model

    @staticmethod
    def save_json(
        data: BaseModel,
        path: Path,
        indent: int = 2,
        create_parents: bool = True,
        backup: bool = True,
    ) -> None:
        """
        Write `data` to `path`, keeping the previous content as a .bak file.

        Raises:
            OSError: If the file cannot be written
        """
        if create_parents:
            path.parent.mkdir(parents=True, exist_ok=True)

        if backup and path.exists():
            shutil.copy2(path, _sibling(path, ".bak"))
            logger.debug(f"Backed up {path}")

        temp_path = _sibling(path, ".tmp")
        try:
            temp_path.write_text(data.model_dump_json(indent=indent), encoding="utf-8")
            temp_path.replace(path)
        except OSError as e:
            logger.error(f"Could not save {type(data).__name__} to {path}: {e}")
            raise
        finally:
            temp_path.unlink(missing_ok=True)

        logger.debug(f"Saved {type(data).__name__} to {path}")

    @staticmethod
    def load_json_or_default(
        path: Path, model_type: type[T], default_factory: Callable[[], T] | None = None
    ) -> T:
        """Load a model, or return a default instance if the file is missing. Never writes."""
        try:
            return PydanticPersistence.load_json(path, model_type)
        except FileNotFoundError:
            logger.info(f"{path} does not exist, using default {model_type.__name__}")
            return PydanticPersistence._default(model_type, default_factory)

    @staticmethod
    def ensure_valid_or_create(
        path: Path,
        model_type: type[T],
        default_factory: Callable[[], T] | None = None,
        auto_save: bool = True,
    ) -> T:
        """
        Load a model, falling back to a default.

        A missing file is created from the default when `auto_save` is set.
        A file that fails to load is left as it is.
        """
        try:
            return PydanticPersistence.load_json(path, model_type)
        except FileNotFoundError:
            instance = PydanticPersistence._default(model_type, default_factory)
            if auto_save:
                PydanticPersistence.save_json(instance, path, backup=False)
                logger.info(f"Created {path} with default {model_type.__name__}")
            return instance
        except ConfigurationError as e:
            logger.error(f"Failed to load {path}: {e.user_message}")
            logger.warning(f"Using default {model_type.__name__}; {path} was not overwritten")
            return PydanticPersistence._default(model_type, default_factory)
