"""
Centralized error handling utilities.

Layered approach used across the orchestration core:

1. **Custom Exceptions** - typed errors with user/technical messages
2. **Error Context** - log technical details, surface friendly messages
3. **Error Isolation** - one failing system or handler never stops the others

## Quick Reference

| Scenario | Use This |
|----------|----------|
| Settings file is not valid JSON | `ConfigFileInvalidError(path, "trailing comma")` |
| Settings value rejected by the model | `wrap_pydantic_error(e, path)` |
| Tear down every system, report all failures | `collector = collect_errors("destroy systems")` |
| Critical section with logging | `with ErrorContext("load settings"): ...` |
| Log, notify and fall back | `@handle_errors(operation_name="save", re_raise=False)` |

## Example: Teardown

```python
collector = collect_errors("destroy systems")
for record in reversed(records):
    with collector.try_operation(f"destroy {record.name}"):
        record.instance.destroy()

if collector.has_errors:
    logger.error(collector.get_summary())
```
"""

import logging
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Iterator, Optional

from .base import StarryNightError
from .config import ConfigFileInvalidError, ConfigValidationError

logger = logging.getLogger(__name__)


def _describe(error: BaseException) -> tuple[str, str]:
    """Return (log message, user message) for any exception."""
    if isinstance(error, StarryNightError):
        return error.technical_message, error.get_full_message()
    return str(error), f"Error: {error}"


def handle_errors(
    *,
    operation_name: str,
    user_notification: Optional[Callable[[str], None]] = None,
    fallback_value: Any = None,
    re_raise: bool = True,
    log_level: int = logging.ERROR
) -> Callable:
    """
    Decorator that logs failures of the wrapped call and optionally notifies the user.

    Args:
        operation_name: Used in the log line, e.g. "save settings"
        user_notification: Called with a display message on failure
        fallback_value: Returned instead of raising when re_raise is False
        re_raise: Re-raise after logging and notifying
        log_level: Level of the log record
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                technical, display = _describe(e)
                typed = isinstance(e, StarryNightError)
                logger.log(
                    log_level,
                    f"Failed to {operation_name}: {technical}" if typed
                    else f"Unexpected error during {operation_name}: {technical}",
                    exc_info=not typed,
                )
                if user_notification:
                    user_notification(display)
                if re_raise:
                    raise
                return fallback_value

        return wrapper
    return decorator


class ErrorContext:
    """
    Context manager that logs a failing block and records the error.

    Example:
        ```python
        with ErrorContext("load settings", re_raise=False) as ctx:
            settings = PydanticPersistence.load_json(path, UserSettings)

        if ctx.error:
            settings = UserSettings()
        ```
    """

    def __init__(
        self,
        operation: str,
        logger_instance: Optional[logging.Logger] = None,
        re_raise: bool = True
    ):
        self.operation = operation
        self.logger = logger_instance or logger
        self.re_raise = re_raise
        self.error: Optional[BaseException] = None

    def __enter__(self):
        self.logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is None:
            self.logger.debug(f"Completed: {self.operation}")
            return False

        self.error = exc_val
        if not isinstance(exc_val, Exception):
            # Cancellation and interpreter exits always propagate
            return False
        technical, _ = _describe(exc_val)
        self.logger.error(
            f"Failed to {self.operation}: {technical}",
            exc_info=not isinstance(exc_val, StarryNightError),
        )
        return not self.re_raise


def _field_path(error: dict) -> str:
    return ".".join(str(part) for part in error.get("loc", ())) or "unknown"


def wrap_pydantic_error(error: Exception, file_path: str) -> StarryNightError:
    """
    Map a pydantic error raised while loading `file_path` to a configuration error.

    Syntax errors become ConfigFileInvalidError. Value errors become a
    ConfigValidationError naming the field, or listing every field when
    more than one failed.
    """
    from pydantic import ValidationError

    if not isinstance(error, ValidationError):
        return ConfigValidationError(field="unknown", value=None, error_msg=str(error), file_path=file_path)

    errors = error.errors()
    syntax = next((e for e in errors if e.get("type") == "json_invalid"), None)
    if syntax is not None:
        return ConfigFileInvalidError(file_path, syntax.get("msg", str(error)))

    if len(errors) == 1:
        only = errors[0]
        return ConfigValidationError(
            field=_field_path(only),
            value=only.get("input"),
            error_msg=only.get("msg", "validation failed"),
            file_path=file_path
        )

    listing = "\n".join(f"  - {_field_path(e)}: {e.get('msg', 'validation failed')}" for e in errors)
    return ConfigValidationError(
        field="multiple fields",
        value=None,
        error_msg=f"{len(errors)} validation errors:\n{listing}",
        file_path=file_path
    )


def format_error_for_display(error: Exception) -> tuple[str, Optional[str]]:
    """Return (message, recovery hint or None) for showing `error` to a user."""
    if isinstance(error, StarryNightError):
        return error.user_message, error.recovery_hint
    return f"{type(error).__name__}: {error}", None


def collect_errors(operation: str) -> "ErrorCollector":
    """Create an error collector for a batch operation."""
    return ErrorCollector(operation)


class ErrorCollector:
    """
    Runs a batch of sub-operations to completion, keeping every failure.

    Used for teardown, where one system failing to destroy must not stop
    the remaining systems from being destroyed.
    """

    def __init__(self, operation: str):
        self.operation = operation
        self.errors: list[tuple[str, Exception]] = []
        self.success_count = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @contextmanager
    def try_operation(self, sub_operation: str) -> Iterator[None]:
        """Record an Exception raised in the block instead of propagating it."""
        try:
            yield
        except Exception as e:
            logger.error(f"{self.operation}: {sub_operation} failed: {e}", exc_info=True)
            self.errors.append((sub_operation, e))
        else:
            self.success_count += 1

    def get_summary(self) -> str:
        if not self.errors:
            return f"{self.operation}: all {self.success_count} operations succeeded"

        total = self.error_count + self.success_count
        lines = [f"{self.operation}: {self.error_count} of {total} operations failed:"]
        for sub_op, error in self.errors:
            message = error.user_message if isinstance(error, StarryNightError) else str(error)
            lines.append(f"  - {sub_op}: {message}")
        return "\n".join(lines)
