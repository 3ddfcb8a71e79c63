"""Root of the StarryNight error hierarchy.

Errors carry two renderings: a short `user_message` suitable for the CLI
or a notification, and a `technical_message` that goes to the log. A
`recovery_hint` is appended by `get_full_message()` when present.

Configuration errors are never `recoverable`. Lifecycle errors are
recoverable once the coordinator has been destroyed.
"""

from typing import Optional


class StarryNightError(Exception):
    """
    Base exception for everything raised by the orchestration core.

    Attributes:
        user_message: One-line description shown to users
        technical_message: Log-oriented description (falls back to user_message)
        recoverable: Whether retrying the operation can succeed
        recovery_hint: What the user can do about it, if anything
    """

    def __init__(
        self,
        user_message: str,
        technical_message: Optional[str] = None,
        recoverable: bool = False,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(user_message)
        self.user_message = user_message
        self.technical_message = technical_message or user_message
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint

    def __str__(self) -> str:
        return self.user_message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.user_message!r})"

    def get_full_message(self) -> str:
        """User message followed by the recovery hint, if there is one."""
        if not self.recovery_hint:
            return self.user_message
        return f"{self.user_message}\n\nSuggestion: {self.recovery_hint}"
