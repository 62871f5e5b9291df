"""
Error taxonomy for inbound operations.

Every failure returned synchronously to a caller is a CommandError with
a stable ``code`` so that any transport (CLI, IPC, HTTP) can render it
without knowing the concrete class.
"""

from __future__ import annotations


class CommandError(Exception):
    """Base class for errors surfaced to callers of the core."""

    code = "InternalError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ValidationError(CommandError):
    """Bad caller input: empty prompt, selection-count violation, bad config."""

    code = "ValidationError"


class NotFoundError(CommandError):
    """Unknown provider, unknown submission, or missing configuration."""

    code = "NotFound"


class InternalError(CommandError):
    """State-machine misuse or another fault inside the core."""

    code = "InternalError"
