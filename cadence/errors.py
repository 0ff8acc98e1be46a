"""Structured error types for tool responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class ErrorResponse:
    """Serializable error payload returned by tool handlers."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class McpError(RuntimeError):
    """Exception carrying a structured error response."""

    def __init__(
        self, code: str, message: str, details: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.error = ErrorResponse(
            code=code, message=message, details=dict(details or {})
        )


class TaskAddressError(McpError):
    """Raised when a ``path:line`` address cannot be applied to a note.

    Subclasses fix the error code so callers can tell apart a missing note,
    a line outside the file, and a line that is no longer a task.
    """

    code = "INVALID_ADDRESS"

    def __init__(self, message: str, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(self.code, message, details)


class NoteNotFoundError(TaskAddressError):
    code = "NOTE_NOT_FOUND"


class LineOutOfRangeError(TaskAddressError):
    code = "LINE_OUT_OF_RANGE"


class NotATaskError(TaskAddressError):
    code = "NOT_A_TASK"


class StaleTaskError(TaskAddressError):
    code = "STALE_TASK"


def success_response(payload: dict[str, Any]) -> dict[str, Any]:
    """Wrap a successful tool response in the standard envelope."""
    return {"ok": True, "data": payload}


def error_response(error: ErrorResponse) -> dict[str, Any]:
    """Wrap an error response in the standard envelope."""
    return {"ok": False, "error": error.to_dict()}
