"""Error taxonomy for notelinker.

Every error raised on purpose by the library is a NoteLinkerError carrying a
stable ErrorCode, so the CLI can render it either as a human-readable line or
as JSON (``--json-errors``). None of these are fatal to the process.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for programmatic consumers."""

    NO_ACTIVE_DOCUMENT = "NO_ACTIVE_DOCUMENT"
    IO_FAILURE = "IO_FAILURE"
    INVALID_SELECTION = "INVALID_SELECTION"
    CONFIG_ERROR = "CONFIG_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class NoteLinkerError(Exception):
    """A recoverable error with a code, a message and optional details."""

    def __init__(self, code: ErrorCode, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def no_active_document(cls, path: str | None = None) -> NoteLinkerError:
        if path:
            return cls(
                ErrorCode.NO_ACTIVE_DOCUMENT,
                f"No active note found: {path}",
                {"path": path, "suggestion": "Pass a markdown note that exists in the vault"},
            )
        return cls(ErrorCode.NO_ACTIVE_DOCUMENT, "No active note found.")

    @classmethod
    def io_failure(cls, path: str, error: Exception, action: str = "read") -> NoteLinkerError:
        return cls(
            ErrorCode.IO_FAILURE,
            f"Failed to {action} {path}: {error}",
            {"path": path, "action": action},
        )

    @classmethod
    def invalid_selection(cls, message: str) -> NoteLinkerError:
        return cls(ErrorCode.INVALID_SELECTION, message)


def format_error_json(code: ErrorCode | str, message: str, details: dict[str, Any] | None = None) -> str:
    """Format an error that did not originate as a NoteLinkerError."""
    value = code.value if isinstance(code, ErrorCode) else code
    payload: dict[str, Any] = {"error": value, "message": message}
    if details:
        payload["details"] = details
    return json.dumps(payload, default=str)
