from __future__ import annotations

from typing import Any


class DirectoryError(Exception):
    status_code = 500

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(DirectoryError):
    """Malformed or out-of-range input; nothing was written."""

    status_code = 400


class ConflictError(DirectoryError):
    """An institution with the same name already exists in this location."""

    status_code = 409


class NotFoundError(DirectoryError):
    status_code = 404


class StorageError(DirectoryError):
    """Connection or query failure. The message shown to callers stays generic."""

    status_code = 500
