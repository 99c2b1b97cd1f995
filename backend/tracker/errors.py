"""Error taxonomy shared by the store, the services and the HTTP boundary."""

from __future__ import annotations

from typing import Any

GENERIC_MESSAGE = "Something went wrong. Please try again."


class TrackerError(Exception):
    status_code = 500
    code = "error"

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    @property
    def public_message(self) -> str:
        return self.message


class ValidationError(TrackerError):
    status_code = 400
    code = "validation_error"


class DuplicateError(TrackerError):
    status_code = 409
    code = "duplicate"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "This job application already exists. Please edit the existing entry instead.")


class StoreError(TrackerError):
    """Opaque backend failure. The detailed message is for logs only."""

    status_code = 500
    code = "store_error"

    @property
    def public_message(self) -> str:
        return GENERIC_MESSAGE


class NotFoundError(StoreError):
    status_code = 404
    code = "not_found"

    @property
    def public_message(self) -> str:
        return self.message


class AuthError(TrackerError):
    status_code = 401
    code = "auth_error"

    @property
    def public_message(self) -> str:
        return "Authentication failed. Please sign in again."
