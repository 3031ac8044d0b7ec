"""Exception hierarchy for the Sahha SDK."""

from __future__ import annotations


class SahhaError(Exception):
    """Base exception for all Sahha API errors."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class AuthenticationError(SahhaError):
    """Raised on 401 or 403 responses."""


class NotFoundError(SahhaError):
    """Raised on 404 responses."""


class ValidationError(SahhaError):
    """Raised on 400 or 422 responses."""
