"""Typed exception hierarchy for the Fótons client.

Every error raised by this package derives from ``FotonsError`` so callers
at a component boundary can catch the whole family in one place.
"""

from __future__ import annotations

from typing import Optional


class FotonsError(Exception):
    """Base exception for all Biblioteca de Fótons errors."""


class ConfigError(FotonsError):
    """Raised when configuration data is missing or invalid."""


class ApiError(FotonsError):
    """Raised when the REST API answers with an error status."""

    def __init__(self, message: str = "API request failed", *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(ApiError):
    """Raised when the session is missing, expired or rejected."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, status_code=401)


class PageNotFoundError(ApiError):
    """Raised when a requested page does not exist."""

    def __init__(self, page_id: int | str):
        super().__init__(f"Page {page_id} not found", status_code=404)
        self.page_id = page_id


class ApiUnreachableError(ApiError):
    """Raised when the API cannot be reached at all."""

    def __init__(self, endpoint: str):
        super().__init__(f"API is not available at {endpoint}")
        self.endpoint = endpoint


class ImageValidationError(FotonsError):
    """Raised when a file is rejected before upload (type or size)."""


class UploadError(FotonsError):
    """Raised when the object storage upload fails."""

    def __init__(self, message: str = "Failed to upload image"):
        super().__init__(message)
