"""
Shared exceptions.

Every error raised on purpose by the service derives from ``AppError`` and
carries the HTTP status it is rendered with.
"""

from __future__ import annotations

from typing import Any, Optional

DEFAULT_ERROR_MESSAGE = "Failed to fetch data"


class AppError(Exception):
    status_code: int = 500

    def __init__(self, message: str = DEFAULT_ERROR_MESSAGE, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ContactValidationError(AppError):
    """Contact data rejected before it reaches the provider."""


class MissingFileError(AppError):
    status_code = 400

    def __init__(self, message: str = "No file uploaded", details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message=message, details=details)


class CSVFormatError(AppError):
    status_code = 400
