"""
Error taxonomy for the message relay.

Each error carries the HTTP status it is reported with; the handlers in
main.py turn them into {"success": false, "message": ...} responses.
"""

from fastapi import status


class MessageServiceError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(MessageServiceError):
    """Server is missing configuration needed for data operations."""


class ValidationError(MessageServiceError):
    """Request is missing required fields or carries unusable values."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(MessageServiceError):
    """Inbox or message does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class StoreError(MessageServiceError):
    """Remote content store failed or could not be reached."""


class ConflictError(StoreError):
    """Blob changed since its revision was read; the write was rejected."""

    status_code = status.HTTP_409_CONFLICT
