from __future__ import annotations

from fastapi import status


class CRMError(Exception):
    """Base error for failures that map onto an HTTP status and a user-facing message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(CRMError):
    """A required input field is missing or malformed. The caller must fix the request."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(CRMError):
    """The addressed record does not exist (anymore)."""

    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(CRMError):
    """No session, an expired session or bad credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED


class StoreError(CRMError):
    """Any other persistence failure. The message is opaque; details go to the log."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
