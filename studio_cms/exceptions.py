"""
Domain exceptions for the Studio CMS API.

Every error raised by services carries its HTTP status, a short error title
and a human-readable detail. The handler registered in main.py turns them
into JSON responses of the form {"error": ..., "detail": ...}.
"""
from typing import Any, Optional


class StudioCMSError(Exception):
    """Base class for all expected API errors."""

    status_code: int = 500
    error: str = "Request failed"

    def __init__(self, detail: Any = None, error: Optional[str] = None):
        self.detail = detail if detail is not None else self.error
        if error:
            self.error = error
        super().__init__(str(self.detail))


class ValidationError(StudioCMSError):
    """Malformed input: bad region code, reorder mismatch, cap exceeded."""

    status_code = 400
    error = "Validation error"


class AuthenticationError(StudioCMSError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    error = "Unauthorized"


class AuthorizationError(StudioCMSError):
    """Authenticated, but not allowed to act on this region or endpoint."""

    status_code = 403
    error = "Access denied"


class NotFoundError(StudioCMSError):
    status_code = 404
    error = "Not found"


class ConflictError(StudioCMSError):
    status_code = 409
    error = "Conflict"


class StorageError(StudioCMSError):
    """Object storage put/delete/download failed."""

    status_code = 502
    error = "Storage operation failed"


class TransientStoreError(StudioCMSError):
    """Database or batch failure. Surfaced as a generic 500, never retried."""

    status_code = 500
    error = "Database operation failed"
