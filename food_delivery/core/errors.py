"""
Service Error Taxonomy

Every failure the API reports on purpose is a ``ServiceError`` subclass.
The FastAPI exception handlers in ``food_delivery.main`` render them as
``{"success": false, "error": <message>}`` with the matching status code.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequest(ServiceError):
    """Missing or malformed request fields."""
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(ServiceError):
    """Missing/invalid bearer token or admin key."""
    status_code = 401
    default_message = "Authorization required"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class InvalidStatus(ServiceError):
    """Status value outside the allowed set, or a forbidden transition."""
    status_code = 400
    default_message = "Invalid status"


class StorageUnavailable(ServiceError):
    """
    The durable store is unreachable.

    Raised by the persistence gateway. Callers either switch to their
    fallback path or let it surface as 503.
    """
    status_code = 503
    default_message = "Database unavailable"


class StorageError(ServiceError):
    """The store is reachable but failed the operation for another reason."""
    status_code = 500
    default_message = "Storage error"
