"""Status-coded error kinds raised by services and rendered by the API layer.

Services raise these directly; ``account_service.api.errors`` turns them
into the uniform ``{statusCode, data, message, success, errors}`` envelope.
"""

from typing import Any, List, Optional


class ApiError(Exception):
    """Base error carrying the HTTP status the boundary should answer with."""

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(ApiError):
    """Missing or blank required input."""

    status_code = 400
    default_message = "Invalid request"


class UnauthorizedError(ApiError):
    """Bad credentials or a missing, expired, forged or rotated-out token."""

    status_code = 401
    default_message = "Unauthorized request"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    """Unique username/email collision."""

    status_code = 409
    default_message = "Resource already exists"


class InternalError(ApiError):
    status_code = 500
    default_message = "Something went wrong"
