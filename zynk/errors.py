"""Service error taxonomy.

Services raise these; the HTTP layer maps `kind` to a status code and renders
``{"success": false, "message": ..., **extra}``.
"""

from datetime import datetime
from typing import Any


class ServiceError(Exception):
    kind = "internal"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class BadInputError(ServiceError):
    kind = "bad_input"
    default_message = "Invalid input"


class UnauthorizedError(ServiceError):
    kind = "unauthorized"
    default_message = "Not authenticated"


class ForbiddenError(ServiceError):
    kind = "forbidden"
    default_message = "Access denied"


class NotFoundError(ServiceError):
    kind = "not_found"
    default_message = "Resource not found"


class ConflictError(ServiceError):
    kind = "conflict"
    default_message = "Conflict"


class LockedError(ServiceError):
    """Cutoff window active. `next_available_at` is None when the lock never lifts."""

    kind = "locked"
    default_message = "Resource is locked"

    def __init__(
        self,
        message: str | None = None,
        next_available_at: datetime | None = None,
        **extra: Any,
    ):
        super().__init__(message, **extra)
        self.next_available_at = next_available_at


class InternalError(ServiceError):
    kind = "internal"


STATUS_CODES = {
    "bad_input": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "locked": 423,
    "internal": 500,
}
