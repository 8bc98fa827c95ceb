"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    kind = "internal_error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    kind = "not_found"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    kind = "unauthorized"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    kind = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ConflictException(AppException):
    """Conflict exception."""

    kind = "conflict"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class SlotUnavailableException(ConflictException):
    """Requested interval overlaps an active appointment."""

    kind = "slot_unavailable"

    def __init__(self, message: str = "Time slot is not available"):
        """Initialize with 409 status code."""
        super().__init__(message)


class InvalidTransitionException(ConflictException):
    """Appointment status change not allowed from the current state."""

    kind = "invalid_transition"

    def __init__(self, message: str = "Invalid status transition"):
        """Initialize with 409 status code."""
        super().__init__(message)


class ValidationException(AppException):
    """Validation error exception.

    Carries one entry per offending field so callers can report all of them
    at once.
    """

    kind = "validation_error"

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[dict[str, Any]] | None = None,
    ):
        """Initialize with 422 status code."""
        self.errors = errors or []
        super().__init__(message, status_code=422)


class PersistenceFailureException(AppException):
    """Storage layer failure, surfaced without interpretation."""

    kind = "persistence_failure"

    def __init__(self, message: str = "Storage operation failed"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    kind = "rate_limited"

    def __init__(self, message: str = "Rate limit exceeded"):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429)
