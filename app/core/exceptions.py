"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the exception for an error response body."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
        }


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception.

    Scheduling overlaps carry the list of conflicting bookings so the caller
    can pick another slot.
    """

    def __init__(self, message: str = "Conflict", conflicts: list[Any] | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)
        self.conflicts = conflicts or []

    def to_dict(self) -> dict[str, Any]:
        """Include conflict descriptors in the response body."""
        body = super().to_dict()
        body["conflicts"] = [
            c.model_dump(mode="json") if hasattr(c, "model_dump") else c for c in self.conflicts
        ]
        return body


class ValidationException(AppException):
    """Validation error exception with per-field messages."""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: dict[str, list[str]] | None = None,
    ):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)
        self.field_errors = field_errors or {}

    def to_dict(self) -> dict[str, Any]:
        """Include field errors in the response body."""
        body = super().to_dict()
        body["field_errors"] = self.field_errors
        return body


class TimeCodecError(ValueError):
    """Base error for minute/wall-clock conversions."""


class OutOfRangeError(TimeCodecError):
    """Minutes value outside a single day."""


class InvalidFormatError(TimeCodecError):
    """Value is not a parseable wall-clock time."""
