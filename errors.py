"""
Application errors.

Every operation reports failure by raising one of these; the HTTP layer turns
them into ``{"success": false, "message": ..., "error": <kind>}`` with the
status code bound to the kind.
"""
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    INVALID_RANGE = "InvalidRange"
    PAST_DATE = "PastDate"
    NOT_FOUND = "NotFound"
    UNAVAILABLE = "Unavailable"
    CONFLICT = "Conflict"
    UNAUTHENTICATED = "Unauthenticated"
    UNAUTHORIZED = "Unauthorized"
    ALREADY_CANCELLED = "AlreadyCancelled"
    INTERNAL = "Internal"


STATUS_CODES = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.INVALID_RANGE: 400,
    ErrorKind.PAST_DATE: 400,
    ErrorKind.UNAVAILABLE: 400,
    ErrorKind.ALREADY_CANCELLED: 400,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class AppError(Exception):
    """Base class for all errors reported to API callers."""

    kind = ErrorKind.INTERNAL
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "error": self.kind.value}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"


class InvalidInput(AppError):
    kind = ErrorKind.INVALID_INPUT
    default_message = "Invalid input"


class InvalidRange(AppError):
    kind = ErrorKind.INVALID_RANGE
    default_message = "Check-out date must be after check-in date"


class PastDate(AppError):
    kind = ErrorKind.PAST_DATE
    default_message = "Check-in date cannot be in the past"


class NotFound(AppError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"


class Unavailable(AppError):
    kind = ErrorKind.UNAVAILABLE
    default_message = "Room is not available for booking"


class Conflict(AppError):
    kind = ErrorKind.CONFLICT
    default_message = "Room is not available for selected dates"


class Unauthenticated(AppError):
    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Authentication required"


class Unauthorized(AppError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Access denied"


class AlreadyCancelled(AppError):
    kind = ErrorKind.ALREADY_CANCELLED
    default_message = "Booking is already cancelled"


class Internal(AppError):
    kind = ErrorKind.INTERNAL
