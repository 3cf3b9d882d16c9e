# shiftwatch/services/errors.py
from __future__ import annotations

from http import HTTPStatus


class SchedulingError(Exception):
    """
    Base class for every error raised by the scheduling services.

    Each subclass carries a stable machine-readable `code` and the HTTP status
    the transport layer should answer with. The message is safe to show to
    callers.
    """

    code: str = "SCHEDULING_ERROR"
    status_code: int = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message()
        super().__init__(self.message)

    @classmethod
    def default_message(cls) -> str:
        return cls.__name__


class ScheduleNotFound(SchedulingError):
    code = "SCHEDULE_NOT_FOUND"
    status_code = HTTPStatus.NOT_FOUND

    @classmethod
    def default_message(cls) -> str:
        return "Schedule not found."


class UserNotFound(SchedulingError):
    code = "USER_NOT_FOUND"
    status_code = HTTPStatus.NOT_FOUND

    @classmethod
    def default_message(cls) -> str:
        return "User not found."


class BookingNotFound(SchedulingError):
    code = "BOOKING_NOT_FOUND"
    status_code = HTTPStatus.NOT_FOUND

    @classmethod
    def default_message(cls) -> str:
        return "Booking not found."


class RecurringAssignmentNotFound(SchedulingError):
    code = "RECURRING_ASSIGNMENT_NOT_FOUND"
    status_code = HTTPStatus.NOT_FOUND

    @classmethod
    def default_message(cls) -> str:
        return "Recurring assignment not found."


class ShiftTimeInvalid(SchedulingError):
    """The requested start is not an occurrence of the schedule."""

    code = "SHIFT_TIME_INVALID"
    status_code = HTTPStatus.BAD_REQUEST

    @classmethod
    def default_message(cls) -> str:
        return "Requested shift time is not a valid occurrence of the schedule."


class BookingConflict(SchedulingError):
    """Another booking already holds the same (schedule, start) slot."""

    code = "BOOKING_CONFLICT"
    status_code = HTTPStatus.CONFLICT

    @classmethod
    def default_message(cls) -> str:
        return "This shift slot is already booked."


class ForbiddenUpdate(SchedulingError):
    code = "FORBIDDEN"
    status_code = HTTPStatus.FORBIDDEN

    @classmethod
    def default_message(cls) -> str:
        return "You are not allowed to modify this booking."


class BookingCannotBeCancelled(SchedulingError):
    code = "BOOKING_NOT_CANCELLABLE"
    status_code = HTTPStatus.BAD_REQUEST

    @classmethod
    def default_message(cls) -> str:
        return "Booking can no longer be cancelled."


class ValidationFailed(SchedulingError):
    """Malformed input detected before any store access."""

    code = "VALIDATION_ERROR"
    status_code = HTTPStatus.UNPROCESSABLE_ENTITY

    @classmethod
    def default_message(cls) -> str:
        return "Invalid request."


class InternalServiceError(SchedulingError):
    """
    Unexpected store failure.

    The message is fixed; the underlying cause is only logged.
    """

    code = "INTERNAL_SERVER_ERROR"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None) -> None:
        super().__init__(None)

    @classmethod
    def default_message(cls) -> str:
        return "Internal server error."
