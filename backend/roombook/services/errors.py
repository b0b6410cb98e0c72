"""Business errors raised by the booking services.

Each error carries the HTTP status the API maps it to and a short ``kind``
so clients can tell input problems from scheduling conflicts and ownership
failures without parsing messages.
"""

from __future__ import annotations

from http import HTTPStatus


class BookingError(Exception):
    status_code: int = HTTPStatus.BAD_REQUEST
    kind: str = "booking_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class NotFoundError(BookingError):
    status_code = HTTPStatus.NOT_FOUND
    kind = "not_found"


class ForbiddenError(BookingError):
    status_code = HTTPStatus.FORBIDDEN
    kind = "forbidden"


class InvalidTimeError(BookingError):
    kind = "invalid_time"


class InvalidDurationError(BookingError):
    kind = "invalid_duration"


class CapacityExceededError(BookingError):
    kind = "capacity_exceeded"


class OperatingHoursError(BookingError):
    kind = "operating_hours_violation"


class MissingReasonError(BookingError):
    kind = "missing_reason"


class ConflictError(BookingError):
    status_code = HTTPStatus.CONFLICT
    kind = "conflict"


class InvalidStateError(BookingError):
    kind = "invalid_state"


class TooLateError(BookingError):
    kind = "too_late"


class TooEarlyError(BookingError):
    kind = "too_early"


class ExpiredError(BookingError):
    kind = "expired"
