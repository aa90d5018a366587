"""Scheduling errors surfaced to API callers.

Each error carries the HTTP status it maps to; the handlers registered in
``dentbook.main`` turn them into JSON responses.
"""


class SchedulingError(Exception):
    """Base class for all scheduling errors."""

    status_code = 400
    default_message = "Scheduling error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BookingValidationError(SchedulingError):
    """A booking request failed a field or calendar rule."""

    status_code = 422
    default_message = "Invalid booking request"

    def __init__(self, message: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class SlotAlreadyBookedError(SchedulingError):
    """Another active appointment already holds the slot."""

    status_code = 409
    default_message = "The selected time is no longer available"


class TokenNotFoundError(SchedulingError):
    """No appointment matches the confirmation token."""

    status_code = 404
    default_message = "Appointment not found"


class AppointmentNotFoundError(SchedulingError):
    """No appointment matches the given id."""

    status_code = 404
    default_message = "Appointment not found"


class RepositoryUnavailableError(SchedulingError):
    """The backing store failed or timed out after retries."""

    status_code = 503
    default_message = "Scheduling service temporarily unavailable"
