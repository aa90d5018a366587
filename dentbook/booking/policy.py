"""Calendar policy for online booking.

Decides which dates can be booked and which times make up the daily slot
grid. Depends only on the clinic clock and static settings.
"""

from dataclasses import dataclass
from datetime import date
from functools import lru_cache

from email_validator import EmailNotValidError, validate_email

from dentbook.booking.request import BookingRequest
from dentbook.core.config import settings
from dentbook.core.exceptions import BookingValidationError
from dentbook.utils.time import clinic_today

@dataclass(frozen=True)
class SlotGrid:
    """The fixed daily grid of bookable times.

    Attributes:
        morning: Morning times in order ("09:00" ... "13:00")
        afternoon: Afternoon times in order ("14:00" ... "18:00")
    """

    morning: tuple[str, ...]
    afternoon: tuple[str, ...]

    @property
    def times(self) -> tuple[str, ...]:
        """All grid times, morning first."""
        return self.morning + self.afternoon

    def __contains__(self, value: object) -> bool:
        return value in self.morning or value in self.afternoon

    def __len__(self) -> int:
        return len(self.morning) + len(self.afternoon)


@lru_cache
def slot_grid() -> SlotGrid:
    """Return the process-wide slot grid built from settings."""
    return SlotGrid(
        morning=tuple(settings.morning_slots),
        afternoon=tuple(settings.afternoon_slots),
    )


def is_grid_time(value: str | None) -> bool:
    """Check whether a value is one of the grid's ``HH:MM`` times."""
    return value is not None and value in slot_grid()


def date_rejection_reason(day: date, today: date | None = None) -> str | None:
    """Explain why a date cannot be booked, or None if it can.

    Args:
        day: Requested calendar date (clinic-local)
        today: Override for the clinic's current date

    Returns:
        Human-readable reason, or None for a bookable date
    """
    if today is None:
        today = clinic_today()

    if day < today:
        return "Appointments cannot be booked on a past date"

    if day.weekday() == settings.closed_weekday:
        return "The clinic is closed on that day"

    return None


def is_bookable_date(day: date, today: date | None = None) -> bool:
    """Check if a date is open for booking.

    Examples:
        >>> is_bookable_date(date(2025, 3, 10), today=date(2025, 3, 1))
        True
        >>> is_bookable_date(date(2025, 3, 9), today=date(2025, 3, 1))  # Sunday
        False
    """
    return date_rejection_reason(day, today) is None


def validate_booking_request(
    request: BookingRequest,
    today: date | None = None,
) -> BookingRequest:
    """Check a booking request before it reaches the store.

    Field rules only: whether the location and service exist is checked by
    the appointment service.

    Args:
        request: Request assembled by the wizard or the booking API
        today: Override for the clinic's current date

    Returns:
        The request with contact fields trimmed and the referral code
        uppercased (or None when blank)

    Raises:
        BookingValidationError: On the first rule the request breaks
    """
    if not request.location_id:
        raise BookingValidationError("A branch must be selected", field="location_id")
    if not request.service_id:
        raise BookingValidationError("A service must be selected", field="service_id")

    if request.appointment_date is None:
        raise BookingValidationError("A date must be selected", field="appointment_date")
    reason = date_rejection_reason(request.appointment_date, today)
    if reason:
        raise BookingValidationError(reason, field="appointment_date")

    if not is_grid_time(request.appointment_time):
        raise BookingValidationError(
            "The selected time is not a valid appointment slot",
            field="appointment_time",
        )

    name = request.patient_name.strip()
    phone = request.patient_phone.strip()
    email = request.patient_email.strip()
    if not name:
        raise BookingValidationError("Name is required", field="patient_name")
    if not phone:
        raise BookingValidationError("Phone is required", field="patient_phone")
    if not email:
        raise BookingValidationError("Email is required", field="patient_email")
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise BookingValidationError(
            "Email address is not valid", field="patient_email"
        ) from exc

    referral_code = normalize_referral_code(request.referral_code)
    if referral_code and len(referral_code) < settings.referral_code_min_length:
        raise BookingValidationError(
            f"Referral codes have at least {settings.referral_code_min_length} characters",
            field="referral_code",
        )

    return request.with_changes(
        patient_name=name,
        patient_phone=phone,
        patient_email=email,
        referral_code=referral_code,
    )


def normalize_referral_code(code: str | None) -> str | None:
    """Trim and uppercase a referral code; blank becomes None."""
    if code is None:
        return None
    code = code.strip().upper()
    return code or None
