"""Time and calendar utilities."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from dentbook.core.config import settings

_WEEKDAYS_ES = (
    "lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo",
)
_MONTHS_ES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def clinic_now() -> datetime:
    """Current wall-clock time at the clinic."""
    return datetime.now(ZoneInfo(settings.clinic_timezone))


def clinic_today() -> date:
    """Today's calendar date in the clinic's timezone.

    Appointment dates are clinic-local, so "today" must never be taken
    from the server's own timezone.
    """
    return clinic_now().date()


def format_long_date(day: date) -> str:
    """Format a date the way patients read it, e.g. ``lunes, 10 de marzo de 2025``.

    Args:
        day: Calendar date

    Returns:
        Long-form Spanish date
    """
    weekday = _WEEKDAYS_ES[day.weekday()]
    month = _MONTHS_ES[day.month - 1]
    return f"{weekday}, {day.day} de {month} de {day.year}"


def parse_date(value: str) -> date:
    """Parse an ISO ``YYYY-MM-DD`` date string.

    Raises:
        ValueError: If the value is not a valid ISO date
    """
    return date.fromisoformat(value.strip())
