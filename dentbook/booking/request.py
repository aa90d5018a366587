"""The booking request threaded through every wizard step."""

from dataclasses import asdict, dataclass, replace
from datetime import date
from typing import Any


@dataclass(frozen=True)
class BookingRequest:
    """Everything the patient has chosen or typed so far.

    Immutable; each wizard transition returns a new instance. Fields stay
    ``None``/empty until the step that fills them.
    """

    location_id: str | None = None
    service_id: str | None = None
    appointment_date: date | None = None
    appointment_time: str | None = None
    patient_name: str = ""
    patient_phone: str = ""
    patient_email: str = ""
    referral_code: str | None = None

    def with_changes(self, **changes: Any) -> "BookingRequest":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible primitives."""
        data = asdict(self)
        if self.appointment_date is not None:
            data["appointment_date"] = self.appointment_date.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BookingRequest":
        """Rebuild a request from ``to_dict`` output."""
        values = {key: data.get(key) for key in cls.__dataclass_fields__ if key in data}
        raw_date = values.get("appointment_date")
        if isinstance(raw_date, str):
            values["appointment_date"] = date.fromisoformat(raw_date)
        for key in ("patient_name", "patient_phone", "patient_email"):
            if values.get(key) is None:
                values.pop(key, None)
        return cls(**values)
