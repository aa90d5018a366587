"""Appointment model.

One row per booking request. The partial unique index
``uq_appointments_active_slot`` allows at most one non-cancelled
appointment per (location, date, time); it is the only guard against
double booking.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from dentbook.db.base import Base, TimestampMixin

ACTIVE_SLOT_INDEX = "uq_appointments_active_slot"


class AppointmentStatus(str, Enum):
    """Status of an appointment."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Appointment(Base, TimestampMixin):
    """A reserved (location, date, time) slot and the patient holding it."""

    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            ACTIVE_SLOT_INDEX,
            "location_id",
            "appointment_date",
            "appointment_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    location_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Denormalized so notices and staff lists survive catalog renames
    location_name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    service_id: Mapped[str] = mapped_column(
        String(50),
        ForeignKey("services.id", ondelete="RESTRICT"),
        nullable=False,
    )
    service_name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    # Clinic-local calendar date and "HH:MM" grid time
    appointment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    appointment_time: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
    )
    # Patient contact
    patient_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    patient_phone: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    patient_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    # Stored uppercase
    referral_code: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        String(20),
        default=AppointmentStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    # Capability for the confirm/cancel email links
    confirmation_token: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Cancellation tracking
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # "patient" for link redemptions, the staff subject otherwise
    cancelled_by: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_active(self) -> bool:
        """Whether the appointment still holds its slot."""
        return self.status != AppointmentStatus.CANCELLED

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.location_id} {self.appointment_date} "
            f"{self.appointment_time} {self.status}>"
        )
