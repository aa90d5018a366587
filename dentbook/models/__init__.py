"""Database models for the scheduling engine."""

from dentbook.models.appointment import ACTIVE_SLOT_INDEX, Appointment, AppointmentStatus
from dentbook.models.catalog import Location, Service
from dentbook.models.referral import ReferralCode

__all__ = [
    # Catalog
    "Location",
    "Service",
    # Appointments
    "Appointment",
    "AppointmentStatus",
    "ACTIVE_SLOT_INDEX",
    # Referrals
    "ReferralCode",
]
