"""Booking module for the calendar policy and the booking wizard."""

from dentbook.booking.policy import (
    SlotGrid,
    is_bookable_date,
    is_grid_time,
    slot_grid,
    validate_booking_request,
)
from dentbook.booking.request import BookingRequest

__all__ = [
    "BookingRequest",
    "SlotGrid",
    "is_bookable_date",
    "is_grid_time",
    "slot_grid",
    "validate_booking_request",
]
