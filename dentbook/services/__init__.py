"""Business logic services."""

from dentbook.services.appointments import AppointmentService
from dentbook.services.availability import AvailabilityService
from dentbook.services.booking import BookingFlowService
from dentbook.services.confirmation import ConfirmationService, RedemptionAction
from dentbook.services.notifications import (
    ConfirmationNotice,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    ReminderNotice,
)
from dentbook.services.referral import ReferralCheck, ReferralValidator
from dentbook.services.reminders import ReminderService

__all__ = [
    "AppointmentService",
    "AvailabilityService",
    "BookingFlowService",
    "ConfirmationService",
    "RedemptionAction",
    "ConfirmationNotice",
    "ReminderNotice",
    "NotificationDispatcher",
    "LoggingNotificationDispatcher",
    "ReferralCheck",
    "ReferralValidator",
    "ReminderService",
]
