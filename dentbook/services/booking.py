"""Booking wizard orchestration.

Wraps the pure wizard state machine with the lookups it needs
(active catalog, availability, referral codes) and performs the final
submission.
"""

import logging
from dataclasses import replace
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.booking.policy import normalize_referral_code, validate_booking_request
from dentbook.booking.request import BookingRequest
from dentbook.booking.wizard import (
    BookingCreated,
    SelectDate,
    SlotTaken,
    Submit,
    WizardContext,
    WizardEvent,
    WizardState,
    transition,
)
from dentbook.core.config import settings
from dentbook.core.exceptions import (
    BookingValidationError,
    RepositoryUnavailableError,
    SlotAlreadyBookedError,
)
from dentbook.db.resilience import run_with_retry
from dentbook.models.appointment import Appointment
from dentbook.models.catalog import Location, Service
from dentbook.services.appointments import AppointmentService
from dentbook.services.availability import AvailabilityService
from dentbook.services.notifications import (
    ConfirmationNotice,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from dentbook.services.referral import ReferralCheck, ReferralValidator

logger = logging.getLogger(__name__)

INVALID_REFERRAL_MESSAGE = "The referral code is not valid"


class BookingFlowService:
    """Drives a wizard session against the store."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()
        self.appointments = AppointmentService(session)
        self.availability = AvailabilityService(session)
        self.referrals = ReferralValidator(session)

    async def build_context(self, today: date | None = None) -> WizardContext:
        """Collect the active branch and service ids."""

        async def load() -> tuple[list[str], list[str]]:
            locations = await self.session.execute(
                select(Location.id).where(Location.is_active == True)  # noqa: E712
            )
            services = await self.session.execute(
                select(Service.id).where(Service.is_active == True)  # noqa: E712
            )
            return list(locations.scalars().all()), list(services.scalars().all())

        location_ids, service_ids = await run_with_retry(
            self.session, load, "Catalog lookup"
        )
        return WizardContext(
            location_ids=frozenset(location_ids),
            service_ids=frozenset(service_ids),
            today=today,
        )

    async def apply(
        self,
        state: WizardState,
        event: WizardEvent,
        today: date | None = None,
    ) -> WizardState:
        """Apply an event, filling in availability when a date is chosen.

        Raises:
            WizardTransitionError: If the event is not allowed
            RepositoryUnavailableError: If the store keeps failing
        """
        context = await self.build_context(today)

        if isinstance(event, SelectDate) and state.request.location_id:
            booked = await self.availability.booked_times(
                state.request.location_id, event.appointment_date
            )
            event = replace(event, booked_times=frozenset(booked))

        return transition(state, event, context)

    async def submit(self, state: WizardState, today: date | None = None) -> WizardState:
        """Submit the contact step and store the appointment.

        Returns:
            ``submitted`` with the appointment id on success; the contact
            step with an error for a rejected referral code or request; or
            the time step with fresh availability if the slot was taken

        Raises:
            WizardTransitionError: If the wizard is not at the contact step
                or the request is incomplete
            RepositoryUnavailableError: If the store keeps failing
        """
        request = _drop_unentered_referral(state.request)
        state = replace(state, request=request)

        if request.referral_code:
            check = await self.referrals.classify(request.referral_code)
            if check is ReferralCheck.INVALID:
                return replace(state, error=INVALID_REFERRAL_MESSAGE)

        context = await self.build_context(today)
        submitted = transition(state, Submit(), context)

        try:
            appointment = await self.appointments.create(submitted.request, today=today)
        except SlotAlreadyBookedError:
            booked = await self._refresh_booked_times(submitted.request)
            return transition(submitted, SlotTaken(booked_times=booked), context)
        except BookingValidationError as exc:
            return replace(state, error=exc.message)

        await self.send_confirmation(appointment)
        return transition(submitted, BookingCreated(appointment_id=appointment.id), context)

    async def book(self, request: BookingRequest, today: date | None = None) -> Appointment:
        """Store an appointment outside the wizard and send its notice.

        Raises:
            BookingValidationError: If the request or its referral code is rejected
            SlotAlreadyBookedError: If another active appointment holds the slot
            RepositoryUnavailableError: If the store keeps failing
        """
        request = validate_booking_request(_drop_unentered_referral(request), today=today)
        if request.referral_code:
            check = await self.referrals.classify(request.referral_code)
            if check is ReferralCheck.INVALID:
                raise BookingValidationError(INVALID_REFERRAL_MESSAGE, field="referral_code")

        appointment = await self.appointments.create(request, today=today)
        await self.send_confirmation(appointment)
        return appointment

    async def send_confirmation(self, appointment: Appointment) -> None:
        """Hand the confirmation notice to the dispatcher.

        The appointment is already stored; a delivery failure is logged and
        does not undo the booking.
        """
        try:
            await self.dispatcher.dispatch(ConfirmationNotice.from_appointment(appointment))
        except Exception:
            logger.exception(
                "Failed to dispatch confirmation notice",
                extra={"appointment_id": appointment.id},
            )

    async def _refresh_booked_times(self, request: BookingRequest) -> frozenset[str]:
        # The contested time is booked whatever the lookup says
        taken = {request.appointment_time}
        try:
            taken |= await self.availability.booked_times(
                request.location_id, request.appointment_date
            )
        except RepositoryUnavailableError:
            logger.warning("Availability refresh after slot conflict failed")
        return frozenset(taken)


def _drop_unentered_referral(request: BookingRequest) -> BookingRequest:
    # Too short to be a code; book without one
    code = normalize_referral_code(request.referral_code)
    if code and len(code) < settings.referral_code_min_length:
        return request.with_changes(referral_code=None)
    return request
