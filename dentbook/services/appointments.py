"""Appointment storage.

Creating an appointment is a single insert; the partial unique index
``uq_appointments_active_slot`` arbitrates between concurrent requests for
the same slot. There is no read-before-write availability check here.
"""

import logging
from datetime import date
from typing import Sequence
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.booking.policy import validate_booking_request
from dentbook.booking.request import BookingRequest
from dentbook.core.exceptions import (
    AppointmentNotFoundError,
    BookingValidationError,
    SlotAlreadyBookedError,
)
from dentbook.core.logging import audit_logger
from dentbook.core.security import generate_confirmation_token, token_fingerprint
from dentbook.db.base import utc_now
from dentbook.db.resilience import run_with_retry
from dentbook.models.appointment import ACTIVE_SLOT_INDEX, Appointment, AppointmentStatus
from dentbook.models.catalog import Location, Service

logger = logging.getLogger(__name__)

# SQLite names the columns instead of the index in its constraint message
_SQLITE_SLOT_COLUMNS = (
    "appointments.location_id, appointments.appointment_date, "
    "appointments.appointment_time"
)


def is_slot_conflict(exc: IntegrityError) -> bool:
    """Whether an IntegrityError comes from the active-slot unique index."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return ACTIVE_SLOT_INDEX in message or _SQLITE_SLOT_COLUMNS in message


class AppointmentService:
    """Service for creating, reading and staff-cancelling appointments."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        request: BookingRequest,
        today: date | None = None,
    ) -> Appointment:
        """Reserve a slot for a patient.

        Args:
            request: Complete booking request
            today: Override for the clinic's current date

        Returns:
            The stored appointment, ``pending`` with a fresh confirmation token

        Raises:
            BookingValidationError: If the request breaks a booking rule or
                names an unknown or inactive branch or service
            SlotAlreadyBookedError: If another active appointment holds the slot
            RepositoryUnavailableError: If the store keeps failing
        """
        # Field rules run before the store is touched
        request = validate_booking_request(request, today=today)
        location, service = await self._resolve_catalog(
            request.location_id, request.service_id
        )

        # Fixed across retries so an attempt can recognise its own earlier commit
        appointment_id = str(uuid4())
        confirmation_token = generate_confirmation_token()
        attempted = False

        async def insert() -> Appointment:
            nonlocal attempted
            if attempted:
                stored = await self._find(appointment_id)
                if stored is not None:
                    return stored
            attempted = True

            appointment = Appointment(
                id=appointment_id,
                location_id=location.id,
                location_name=location.name,
                service_id=service.id,
                service_name=service.name,
                appointment_date=request.appointment_date,
                appointment_time=request.appointment_time,
                patient_name=request.patient_name,
                patient_phone=request.patient_phone,
                patient_email=request.patient_email,
                referral_code=request.referral_code,
                status=AppointmentStatus.PENDING.value,
                confirmation_token=confirmation_token,
            )
            self.session.add(appointment)
            try:
                await self.session.commit()
            except IntegrityError as exc:
                await self.session.rollback()
                if is_slot_conflict(exc):
                    raise SlotAlreadyBookedError() from exc
                raise
            return appointment

        try:
            appointment = await run_with_retry(
                self.session,
                insert,
                f"Appointment insert for {request.location_id} "
                f"{request.appointment_date} {request.appointment_time}",
            )
        except SlotAlreadyBookedError:
            logger.info(
                f"Slot conflict: {request.location_id} "
                f"{request.appointment_date} {request.appointment_time}",
                extra={"location_id": request.location_id},
            )
            raise

        audit_logger.log(
            action="appointment.created",
            appointment_id=appointment.id,
            metadata={
                "location_id": appointment.location_id,
                "date": appointment.appointment_date.isoformat(),
                "time": appointment.appointment_time,
                "token": token_fingerprint(appointment.confirmation_token),
            },
        )
        return appointment

    async def _find(self, appointment_id: str) -> Appointment | None:
        result = await self.session.execute(
            select(Appointment).where(Appointment.id == appointment_id)
        )
        return result.scalar_one_or_none()

    async def _resolve_catalog(
        self, location_id: str, service_id: str
    ) -> tuple[Location, Service]:
        async def load() -> tuple[Location | None, Service | None]:
            return (
                await self.session.get(Location, location_id),
                await self.session.get(Service, service_id),
            )

        location, service = await run_with_retry(self.session, load, "Catalog lookup")

        if location is None or not location.is_active:
            raise BookingValidationError("Unknown branch", field="location_id")
        if service is None or not service.is_active:
            raise BookingValidationError("Unknown service", field="service_id")
        return location, service

    async def get(self, appointment_id: str) -> Appointment | None:
        """Get an appointment by ID."""

        async def load() -> Appointment | None:
            result = await self.session.execute(
                select(Appointment)
                .where(Appointment.id == appointment_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

        return await run_with_retry(self.session, load, "Appointment lookup")

    async def list_appointments(
        self,
        day: date | None = None,
        location_id: str | None = None,
        status: AppointmentStatus | None = None,
    ) -> Sequence[Appointment]:
        """List appointments in calendar order with optional filters."""
        query = select(Appointment)

        if day:
            query = query.where(Appointment.appointment_date == day)
        if location_id:
            query = query.where(Appointment.location_id == location_id)
        if status:
            query = query.where(Appointment.status == AppointmentStatus(status).value)

        query = query.order_by(
            Appointment.appointment_date,
            Appointment.appointment_time,
            Appointment.location_id,
        )

        async def load() -> Sequence[Appointment]:
            result = await self.session.execute(query)
            return result.scalars().all()

        return await run_with_retry(self.session, load, "Appointment listing")

    async def cancel(
        self,
        appointment_id: str,
        cancelled_by: str,
        reason: str | None = None,
    ) -> Appointment:
        """Cancel an appointment on behalf of staff, freeing its slot.

        Cancelling an already cancelled appointment returns it unchanged.

        Raises:
            AppointmentNotFoundError: If no appointment has this ID
            RepositoryUnavailableError: If the store keeps failing
        """

        async def mark_cancelled() -> int:
            result = await self.session.execute(
                update(Appointment)
                .where(
                    Appointment.id == appointment_id,
                    Appointment.status.in_(
                        [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]
                    ),
                )
                .values(
                    status=AppointmentStatus.CANCELLED.value,
                    cancelled_at=utc_now(),
                    cancelled_by=cancelled_by,
                    cancellation_reason=reason,
                )
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            return result.rowcount

        changed = await run_with_retry(
            self.session, mark_cancelled, f"Staff cancellation of {appointment_id}"
        )

        appointment = await self.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError()

        if changed:
            audit_logger.log(
                action="appointment.cancelled_by_staff",
                appointment_id=appointment.id,
                actor_type="staff",
                actor_id=cancelled_by,
                metadata={"reason": reason},
            )
        return appointment
