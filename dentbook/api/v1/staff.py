"""Staff appointment endpoints."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from dentbook.api.deps import CurrentStaff, DbSession
from dentbook.models.appointment import AppointmentStatus
from dentbook.services.appointments import AppointmentService

router = APIRouter()


class StaffAppointmentResponse(BaseModel):
    """Appointment as seen by clinic staff."""

    id: str
    location_id: str
    location_name: str
    service_id: str
    service_name: str
    appointment_date: date
    appointment_time: str
    patient_name: str
    patient_phone: str
    patient_email: str
    referral_code: str | None
    status: AppointmentStatus
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    cancelled_by: str | None
    cancellation_reason: str | None
    reminder_sent_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class CancelAppointmentRequest(BaseModel):
    """Staff cancellation request."""

    reason: str | None = Field(None, max_length=2000)


@router.get("/appointments", response_model=list[StaffAppointmentResponse])
async def list_appointments(
    staff: CurrentStaff,
    session: DbSession,
    day: Annotated[date | None, Query(alias="date")] = None,
    location_id: str | None = None,
    status: AppointmentStatus | None = None,
) -> list[StaffAppointmentResponse]:
    """List appointments in calendar order, optionally filtered."""
    appointments = await AppointmentService(session).list_appointments(
        day=day,
        location_id=location_id,
        status=status,
    )
    return [StaffAppointmentResponse.model_validate(a) for a in appointments]


@router.post(
    "/appointments/{appointment_id}/cancel",
    response_model=StaffAppointmentResponse,
)
async def cancel_appointment(
    appointment_id: UUID,
    staff: CurrentStaff,
    session: DbSession,
    request: CancelAppointmentRequest | None = None,
) -> StaffAppointmentResponse:
    """Cancel an appointment and free its slot. Repeating the call is harmless."""
    appointment = await AppointmentService(session).cancel(
        str(appointment_id),
        cancelled_by=staff.id,
        reason=request.reason if request else None,
    )
    return StaffAppointmentResponse.model_validate(appointment)
