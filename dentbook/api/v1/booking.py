"""Public booking API: catalog, availability, referral check and the wizard."""

from datetime import date, datetime
from typing import Annotated, Literal, Union

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select

from dentbook.api.deps import DbSession, Dispatcher
from dentbook.booking.policy import slot_grid
from dentbook.booking.request import BookingRequest
from dentbook.booking.wizard import (
    EnterContactInfo,
    GoBack,
    SelectBranchAndService,
    SelectDate,
    SelectTime,
    WizardState,
    WizardStep,
)
from dentbook.db.resilience import run_with_retry
from dentbook.models.appointment import AppointmentStatus
from dentbook.models.catalog import Location, Service
from dentbook.services.availability import AvailabilityService
from dentbook.services.booking import BookingFlowService
from dentbook.services.referral import ReferralCheck, ReferralValidator

router = APIRouter()


# ============================================================================
# Request/Response Schemas
# ============================================================================


class LocationResponse(BaseModel):
    """Branch location response."""

    id: str
    name: str
    address: str | None
    phone: str | None

    class Config:
        from_attributes = True


class ServiceResponse(BaseModel):
    """Bookable service response."""

    id: str
    name: str

    class Config:
        from_attributes = True


class SlotGridResponse(BaseModel):
    """The daily slot grid."""

    morning: list[str]
    afternoon: list[str]


class AvailabilityResponse(BaseModel):
    """Booked and free grid times for a branch on a date."""

    location_id: str
    appointment_date: date
    booked_times: list[str]
    available_times: list[str]


class ReferralCheckRequest(BaseModel):
    """Referral code typed by the patient."""

    code: str = Field("", max_length=50)


class ReferralCheckResponse(BaseModel):
    """Referral code check result."""

    status: ReferralCheck


class BookAppointmentRequest(BaseModel):
    """Request to book an appointment directly."""

    location_id: str = Field(min_length=1, max_length=50)
    service_id: str = Field(min_length=1, max_length=50)
    appointment_date: date
    appointment_time: str = Field(description="HH:MM grid time")
    patient_name: str = Field(min_length=1, max_length=200)
    patient_phone: str = Field(min_length=1, max_length=30)
    patient_email: EmailStr
    referral_code: str | None = Field(None, max_length=50)

    def to_booking_request(self) -> BookingRequest:
        return BookingRequest(**self.model_dump(mode="python"))


class AppointmentResponse(BaseModel):
    """Stored appointment, without contact details or token."""

    id: str
    location_id: str
    location_name: str
    service_id: str
    service_name: str
    appointment_date: date
    appointment_time: str
    status: AppointmentStatus
    created_at: datetime

    class Config:
        from_attributes = True


class BookingRequestSchema(BaseModel):
    """Wizard choices so far."""

    location_id: str | None = None
    service_id: str | None = None
    appointment_date: date | None = None
    appointment_time: str | None = None
    patient_name: str = ""
    patient_phone: str = ""
    patient_email: str = ""
    referral_code: str | None = None


class WizardStateSchema(BaseModel):
    """Serialized wizard session, held by the client between steps."""

    step: WizardStep = WizardStep.SELECTING_BRANCH_AND_SERVICE
    request: BookingRequestSchema = Field(default_factory=BookingRequestSchema)
    booked_times: list[str] = Field(default_factory=list)
    appointment_id: str | None = None
    error: str | None = None

    def to_state(self) -> WizardState:
        return WizardState.from_dict(self.model_dump(mode="json"))


class WizardStateResponse(WizardStateSchema):
    """Wizard session plus the times to offer on the time step."""

    available_times: list[str] = Field(default_factory=list)

    @classmethod
    def from_state(cls, state: WizardState) -> "WizardStateResponse":
        return cls(**state.to_dict(), available_times=state.available_times)


class SelectBranchAndServiceEvent(BaseModel):
    type: Literal["select_branch_and_service"]
    location_id: str
    service_id: str

    def to_event(self) -> SelectBranchAndService:
        return SelectBranchAndService(location_id=self.location_id, service_id=self.service_id)


class SelectDateEvent(BaseModel):
    type: Literal["select_date"]
    appointment_date: date

    def to_event(self) -> SelectDate:
        return SelectDate(appointment_date=self.appointment_date)


class SelectTimeEvent(BaseModel):
    type: Literal["select_time"]
    appointment_time: str

    def to_event(self) -> SelectTime:
        return SelectTime(appointment_time=self.appointment_time)


class EnterContactInfoEvent(BaseModel):
    type: Literal["enter_contact_info"]
    patient_name: str = Field(max_length=200)
    patient_phone: str = Field(max_length=30)
    patient_email: str = Field(max_length=255)
    referral_code: str | None = Field(None, max_length=50)

    def to_event(self) -> EnterContactInfo:
        return EnterContactInfo(
            patient_name=self.patient_name,
            patient_phone=self.patient_phone,
            patient_email=self.patient_email,
            referral_code=self.referral_code,
        )


class GoBackEvent(BaseModel):
    type: Literal["go_back"]

    def to_event(self) -> GoBack:
        return GoBack()


# Submission and its outcomes are driven by the server, not by clients
WizardEventSchema = Annotated[
    Union[
        SelectBranchAndServiceEvent,
        SelectDateEvent,
        SelectTimeEvent,
        EnterContactInfoEvent,
        GoBackEvent,
    ],
    Field(discriminator="type"),
]


class WizardTransitionRequest(BaseModel):
    """Apply one event to a wizard session."""

    state: WizardStateSchema = Field(default_factory=WizardStateSchema)
    event: WizardEventSchema


class WizardSubmitRequest(BaseModel):
    """Submit a wizard session at the contact step."""

    state: WizardStateSchema


# ============================================================================
# Catalog
# ============================================================================


@router.get("/locations", response_model=list[LocationResponse])
async def list_locations(session: DbSession) -> list[LocationResponse]:
    """List active branches."""

    async def load():
        result = await session.execute(
            select(Location).where(Location.is_active == True).order_by(Location.name)  # noqa: E712
        )
        return result.scalars().all()

    locations = await run_with_retry(session, load, "Location listing")
    return [LocationResponse.model_validate(loc) for loc in locations]


@router.get("/services", response_model=list[ServiceResponse])
async def list_services(session: DbSession) -> list[ServiceResponse]:
    """List active services in display order."""

    async def load():
        result = await session.execute(
            select(Service)
            .where(Service.is_active == True)  # noqa: E712
            .order_by(Service.display_order, Service.name)
        )
        return result.scalars().all()

    services = await run_with_retry(session, load, "Service listing")
    return [ServiceResponse.model_validate(svc) for svc in services]


@router.get("/slot-grid", response_model=SlotGridResponse)
async def get_slot_grid() -> SlotGridResponse:
    """Return the daily grid of bookable times."""
    grid = slot_grid()
    return SlotGridResponse(morning=list(grid.morning), afternoon=list(grid.afternoon))


# ============================================================================
# Availability & referral codes
# ============================================================================


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    session: DbSession,
    location_id: Annotated[str, Query(min_length=1, max_length=50)],
    day: Annotated[date, Query(alias="date")],
) -> AvailabilityResponse:
    """Booked and free times for a branch on a date.

    Advisory only: a free time can still be taken before the patient submits.
    """
    booked, available = await AvailabilityService(session).snapshot(location_id, day)
    return AvailabilityResponse(
        location_id=location_id,
        appointment_date=day,
        booked_times=booked,
        available_times=available,
    )


@router.post("/referral-codes/check", response_model=ReferralCheckResponse)
async def check_referral_code(
    request: ReferralCheckRequest,
    session: DbSession,
) -> ReferralCheckResponse:
    """Classify a referral code as valid, invalid or not entered yet."""
    result = await ReferralValidator(session).check(request.code)
    return ReferralCheckResponse(status=result)


# ============================================================================
# Booking
# ============================================================================


@router.post(
    "/appointments",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_appointment(
    request: BookAppointmentRequest,
    session: DbSession,
    dispatcher: Dispatcher,
) -> AppointmentResponse:
    """Book an appointment and send the confirmation notice.

    Responds 409 if the slot was taken, 422 for rule violations and 503
    when the store is unavailable.
    """
    service = BookingFlowService(session, dispatcher)
    appointment = await service.book(request.to_booking_request())
    return AppointmentResponse.model_validate(appointment)


@router.post("/wizard/transition", response_model=WizardStateResponse)
async def wizard_transition(
    request: WizardTransitionRequest,
    session: DbSession,
) -> WizardStateResponse:
    """Apply one wizard event and return the next state.

    Rejected events respond 422 with the reason.
    """
    service = BookingFlowService(session)
    state = await service.apply(request.state.to_state(), request.event.to_event())
    return WizardStateResponse.from_state(state)


@router.post("/wizard/submit", response_model=WizardStateResponse)
async def wizard_submit(
    request: WizardSubmitRequest,
    session: DbSession,
    dispatcher: Dispatcher,
) -> WizardStateResponse:
    """Submit the wizard.

    The returned state is ``submitted`` with an appointment id on success.
    A rejected referral code keeps the contact step with an error; a slot
    taken in the meantime returns to the time step with fresh availability.
    """
    service = BookingFlowService(session, dispatcher)
    state = await service.submit(request.state.to_state())
    return WizardStateResponse.from_state(state)
