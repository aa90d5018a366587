"""Booking wizard state machine.

The wizard walks a patient through four steps:

    selecting_branch_and_service -> selecting_date -> selecting_time
        -> entering_contact_info -> submitted

``transition`` is a pure function: it takes a state and an event and
returns a new state, or raises ``WizardTransitionError``. It never touches
the store; callers look up availability and pass it in on the events that
need it. Submission itself (referral check, insert, notification) lives in
``dentbook.services.booking``.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import Any, Callable, Union

from dentbook.booking.policy import (
    date_rejection_reason,
    is_grid_time,
    normalize_referral_code,
    slot_grid,
    validate_booking_request,
)
from dentbook.booking.request import BookingRequest
from dentbook.core.exceptions import BookingValidationError


class WizardStep(str, Enum):
    """Steps of the booking wizard, in order."""

    SELECTING_BRANCH_AND_SERVICE = "selecting_branch_and_service"
    SELECTING_DATE = "selecting_date"
    SELECTING_TIME = "selecting_time"
    ENTERING_CONTACT_INFO = "entering_contact_info"
    SUBMITTED = "submitted"


STEP_ORDER: tuple[WizardStep, ...] = tuple(WizardStep)


class WizardTransitionError(BookingValidationError):
    """An event is not allowed in the current step or carries bad input."""


@dataclass(frozen=True)
class WizardState:
    """Snapshot of a wizard session.

    Attributes:
        step: Current step
        request: Choices made so far
        booked_times: Times already taken for the chosen branch and date;
            advisory, refreshed whenever the date is chosen
        appointment_id: Set once the booking has been stored
        error: Message for the patient from the last submission attempt
    """

    step: WizardStep = WizardStep.SELECTING_BRANCH_AND_SERVICE
    request: BookingRequest = field(default_factory=BookingRequest)
    booked_times: frozenset[str] = frozenset()
    appointment_id: str | None = None
    error: str | None = None

    @property
    def is_complete(self) -> bool:
        """Whether the booking has been stored; no further events apply."""
        return self.step == WizardStep.SUBMITTED and self.appointment_id is not None

    @property
    def available_times(self) -> list[str]:
        """Grid times not known to be booked, in grid order."""
        return [t for t in slot_grid().times if t not in self.booked_times]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible primitives."""
        return {
            "step": self.step.value,
            "request": self.request.to_dict(),
            "booked_times": [t for t in slot_grid().times if t in self.booked_times],
            "appointment_id": self.appointment_id,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WizardState":
        """Rebuild a state from ``to_dict`` output."""
        return cls(
            step=WizardStep(data.get("step", WizardStep.SELECTING_BRANCH_AND_SERVICE)),
            request=BookingRequest.from_dict(data.get("request") or {}),
            booked_times=frozenset(data.get("booked_times") or ()),
            appointment_id=data.get("appointment_id"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class WizardContext:
    """Facts from outside the wizard that transitions validate against.

    Attributes:
        location_ids: Active branch ids
        service_ids: Active service ids
        today: Override for the clinic's current date
    """

    location_ids: frozenset[str]
    service_ids: frozenset[str]
    today: date | None = None


# Events


@dataclass(frozen=True)
class SelectBranchAndService:
    """Choose the branch and the service."""

    location_id: str
    service_id: str


@dataclass(frozen=True)
class SelectDate:
    """Choose a date; ``booked_times`` is the availability looked up for it."""

    appointment_date: date
    booked_times: frozenset[str] = frozenset()


@dataclass(frozen=True)
class SelectTime:
    """Choose a grid time on the selected date."""

    appointment_time: str


@dataclass(frozen=True)
class EnterContactInfo:
    """Patient contact details and an optional referral code."""

    patient_name: str
    patient_phone: str
    patient_email: str
    referral_code: str | None = None


@dataclass(frozen=True)
class GoBack:
    """Return to the previous step."""


@dataclass(frozen=True)
class Submit:
    """Validate the complete request and hand it over for storage."""


@dataclass(frozen=True)
class SlotTaken:
    """The store rejected the slot; ``booked_times`` is the fresh availability."""

    booked_times: frozenset[str] = frozenset()


@dataclass(frozen=True)
class BookingCreated:
    """The appointment was stored under ``appointment_id``."""

    appointment_id: str


WizardEvent = Union[
    SelectBranchAndService,
    SelectDate,
    SelectTime,
    EnterContactInfo,
    GoBack,
    Submit,
    SlotTaken,
    BookingCreated,
]


def _without_time(request: BookingRequest) -> BookingRequest:
    return request.with_changes(appointment_time=None)


def _select_branch_and_service(
    state: WizardState, event: SelectBranchAndService, context: WizardContext
) -> WizardState:
    if event.location_id not in context.location_ids:
        raise WizardTransitionError("Unknown branch", field="location_id")
    if event.service_id not in context.service_ids:
        raise WizardTransitionError("Unknown service", field="service_id")

    request = state.request
    booked_times = state.booked_times
    if request.location_id != event.location_id:
        request = _without_time(request)
        booked_times = frozenset()

    return replace(
        state,
        step=WizardStep.SELECTING_DATE,
        request=request.with_changes(
            location_id=event.location_id,
            service_id=event.service_id,
        ),
        booked_times=booked_times,
    )


def _select_date(
    state: WizardState, event: SelectDate, context: WizardContext
) -> WizardState:
    reason = date_rejection_reason(event.appointment_date, context.today)
    if reason:
        raise WizardTransitionError(reason, field="appointment_date")

    request = state.request
    if request.appointment_date != event.appointment_date:
        request = _without_time(request)

    return replace(
        state,
        step=WizardStep.SELECTING_TIME,
        request=request.with_changes(appointment_date=event.appointment_date),
        booked_times=frozenset(event.booked_times),
    )


def _select_time(
    state: WizardState, event: SelectTime, context: WizardContext
) -> WizardState:
    if not is_grid_time(event.appointment_time):
        raise WizardTransitionError(
            "The selected time is not a valid appointment slot",
            field="appointment_time",
        )
    if event.appointment_time in state.booked_times:
        raise WizardTransitionError(
            "The selected time is no longer available",
            field="appointment_time",
        )

    return replace(
        state,
        step=WizardStep.ENTERING_CONTACT_INFO,
        request=state.request.with_changes(appointment_time=event.appointment_time),
    )


def _enter_contact_info(
    state: WizardState, event: EnterContactInfo, context: WizardContext
) -> WizardState:
    return replace(
        state,
        request=state.request.with_changes(
            patient_name=event.patient_name.strip(),
            patient_phone=event.patient_phone.strip(),
            patient_email=event.patient_email.strip(),
            referral_code=normalize_referral_code(event.referral_code),
        ),
    )


def _go_back(state: WizardState, event: GoBack, context: WizardContext) -> WizardState:
    position = STEP_ORDER.index(state.step)
    if position == 0:
        raise WizardTransitionError("Already at the first step")

    request = state.request
    if state.step in (WizardStep.SELECTING_TIME, WizardStep.SELECTING_DATE):
        request = _without_time(request)

    return replace(state, step=STEP_ORDER[position - 1], request=request)


def _submit(state: WizardState, event: Submit, context: WizardContext) -> WizardState:
    request = state.request
    if request.location_id not in context.location_ids:
        raise WizardTransitionError("Unknown branch", field="location_id")
    if request.service_id not in context.service_ids:
        raise WizardTransitionError("Unknown service", field="service_id")

    try:
        request = validate_booking_request(request, today=context.today)
    except BookingValidationError as exc:
        raise WizardTransitionError(exc.message, field=exc.field) from exc

    return replace(state, step=WizardStep.SUBMITTED, request=request)


def _slot_taken(
    state: WizardState, event: SlotTaken, context: WizardContext
) -> WizardState:
    return replace(
        state,
        step=WizardStep.SELECTING_TIME,
        request=_without_time(state.request),
        booked_times=frozenset(event.booked_times),
        error="The selected time was just booked by someone else. Please choose another.",
    )


def _booking_created(
    state: WizardState, event: BookingCreated, context: WizardContext
) -> WizardState:
    return replace(state, appointment_id=event.appointment_id)


_Handler = Callable[[WizardState, Any, WizardContext], WizardState]

# Event type -> (steps it is accepted in, handler)
_TRANSITIONS: dict[type, tuple[frozenset[WizardStep], _Handler]] = {
    SelectBranchAndService: (
        frozenset({WizardStep.SELECTING_BRANCH_AND_SERVICE}),
        _select_branch_and_service,
    ),
    SelectDate: (frozenset({WizardStep.SELECTING_DATE}), _select_date),
    SelectTime: (frozenset({WizardStep.SELECTING_TIME}), _select_time),
    EnterContactInfo: (
        frozenset({WizardStep.ENTERING_CONTACT_INFO}),
        _enter_contact_info,
    ),
    GoBack: (
        frozenset(
            {
                WizardStep.SELECTING_BRANCH_AND_SERVICE,
                WizardStep.SELECTING_DATE,
                WizardStep.SELECTING_TIME,
                WizardStep.ENTERING_CONTACT_INFO,
            }
        ),
        _go_back,
    ),
    Submit: (frozenset({WizardStep.ENTERING_CONTACT_INFO}), _submit),
    SlotTaken: (frozenset({WizardStep.SUBMITTED}), _slot_taken),
    BookingCreated: (frozenset({WizardStep.SUBMITTED}), _booking_created),
}


def transition(
    state: WizardState,
    event: WizardEvent,
    context: WizardContext,
) -> WizardState:
    """Apply an event to a wizard state.

    Args:
        state: Current state (never modified)
        event: One of the wizard events
        context: Active catalog ids and the clinic date

    Returns:
        The next state, with any previous ``error`` cleared unless the
        event sets a new one

    Raises:
        WizardTransitionError: If the event is not allowed in the current
            step or its input breaks a booking rule
    """
    if state.is_complete:
        raise WizardTransitionError("This booking has already been submitted")

    try:
        allowed_steps, handler = _TRANSITIONS[type(event)]
    except KeyError:
        raise WizardTransitionError(f"Unknown wizard event: {type(event).__name__}")

    if state.step not in allowed_steps:
        raise WizardTransitionError(
            f"{type(event).__name__} is not allowed while {state.step.value}"
        )

    return handler(replace(state, error=None), event, context)
