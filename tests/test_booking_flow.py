"""Tests for wizard submission against the store."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import MONDAY, TODAY, make_request
from dentbook.booking.wizard import (
    EnterContactInfo,
    SelectBranchAndService,
    SelectDate,
    SelectTime,
    WizardState,
    WizardStep,
)
from dentbook.core.exceptions import BookingValidationError, RepositoryUnavailableError
from dentbook.models.appointment import AppointmentStatus
from dentbook.services.appointments import AppointmentService
from dentbook.services.booking import INVALID_REFERRAL_MESSAGE, BookingFlowService
from dentbook.services.notifications import ConfirmationNotice, NotificationDispatchError


async def contact_step(flow: BookingFlowService, referral_code: str | None = None) -> WizardState:
    state = WizardState()
    for event in (
        SelectBranchAndService("tepic", "general"),
        SelectDate(MONDAY),
        SelectTime("09:00"),
        EnterContactInfo(
            patient_name="María López",
            patient_phone="+52 311 555 0101",
            patient_email="maria@example.com",
            referral_code=referral_code,
        ),
    ):
        state = await flow.apply(state, event, today=TODAY)
    return state


class TestApply:
    """Events that need the store."""

    @pytest.mark.asyncio
    async def test_select_date_loads_booked_times(
        self, async_session: AsyncSession, catalog, dispatcher
    ) -> None:
        await AppointmentService(async_session).create(
            make_request(appointment_time="10:30"), today=TODAY
        )
        flow = BookingFlowService(async_session, dispatcher=dispatcher)

        state = await flow.apply(WizardState(), SelectBranchAndService("tepic", "general"))
        state = await flow.apply(state, SelectDate(MONDAY), today=TODAY)

        assert state.step == WizardStep.SELECTING_TIME
        assert state.booked_times == frozenset({"10:30"})
        assert "10:30" not in state.available_times


class TestSubmit:
    """Final submission."""

    @pytest.mark.asyncio
    async def test_successful_submission(
        self, async_session: AsyncSession, catalog, referral_code, dispatcher
    ) -> None:
        flow = BookingFlowService(async_session, dispatcher=dispatcher)
        state = await contact_step(flow, referral_code="amigo2025")

        done = await flow.submit(state, today=TODAY)

        assert done.is_complete
        appointment = await AppointmentService(async_session).get(done.appointment_id)
        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.referral_code == "AMIGO2025"

        assert len(dispatcher.notices) == 1
        notice = dispatcher.notices[0]
        assert isinstance(notice, ConfirmationNotice)
        assert notice.location_name == "Matriz Tepic"
        assert appointment.confirmation_token in notice.confirm_url
        assert "action=cancel" in notice.cancel_url

    @pytest.mark.asyncio
    async def test_invalid_referral_stays_on_contact_step(
        self, async_session: AsyncSession, catalog, referral_code, dispatcher
    ) -> None:
        flow = BookingFlowService(async_session, dispatcher=dispatcher)
        state = await contact_step(flow, referral_code="NOPE2025")

        result = await flow.submit(state, today=TODAY)

        assert result.step == WizardStep.ENTERING_CONTACT_INFO
        assert result.error == INVALID_REFERRAL_MESSAGE
        assert dispatcher.notices == []
        assert await AppointmentService(async_session).list_appointments() == []

    @pytest.mark.asyncio
    async def test_short_referral_code_is_ignored(
        self, async_session: AsyncSession, catalog, dispatcher
    ) -> None:
        flow = BookingFlowService(async_session, dispatcher=dispatcher)
        state = await contact_step(flow, referral_code="abc")

        done = await flow.submit(state, today=TODAY)

        appointment = await AppointmentService(async_session).get(done.appointment_id)
        assert appointment.referral_code is None

    @pytest.mark.asyncio
    async def test_slot_taken_returns_to_time_step(
        self, async_session: AsyncSession, catalog, dispatcher
    ) -> None:
        """Someone else books 09:00 between availability and submission."""
        flow = BookingFlowService(async_session, dispatcher=dispatcher)
        state = await contact_step(flow)
        await AppointmentService(async_session).create(
            make_request(patient_name="Juan Pérez", patient_email="juan@example.com"),
            today=TODAY,
        )

        result = await flow.submit(state, today=TODAY)

        assert result.step == WizardStep.SELECTING_TIME
        assert result.request.appointment_time is None
        assert "09:00" in result.booked_times
        assert result.error
        assert dispatcher.notices == []

    @pytest.mark.asyncio
    async def test_dispatch_failure_keeps_booking(
        self, async_session: AsyncSession, catalog
    ) -> None:
        failing = AsyncMock()
        failing.dispatch.side_effect = NotificationDispatchError("smtp down")
        flow = BookingFlowService(async_session, dispatcher=failing)
        state = await contact_step(flow)

        done = await flow.submit(state, today=TODAY)

        assert done.is_complete
        failing.dispatch.assert_awaited_once()


    @pytest.mark.asyncio
    async def test_referral_store_outage_is_not_invalid_code(
        self, async_session: AsyncSession, catalog, referral_code, dispatcher, monkeypatch
    ) -> None:
        """An unreachable referral store surfaces as unavailable, not as a bad code."""
        flow = BookingFlowService(async_session, dispatcher=dispatcher)
        state = await contact_step(flow, referral_code="AMIGO2025")

        async def store_down(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("down"))

        monkeypatch.setattr(async_session, "execute", store_down)

        with pytest.raises(RepositoryUnavailableError):
            await flow.submit(state, today=TODAY)

        monkeypatch.undo()
        assert dispatcher.notices == []
        assert await AppointmentService(async_session).list_appointments() == []


class TestBook:
    """Direct booking outside the wizard."""

    @pytest.mark.asyncio
    async def test_book_sends_notice(
        self, async_session: AsyncSession, catalog, dispatcher
    ) -> None:
        flow = BookingFlowService(async_session, dispatcher=dispatcher)

        appointment = await flow.book(make_request(referral_code="ab"), today=TODAY)

        assert appointment.referral_code is None
        assert len(dispatcher.notices) == 1

    @pytest.mark.asyncio
    async def test_book_rejects_invalid_referral(
        self, async_session: AsyncSession, catalog, dispatcher
    ) -> None:
        flow = BookingFlowService(async_session, dispatcher=dispatcher)

        with pytest.raises(BookingValidationError) as exc_info:
            await flow.book(make_request(referral_code="NOPE2025"), today=TODAY)

        assert exc_info.value.field == "referral_code"
        assert dispatcher.notices == []
