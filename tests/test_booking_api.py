"""Public booking API tests."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import next_open_day
from dentbook.booking.policy import slot_grid
from dentbook.services.notifications import ConfirmationNotice


def booking_payload(**overrides) -> dict:
    payload = {
        "location_id": "tepic",
        "service_id": "general",
        "appointment_date": next_open_day().isoformat(),
        "appointment_time": "09:00",
        "patient_name": "María López",
        "patient_phone": "+52 311 555 0101",
        "patient_email": "maria@example.com",
    }
    payload.update(overrides)
    return payload


class TestCatalog:
    """Branches, services and the slot grid."""

    @pytest.mark.asyncio
    async def test_list_locations(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/booking/locations")

        assert response.status_code == 200
        ids = {loc["id"] for loc in response.json()}
        assert ids == {"tepic", "marina", "centro-empresarial", "puerto-magico"}

    @pytest.mark.asyncio
    async def test_list_services_in_display_order(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/booking/services")

        assert response.status_code == 200
        services = response.json()
        assert services[0] == {"id": "general", "name": "Odontología General"}
        assert len(services) == 8

    @pytest.mark.asyncio
    async def test_slot_grid(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/booking/slot-grid")

        data = response.json()
        assert data["morning"][0] == "09:00"
        assert data["morning"][-1] == "13:00"
        assert data["afternoon"][0] == "14:00"
        assert data["afternoon"][-1] == "18:00"


class TestAvailabilityEndpoint:
    @pytest.mark.asyncio
    async def test_booked_time_not_offered(self, client: AsyncClient) -> None:
        day = next_open_day()
        created = await client.post("/api/v1/booking/appointments", json=booking_payload())
        assert created.status_code == 201

        response = await client.get(
            "/api/v1/booking/availability",
            params={"location_id": "tepic", "date": day.isoformat()},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["booked_times"] == ["09:00"]
        assert "09:00" not in data["available_times"]
        assert len(data["available_times"]) == len(slot_grid()) - 1

    @pytest.mark.asyncio
    async def test_store_failure_is_503(
        self, client: AsyncClient, async_session: AsyncSession, monkeypatch
    ) -> None:
        async def broken_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("down"))

        monkeypatch.setattr(async_session, "execute", broken_execute)

        response = await client.get(
            "/api/v1/booking/availability",
            params={"location_id": "tepic", "date": next_open_day().isoformat()},
        )

        assert response.status_code == 503


class TestBookAppointment:
    """POST /booking/appointments."""

    @pytest.mark.asyncio
    async def test_book_appointment(self, client: AsyncClient, dispatcher) -> None:
        response = await client.post("/api/v1/booking/appointments", json=booking_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["location_name"] == "Matriz Tepic"
        assert "confirmation_token" not in data
        assert "patient_email" not in data
        assert len(dispatcher.notices) == 1
        assert isinstance(dispatcher.notices[0], ConfirmationNotice)

    @pytest.mark.asyncio
    async def test_double_booking_is_409(self, client: AsyncClient) -> None:
        first = await client.post("/api/v1/booking/appointments", json=booking_payload())
        second = await client.post(
            "/api/v1/booking/appointments",
            json=booking_payload(patient_name="Juan Pérez", patient_email="juan@example.com"),
        )

        assert first.status_code == 201
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_closed_day_is_422(self, client: AsyncClient) -> None:
        day = next_open_day()
        while day.weekday() != 6:
            day += timedelta(days=1)

        response = await client.post(
            "/api/v1/booking/appointments",
            json=booking_payload(appointment_date=day.isoformat()),
        )

        assert response.status_code == 422
        assert response.json()["field"] == "appointment_date"

    @pytest.mark.asyncio
    async def test_off_grid_time_is_422(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/booking/appointments",
            json=booking_payload(appointment_time="13:30"),
        )

        assert response.status_code == 422
        assert response.json()["field"] == "appointment_time"

    @pytest.mark.asyncio
    async def test_invalid_email_is_422(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/booking/appointments",
            json=booking_payload(patient_email="not-an-email"),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_referral_store_outage_is_503(
        self, client: AsyncClient, async_session: AsyncSession, monkeypatch
    ) -> None:
        async def store_down(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("down"))

        monkeypatch.setattr(async_session, "execute", store_down)

        response = await client.post(
            "/api/v1/booking/appointments",
            json=booking_payload(referral_code="AMIGO2025"),
        )

        assert response.status_code == 503
        assert "referral" not in response.json()["detail"].lower()

    @pytest.mark.asyncio
    async def test_invalid_referral_is_422(self, client: AsyncClient, referral_code) -> None:
        response = await client.post(
            "/api/v1/booking/appointments",
            json=booking_payload(referral_code="NOPE2025"),
        )

        assert response.status_code == 422
        assert response.json()["field"] == "referral_code"


class TestReferralCheck:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code,expected",
        [("abc", "not_entered"), ("amigo2025", "valid"), ("NOPE2025", "invalid")],
    )
    async def test_check(self, client: AsyncClient, referral_code, code, expected) -> None:
        response = await client.post(
            "/api/v1/booking/referral-codes/check", json={"code": code}
        )

        assert response.status_code == 200
        assert response.json() == {"status": expected}


class TestWizardApi:
    """Driving the wizard over HTTP."""

    async def advance(self, client: AsyncClient, state: dict, event: dict) -> dict:
        response = await client.post(
            "/api/v1/booking/wizard/transition", json={"state": state, "event": event}
        )
        assert response.status_code == 200, response.text
        return response.json()

    @pytest.mark.asyncio
    async def test_full_wizard(self, client: AsyncClient, dispatcher) -> None:
        day = next_open_day()
        state: dict = {}
        state = await self.advance(
            client,
            state,
            {"type": "select_branch_and_service", "location_id": "marina", "service_id": "ortodoncia"},
        )
        assert state["step"] == "selecting_date"

        state = await self.advance(
            client, state, {"type": "select_date", "appointment_date": day.isoformat()}
        )
        assert state["step"] == "selecting_time"
        assert state["available_times"] == list(slot_grid().times)

        state = await self.advance(client, state, {"type": "select_time", "appointment_time": "16:30"})
        state = await self.advance(
            client,
            state,
            {
                "type": "enter_contact_info",
                "patient_name": "María López",
                "patient_phone": "+52 322 555 0101",
                "patient_email": "maria@example.com",
            },
        )
        assert state["step"] == "entering_contact_info"

        response = await client.post("/api/v1/booking/wizard/submit", json={"state": state})

        assert response.status_code == 200
        done = response.json()
        assert done["step"] == "submitted"
        assert done["appointment_id"]
        assert len(dispatcher.notices) == 1

    @pytest.mark.asyncio
    async def test_submit_rejects_malformed_email(self, client: AsyncClient) -> None:
        """The wizard applies the same email rules as direct booking."""
        state = {
            "step": "entering_contact_info",
            "request": {
                "location_id": "tepic",
                "service_id": "general",
                "appointment_date": next_open_day().isoformat(),
                "appointment_time": "09:00",
                "patient_name": "María López",
                "patient_phone": "+52 311 555 0101",
                "patient_email": "maria@example..com",
            },
        }

        response = await client.post("/api/v1/booking/wizard/submit", json={"state": state})

        assert response.status_code == 422
        assert response.json()["field"] == "patient_email"

    @pytest.mark.asyncio
    async def test_event_in_wrong_step_is_422(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/booking/wizard/transition",
            json={"state": {}, "event": {"type": "select_time", "appointment_time": "09:00"}},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_clients_cannot_send_outcome_events(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/booking/wizard/transition",
            json={
                "state": {"step": "submitted"},
                "event": {"type": "booking_created", "appointment_id": "forged"},
            },
        )

        assert response.status_code == 422
