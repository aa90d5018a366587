"""Tests for the confirm/cancel landing page."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import TODAY, make_request
from dentbook.models.appointment import AppointmentStatus
from dentbook.services.appointments import AppointmentService
from dentbook.services.confirmation import ConfirmationService


@pytest.fixture
async def appointment(async_session: AsyncSession, catalog):
    return await AppointmentService(async_session).create(
        make_request(patient_name="<script>alert(1)</script>"), today=TODAY
    )


async def stored_status(session: AsyncSession, token: str) -> str:
    appointment = await ConfirmationService(session).get_by_token(token)
    return appointment.status


class TestAppointmentAction:
    """GET /appointment-action."""

    @pytest.mark.asyncio
    async def test_confirm(
        self, client: AsyncClient, async_session: AsyncSession, appointment
    ) -> None:
        response = await client.get(
            "/appointment-action",
            params={"token": appointment.confirmation_token, "action": "confirm"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "¡Cita Confirmada!" in response.text
        assert "Odontología General" in response.text
        assert "lunes, 10 de marzo de 2025" in response.text
        assert "Matriz Tepic" in response.text
        assert await stored_status(async_session, appointment.confirmation_token) == (
            AppointmentStatus.CONFIRMED.value
        )

    @pytest.mark.asyncio
    async def test_cancel(
        self, client: AsyncClient, async_session: AsyncSession, appointment
    ) -> None:
        response = await client.get(
            "/appointment-action",
            params={"token": appointment.confirmation_token, "action": "cancel"},
        )

        assert response.status_code == 200
        assert "Cita Cancelada" in response.text
        assert await stored_status(async_session, appointment.confirmation_token) == (
            AppointmentStatus.CANCELLED.value
        )

    @pytest.mark.asyncio
    async def test_confirm_after_cancel(self, client: AsyncClient, appointment) -> None:
        params = {"token": appointment.confirmation_token}
        await client.get("/appointment-action", params={**params, "action": "cancel"})

        response = await client.get("/appointment-action", params={**params, "action": "confirm"})

        assert response.status_code == 200
        assert "Cita ya cancelada" in response.text

    @pytest.mark.asyncio
    async def test_unknown_token(self, client: AsyncClient) -> None:
        response = await client.get(
            "/appointment-action", params={"token": "no-such-token", "action": "confirm"}
        )

        assert response.status_code == 404
        assert "Cita no encontrada" in response.text

    @pytest.mark.asyncio
    async def test_missing_parameters(self, client: AsyncClient) -> None:
        response = await client.get("/appointment-action", params={"action": "confirm"})

        assert response.status_code == 400
        assert "Enlace inválido" in response.text

    @pytest.mark.asyncio
    async def test_unknown_action(self, client: AsyncClient, appointment) -> None:
        response = await client.get(
            "/appointment-action",
            params={"token": appointment.confirmation_token, "action": "reschedule"},
        )

        assert response.status_code == 400
        assert "Acción inválida" in response.text

    @pytest.mark.asyncio
    async def test_page_does_not_echo_patient_input(
        self, client: AsyncClient, appointment
    ) -> None:
        response = await client.get(
            "/appointment-action",
            params={"token": appointment.confirmation_token, "action": "confirm"},
        )

        assert "<script>" not in response.text
        assert appointment.confirmation_token not in response.text
