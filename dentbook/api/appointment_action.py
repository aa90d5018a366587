"""Landing page for the confirm/cancel links in patient emails.

Mounted at the application root because the links are sent by email and
must stay stable across API versions. Responses are small HTML pages in
Spanish; an unknown token gets the same page whether or not it ever
existed.
"""

import html
import logging

from fastapi import APIRouter, status
from fastapi.responses import HTMLResponse

from dentbook.api.deps import DbSession
from dentbook.core.config import settings
from dentbook.core.exceptions import RepositoryUnavailableError, TokenNotFoundError
from dentbook.core.security import token_fingerprint
from dentbook.models.appointment import AppointmentStatus
from dentbook.services.confirmation import ACTION_PATH, ConfirmationService, RedemptionAction
from dentbook.utils.time import format_long_date

logger = logging.getLogger(__name__)

router = APIRouter()

_PAGE = """<!DOCTYPE html>
<html lang="es">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title} - {clinic}</title>
</head>
<body class="{kind}">
  <header><h1>{clinic}</h1></header>
  <main>
    <h2>{title}</h2>
    <p>{message}</p>
  </main>
</body>
</html>
"""


def render_page(kind: str, title: str, message: str, status_code: int = 200) -> HTMLResponse:
    """Render an action result page.

    ``message`` may contain markup; callers escape any data they put in it.
    """
    body = _PAGE.format(
        kind=kind,
        title=html.escape(title),
        clinic=html.escape(settings.clinic_name),
        message=message,
    )
    return HTMLResponse(content=body, status_code=status_code)


@router.get(ACTION_PATH, response_class=HTMLResponse, include_in_schema=False)
async def appointment_action(
    session: DbSession,
    token: str | None = None,
    action: str | None = None,
) -> HTMLResponse:
    """Confirm or cancel the appointment behind an email link."""
    if not token or not action:
        return render_page(
            "error",
            "Enlace inválido",
            "El enlace que usaste no es válido o ha expirado.",
            status.HTTP_400_BAD_REQUEST,
        )

    try:
        requested = RedemptionAction(action)
    except ValueError:
        return render_page(
            "error",
            "Acción inválida",
            "La acción solicitada no es válida.",
            status.HTTP_400_BAD_REQUEST,
        )

    service = ConfirmationService(session)
    try:
        result = await service.redeem(token, requested)
        appointment = await service.get_by_token(token)
    except TokenNotFoundError:
        return render_page(
            "error",
            "Cita no encontrada",
            "No pudimos encontrar tu cita. Es posible que el enlace haya expirado.",
            status.HTTP_404_NOT_FOUND,
        )
    except RepositoryUnavailableError:
        logger.error(f"Appointment action unavailable for token {token_fingerprint(token)}")
        return render_page(
            "error",
            "Servicio no disponible",
            "No pudimos procesar tu solicitud en este momento. Por favor intenta de nuevo más tarde.",
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    if appointment is None:
        return render_page(
            "error",
            "Cita no encontrada",
            "No pudimos encontrar tu cita. Es posible que el enlace haya expirado.",
            status.HTTP_404_NOT_FOUND,
        )

    service_name = html.escape(appointment.service_name)
    long_date = html.escape(format_long_date(appointment.appointment_date))
    time_text = html.escape(appointment.appointment_time)
    location_name = html.escape(appointment.location_name)

    if requested == RedemptionAction.CONFIRM and result == AppointmentStatus.CANCELLED:
        return render_page(
            "info",
            "Cita ya cancelada",
            f"Tu cita para <strong>{service_name}</strong> el <strong>{long_date}</strong> "
            f"a las <strong>{time_text} hrs</strong> en <strong>{location_name}</strong> "
            "ya fue cancelada anteriormente.",
        )

    if result == AppointmentStatus.CONFIRMED:
        return render_page(
            "success",
            "¡Cita Confirmada!",
            f"Tu cita para <strong>{service_name}</strong> el <strong>{long_date}</strong> "
            f"a las <strong>{time_text} hrs</strong> en <strong>{location_name}</strong> "
            "ha sido confirmada. ¡Te esperamos!",
        )

    return render_page(
        "cancelled",
        "Cita Cancelada",
        f"Tu cita para <strong>{service_name}</strong> el <strong>{long_date}</strong> "
        f"a las <strong>{time_text} hrs</strong> en <strong>{location_name}</strong> "
        "ha sido cancelada. Si cambiaste de opinión, puedes agendar una nueva cita en "
        "nuestra página.",
    )
