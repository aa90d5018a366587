"""Patient notices and the dispatcher interface.

Email rendering and delivery belong to an external service; this module
defines what is handed over (``ConfirmationNotice``, ``ReminderNotice``)
and the ``NotificationDispatcher`` interface. The default dispatcher only
logs, and never logs the confirm/cancel URLs since they carry the token.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from dentbook.core.config import settings
from dentbook.models.appointment import Appointment
from dentbook.services.confirmation import RedemptionAction, build_action_url
from dentbook.utils.time import format_long_date

logger = logging.getLogger(__name__)


class NotificationDispatchError(Exception):
    """Raised by dispatchers when a notice could not be handed over."""

    pass


@dataclass(frozen=True)
class ConfirmationNotice:
    """Booking confirmation sent right after an appointment is created."""

    patient_name: str
    patient_email: str
    location_name: str
    service_name: str
    long_date: str
    appointment_time: str
    confirm_url: str | None = None
    cancel_url: str | None = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "ConfirmationNotice":
        token = appointment.confirmation_token
        return cls(
            patient_name=appointment.patient_name,
            patient_email=appointment.patient_email,
            location_name=appointment.location_name,
            service_name=appointment.service_name,
            long_date=format_long_date(appointment.appointment_date),
            appointment_time=appointment.appointment_time,
            confirm_url=build_action_url(token, RedemptionAction.CONFIRM) if token else None,
            cancel_url=build_action_url(token, RedemptionAction.CANCEL) if token else None,
        )

    @property
    def subject(self) -> str:
        return f"Confirmación de Cita - {settings.clinic_name}"

    def render_text(self) -> str:
        """Plain-text body for the email service."""
        lines = [
            f"Hola {self.patient_name},",
            "",
            "Tu cita ha sido agendada:",
            f"  Servicio: {self.service_name}",
            f"  Fecha: {self.long_date}",
            f"  Hora: {self.appointment_time} hrs",
            f"  Sucursal: {self.location_name}",
            "",
        ]
        if self.confirm_url and self.cancel_url:
            lines += [
                f"Confirmar asistencia: {self.confirm_url}",
                f"Cancelar cita: {self.cancel_url}",
                "",
            ]
        lines.append(
            "Por favor, llega 10 minutos antes de tu cita. Si necesitas cancelar "
            "o reprogramar, contáctanos con al menos 24 horas de anticipación."
        )
        return "\n".join(lines)


@dataclass(frozen=True)
class ReminderNotice:
    """Day-before reminder for an upcoming appointment."""

    patient_name: str
    patient_email: str
    location_name: str
    service_name: str
    long_date: str
    appointment_time: str
    cancel_url: str | None = None

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "ReminderNotice":
        token = appointment.confirmation_token
        return cls(
            patient_name=appointment.patient_name,
            patient_email=appointment.patient_email,
            location_name=appointment.location_name,
            service_name=appointment.service_name,
            long_date=format_long_date(appointment.appointment_date),
            appointment_time=appointment.appointment_time,
            cancel_url=build_action_url(token, RedemptionAction.CANCEL) if token else None,
        )

    @property
    def subject(self) -> str:
        return f"Recordatorio: Tu cita es mañana - {settings.clinic_name}"

    def render_text(self) -> str:
        """Plain-text body for the email service."""
        lines = [
            f"Hola {self.patient_name},",
            "",
            f"Te recordamos tu cita de {self.service_name} mañana, {self.long_date}, "
            f"a las {self.appointment_time} hrs en {self.location_name}.",
        ]
        if self.cancel_url:
            lines += ["", f"Si no puedes asistir, cancela aquí: {self.cancel_url}"]
        return "\n".join(lines)


Notice = Union[ConfirmationNotice, ReminderNotice]


class NotificationDispatcher(ABC):
    """Hands patient notices to the delivery service."""

    @abstractmethod
    async def dispatch(self, notice: Notice) -> None:
        """Deliver a notice.

        Raises NotificationDispatchError on failure.
        """
        pass


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Dispatcher that records notices in the log instead of sending them."""

    async def dispatch(self, notice: Notice) -> None:
        logger.info(
            f"Notice '{notice.subject}' for {notice.patient_email}: "
            f"{notice.service_name} at {notice.location_name} "
            f"{notice.long_date} {notice.appointment_time}"
        )


def get_notification_dispatcher() -> NotificationDispatcher:
    """Dispatcher used by the API; override in deployments and tests."""
    return LoggingNotificationDispatcher()
