"""Day-before appointment reminders."""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.core.logging import audit_logger
from dentbook.db.base import utc_now
from dentbook.db.resilience import run_with_retry
from dentbook.models.appointment import Appointment, AppointmentStatus
from dentbook.services.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    ReminderNotice,
)
from dentbook.utils.time import clinic_today

logger = logging.getLogger(__name__)


@dataclass
class ReminderRunResult:
    """Summary of one reminder run."""

    for_day: date
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "for_day": self.for_day.isoformat(),
            "sent": len(self.sent),
            "failed": len(self.failed),
        }


class ReminderService:
    """Sends one reminder per active appointment on a given day."""

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher or LoggingNotificationDispatcher()

    async def due_appointments(self, for_day: date) -> list[Appointment]:
        """Active appointments on a day that have not been reminded yet."""

        async def load() -> list[Appointment]:
            result = await self.session.execute(
                select(Appointment)
                .where(
                    Appointment.appointment_date == for_day,
                    Appointment.status.in_(
                        [AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value]
                    ),
                    Appointment.reminder_sent_at.is_(None),
                )
                .order_by(Appointment.appointment_time, Appointment.location_id)
            )
            return list(result.scalars().all())

        return await run_with_retry(self.session, load, f"Reminder lookup for {for_day}")

    async def send_due_reminders(self, for_day: date | None = None) -> ReminderRunResult:
        """Remind every patient with an appointment on ``for_day``.

        Args:
            for_day: Day to remind about; defaults to tomorrow, clinic time

        Returns:
            Which appointments were reminded and which failed
        """
        if for_day is None:
            for_day = clinic_today() + timedelta(days=1)

        run = ReminderRunResult(for_day=for_day)
        appointments = await self.due_appointments(for_day)
        logger.info(f"Found {len(appointments)} appointments needing reminders for {for_day}")

        for appointment in appointments:
            try:
                await self.dispatcher.dispatch(ReminderNotice.from_appointment(appointment))
            except Exception:
                logger.exception(
                    "Failed to dispatch reminder",
                    extra={"appointment_id": appointment.id},
                )
                run.failed.append(appointment.id)
                continue

            await self._mark_sent(appointment.id)
            audit_logger.log(
                action="reminder.sent",
                appointment_id=appointment.id,
                actor_type="system",
                actor_id="reminders",
                metadata={"for_day": for_day.isoformat()},
            )
            run.sent.append(appointment.id)

        return run

    async def _mark_sent(self, appointment_id: str) -> None:
        async def stamp() -> None:
            await self.session.execute(
                update(Appointment)
                .where(
                    Appointment.id == appointment_id,
                    Appointment.reminder_sent_at.is_(None),
                )
                .values(reminder_sent_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()

        await run_with_retry(self.session, stamp, f"Reminder stamp for {appointment_id}")
