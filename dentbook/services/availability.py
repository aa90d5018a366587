"""Slot availability for a branch on a given date.

Availability is advisory: it tells the wizard which times to offer, but
only the unique index on ``appointments`` decides who gets a slot. Results
are never cached across requests.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.booking.policy import slot_grid
from dentbook.db.resilience import run_with_retry
from dentbook.models.appointment import Appointment, AppointmentStatus


class AvailabilityService:
    """Read-only queries over booked slots."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def booked_times(self, location_id: str, day: date) -> set[str]:
        """Times held by non-cancelled appointments at a branch on a date.

        Raises:
            RepositoryUnavailableError: If the store keeps failing
        """

        async def query() -> set[str]:
            result = await self.session.execute(
                select(Appointment.appointment_time).where(
                    Appointment.location_id == location_id,
                    Appointment.appointment_date == day,
                    Appointment.status != AppointmentStatus.CANCELLED.value,
                )
            )
            return set(result.scalars().all())

        return await run_with_retry(
            self.session, query, f"Availability lookup for {location_id} on {day}"
        )

    async def available_times(self, location_id: str, day: date) -> list[str]:
        """Grid times still free at a branch on a date, in grid order."""
        booked = await self.booked_times(location_id, day)
        return [t for t in slot_grid().times if t not in booked]

    async def snapshot(self, location_id: str, day: date) -> tuple[list[str], list[str]]:
        """Booked and available grid times from a single query.

        Booked times that are not on the grid are dropped, so the two lists
        always partition the grid.
        """
        booked = await self.booked_times(location_id, day)
        grid = slot_grid().times
        return (
            [t for t in grid if t in booked],
            [t for t in grid if t not in booked],
        )
