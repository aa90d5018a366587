"""Confirmation token redemption.

Every appointment carries an unguessable token that is emailed to the
patient as a pair of links (confirm / cancel). Redeeming a token moves the
appointment along:

    pending   --confirm--> confirmed
    pending   --cancel---> cancelled
    confirmed --cancel---> cancelled

Cancelled is terminal. Redeeming into the state an appointment is already
in, or confirming a cancelled appointment, changes nothing and reports the
current state. Tokens are only ever logged as a fingerprint.
"""

import logging
from enum import Enum
from urllib.parse import urlencode

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.core.config import settings
from dentbook.core.exceptions import TokenNotFoundError
from dentbook.core.logging import audit_logger
from dentbook.core.security import token_fingerprint
from dentbook.db.base import utc_now
from dentbook.db.resilience import run_with_retry
from dentbook.models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)

ACTION_PATH = "/appointment-action"


class RedemptionAction(str, Enum):
    """What a token link asks for."""

    CONFIRM = "confirm"
    CANCEL = "cancel"


# Action -> (statuses it applies to, resulting status)
_REDEMPTIONS: dict[RedemptionAction, tuple[tuple[AppointmentStatus, ...], AppointmentStatus]] = {
    RedemptionAction.CONFIRM: (
        (AppointmentStatus.PENDING,),
        AppointmentStatus.CONFIRMED,
    ),
    RedemptionAction.CANCEL: (
        (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
        AppointmentStatus.CANCELLED,
    ),
}


def build_action_url(token: str, action: RedemptionAction) -> str:
    """Absolute URL of the confirm/cancel link for a token."""
    query = urlencode({"token": token, "action": RedemptionAction(action).value})
    return f"{settings.public_base_url.rstrip('/')}{ACTION_PATH}?{query}"


class ConfirmationService:
    """Redeems confirmation tokens."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def redeem(self, token: str, action: RedemptionAction | str) -> AppointmentStatus:
        """Apply a confirm or cancel action to the token's appointment.

        The status change is a conditional UPDATE, so two concurrent
        redemptions cannot move a cancelled appointment back.

        Args:
            token: Confirmation token from the email link
            action: ``confirm`` or ``cancel``

        Returns:
            The appointment's status after the call

        Raises:
            ValueError: If the action is not a known redemption action
            TokenNotFoundError: If no appointment carries this token
            RepositoryUnavailableError: If the store keeps failing
        """
        action = RedemptionAction(action)
        sources, target = _REDEMPTIONS[action]
        fingerprint = token_fingerprint(token)

        values: dict = {"status": target.value}
        if target == AppointmentStatus.CONFIRMED:
            values["confirmed_at"] = utc_now()
        else:
            values["cancelled_at"] = utc_now()
            values["cancelled_by"] = "patient"

        async def apply() -> int:
            result = await self.session.execute(
                update(Appointment)
                .where(
                    Appointment.confirmation_token == token,
                    Appointment.status.in_([s.value for s in sources]),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            return result.rowcount

        changed = await run_with_retry(self.session, apply, f"Redemption {fingerprint}")

        if changed:
            appointment = await self.get_by_token(token)
            audit_logger.log(
                action="appointment.redeemed",
                appointment_id=appointment.id if appointment else "unknown",
                metadata={"action": action.value, "token": fingerprint},
            )
            return target

        current = await self._current_status(token)
        if current is None:
            logger.info(f"Redemption with unknown token {fingerprint}")
            raise TokenNotFoundError()

        logger.info(
            f"Redemption {action.value} for token {fingerprint} left status {current.value}"
        )
        return current

    async def get_by_token(self, token: str) -> Appointment | None:
        """Load the appointment carrying a token."""

        async def load() -> Appointment | None:
            result = await self.session.execute(
                select(Appointment)
                .where(Appointment.confirmation_token == token)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

        return await run_with_retry(self.session, load, "Appointment lookup by token")

    async def _current_status(self, token: str) -> AppointmentStatus | None:
        async def load() -> str | None:
            result = await self.session.execute(
                select(Appointment.status).where(Appointment.confirmation_token == token)
            )
            return result.scalar_one_or_none()

        status = await run_with_retry(self.session, load, "Appointment status lookup")
        return AppointmentStatus(status) if status is not None else None
