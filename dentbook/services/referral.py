"""Referral code lookup."""

import logging
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.booking.policy import normalize_referral_code
from dentbook.core.config import settings
from dentbook.core.exceptions import RepositoryUnavailableError
from dentbook.db.resilience import run_with_retry
from dentbook.models.referral import ReferralCode

logger = logging.getLogger(__name__)


class ReferralCheck(str, Enum):
    """Outcome of a referral code check."""

    NOT_ENTERED = "not_entered"
    VALID = "valid"
    INVALID = "invalid"


class ReferralValidator:
    """Checks referral codes typed into the contact step.

    Codes are compared uppercase. Anything shorter than
    ``settings.referral_code_min_length`` is treated as still being typed
    and reported as ``NOT_ENTERED`` rather than ``INVALID``. A store failure
    never yields ``VALID``.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def check(self, code: str | None) -> ReferralCheck:
        """Classify a referral code; a store failure counts as invalid."""
        try:
            return await self.classify(code)
        except RepositoryUnavailableError:
            logger.warning("Referral code lookup unavailable; treating code as invalid")
            return ReferralCheck.INVALID

    async def classify(self, code: str | None) -> ReferralCheck:
        """Classify a referral code, letting store failures propagate.

        Raises:
            RepositoryUnavailableError: If the store keeps failing
        """
        normalized = normalize_referral_code(code)
        if not normalized or len(normalized) < settings.referral_code_min_length:
            return ReferralCheck.NOT_ENTERED

        async def lookup() -> str | None:
            result = await self.session.execute(
                select(ReferralCode.id).where(
                    ReferralCode.code == normalized,
                    ReferralCode.is_active == True,  # noqa: E712
                )
            )
            return result.scalar_one_or_none()

        found = await run_with_retry(self.session, lookup, "Referral code lookup")
        return ReferralCheck.VALID if found else ReferralCheck.INVALID

    async def validate(self, code: str | None) -> bool:
        """True only for a code that exists and is active."""
        return await self.check(code) is ReferralCheck.VALID
