"""Tests for referral code checks."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.core.exceptions import RepositoryUnavailableError
from dentbook.models.referral import ReferralCode
from dentbook.services.referral import ReferralCheck, ReferralValidator


class TestReferralValidator:
    """Classifying referral codes."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [None, "", "   ", "abc"])
    async def test_short_code_not_entered(self, async_session: AsyncSession, code) -> None:
        validator = ReferralValidator(async_session)

        assert await validator.check(code) is ReferralCheck.NOT_ENTERED
        assert await validator.validate(code) is False

    @pytest.mark.asyncio
    async def test_active_code_valid(self, async_session: AsyncSession, referral_code) -> None:
        assert await ReferralValidator(async_session).check("AMIGO2025") is ReferralCheck.VALID

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(
        self, async_session: AsyncSession, referral_code
    ) -> None:
        assert await ReferralValidator(async_session).validate("  amigo2025 ") is True

    @pytest.mark.asyncio
    async def test_unknown_code_invalid(self, async_session: AsyncSession, referral_code) -> None:
        assert await ReferralValidator(async_session).check("NOPE2025") is ReferralCheck.INVALID

    @pytest.mark.asyncio
    async def test_inactive_code_invalid(
        self, async_session: AsyncSession, referral_code
    ) -> None:
        referral_code.is_active = False
        await async_session.commit()

        assert await ReferralValidator(async_session).check("AMIGO2025") is ReferralCheck.INVALID

    @pytest.mark.asyncio
    async def test_store_failure_is_invalid(self) -> None:
        """An unreachable store never yields a valid code."""
        mock_session = AsyncMock()
        mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        result = await ReferralValidator(mock_session).check("AMIGO2025")

        assert result is ReferralCheck.INVALID
        assert mock_session.execute.await_count >= 1

    @pytest.mark.asyncio
    async def test_classify_raises_on_store_failure(self) -> None:
        mock_session = AsyncMock()
        mock_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(RepositoryUnavailableError):
            await ReferralValidator(mock_session).classify("AMIGO2025")
