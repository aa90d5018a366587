"""Bounded retry and timeout for backing-store calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from dentbook.core.config import settings
from dentbook.core.exceptions import RepositoryUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OperationalError,
    InterfaceError,
    TimeoutError,
    ConnectionError,
    OSError,
)


def is_transient(exc: BaseException) -> bool:
    """Whether a store error is worth retrying."""
    return isinstance(exc, TRANSIENT_ERRORS)


def backoff_delay(attempt: int) -> float:
    """Exponential backoff delay for a zero-based attempt number."""
    return min(
        settings.repository_retry_base_delay_seconds * (2**attempt),
        settings.repository_retry_max_delay_seconds,
    )


async def run_with_retry(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    description: str,
) -> T:
    """Run a store operation with a per-attempt timeout and bounded retries.

    ``operation`` is called afresh on every attempt and must rebuild any
    pending objects itself, since the session is rolled back between
    attempts. Non-transient errors propagate unchanged.

    Raises:
        RepositoryUnavailableError: If every attempt failed transiently
    """
    attempts = max(1, settings.repository_retry_attempts)

    for attempt in range(attempts):
        try:
            return await asyncio.wait_for(
                operation(), timeout=settings.repository_timeout_seconds
            )
        except Exception as exc:
            if not is_transient(exc):
                raise

            await _safe_rollback(session)

            if attempt == attempts - 1:
                logger.error(
                    f"{description} failed after {attempts} attempts: {exc!r}"
                )
                raise RepositoryUnavailableError() from exc

            delay = backoff_delay(attempt)
            logger.warning(
                f"{description} failed (attempt {attempt + 1}/{attempts}): {exc!r}. "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)

    raise RepositoryUnavailableError()


async def _safe_rollback(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except Exception:
        logger.exception("Rollback after store failure also failed")
