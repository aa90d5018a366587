"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; configure before importing dentbook
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("REPOSITORY_RETRY_BASE_DELAY_SECONDS", "0")
os.environ.setdefault("REPOSITORY_RETRY_MAX_DELAY_SECONDS", "0")

from collections.abc import AsyncGenerator
from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dentbook.booking.request import BookingRequest
from dentbook.core.config import settings
from dentbook.core.security import create_access_token
from dentbook.db.base import Base
from dentbook.db.session import get_db
from dentbook.fixtures.catalog import seed_catalog
from dentbook.main import app
from dentbook.models.referral import ReferralCode
from dentbook.services.notifications import (
    NotificationDispatcher,
    get_notification_dispatcher,
)
from dentbook.utils.time import clinic_today

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed clinic date for service-level tests; 2025-03-10 is a Monday
TODAY = date(2025, 3, 1)
MONDAY = date(2025, 3, 10)
SUNDAY = date(2025, 3, 9)


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that keeps notices in memory."""

    def __init__(self) -> None:
        self.notices: list = []

    async def dispatch(self, notice) -> None:
        self.notices.append(notice)


def make_request(**overrides) -> BookingRequest:
    """A complete, valid booking request for Matriz Tepic."""
    values = {
        "location_id": "tepic",
        "service_id": "general",
        "appointment_date": MONDAY,
        "appointment_time": "09:00",
        "patient_name": "María López",
        "patient_phone": "+52 311 555 0101",
        "patient_email": "maria@example.com",
        "referral_code": None,
    }
    values.update(overrides)
    return BookingRequest(**values)


def next_open_day(days_ahead: int = 7) -> date:
    """A future clinic day that is not the closed weekday."""
    day = clinic_today() + timedelta(days=days_ahead)
    while day.weekday() == settings.closed_weekday:
        day += timedelta(days=1)
    return day


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def catalog(async_session: AsyncSession) -> None:
    """Seed branches and services."""
    await seed_catalog(async_session)


@pytest.fixture
async def referral_code(async_session: AsyncSession) -> ReferralCode:
    """An active referral code."""
    code = ReferralCode(
        code="AMIGO2025",
        referrer_email="referidos@example.com",
        referrer_patient_id="patient-001",
        is_active=True,
    )
    async_session.add(code)
    await async_session.commit()
    return code


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    """Notice dispatcher that records instead of sending."""
    return RecordingDispatcher()


@pytest.fixture
async def client(
    async_session: AsyncSession,
    catalog: None,
    dispatcher: RecordingDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app with the test database and dispatcher."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def staff_headers() -> dict[str, str]:
    """Authorization headers for a staff member."""
    token = create_access_token(
        subject="staff-001",
        additional_claims={"email": "recepcion@example.com", "role": "reception"},
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers() -> dict[str, str]:
    """Authorization headers for a non-staff actor."""
    token = create_access_token(subject="patient-001", actor_type="patient")
    return {"Authorization": f"Bearer {token}"}
