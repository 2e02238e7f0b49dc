"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from medbookings.config import Settings
from medbookings.core.models import Base
from medbookings.core.repository import OrganizationRepository, ProviderRepository, ServiceRepository
from medbookings.core.schemas import AvailabilityCreate, ServiceOfferingIn
from medbookings.scheduling.availability import AvailabilityService
from medbookings.scheduling.bookings import BookingService
from medbookings.scheduling.models import Owner, RecurrencePattern, SchedulingRule

# Sunday morning; 2030-01-07 is the following Monday.
NOW = datetime(2030, 1, 6, 6, 0, tzinfo=timezone.utc)
MONDAY = datetime(2030, 1, 7, tzinfo=timezone.utc)


def at(day_offset: int = 0, hour: int = 9, minute: int = 0) -> datetime:
    """UTC datetime relative to Monday 2030-01-07."""
    return MONDAY + timedelta(days=day_offset, hours=hour, minutes=minute)


def window_request(
    provider_id,
    services,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    pattern: Optional[RecurrencePattern] = None,
    **kwargs,
) -> AvailabilityCreate:
    """Build a create payload; *services* is a list of (service_id, duration)."""
    return AvailabilityCreate(
        provider_id=provider_id,
        start_time=start or at(0, 9),
        end_time=end or at(0, 12),
        recurrence_pattern=pattern,
        services=[ServiceOfferingIn(service_id=sid, duration=d) for sid, d in services],
        **kwargs,
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        default_timezone="UTC",
    )


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
async def organization(session):
    return await OrganizationRepository(session).create(name="Sandton Medical Centre")


@pytest.fixture
async def provider(session, organization):
    return await ProviderRepository(session).create(
        name="Dr Thandi Naidoo",
        email="thandi@example.com",
        organization_id=organization.id,
    )


@pytest.fixture
async def consult(session):
    return await ServiceRepository(session).create(
        name="General consultation", default_duration=30, default_price=450.0
    )


@pytest.fixture
async def follow_up(session):
    return await ServiceRepository(session).create(
        name="Follow-up", default_duration=60, default_price=300.0
    )


@pytest.fixture
def availability_service(session, settings, clock):
    return AvailabilityService(session, settings=settings, clock=clock)


@pytest.fixture
def booking_service(session, settings, clock):
    return BookingService(session, settings=settings, clock=clock)


@pytest.fixture
def org_owner(organization):
    return Owner(kind="organization", id=organization.id)


@pytest.fixture
async def hourly_window(availability_service, provider, consult):
    """Accepted Monday 09:00-12:00 window with three 60 minute consult slots."""
    availability, _ = await availability_service.create_availability(
        window_request(provider.id, [(consult.id, 60)], scheduling_rule=SchedulingRule.CONTINUOUS)
    )
    return availability
