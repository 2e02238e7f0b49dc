"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from medbookings.config import Settings, get_settings
from medbookings.core.database import get_db
from medbookings.scheduling.availability import AvailabilityService
from medbookings.scheduling.bookings import BookingService
from medbookings.scheduling.timezone import utcnow


def get_app_settings() -> Settings:
    return get_settings()


def get_clock() -> Callable[[], datetime]:
    """Source of "now"; overridden in tests."""
    return utcnow


async def get_actor_id(x_actor_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Identity recorded in the audit log. Authorization itself happens upstream."""
    return x_actor_id


async def get_availability_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> AvailabilityService:
    return AvailabilityService(db, settings=settings, clock=clock)


async def get_booking_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BookingService:
    return BookingService(db, settings=settings, clock=clock)
