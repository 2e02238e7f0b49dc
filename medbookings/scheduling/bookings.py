"""Booking lifecycle: claim through the guard, then move along the status table."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from medbookings.config import Settings, get_settings
from medbookings.core.models import Booking
from medbookings.core.repository import AuditRepository, BookingRepository
from medbookings.scheduling.errors import InvalidStatusTransitionError, NotFoundError
from medbookings.scheduling.guard import BookingConflictGuard
from medbookings.scheduling.models import BookingStatus, Claimant
from medbookings.scheduling.timezone import utcnow

logger = logging.getLogger(__name__)

BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, frozenset())


class BookingService:
    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.guard = BookingConflictGuard(session, self.settings, clock)
        self.bookings = BookingRepository(session)
        self.audit = AuditRepository(session)

    async def claim(self, slot_id: uuid.UUID, claimant: Claimant, actor_id: Optional[str] = None) -> Booking:
        return await self.guard.claim_slot(slot_id, claimant, actor_id=actor_id)

    async def get_booking(self, booking_id: uuid.UUID) -> Booking:
        booking = await self.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    async def list_for_slot(self, slot_id: uuid.UUID) -> Sequence[Booking]:
        return await self.bookings.list_for_slot(slot_id)

    async def confirm(self, booking_id: uuid.UUID, actor_id: Optional[str] = None) -> Booking:
        return await self._transition(booking_id, BookingStatus.CONFIRMED, actor_id)

    async def cancel(self, booking_id: uuid.UUID, actor_id: Optional[str] = None) -> Booking:
        return await self._transition(booking_id, BookingStatus.CANCELLED, actor_id)

    async def complete(self, booking_id: uuid.UUID, actor_id: Optional[str] = None) -> Booking:
        return await self._transition(booking_id, BookingStatus.COMPLETED, actor_id)

    async def mark_no_show(self, booking_id: uuid.UUID, actor_id: Optional[str] = None) -> Booking:
        return await self._transition(booking_id, BookingStatus.NO_SHOW, actor_id)

    async def _transition(
        self, booking_id: uuid.UUID, target: BookingStatus, actor_id: Optional[str]
    ) -> Booking:
        booking = await self.bookings.get_for_update(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)

        current = BookingStatus(booking.status)
        if not can_transition(current, target):
            raise InvalidStatusTransitionError("booking", current.value, target.value)

        booking.status = target.value
        booking.updated_at = utcnow()
        await self.session.flush()

        await self.audit.log_action(
            action=target.value.lower(),
            resource_type="booking",
            resource_id=str(booking.id),
            user_id=actor_id,
            details={"from": current.value, "to": target.value},
        )
        logger.info("Booking %s: %s -> %s", booking.id, current.value, target.value)
        return booking
