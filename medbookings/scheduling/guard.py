"""Booking conflict guard: turn a claim on a slot into at most one booking.

The pre-checks give callers a precise reason when a claim cannot succeed, but
they run on a snapshot. Correctness under concurrent claims comes from the
partial unique index on ``bookings(slot_id)``: the losing insert fails with an
``IntegrityError``, which is reported as ``SlotAlreadyBookedError``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medbookings.config import Settings, get_settings
from medbookings.core.models import Booking, CalculatedAvailabilitySlot
from medbookings.core.repository import (
    AuditRepository,
    AvailabilityRepository,
    BookingRepository,
    ProviderRepository,
    SlotRepository,
)
from medbookings.scheduling.errors import NotFoundError, SlotAlreadyBookedError, SlotUnavailableError
from medbookings.scheduling.models import AvailabilityStatus, BookingStatus, Claimant
from medbookings.scheduling.timezone import as_utc, utcnow

logger = logging.getLogger(__name__)


class BookingConflictGuard:
    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock
        self.slots = SlotRepository(session)
        self.availabilities = AvailabilityRepository(session)
        self.bookings = BookingRepository(session)
        self.providers = ProviderRepository(session)
        self.audit = AuditRepository(session)

    async def claim_slot(
        self,
        slot_id: uuid.UUID,
        claimant: Claimant,
        actor_id: Optional[str] = None,
    ) -> Booking:
        """Book *slot_id* for *claimant*.

        A lost race rolls the session back, discarding anything else the
        caller wrote in the same transaction.

        Raises:
            NotFoundError: the slot does not exist.
            SlotUnavailableError: the window is not accepted or the slot is past.
            SlotAlreadyBookedError: the slot (or the provider at that time) is taken.
        """
        slot = await self.slots.get_fresh(slot_id)
        if slot is None:
            raise NotFoundError("Slot", slot_id)

        # Blocks until a concurrent edit or delete of the window commits, then
        # reads the slot as that transaction left it.
        if not await self.availabilities.lock_shared(slot.availability_id):
            raise NotFoundError("Slot", slot_id)
        slot = await self.slots.get_fresh(slot_id)
        if slot is None:
            raise NotFoundError("Slot", slot_id)

        await self.check_claimable(slot)

        window = slot.availability
        status = BookingStatus.PENDING if window.requires_confirmation else BookingStatus.CONFIRMED

        booking = Booking(
            slot_id=slot.id,
            status=status.value,
            user_id=claimant.user_id,
            guest_name=claimant.guest_name,
            guest_email=claimant.guest_email,
            guest_phone=claimant.guest_phone,
            notes=claimant.notes,
            service_id=slot.service_id,
            duration=int((as_utc(slot.end_time) - as_utc(slot.start_time)).total_seconds() // 60),
            price=slot.price,
        )
        self.session.add(booking)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Claim on slot %s lost to a concurrent booking", slot_id)
            raise SlotAlreadyBookedError(slot_id, reason="concurrent claim") from e

        await self.audit.log_action(
            action="claim",
            resource_type="booking",
            resource_id=str(booking.id),
            user_id=actor_id,
            details={"slot_id": str(slot.id), "status": status.value, "guest": claimant.is_guest},
        )
        logger.info("Booked slot %s as %s (booking %s)", slot.id, status.value, booking.id)
        return booking

    async def check_claimable(self, slot: CalculatedAvailabilitySlot) -> None:
        """Raise if *slot* cannot be claimed right now."""
        window = slot.availability
        if window is None or window.status != AvailabilityStatus.ACCEPTED.value:
            raise SlotUnavailableError("This slot is not open for booking")
        if as_utc(slot.start_time) < self.clock():
            raise SlotUnavailableError("This slot is in the past")

        if any(self._blocks(b) for b in slot.bookings):
            raise SlotAlreadyBookedError(slot.id, reason="already booked")

        if not self.settings.allow_concurrent_service_bookings:
            # Serializes claims for the same provider across services.
            await self.providers.lock(slot.provider_id)
            clash = await self.bookings.find_provider_overlap(
                slot.provider_id,
                as_utc(slot.start_time),
                as_utc(slot.end_time),
                exclude_slot_id=slot.id,
            )
            if clash is not None:
                raise SlotAlreadyBookedError(slot.id, reason="provider already booked at this time")

    def _blocks(self, booking: Booking) -> bool:
        if booking.status != BookingStatus.CANCELLED.value:
            return True
        return not self.settings.cancelled_booking_frees_slot
