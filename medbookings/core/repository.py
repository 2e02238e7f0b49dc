"""CRUD repositories for the booking store.

Repositories flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from medbookings.core.models import (
    AuditLog,
    Availability,
    Booking,
    CalculatedAvailabilitySlot,
    Organization,
    Provider,
    Service,
    ServiceAvailabilityConfig,
)
from medbookings.scheduling.models import AvailabilityStatus, BookingStatus, Owner, SlotDraft

ACTIVE_WINDOW_STATUSES = (AvailabilityStatus.PENDING.value, AvailabilityStatus.ACCEPTED.value)


class OrganizationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Organization:
        org = Organization(**kwargs)
        self.session.add(org)
        await self.session.flush()
        return org


class ProviderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Provider:
        provider = Provider(**kwargs)
        self.session.add(provider)
        await self.session.flush()
        return provider

    async def get_by_id(self, provider_id: uuid.UUID) -> Optional[Provider]:
        return await self.session.get(Provider, provider_id)

    async def lock(self, provider_id: uuid.UUID) -> Optional[Provider]:
        """Row-lock the provider to serialize claims across their services."""
        stmt = select(Provider).where(Provider.id == provider_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class ServiceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Service:
        service = Service(**kwargs)
        self.session.add(service)
        await self.session.flush()
        return service

    async def get_by_id(self, service_id: uuid.UUID) -> Optional[Service]:
        return await self.session.get(Service, service_id)


class ServiceConfigRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for(self, service_id: uuid.UUID, provider_id: uuid.UUID) -> Optional[ServiceAvailabilityConfig]:
        stmt = select(ServiceAvailabilityConfig).where(
            ServiceAvailabilityConfig.service_id == service_id,
            ServiceAvailabilityConfig.provider_id == provider_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **kwargs) -> ServiceAvailabilityConfig:
        config = ServiceAvailabilityConfig(**kwargs)
        self.session.add(config)
        await self.session.flush()
        return config

    async def has_booked_slots(self, config_id: uuid.UUID) -> bool:
        """Whether any slot materialized from this config carries a booking."""
        stmt = select(
            exists().where(
                CalculatedAvailabilitySlot.service_config_id == config_id,
                Booking.slot_id == CalculatedAvailabilitySlot.id,
            )
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def used_by_other_windows(self, config_id: uuid.UUID, availability_id: Optional[uuid.UUID] = None) -> bool:
        """Whether slots of any window other than *availability_id* were cut from this config."""
        condition = exists().where(CalculatedAvailabilitySlot.service_config_id == config_id)
        if availability_id is not None:
            condition = condition.where(CalculatedAvailabilitySlot.availability_id != availability_id)
        result = await self.session.execute(select(condition))
        return bool(result.scalar())


class AvailabilityRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Availability:
        availability = Availability(**kwargs)
        self.session.add(availability)
        await self.session.flush()
        return availability

    async def get_by_id(self, availability_id: uuid.UUID) -> Optional[Availability]:
        return await self.session.get(Availability, availability_id)

    async def get_for_update(self, availability_id: uuid.UUID) -> Optional[Availability]:
        """Load the window with a row lock, refreshing any stale identity-map copy."""
        stmt = (
            select(Availability)
            .where(Availability.id == availability_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_shared(self, availability_id: uuid.UUID) -> bool:
        """Share-lock the window row so claims serialize with edits and deletes.

        Returns False when the window no longer exists.
        """
        stmt = select(Availability.id).where(Availability.id == availability_id).with_for_update(read=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list(
        self,
        owner: Optional[Owner] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Sequence[Availability]:
        stmt = select(Availability)
        if owner is not None:
            column = {
                "organization": Availability.organization_id,
                "location": Availability.location_id,
                "provider": Availability.provider_id,
            }[owner.kind]
            stmt = stmt.where(column == owner.id)
        if status:
            stmt = stmt.where(Availability.status == status)
        if start:
            stmt = stmt.where(Availability.end_time > start)
        if end:
            stmt = stmt.where(Availability.start_time < end)
        stmt = stmt.order_by(Availability.start_time).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_by_series(self, series_id: uuid.UUID) -> Sequence[Availability]:
        stmt = select(Availability).where(Availability.series_id == series_id).order_by(Availability.start_time)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_active_for_provider(
        self, provider_id: uuid.UUID, exclude_id: Optional[uuid.UUID] = None
    ) -> Sequence[Availability]:
        """PENDING/ACCEPTED windows of a provider, optionally without one of them."""
        stmt = select(Availability).where(
            Availability.provider_id == provider_id,
            Availability.status.in_(ACTIVE_WINDOW_STATUSES),
        )
        if exclude_id is not None:
            stmt = stmt.where(Availability.id != exclude_id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def delete(self, availability: Availability) -> None:
        await self.session.delete(availability)
        await self.session.flush()


class SlotRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def bulk_create(self, drafts: Iterable[SlotDraft]) -> list[CalculatedAvailabilitySlot]:
        slots = [
            CalculatedAvailabilitySlot(
                availability_id=d.availability_id,
                provider_id=d.provider_id,
                service_id=d.service_id,
                service_config_id=d.service_config_id,
                start_time=d.start_time,
                end_time=d.end_time,
                price=d.price,
            )
            for d in drafts
        ]
        self.session.add_all(slots)
        await self.session.flush()
        return slots

    async def get_by_id(self, slot_id: uuid.UUID) -> Optional[CalculatedAvailabilitySlot]:
        return await self.session.get(CalculatedAvailabilitySlot, slot_id)

    async def get_fresh(self, slot_id: uuid.UUID) -> Optional[CalculatedAvailabilitySlot]:
        """Re-read a slot, its window and its bookings from the database."""
        stmt = (
            select(CalculatedAvailabilitySlot)
            .where(CalculatedAvailabilitySlot.id == slot_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_availability(self, availability_id: uuid.UUID) -> Sequence[CalculatedAvailabilitySlot]:
        """Slots of a window with their bookings freshly loaded."""
        stmt = (
            select(CalculatedAvailabilitySlot)
            .where(CalculatedAvailabilitySlot.availability_id == availability_id)
            .order_by(CalculatedAvailabilitySlot.start_time)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def delete_ids(self, slot_ids: Sequence[uuid.UUID]) -> int:
        if not slot_ids:
            return 0
        result = await self.session.execute(
            delete(CalculatedAvailabilitySlot).where(CalculatedAvailabilitySlot.id.in_(list(slot_ids)))
        )
        await self.session.flush()
        return result.rowcount or 0

    async def list_bookable(
        self,
        provider_id: uuid.UUID,
        start: datetime,
        end: datetime,
        service_id: Optional[uuid.UUID] = None,
        cancelled_frees_slot: bool = False,
        limit: int = 200,
    ) -> Sequence[CalculatedAvailabilitySlot]:
        """Unbooked slots of ACCEPTED windows starting within ``[start, end)``."""
        booked = exists().where(Booking.slot_id == CalculatedAvailabilitySlot.id)
        if cancelled_frees_slot:
            booked = booked.where(Booking.status != BookingStatus.CANCELLED.value)
        stmt = (
            select(CalculatedAvailabilitySlot)
            .join(Availability, Availability.id == CalculatedAvailabilitySlot.availability_id)
            .where(
                CalculatedAvailabilitySlot.provider_id == provider_id,
                CalculatedAvailabilitySlot.start_time >= start,
                CalculatedAvailabilitySlot.start_time < end,
                Availability.status == AvailabilityStatus.ACCEPTED.value,
                ~booked,
            )
            .order_by(CalculatedAvailabilitySlot.start_time)
            .limit(limit)
        )
        if service_id is not None:
            stmt = stmt.where(CalculatedAvailabilitySlot.service_id == service_id)
        result = await self.session.execute(stmt)
        return result.scalars().all()


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Booking:
        booking = Booking(**kwargs)
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(self, booking_id: uuid.UUID) -> Optional[Booking]:
        return await self.session.get(Booking, booking_id)

    async def get_for_update(self, booking_id: uuid.UUID) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_slot(self, slot_id: uuid.UUID) -> Sequence[Booking]:
        stmt = select(Booking).where(Booking.slot_id == slot_id).order_by(Booking.created_at)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_provider_overlap(
        self,
        provider_id: uuid.UUID,
        start: datetime,
        end: datetime,
        exclude_slot_id: Optional[uuid.UUID] = None,
    ) -> Optional[Booking]:
        """A live booking of the provider on another slot overlapping ``[start, end)``."""
        stmt = (
            select(Booking)
            .join(CalculatedAvailabilitySlot, CalculatedAvailabilitySlot.id == Booking.slot_id)
            .where(
                CalculatedAvailabilitySlot.provider_id == provider_id,
                CalculatedAvailabilitySlot.start_time < end,
                CalculatedAvailabilitySlot.end_time > start,
                Booking.status != BookingStatus.CANCELLED.value,
            )
            .limit(1)
        )
        if exclude_slot_id is not None:
            stmt = stmt.where(CalculatedAvailabilitySlot.id != exclude_slot_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class AuditRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        user_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id),
            details=details,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_resource(self, resource_type: str, resource_id: str, limit: int = 50) -> Sequence[AuditLog]:
        stmt = (
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == str(resource_id))
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
