"""Availability service: create, edit, delete and review availability windows.

Every public method runs inside the caller's transaction. All checks happen
before the first write, so a rejected call leaves nothing behind even when the
session is not rolled back. Edits and deletes re-read the window under
``SELECT ... FOR UPDATE`` and rely on the row's version counter to detect
concurrent writers.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from medbookings.config import Settings, get_settings
from medbookings.core.models import Availability, CalculatedAvailabilitySlot, ServiceAvailabilityConfig
from medbookings.core.repository import (
    AuditRepository,
    AvailabilityRepository,
    ProviderRepository,
    ServiceConfigRepository,
    ServiceRepository,
    SlotRepository,
)
from medbookings.core.schemas import AvailabilityCreate, AvailabilityUpdate, ServiceOfferingIn
from medbookings.scheduling.errors import (
    ConcurrentModificationError,
    InvalidStatusTransitionError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from medbookings.scheduling.models import (
    AvailabilityStatus,
    BookingStatus,
    ExistingSlot,
    Occurrence,
    Owner,
    PreviewRequest,
    RecurrencePattern,
    SchedulingRule,
    ServiceEfficiency,
    ServiceOffering,
    UpdatePlan,
    WindowPreview,
    WindowSpec,
)
from medbookings.scheduling.reconciler import partition_slots, plan_delete, plan_update
from medbookings.scheduling.recurrence import (
    generate_occurrences,
    is_date_in_pattern,
    next_occurrence,
    validate_recurrence_pattern,
)
from medbookings.scheduling.slots import is_slot_aligned, materialize_slots, schedule_efficiency
from medbookings.scheduling.timezone import as_utc, get_zone, to_utc, utcnow
from medbookings.scheduling.validation import (
    find_overlaps,
    find_self_overlaps,
    validate_window_times,
)

logger = logging.getLogger(__name__)

RESOURCE = "availability"

# Provider id used for slots computed by a dry-run preview.
PREVIEW_PROVIDER_ID = uuid.UUID(int=0)


@dataclass
class _ServicePlan:
    """A resolved service offering, before anything is written."""

    service_id: uuid.UUID
    config: Optional[ServiceAvailabilityConfig]
    config_id: uuid.UUID
    duration: int
    price: float
    is_online_available: bool
    is_in_person: bool
    location_id: Optional[uuid.UUID]

    @property
    def changes_config(self) -> bool:
        return self.config is not None and (self.config.duration, self.config.price) != (self.duration, self.price)

    def offering(self) -> ServiceOffering:
        return ServiceOffering(
            service_id=self.service_id,
            duration=self.duration,
            price=self.price,
            service_config_id=self.config_id,
        )


def resolve_zone(name: Optional[str]) -> tzinfo:
    try:
        return get_zone(name)
    except ValueError as e:
        raise ValidationError([str(e)]) from e


def load_pattern(stored: Optional[dict]) -> Optional[RecurrencePattern]:
    return RecurrencePattern.model_validate(stored) if stored else None


def preview_window(
    request: PreviewRequest,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> WindowPreview:
    """Expand a window and cut its slots without touching the store."""
    settings = settings or get_settings()
    tz = resolve_zone(request.timezone or settings.default_timezone)
    start = to_utc(request.start_time, tz)
    end = to_utc(request.end_time, tz)
    until = request.until or (start + timedelta(days=settings.materialization_horizon_days)).astimezone(tz).date()

    occurrences = list(
        generate_occurrences(
            request.recurrence_pattern,
            start,
            end,
            end_date=until,
            tz=tz,
            include_exceptions=True,
            ceiling=settings.max_occurrences,
        )
    )
    window = WindowSpec(provider_id=PREVIEW_PROVIDER_ID, scheduling_rule=request.scheduling_rule)
    window_minutes = int((end - start).total_seconds() // 60)
    efficiency = [
        ServiceEfficiency(
            service_id=service.service_id,
            duration=service.duration,
            **schedule_efficiency(window_minutes, service.duration, request.scheduling_rule).model_dump(),
        )
        for service in request.services
    ]
    return WindowPreview(
        occurrences=occurrences,
        slots=materialize_slots(window, request.services, occurrences, tz),
        efficiency=efficiency,
        aligned_start=is_slot_aligned(start, request.scheduling_rule, tz),
        next_occurrence=next_occurrence(
            now or utcnow(), request.recurrence_pattern, start, end, tz, ceiling=settings.max_occurrences
        ),
    )


class AvailabilityService:
    """Transactional operations on availability windows and their slots."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock
        self.availabilities = AvailabilityRepository(session)
        self.slots = SlotRepository(session)
        self.providers = ProviderRepository(session)
        self.services = ServiceRepository(session)
        self.configs = ServiceConfigRepository(session)
        self.audit = AuditRepository(session)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_availability(
        self, data: AvailabilityCreate, actor_id: Optional[str] = None
    ) -> tuple[Availability, int]:
        """Validate, store and (for provider-created windows) materialize a window.

        Returns the stored window and the number of slots created.
        """
        provider = await self.providers.get_by_id(data.provider_id)
        if provider is None:
            raise NotFoundError("Provider", data.provider_id)

        zone_name = data.timezone or provider.timezone or self.settings.default_timezone
        tz = resolve_zone(zone_name)
        start = to_utc(data.start_time, tz)
        end = to_utc(data.end_time, tz)
        pattern = data.recurrence_pattern if data.recurrence_pattern and data.recurrence_pattern.is_recurring else None

        errors = validate_window_times(
            start,
            end,
            now=self.clock(),
            min_minutes=self.settings.min_availability_minutes,
            max_past_days=self.settings.max_past_days,
            max_future_months=self.settings.max_future_months,
        )
        if pattern is not None:
            errors.extend(validate_recurrence_pattern(pattern, start, tz))
        if errors:
            raise ValidationError(errors)

        occurrences = self._expand(pattern, start, end, tz)
        errors = find_self_overlaps(occurrences)
        errors.extend(await self._overlap_errors(provider.id, occurrences))
        if errors:
            raise ValidationError(errors)

        service_plans = await self._plan_services(provider.id, data.services)

        # All checks passed; writes start here.
        proposed_by_org = data.owner is not None and data.owner.kind == "organization"
        status = AvailabilityStatus.PENDING if proposed_by_org else AvailabilityStatus.ACCEPTED
        configs = await self._apply_services(provider.id, service_plans)

        availability = await self.availabilities.create(
            provider_id=provider.id,
            organization_id=data.owner.id if proposed_by_org else provider.organization_id,
            location_id=data.location_id or _owner_location(data.owner),
            created_by_organization=proposed_by_org,
            start_time=start,
            end_time=end,
            timezone=zone_name,
            is_recurring=pattern is not None,
            recurrence_pattern=pattern.model_dump(exclude_none=True) if pattern else None,
            series_id=uuid.uuid4() if pattern is not None else None,
            status=status.value,
            scheduling_rule=data.scheduling_rule.value,
            is_online_available=data.is_online_available,
            requires_confirmation=data.requires_confirmation,
            service_configs=configs,
        )

        created = 0
        if status is AvailabilityStatus.ACCEPTED:
            created = await self._materialize(availability, [p.offering() for p in service_plans], occurrences, tz)

        await self.audit.log_action(
            action="create",
            resource_type=RESOURCE,
            resource_id=str(availability.id),
            user_id=actor_id,
            details={"status": status.value, "occurrences": len(occurrences), "slots_created": created},
        )
        logger.info(
            "Created availability %s for provider %s: status=%s occurrences=%d slots=%d",
            availability.id, provider.id, status.value, len(occurrences), created,
        )
        return availability, created

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_availability(self, availability_id: uuid.UUID) -> Availability:
        availability = await self.availabilities.get_by_id(availability_id)
        if availability is None:
            raise NotFoundError("Availability", availability_id)
        return availability

    async def list_availabilities(
        self,
        owner: Optional[Owner] = None,
        status: Optional[AvailabilityStatus] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Sequence[Availability]:
        return await self.availabilities.list(
            owner=owner,
            status=status.value if status else None,
            start=as_utc(start) if start else None,
            end=as_utc(end) if end else None,
            offset=offset,
            limit=limit,
        )

    async def list_series(self, series_id: uuid.UUID) -> Sequence[Availability]:
        return await self.availabilities.list_by_series(series_id)

    async def list_slots(self, availability_id: uuid.UUID) -> Sequence[CalculatedAvailabilitySlot]:
        await self.get_availability(availability_id)
        return await self.slots.list_for_availability(availability_id)

    async def occurs_on(self, availability_id: uuid.UUID, day: date) -> bool:
        """Whether the window or its series has an occurrence on local date *day*.

        Exception dates do not count.
        """
        availability = await self.get_availability(availability_id)
        return is_date_in_pattern(
            day,
            load_pattern(availability.recurrence_pattern),
            as_utc(availability.start_time),
            as_utc(availability.end_time),
            resolve_zone(availability.timezone),
            ceiling=self.settings.max_occurrences,
        )

    async def list_bookable_slots(
        self,
        provider_id: uuid.UUID,
        start: datetime,
        end: datetime,
        service_id: Optional[uuid.UUID] = None,
        limit: int = 200,
    ) -> Sequence[CalculatedAvailabilitySlot]:
        """Free, future slots of accepted windows in ``[start, end)``."""
        start = max(as_utc(start), self.clock())
        return await self.slots.list_bookable(
            provider_id,
            start,
            as_utc(end),
            service_id=service_id,
            cancelled_frees_slot=self.settings.cancelled_booking_frees_slot,
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update_availability(
        self,
        availability_id: uuid.UUID,
        data: AvailabilityUpdate,
        actor_id: Optional[str] = None,
    ) -> tuple[Availability, UpdatePlan]:
        """Edit a window, keeping every booked slot exactly as it is.

        Raises:
            NotFoundError: unknown window.
            ConcurrentModificationError: ``expected_version`` is stale, or a slot
                planned as free was booked before it could be deleted.
            ValidationError: the edited window is malformed or overlaps.
            WouldExcludeBookingError: a booked slot falls outside the new shape.
            WouldRemoveBookedServiceError: a booked service is no longer offered.
        """
        availability = await self._lock(availability_id, data.expected_version)
        status = AvailabilityStatus(availability.status)
        if status not in (AvailabilityStatus.PENDING, AvailabilityStatus.ACCEPTED):
            raise ValidationError([f"Cannot edit a {status.value} availability"])

        tz = resolve_zone(availability.timezone)
        start = to_utc(data.start_time, tz) if data.start_time else as_utc(availability.start_time)
        end = to_utc(data.end_time, tz) if data.end_time else as_utc(availability.end_time)
        if "recurrence_pattern" in data.model_fields_set:
            pattern = data.recurrence_pattern if data.recurrence_pattern and data.recurrence_pattern.is_recurring else None
        else:
            pattern = load_pattern(availability.recurrence_pattern)
        rule = data.scheduling_rule or SchedulingRule(availability.scheduling_rule)

        if data.start_time or data.end_time:
            errors = validate_window_times(
                start,
                end,
                now=self.clock(),
                min_minutes=self.settings.min_availability_minutes,
                max_past_days=self.settings.max_past_days,
                max_future_months=self.settings.max_future_months,
            )
        elif end <= start:
            errors = ["End time must be after start time"]
        else:
            errors = []
        if pattern is not None:
            errors.extend(validate_recurrence_pattern(pattern, start, tz))
        if errors:
            raise ValidationError(errors)

        occurrences = self._expand(pattern, start, end, tz)
        errors = find_self_overlaps(occurrences)
        errors.extend(await self._overlap_errors(availability.provider_id, occurrences, exclude_id=availability.id))
        if errors:
            raise ValidationError(errors)

        if data.services is not None:
            service_plans = await self._plan_services(availability.provider_id, data.services, availability.id)
        else:
            service_plans = [_plan_from_config(c) for c in availability.service_configs]

        existing = _existing_slots(await self.slots.list_for_availability(availability.id))
        window = WindowSpec(
            availability_id=availability.id,
            provider_id=availability.provider_id,
            scheduling_rule=rule,
        )
        offerings = [p.offering() for p in service_plans]
        if status is AvailabilityStatus.ACCEPTED:
            try:
                plan = plan_update(existing, occurrences, offerings, window, tz, not_before=self.clock())
            except SchedulingError as e:
                logger.warning("Rejected update of availability %s: %s", availability.id, e)
                raise
        else:
            plan = UpdatePlan()

        # All checks passed; writes start here.
        configs = await self._apply_services(availability.provider_id, service_plans)
        await self._delete_slots(availability, plan.slots_to_delete)

        availability.start_time = start
        availability.end_time = end
        availability.is_recurring = pattern is not None
        availability.recurrence_pattern = pattern.model_dump(exclude_none=True) if pattern else None
        if pattern is not None and availability.series_id is None:
            availability.series_id = uuid.uuid4()
        availability.scheduling_rule = rule.value
        if data.is_online_available is not None:
            availability.is_online_available = data.is_online_available
        if data.requires_confirmation is not None:
            availability.requires_confirmation = data.requires_confirmation
        if data.location_id is not None:
            availability.location_id = data.location_id
        availability.service_configs = configs
        availability.updated_at = utcnow()
        await self._flush(availability)

        await self.slots.bulk_create(plan.slots_to_insert)
        await self.audit.log_action(
            action="update",
            resource_type=RESOURCE,
            resource_id=str(availability.id),
            user_id=actor_id,
            details={
                "version": availability.version,
                "slots_deleted": len(plan.slots_to_delete),
                "slots_created": len(plan.slots_to_insert),
                "slots_retained": len(plan.slots_to_retain),
            },
        )
        logger.info(
            "Updated availability %s: deleted=%d created=%d retained=%d",
            availability.id, len(plan.slots_to_delete), len(plan.slots_to_insert), len(plan.slots_to_retain),
        )
        return availability, plan

    # ------------------------------------------------------------------
    # Delete / workflow
    # ------------------------------------------------------------------

    async def delete_availability(
        self,
        availability_id: uuid.UUID,
        expected_version: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> int:
        """Delete a window and all its slots; refused while any slot is booked.

        Returns the number of slots deleted.
        """
        availability = await self._lock(availability_id, expected_version)
        existing = _existing_slots(await self.slots.list_for_availability(availability.id))
        try:
            plan = plan_delete(existing)
        except SchedulingError as e:
            logger.warning("Rejected delete of availability %s: %s", availability.id, e)
            raise

        deleted = await self._delete_slots(availability, plan.slot_ids)
        try:
            await self.availabilities.delete(availability)
        except StaleDataError as e:
            raise ConcurrentModificationError(availability.id) from e

        await self.audit.log_action(
            action="delete",
            resource_type=RESOURCE,
            resource_id=str(availability_id),
            user_id=actor_id,
            details={"slots_deleted": deleted},
        )
        logger.info("Deleted availability %s and %d slots", availability_id, deleted)
        return deleted

    async def cancel_availability(
        self, availability_id: uuid.UUID, actor_id: Optional[str] = None
    ) -> tuple[Availability, int]:
        """Soft-cancel: free slots go, booked slots stay with their bookings."""
        availability = await self._lock(availability_id)
        self._check_transition(availability, AvailabilityStatus.CANCELLED)

        _, free = partition_slots(_existing_slots(await self.slots.list_for_availability(availability.id)))
        deleted = await self._delete_slots(availability, [slot.id for slot in free])
        availability.status = AvailabilityStatus.CANCELLED.value
        availability.updated_at = utcnow()
        await self._flush(availability)

        await self.audit.log_action(
            action="cancel",
            resource_type=RESOURCE,
            resource_id=str(availability.id),
            user_id=actor_id,
            details={"slots_deleted": deleted},
        )
        logger.info("Cancelled availability %s, removed %d free slots", availability.id, deleted)
        return availability, deleted

    async def accept_availability(
        self, availability_id: uuid.UUID, actor_id: Optional[str] = None
    ) -> tuple[Availability, int]:
        """Provider accepts an organization's proposal; slots are materialized now."""
        availability = await self._lock(availability_id)
        self._check_transition(availability, AvailabilityStatus.ACCEPTED)

        tz = resolve_zone(availability.timezone)
        occurrences = self._expand(
            load_pattern(availability.recurrence_pattern),
            as_utc(availability.start_time),
            as_utc(availability.end_time),
            tz,
        )
        offerings = [_plan_from_config(c).offering() for c in availability.service_configs]

        availability.status = AvailabilityStatus.ACCEPTED.value
        availability.updated_at = utcnow()
        await self._flush(availability)
        created = await self._materialize(availability, offerings, occurrences, tz)

        await self.audit.log_action(
            action="accept",
            resource_type=RESOURCE,
            resource_id=str(availability.id),
            user_id=actor_id,
            details={"slots_created": created},
        )
        logger.info("Accepted availability %s, materialized %d slots", availability.id, created)
        return availability, created

    async def reject_availability(
        self, availability_id: uuid.UUID, actor_id: Optional[str] = None
    ) -> Availability:
        availability = await self._lock(availability_id)
        self._check_transition(availability, AvailabilityStatus.REJECTED)

        availability.status = AvailabilityStatus.REJECTED.value
        availability.updated_at = utcnow()
        await self._flush(availability)

        await self.audit.log_action(
            action="reject",
            resource_type=RESOURCE,
            resource_id=str(availability.id),
            user_id=actor_id,
        )
        logger.info("Rejected availability %s", availability.id)
        return availability

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lock(self, availability_id: uuid.UUID, expected_version: Optional[int] = None) -> Availability:
        availability = await self.availabilities.get_for_update(availability_id)
        if availability is None:
            raise NotFoundError("Availability", availability_id)
        if expected_version is not None and expected_version != availability.version:
            raise ConcurrentModificationError(availability_id)
        return availability

    async def _flush(self, availability: Availability) -> None:
        try:
            await self.session.flush()
        except StaleDataError as e:
            raise ConcurrentModificationError(availability.id) from e

    async def _delete_slots(self, availability: Availability, slot_ids: Sequence[uuid.UUID]) -> int:
        """Delete slots planned as free; a booking that landed since is a conflict."""
        try:
            return await self.slots.delete_ids(slot_ids)
        except IntegrityError as e:
            logger.warning("Slots of availability %s were booked while it was being changed", availability.id)
            raise ConcurrentModificationError(availability.id) from e

    @staticmethod
    def _check_transition(availability: Availability, target: AvailabilityStatus) -> None:
        current = AvailabilityStatus(availability.status)
        allowed = _WINDOW_TRANSITIONS.get(current, ())
        if target not in allowed:
            raise InvalidStatusTransitionError("availability", current.value, target.value)

    def _expand(
        self,
        pattern: Optional[RecurrencePattern],
        start: datetime,
        end: datetime,
        tz: tzinfo,
    ) -> list[Occurrence]:
        """Occurrences up to the materialization horizon."""
        horizon = max(start, self.clock()) + timedelta(days=self.settings.materialization_horizon_days)
        return list(
            generate_occurrences(
                pattern,
                start,
                end,
                end_date=horizon,
                tz=tz,
                ceiling=self.settings.max_occurrences,
            )
        )

    async def _overlap_errors(
        self,
        provider_id: uuid.UUID,
        occurrences: Sequence[Occurrence],
        exclude_id: Optional[uuid.UUID] = None,
    ) -> list[str]:
        if not occurrences:
            return []
        last_end = max(occ.end_time for occ in occurrences)
        existing: list[tuple[datetime, datetime]] = []
        for other in await self.availabilities.list_active_for_provider(provider_id, exclude_id=exclude_id):
            other_tz = resolve_zone(other.timezone)
            for occ in generate_occurrences(
                load_pattern(other.recurrence_pattern),
                as_utc(other.start_time),
                as_utc(other.end_time),
                end_date=last_end,
                tz=other_tz,
                ceiling=self.settings.max_occurrences,
            ):
                existing.append((occ.start_time, occ.end_time))
        return find_overlaps(occurrences, existing)

    async def _plan_services(
        self,
        provider_id: uuid.UUID,
        offerings: Sequence[ServiceOfferingIn],
        availability_id: Optional[uuid.UUID] = None,
    ) -> list[_ServicePlan]:
        """Resolve requested services against the provider's configs; no writes.

        A config is shared by all of the provider's windows, so its duration and
        price may only change while no booked slot and no slot of another
        window was cut from it.
        """
        plans: list[_ServicePlan] = []
        errors: list[str] = []
        seen: set[uuid.UUID] = set()

        for offering in offerings:
            if offering.service_id in seen:
                errors.append(f"Service {offering.service_id} is listed more than once")
                continue
            seen.add(offering.service_id)

            service = await self.services.get_by_id(offering.service_id)
            if service is None:
                raise NotFoundError("Service", offering.service_id)
            config = await self.configs.get_for(offering.service_id, provider_id)

            if offering.duration is not None:
                duration = offering.duration
            else:
                duration = config.duration if config else service.default_duration
            if offering.price is not None:
                price = offering.price
            else:
                price = config.price if config else service.default_price

            plan = _ServicePlan(
                service_id=service.id,
                config=config,
                config_id=config.id if config else uuid.uuid4(),
                duration=duration,
                price=price,
                is_online_available=offering.is_online_available,
                is_in_person=offering.is_in_person,
                location_id=offering.location_id,
            )
            if plan.changes_config:
                if await self.configs.has_booked_slots(plan.config_id):
                    errors.append(
                        f"Cannot change duration or price of service {service.id} while it has booked slots"
                    )
                elif await self.configs.used_by_other_windows(plan.config_id, availability_id):
                    errors.append(
                        f"Cannot change duration or price of service {service.id} while other availability windows use it"
                    )
            plans.append(plan)

        if errors:
            raise ValidationError(errors)
        return plans

    async def _apply_services(
        self, provider_id: uuid.UUID, plans: Sequence[_ServicePlan]
    ) -> list[ServiceAvailabilityConfig]:
        configs: list[ServiceAvailabilityConfig] = []
        for plan in plans:
            config = plan.config
            if config is None:
                config = await self.configs.create(
                    id=plan.config_id,
                    service_id=plan.service_id,
                    provider_id=provider_id,
                    duration=plan.duration,
                    price=plan.price,
                    is_online_available=plan.is_online_available,
                    is_in_person=plan.is_in_person,
                    location_id=plan.location_id,
                )
            else:
                config.duration = plan.duration
                config.price = plan.price
                config.is_online_available = plan.is_online_available
                config.is_in_person = plan.is_in_person
                config.location_id = plan.location_id
            configs.append(config)
        return configs

    async def _materialize(
        self,
        availability: Availability,
        offerings: Sequence[ServiceOffering],
        occurrences: Sequence[Occurrence],
        tz: tzinfo,
    ) -> int:
        window = WindowSpec(
            availability_id=availability.id,
            provider_id=availability.provider_id,
            scheduling_rule=SchedulingRule(availability.scheduling_rule),
        )
        drafts = materialize_slots(window, offerings, occurrences, tz)
        await self.slots.bulk_create(drafts)
        return len(drafts)


_WINDOW_TRANSITIONS: dict[AvailabilityStatus, tuple[AvailabilityStatus, ...]] = {
    AvailabilityStatus.PENDING: (
        AvailabilityStatus.ACCEPTED,
        AvailabilityStatus.REJECTED,
        AvailabilityStatus.CANCELLED,
    ),
    AvailabilityStatus.ACCEPTED: (AvailabilityStatus.CANCELLED,),
}


def _owner_location(owner: Optional[Owner]) -> Optional[uuid.UUID]:
    return owner.id if owner is not None and owner.kind == "location" else None


def _plan_from_config(config: ServiceAvailabilityConfig) -> _ServicePlan:
    return _ServicePlan(
        service_id=config.service_id,
        config=config,
        config_id=config.id,
        duration=config.duration,
        price=config.price,
        is_online_available=config.is_online_available,
        is_in_person=config.is_in_person,
        location_id=config.location_id,
    )


def _existing_slots(slots: Sequence[CalculatedAvailabilitySlot]) -> list[ExistingSlot]:
    return [
        ExistingSlot(
            id=slot.id,
            service_id=slot.service_id,
            start_time=as_utc(slot.start_time),
            end_time=as_utc(slot.end_time),
            booking_statuses=[BookingStatus(b.status) for b in slot.bookings],
        )
        for slot in slots
    ]
