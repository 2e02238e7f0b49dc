"""Plan availability edits and deletes against already-materialized slots.

Everything here is pure: it decides what must happen, or raises the domain
error explaining why nothing may happen. ``AvailabilityService`` applies the
resulting plan inside a transaction.
"""

import logging
from datetime import datetime, tzinfo
from typing import Iterable, Optional, Sequence

from medbookings.scheduling.errors import (
    HasActiveBookingsError,
    WouldExcludeBookingError,
    WouldRemoveBookedServiceError,
)
from medbookings.scheduling.models import (
    DeletePlan,
    ExistingSlot,
    Occurrence,
    ServiceOffering,
    UpdatePlan,
    WindowSpec,
)
from medbookings.scheduling.slots import materialize_slots
from medbookings.scheduling.timezone import UTC, as_utc

logger = logging.getLogger(__name__)


def partition_slots(slots: Iterable[ExistingSlot]) -> tuple[list[ExistingSlot], list[ExistingSlot]]:
    """Split slots into (booked, free). A slot is booked if any booking references it."""
    booked: list[ExistingSlot] = []
    free: list[ExistingSlot] = []
    for slot in slots:
        (booked if slot.is_booked else free).append(slot)
    return booked, free


def plan_delete(slots: Sequence[ExistingSlot]) -> DeletePlan:
    """Delete every slot, or refuse if any of them carries a booking."""
    statuses = [status.value for slot in slots for status in slot.booking_statuses]
    if statuses:
        raise HasActiveBookingsError(statuses)
    return DeletePlan(slot_ids=[slot.id for slot in slots])


def check_update_preconditions(
    booked: Sequence[ExistingSlot],
    occurrences: Sequence[Occurrence],
    services: Sequence[ServiceOffering],
) -> None:
    """Raise unless every booked slot survives the edit unchanged.

    A booked slot survives when it lies inside some new occurrence and its
    service is still offered.
    """
    uncovered = [
        slot
        for slot in booked
        if not any(
            occ.start_time <= as_utc(slot.start_time) and occ.end_time >= as_utc(slot.end_time)
            for occ in occurrences
        )
    ]
    if uncovered:
        raise WouldExcludeBookingError(
            [(as_utc(s.start_time), as_utc(s.end_time)) for s in sorted(uncovered, key=lambda s: s.start_time)]
        )

    offered = {service.service_id for service in services}
    dropped = {slot.service_id for slot in booked} - offered
    if dropped:
        raise WouldRemoveBookedServiceError(dropped)


def plan_update(
    existing_slots: Sequence[ExistingSlot],
    new_occurrences: Iterable[Occurrence],
    new_services: Sequence[ServiceOffering],
    window: WindowSpec,
    tz: tzinfo = UTC,
    not_before: Optional[datetime] = None,
) -> UpdatePlan:
    """Reconcile an edited window with the slots it already has.

    Booked slots are retained untouched, free slots are deleted, and fresh
    slots are generated for the new shape while skipping ranges still held
    by a retained slot of the same service. Fresh slots starting before
    *not_before* are not generated.
    """
    occurrences = [occ for occ in new_occurrences if not occ.is_exception]
    booked, free = partition_slots(existing_slots)

    check_update_preconditions(booked, occurrences, new_services)

    exclude = [(slot.service_id, slot.start_time, slot.end_time) for slot in booked]
    inserts = materialize_slots(window, new_services, occurrences, tz, exclude=exclude)
    if not_before is not None:
        cutoff = as_utc(not_before)
        inserts = [draft for draft in inserts if draft.start_time >= cutoff]

    logger.debug(
        "Update plan: delete=%d insert=%d retain=%d",
        len(free), len(inserts), len(booked),
    )
    return UpdatePlan(
        slots_to_delete=[slot.id for slot in free],
        slots_to_insert=inserts,
        slots_to_retain=[slot.id for slot in booked],
    )
