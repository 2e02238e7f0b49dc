"""Scheduling core: recurrence expansion, slot materialization, reconciliation.

The transactional services live in ``medbookings.scheduling.availability``,
``medbookings.scheduling.guard`` and ``medbookings.scheduling.bookings``.
"""

from medbookings.scheduling.errors import (
    ConcurrentModificationError,
    HasActiveBookingsError,
    InvalidStatusTransitionError,
    NotFoundError,
    SchedulingError,
    SlotAlreadyBookedError,
    SlotUnavailableError,
    ValidationError,
    WouldExcludeBookingError,
    WouldRemoveBookedServiceError,
)
from medbookings.scheduling.models import (
    AvailabilityStatus,
    BookingStatus,
    Occurrence,
    RecurrencePattern,
    RecurrenceType,
    SchedulingRule,
    ServiceOffering,
    SlotDraft,
    WindowSpec,
)
from medbookings.scheduling.reconciler import plan_delete, plan_update
from medbookings.scheduling.recurrence import generate_occurrences, validate_recurrence_pattern
from medbookings.scheduling.slots import materialize_slots

__all__ = [
    "AvailabilityStatus",
    "BookingStatus",
    "ConcurrentModificationError",
    "HasActiveBookingsError",
    "InvalidStatusTransitionError",
    "NotFoundError",
    "Occurrence",
    "RecurrencePattern",
    "RecurrenceType",
    "SchedulingError",
    "SchedulingRule",
    "ServiceOffering",
    "SlotAlreadyBookedError",
    "SlotDraft",
    "SlotUnavailableError",
    "ValidationError",
    "WindowSpec",
    "WouldExcludeBookingError",
    "WouldRemoveBookedServiceError",
    "generate_occurrences",
    "materialize_slots",
    "plan_delete",
    "plan_update",
    "validate_recurrence_pattern",
]
