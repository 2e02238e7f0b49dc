"""Domain errors raised by the scheduling core.

Every error here is a caller-facing outcome: the API layer maps each one to an
HTTP status and a user-facing message. Infrastructure failures (database
unreachable, aborted transactions) are not wrapped and propagate unchanged.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence


class SchedulingError(Exception):
    """Base class for all scheduling domain errors."""

    code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationError(SchedulingError):
    """Malformed recurrence pattern or window times.

    Carries every violated rule, not just the first one found.
    """

    code = "validation_error"

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid input")

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message, "errors": self.errors}


class NotFoundError(SchedulingError):
    code = "not_found"

    def __init__(self, resource: str, resource_id: object):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class HasActiveBookingsError(SchedulingError):
    """Delete refused because at least one slot carries a booking."""

    code = "has_active_bookings"

    def __init__(self, statuses: Iterable[str]):
        self.statuses = sorted(set(statuses))
        super().__init__(
            f"Cannot delete availability with existing bookings ({', '.join(self.statuses)}). "
            "Cancel the bookings first."
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["statuses"] = self.statuses
        return data


class WouldExcludeBookingError(SchedulingError):
    """Update refused because the new range no longer covers a booked slot."""

    code = "would_exclude_booking"

    def __init__(self, intervals: Sequence[tuple[datetime, datetime]]):
        self.intervals = list(intervals)
        first_start, first_end = self.intervals[0]
        super().__init__(
            f"New range must cover booking at {first_start.isoformat()} - {first_end.isoformat()}"
            + (f" (and {len(self.intervals) - 1} more)" if len(self.intervals) > 1 else "")
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["bookings"] = [
            {"start_time": s.isoformat(), "end_time": e.isoformat()} for s, e in self.intervals
        ]
        return data


class WouldRemoveBookedServiceError(SchedulingError):
    """Update refused because a service with booked slots was dropped."""

    code = "would_remove_booked_service"

    def __init__(self, service_ids: Iterable[object]):
        self.service_ids = sorted(str(s) for s in set(service_ids))
        super().__init__(
            "Cannot remove services that have bookings: " + ", ".join(self.service_ids)
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["service_ids"] = self.service_ids
        return data


class SlotAlreadyBookedError(SchedulingError):
    """A claim lost to an existing or concurrent booking."""

    code = "slot_already_booked"

    def __init__(self, slot_id: object, reason: str | None = None):
        self.slot_id = slot_id
        self.reason = reason
        super().__init__("This time is no longer available, please pick another slot.")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["slot_id"] = str(self.slot_id)
        return data


class SlotUnavailableError(SchedulingError):
    """The slot exists but cannot be claimed (past, or window not accepted)."""

    code = "slot_unavailable"


class InvalidStatusTransitionError(SchedulingError):
    code = "invalid_status_transition"

    def __init__(self, resource: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {resource} from {current} to {target}")


class ConcurrentModificationError(SchedulingError):
    """The availability changed since the caller last read it."""

    code = "concurrent_modification"

    def __init__(self, availability_id: object):
        self.availability_id = availability_id
        super().__init__(
            f"Availability {availability_id} was modified by another request; reload and retry"
        )
