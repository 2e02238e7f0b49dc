"""Pydantic models for the scheduling core."""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RecurrenceType(str, Enum):
    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class SchedulingRule(str, Enum):
    """Policy for aligning slot start times."""

    CONTINUOUS = "CONTINUOUS"
    ON_THE_HOUR = "ON_THE_HOUR"
    ON_THE_HALF_HOUR = "ON_THE_HALF_HOUR"


class AvailabilityStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


# Days of week use 0=Sunday .. 6=Saturday.
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# Week-of-month value meaning "the last seven days of the month".
LAST_WEEK = -1


class RecurrencePattern(BaseModel):
    """Embedded recurrence rule of an availability window.

    Fields are kept loosely typed so that validation can report every broken
    rule at once instead of failing on the first bad field.
    """

    type: str = RecurrenceType.NONE.value
    interval: int = 1
    days_of_week: Optional[list[int]] = None
    day_of_month: Optional[int] = None
    week_of_month: Optional[int] = None
    start_time: Optional[str] = Field(default=None, description="HH:MM override per occurrence")
    end_time: Optional[str] = Field(default=None, description="HH:MM override per occurrence")
    end_date: Optional[str] = Field(default=None, description="YYYY-MM-DD, inclusive")
    count: Optional[int] = None
    exceptions: list[str] = Field(default_factory=list, description="YYYY-MM-DD dates to skip")

    @property
    def recurrence_type(self) -> Optional[RecurrenceType]:
        try:
            return RecurrenceType(str(self.type).upper())
        except ValueError:
            return None

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_type not in (None, RecurrenceType.NONE)


class Occurrence(BaseModel):
    """One concrete calendar instance of a (possibly recurring) window."""

    start_time: datetime
    end_time: datetime
    occurrence_number: int
    is_exception: bool = False


class ServiceOffering(BaseModel):
    """A service offered under a window, as needed for slot generation."""

    service_id: uuid.UUID
    duration: int = Field(gt=0, description="Minutes")
    price: float = 0
    service_config_id: Optional[uuid.UUID] = None


class WindowSpec(BaseModel):
    """The parts of an availability window the materializer needs."""

    availability_id: Optional[uuid.UUID] = None
    provider_id: uuid.UUID
    scheduling_rule: SchedulingRule = SchedulingRule.CONTINUOUS


class SlotDraft(BaseModel):
    """A slot computed by the materializer but not yet persisted."""

    availability_id: Optional[uuid.UUID] = None
    provider_id: uuid.UUID
    service_id: uuid.UUID
    service_config_id: Optional[uuid.UUID] = None
    start_time: datetime
    end_time: datetime
    price: float = 0

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


class ExistingSlot(BaseModel):
    """A persisted slot together with its booking linkage."""

    id: uuid.UUID
    service_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    booking_statuses: list[BookingStatus] = Field(default_factory=list)

    @property
    def is_booked(self) -> bool:
        return bool(self.booking_statuses)


class DeletePlan(BaseModel):
    slot_ids: list[uuid.UUID] = []


class UpdatePlan(BaseModel):
    """Outcome of reconciling an availability edit against existing slots."""

    slots_to_delete: list[uuid.UUID] = []
    slots_to_insert: list[SlotDraft] = []
    slots_to_retain: list[uuid.UUID] = []


class Owner(BaseModel):
    """Exactly one owner of an availability window or subscription-like record."""

    kind: Literal["organization", "location", "provider"]
    id: uuid.UUID


class Claimant(BaseModel):
    """Who is claiming a slot: a registered user or a guest."""

    user_id: Optional[uuid.UUID] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None


class PreviewRequest(BaseModel):
    """Expand a window without persisting anything."""

    start_time: datetime
    end_time: datetime
    recurrence_pattern: Optional[RecurrencePattern] = None
    scheduling_rule: SchedulingRule = SchedulingRule.CONTINUOUS
    services: list[ServiceOffering] = []
    timezone: Optional[str] = None
    until: Optional[date] = None


class ScheduleEfficiency(BaseModel):
    """How much of a window a scheduling rule turns into bookable time."""

    max_possible_slots: int
    actual_slots: int
    utilization_rate: float = Field(ge=0, le=1)
    average_gap_minutes: float


class ServiceEfficiency(ScheduleEfficiency):
    service_id: uuid.UUID
    duration: int


class WindowPreview(BaseModel):
    """Everything a dry run of a window produces."""

    occurrences: list[Occurrence]
    slots: list[SlotDraft]
    efficiency: list[ServiceEfficiency] = Field(default_factory=list)
    # False when slots cannot start at the window's own start time
    aligned_start: bool = True
    next_occurrence: Optional[Occurrence] = None
