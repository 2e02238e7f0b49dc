"""Pydantic schemas for the booking API I/O."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from medbookings.scheduling.models import Owner, RecurrencePattern, SchedulingRule


# --- Service configs ---

class ServiceOfferingIn(BaseModel):
    """A service offered under a window. Duration/price default to the service's own."""

    service_id: uuid.UUID
    duration: Optional[int] = Field(default=None, gt=0, description="Minutes")
    price: Optional[float] = Field(default=None, ge=0)
    is_online_available: bool = False
    is_in_person: bool = True
    location_id: Optional[uuid.UUID] = None


class ServiceConfigRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    service_id: uuid.UUID
    provider_id: uuid.UUID
    duration: int
    price: float
    is_online_available: bool
    is_in_person: bool


# --- Availability ---

class AvailabilityCreate(BaseModel):
    provider_id: uuid.UUID
    owner: Optional[Owner] = Field(
        default=None,
        description="Who proposes the window; an organization proposal starts PENDING",
    )
    location_id: Optional[uuid.UUID] = None
    start_time: datetime
    end_time: datetime
    timezone: Optional[str] = Field(default=None, description="IANA zone; naive times are read in it")
    recurrence_pattern: Optional[RecurrencePattern] = None
    scheduling_rule: SchedulingRule = SchedulingRule.CONTINUOUS
    is_online_available: bool = False
    requires_confirmation: bool = False
    services: list[ServiceOfferingIn] = Field(min_length=1)


class AvailabilityUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    scheduling_rule: Optional[SchedulingRule] = None
    is_online_available: Optional[bool] = None
    requires_confirmation: Optional[bool] = None
    location_id: Optional[uuid.UUID] = None
    services: Optional[list[ServiceOfferingIn]] = Field(default=None, min_length=1)
    expected_version: Optional[int] = Field(
        default=None, description="Reject the edit if the window changed since this version"
    )


class AvailabilityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    provider_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    start_time: datetime
    end_time: datetime
    timezone: str
    is_recurring: bool
    recurrence_pattern: Optional[dict] = None
    series_id: Optional[uuid.UUID] = None
    status: str
    scheduling_rule: str
    is_online_available: bool
    requires_confirmation: bool
    version: int
    created_at: datetime
    updated_at: datetime
    service_configs: list[ServiceConfigRead] = []


class AvailabilityResult(BaseModel):
    availability: AvailabilityRead
    slots_created: int = 0


class AvailabilityUpdateResult(BaseModel):
    availability: AvailabilityRead
    slots_deleted: int = 0
    slots_created: int = 0
    slots_retained: int = 0


# --- Slots ---

class SlotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    availability_id: uuid.UUID
    provider_id: uuid.UUID
    service_id: uuid.UUID
    service_config_id: Optional[uuid.UUID] = None
    start_time: datetime
    end_time: datetime
    price: float = 0


# --- Bookings ---

class ClaimRequest(BaseModel):
    slot_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    guest_name: Optional[str] = Field(default=None, max_length=200)
    guest_email: Optional[str] = Field(default=None, max_length=255)
    guest_phone: Optional[str] = Field(default=None, max_length=30)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _require_claimant(self) -> ClaimRequest:
        if self.user_id is None and not self.guest_name:
            raise ValueError("Either user_id or guest_name is required")
        return self


class BookingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slot_id: uuid.UUID
    status: str
    user_id: Optional[uuid.UUID] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    notes: Optional[str] = None
    service_id: uuid.UUID
    duration: int
    price: float
    created_at: datetime


# --- Preview ---

class OccurrenceRead(BaseModel):
    start_time: datetime
    end_time: datetime
    occurrence_number: int
    is_exception: bool = False


class ServiceEfficiencyRead(BaseModel):
    service_id: uuid.UUID
    duration: int
    max_possible_slots: int
    actual_slots: int
    utilization_rate: float
    average_gap_minutes: float


class PreviewResponse(BaseModel):
    description: str
    occurrences: list[OccurrenceRead]
    slot_count: int
    efficiency: list[ServiceEfficiencyRead] = Field(default_factory=list)
    aligned_start: bool = True
    next_occurrence: Optional[OccurrenceRead] = None


class OccursOnResponse(BaseModel):
    day: date
    occurs: bool
