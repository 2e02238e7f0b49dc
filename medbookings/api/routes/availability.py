"""Availability API endpoints: windows, their slots and the proposal workflow."""

import uuid
from datetime import date, datetime
from typing import Callable, Literal, Optional

from fastapi import APIRouter, Depends, Query

from medbookings.api.dependencies import get_actor_id, get_app_settings, get_availability_service, get_clock
from medbookings.config import Settings
from medbookings.core.schemas import (
    AvailabilityCreate,
    AvailabilityRead,
    AvailabilityResult,
    AvailabilityUpdate,
    AvailabilityUpdateResult,
    OccurrenceRead,
    OccursOnResponse,
    PreviewResponse,
    ServiceEfficiencyRead,
    SlotRead,
)
from medbookings.scheduling.availability import AvailabilityService, preview_window
from medbookings.scheduling.models import AvailabilityStatus, Owner, PreviewRequest
from medbookings.scheduling.recurrence import describe_pattern

router = APIRouter(prefix="/availability")


@router.post("/preview", response_model=PreviewResponse)
async def preview_availability(
    request: PreviewRequest,
    settings: Settings = Depends(get_app_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> PreviewResponse:
    """Expand a window and count its slots without storing anything."""
    preview = preview_window(request, settings, now=clock())
    upcoming = preview.next_occurrence
    return PreviewResponse(
        description=describe_pattern(request.recurrence_pattern) if request.recurrence_pattern else "Does not repeat",
        occurrences=[OccurrenceRead(**occ.model_dump()) for occ in preview.occurrences],
        slot_count=len(preview.slots),
        efficiency=[ServiceEfficiencyRead(**e.model_dump()) for e in preview.efficiency],
        aligned_start=preview.aligned_start,
        next_occurrence=OccurrenceRead(**upcoming.model_dump()) if upcoming else None,
    )


@router.post("", response_model=AvailabilityResult, status_code=201)
async def create_availability(
    body: AvailabilityCreate,
    service: AvailabilityService = Depends(get_availability_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> AvailabilityResult:
    availability, created = await service.create_availability(body, actor_id=actor_id)
    return AvailabilityResult(
        availability=AvailabilityRead.model_validate(availability),
        slots_created=created,
    )


@router.get("", response_model=list[AvailabilityRead])
async def list_availabilities(
    owner_kind: Optional[Literal["organization", "location", "provider"]] = Query(None),
    owner_id: Optional[uuid.UUID] = Query(None),
    status: Optional[AvailabilityStatus] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[AvailabilityRead]:
    owner = Owner(kind=owner_kind, id=owner_id) if owner_kind and owner_id else None
    rows = await service.list_availabilities(
        owner=owner, status=status, start=start, end=end, offset=offset, limit=limit
    )
    return [AvailabilityRead.model_validate(a) for a in rows]


@router.get("/series/{series_id}", response_model=list[AvailabilityRead])
async def list_series(
    series_id: uuid.UUID,
    service: AvailabilityService = Depends(get_availability_service),
) -> list[AvailabilityRead]:
    return [AvailabilityRead.model_validate(a) for a in await service.list_series(series_id)]


@router.get("/slots", response_model=list[SlotRead])
async def search_slots(
    provider_id: uuid.UUID = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
    service_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[SlotRead]:
    """Bookable slots of a provider in a time range."""
    slots = await service.list_bookable_slots(provider_id, start, end, service_id=service_id, limit=limit)
    return [SlotRead.model_validate(s) for s in slots]


@router.get("/{availability_id}", response_model=AvailabilityRead)
async def get_availability(
    availability_id: uuid.UUID,
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRead:
    return AvailabilityRead.model_validate(await service.get_availability(availability_id))


@router.get("/{availability_id}/slots", response_model=list[SlotRead])
async def list_availability_slots(
    availability_id: uuid.UUID,
    service: AvailabilityService = Depends(get_availability_service),
) -> list[SlotRead]:
    return [SlotRead.model_validate(s) for s in await service.list_slots(availability_id)]


@router.get("/{availability_id}/occurs-on", response_model=OccursOnResponse)
async def availability_occurs_on(
    availability_id: uuid.UUID,
    day: date = Query(..., alias="date"),
    service: AvailabilityService = Depends(get_availability_service),
) -> OccursOnResponse:
    """Whether the window repeats on a given local date."""
    return OccursOnResponse(day=day, occurs=await service.occurs_on(availability_id, day))


@router.patch("/{availability_id}", response_model=AvailabilityUpdateResult)
async def update_availability(
    availability_id: uuid.UUID,
    body: AvailabilityUpdate,
    service: AvailabilityService = Depends(get_availability_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> AvailabilityUpdateResult:
    availability, plan = await service.update_availability(availability_id, body, actor_id=actor_id)
    return AvailabilityUpdateResult(
        availability=AvailabilityRead.model_validate(availability),
        slots_deleted=len(plan.slots_to_delete),
        slots_created=len(plan.slots_to_insert),
        slots_retained=len(plan.slots_to_retain),
    )


@router.delete("/{availability_id}")
async def delete_availability(
    availability_id: uuid.UUID,
    expected_version: Optional[int] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> dict:
    deleted = await service.delete_availability(
        availability_id, expected_version=expected_version, actor_id=actor_id
    )
    return {"deleted": True, "slots_deleted": deleted}


@router.post("/{availability_id}/accept", response_model=AvailabilityResult)
async def accept_availability(
    availability_id: uuid.UUID,
    service: AvailabilityService = Depends(get_availability_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> AvailabilityResult:
    availability, created = await service.accept_availability(availability_id, actor_id=actor_id)
    return AvailabilityResult(availability=AvailabilityRead.model_validate(availability), slots_created=created)


@router.post("/{availability_id}/reject", response_model=AvailabilityRead)
async def reject_availability(
    availability_id: uuid.UUID,
    service: AvailabilityService = Depends(get_availability_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> AvailabilityRead:
    return AvailabilityRead.model_validate(await service.reject_availability(availability_id, actor_id=actor_id))


@router.post("/{availability_id}/cancel", response_model=AvailabilityRead)
async def cancel_availability(
    availability_id: uuid.UUID,
    service: AvailabilityService = Depends(get_availability_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> AvailabilityRead:
    availability, _ = await service.cancel_availability(availability_id, actor_id=actor_id)
    return AvailabilityRead.model_validate(availability)
