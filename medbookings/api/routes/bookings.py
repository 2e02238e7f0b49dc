"""Booking API endpoints: claim a slot and move a booking through its lifecycle."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from medbookings.api.dependencies import get_actor_id, get_booking_service
from medbookings.core.schemas import BookingRead, ClaimRequest
from medbookings.scheduling.bookings import BookingService
from medbookings.scheduling.models import Claimant

router = APIRouter(prefix="/bookings")


@router.post("", response_model=BookingRead, status_code=201)
async def claim_slot(
    body: ClaimRequest,
    service: BookingService = Depends(get_booking_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingRead:
    claimant = Claimant(
        user_id=body.user_id,
        guest_name=body.guest_name,
        guest_email=body.guest_email,
        guest_phone=body.guest_phone,
        notes=body.notes,
    )
    booking = await service.claim(body.slot_id, claimant, actor_id=actor_id)
    return BookingRead.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: uuid.UUID,
    service: BookingService = Depends(get_booking_service),
) -> BookingRead:
    return BookingRead.model_validate(await service.get_booking(booking_id))


@router.post("/{booking_id}/confirm", response_model=BookingRead)
async def confirm_booking(
    booking_id: uuid.UUID,
    service: BookingService = Depends(get_booking_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingRead:
    return BookingRead.model_validate(await service.confirm(booking_id, actor_id=actor_id))


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: uuid.UUID,
    service: BookingService = Depends(get_booking_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingRead:
    return BookingRead.model_validate(await service.cancel(booking_id, actor_id=actor_id))


@router.post("/{booking_id}/complete", response_model=BookingRead)
async def complete_booking(
    booking_id: uuid.UUID,
    service: BookingService = Depends(get_booking_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingRead:
    return BookingRead.model_validate(await service.complete(booking_id, actor_id=actor_id))


@router.post("/{booking_id}/no-show", response_model=BookingRead)
async def mark_no_show(
    booking_id: uuid.UUID,
    service: BookingService = Depends(get_booking_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> BookingRead:
    return BookingRead.model_validate(await service.mark_no_show(booking_id, actor_id=actor_id))
