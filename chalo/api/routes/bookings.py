"""
Booking endpoints
=================

POST  /api/v1/bookings                      -- request a vehicle (201)
GET   /api/v1/bookings?rider_id=...         -- a rider's bookings, newest first
GET   /api/v1/bookings/{booking_id}         -- booking with pricing and status
PATCH /api/v1/bookings/{booking_id}/status  -- move along the lifecycle
PATCH /api/v1/bookings/{booking_id}/cancel  -- cancel with fee / refund
POST  /api/v1/bookings/{booking_id}/ratings -- rider or driver rating
POST  /api/v1/bookings/{booking_id}/messages
PATCH /api/v1/bookings/{booking_id}/payment -- payment status reported back
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from chalo.api.dependencies import get_booking_service, get_db
from chalo.api.middleware import limiter
from chalo.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    CancelRequest,
    MessageRequest,
    MessageResponse,
    PaymentStatusRequest,
    RatingRequest,
    StatusUpdateRequest,
)
from chalo.config import settings
from chalo.domain.enums import BookingStatus
from chalo.infrastructure.repositories import BookingRepository
from chalo.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Create a booking",
    responses={409: {"description": "Vehicle not available at pickup time."}},
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.create_booking(
        body.rider_id, body.vehicle_id, body.to_trip_request()
    )
    return BookingResponse.model_validate(booking)


@router.get(
    "",
    response_model=list[BookingResponse],
    summary="List a rider's bookings",
)
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    rider_id: int,
    status: Optional[BookingStatus] = None,
    db: AsyncSession = Depends(get_db),
):
    bookings = await BookingRepository(db).list_for_rider(rider_id, status)
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get booking status and pricing",
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.model_validate(await service.get_booking(booking_id))


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Update booking status",
    description=(
        "Applies one lifecycle transition. Illegal transitions return 409 "
        "and leave the booking unchanged."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_status(
    request: Request,
    booking_id: int,
    body: StatusUpdateRequest,
    service: BookingService = Depends(get_booking_service),
):
    if body.status is BookingStatus.TRIP_COMPLETED:
        booking = await service.complete_trip(booking_id, body.actual_distance)
    else:
        booking = await service.update_status(
            booking_id, body.status, reason=body.reason, actor=body.actor
        )
    return BookingResponse.model_validate(booking)


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description=(
        "Cancels a booking that has not reached a terminal status. The fee "
        "depends on the time left until pickup; the refund is total - fee."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    body: CancelRequest,
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.cancel_booking(booking_id, body.actor, body.reason)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/ratings",
    response_model=BookingResponse,
    summary="Rate a completed trip",
)
@limiter.limit(settings.rate_limit)
async def rate_booking(
    request: Request,
    booking_id: int,
    body: RatingRequest,
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.rate_booking(
        booking_id, body.rater_role, body.rating, body.comment
    )
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/messages",
    status_code=201,
    response_model=MessageResponse,
    summary="Add a rider / driver message",
)
@limiter.limit(settings.rate_limit)
async def add_message(
    request: Request,
    booking_id: int,
    body: MessageRequest,
    service: BookingService = Depends(get_booking_service),
):
    message = await service.add_message(
        booking_id, body.sender_role, body.sender_id, body.text
    )
    return MessageResponse.from_domain(message)


@router.patch(
    "/{booking_id}/payment",
    response_model=BookingResponse,
    summary="Record a payment status reported by the payment gateway",
)
@limiter.limit(settings.rate_limit)
async def record_payment(
    request: Request,
    booking_id: int,
    body: PaymentStatusRequest,
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.record_payment_status(
        booking_id, body.status, body.transaction_id, body.gateway
    )
    return BookingResponse.model_validate(booking)
