"""
Vehicle pricing endpoints
=========================

GET  /api/v1/vehicles/{vehicle_id}                 -- vehicle with pricing snapshot
GET  /api/v1/vehicles/{vehicle_id}/fare            -- fare quote for a distance
POST /api/v1/vehicles/{vehicle_id}/pricing/refresh -- re-resolve the snapshot
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from chalo.api.dependencies import get_booking_service, get_db
from chalo.api.middleware import limiter
from chalo.api.schemas import FareQuoteResponse, VehicleResponse
from chalo.config import settings
from chalo.domain.enums import FareTripType
from chalo.infrastructure.repositories import PricingRepository
from chalo.services.booking_service import BookingService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get("/{vehicle_id}", response_model=VehicleResponse, summary="Get vehicle")
@limiter.limit(settings.rate_limit)
async def get_vehicle(
    request: Request,
    vehicle_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return VehicleResponse.model_validate(await service.get_vehicle(vehicle_id))


@router.get(
    "/{vehicle_id}/fare",
    response_model=FareQuoteResponse,
    summary="Quote a fare from the vehicle's pricing snapshot",
)
@limiter.limit(settings.rate_limit)
async def quote_fare(
    request: Request,
    vehicle_id: int,
    distance: float = Query(..., ge=0, description="Trip distance in km"),
    trip_type: FareTripType = FareTripType.ONE_WAY,
    service: BookingService = Depends(get_booking_service),
):
    pricing = await service.quote_fare(vehicle_id, distance, trip_type)
    return FareQuoteResponse(
        vehicle_id=vehicle_id,
        distance=distance,
        trip_type=trip_type,
        pricing=pricing,
    )


@router.post(
    "/{vehicle_id}/pricing/refresh",
    response_model=VehicleResponse,
    summary="Refresh the vehicle's pricing snapshot from the pricing table",
)
@limiter.limit(settings.rate_limit)
async def refresh_pricing(
    request: Request,
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    table = await PricingRepository(db).load_table()
    vehicle = await service.refresh_vehicle_pricing(vehicle_id, table)
    return VehicleResponse.model_validate(vehicle)
