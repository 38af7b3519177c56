"""
Admin / operations endpoints
============================

PUT  /api/v1/admin/vehicle-pricing  -- create or update a pricing row
POST /api/v1/admin/bookings/expire  -- run the expiry sweep now
GET  /api/v1/admin/health           -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from chalo.api.dependencies import get_booking_service, get_db
from chalo.api.middleware import limiter
from chalo.api.schemas import HealthResponse, PricingEntryRequest
from chalo.config import settings
from chalo.domain.entities import DistanceRates
from chalo.domain.pricing import PricingEntry
from chalo.infrastructure.repositories import PricingRepository
from chalo.services.booking_service import BookingService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.put(
    "/vehicle-pricing",
    status_code=204,
    summary="Create or update one pricing table row",
)
@limiter.limit(settings.rate_limit)
async def upsert_vehicle_pricing(
    request: Request,
    body: PricingEntryRequest,
    db: AsyncSession = Depends(get_db),
):
    entry = PricingEntry(
        category=body.category,
        vehicle_type=body.vehicle_type,
        vehicle_model=body.vehicle_model,
        trip_type=body.trip_type,
        auto_price=body.auto_price,
        rates=DistanceRates(
            rate_50km=body.rate_50km,
            rate_100km=body.rate_100km,
            rate_150km=body.rate_150km,
        ),
        is_default=body.is_default,
        is_active=body.is_active,
    )
    await PricingRepository(db).upsert(entry, notes=body.notes)


@router.post("/bookings/expire", summary="Expire pending bookings past pickup")
@limiter.limit(settings.rate_limit)
async def expire_bookings(
    request: Request,
    service: BookingService = Depends(get_booking_service),
):
    return {"expired": await service.expire_stale_bookings()}


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
