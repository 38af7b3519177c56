"""
FastAPI application factory.

* Registers routes for bookings, vehicles and admin.
* Starts / stops the background expiry worker via lifespan events.
* Maps booking-engine errors to HTTP responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from chalo.api.middleware import limiter
from chalo.api.routes import admin, bookings, vehicles
from chalo.domain.errors import (
    BookingEngineError,
    BookingNotFound,
    BookingNotRateable,
    InvalidPaymentStatus,
    InvalidRating,
    InvalidTransition,
    PricingUnavailable,
    StaleRecordError,
    VehicleNotFound,
    VehicleUnavailable,
)
from chalo.infrastructure.redis_client import close_redis
from chalo.workers import expiry as _expiry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[BookingEngineError], int] = {
    BookingNotFound: 404,
    VehicleNotFound: 404,
    InvalidTransition: 409,
    VehicleUnavailable: 409,
    BookingNotRateable: 409,
    InvalidPaymentStatus: 409,
    StaleRecordError: 409,
    PricingUnavailable: 422,
    InvalidRating: 422,
}


async def _booking_error_handler(request: Request, exc: BookingEngineError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    logger.info(
        "%s %s rejected: %s", request.method, request.url.path, exc
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the expiry worker on startup; stop it and close Redis on shutdown."""
    await _expiry.start_expiry_loop()
    yield
    await _expiry.stop_expiry_loop()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Chalo Booking API",
        description=(
            "Books autos, cars and buses: prices trips from vehicle pricing "
            "tables, runs the booking lifecycle, computes cancellation fees "
            "and refunds, and keeps vehicle rating aggregates."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors -> HTTP
    app.add_exception_handler(BookingEngineError, _booking_error_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(vehicles.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
