"""FastAPI dependency injection helpers."""

from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from chalo.config import settings
from chalo.infrastructure.database import unit_of_work
from chalo.infrastructure.events import BufferedEventPublisher, RedisEventPublisher
from chalo.infrastructure.redis_client import get_redis
from chalo.infrastructure.repositories import BookingRepository, VehicleRepository
from chalo.services.booking_service import BookingService
from chalo.services.ports import EventPublisher


async def get_publisher() -> EventPublisher:
    return RedisEventPublisher(await get_redis(), settings.events_channel)


def get_event_buffer(
    publisher: EventPublisher = Depends(get_publisher),
) -> BufferedEventPublisher:
    """Request-scoped buffer, flushed by ``get_db`` after the commit."""
    return BufferedEventPublisher(publisher)


async def get_db(
    events: BufferedEventPublisher = Depends(get_event_buffer),
) -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with unit_of_work(events) as session:
        yield session


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    events: BufferedEventPublisher = Depends(get_event_buffer),
) -> BookingService:
    tz = ZoneInfo(settings.timezone)
    return BookingService(
        BookingRepository(db, tz=tz),
        VehicleRepository(db),
        events,
        tz=tz,
        tax_rate=settings.tax_rate,
        booking_number_prefix=settings.booking_number_prefix,
    )
