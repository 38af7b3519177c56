"""
Background Expiry Worker
========================

Runs every ``EXPIRY_SWEEP_INTERVAL_SECONDS`` (default 60 s) and moves
``pending`` bookings whose pickup time has passed to ``expired``,
releasing their vehicles.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one API process sweeps at a time.
* Each expiry is a compare-and-set save; a booking confirmed or cancelled
  concurrently makes the save fail and the sweep skips it.
* Expiry events are published only after the sweep commits.
"""

from __future__ import annotations

import asyncio
import logging
from zoneinfo import ZoneInfo

from chalo.config import settings
from chalo.infrastructure.database import async_session_factory, unit_of_work
from chalo.infrastructure.events import BufferedEventPublisher, RedisEventPublisher
from chalo.infrastructure.locks import DistributedLock
from chalo.infrastructure.redis_client import get_redis
from chalo.infrastructure.repositories import BookingRepository, VehicleRepository
from chalo.services.booking_service import BookingService

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_expiry_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Expiry worker started (interval=%ds)",
        settings.expiry_sweep_interval_seconds,
    )


async def stop_expiry_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Expiry worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a sweep then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_expiry_sweep()
        except Exception:
            logger.exception("Unhandled error in expiry sweep")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.expiry_sweep_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next sweep


async def run_expiry_sweep() -> int:
    """Execute one sweep.  Returns the number of bookings expired."""
    redis = await get_redis()
    lock = DistributedLock(redis, "booking_expiry", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another worker - skipping sweep")
        return 0

    events = BufferedEventPublisher(
        RedisEventPublisher(redis, settings.events_channel)
    )
    try:
        # Expired events reach Redis only once the sweep has committed
        async with unit_of_work(events, async_session_factory) as session:
            service = BookingService(
                BookingRepository(session),
                VehicleRepository(session),
                events,
                tz=ZoneInfo(settings.timezone),
                tax_rate=settings.tax_rate,
                booking_number_prefix=settings.booking_number_prefix,
            )
            expired = await service.expire_stale_bookings()
        return expired
    finally:
        await lock.release()
