"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are used unchanged;
the JSON payload column falls back to SQLite's JSON type.  Service tests
run against in-memory stores with the same compare-and-set semantics as
the repositories.
"""

import copy
import itertools
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from chalo.domain.entities import (
    AutoPrice,
    Booking,
    DistancePricing,
    DistanceRates,
    PricingReference,
    TripPoint,
    Vehicle,
    VehiclePricing,
)
from chalo.domain.enums import (
    ApprovalStatus,
    BookingStatus,
    TripType,
    VehicleCategory,
)
from chalo.domain.errors import StaleRecordError
from chalo.domain.state_machine import StatusChange
from chalo.infrastructure.models import Base
from chalo.services.booking_service import BookingService, TripRequest
from chalo.services.ports import BookingStore, EventPublisher, VehicleStore


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

# One shared connection so every session sees the same in-memory database
test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)

# Monday 08:00 UTC
NOW = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


# ── In-memory collaborators ───────────────────────────────────────────


class InMemoryBookingStore(BookingStore):
    def __init__(self):
        self.rows: dict[int, Booking] = {}
        self._ids = itertools.count(1)

    async def get(self, booking_id: int) -> Optional[Booking]:
        row = self.rows.get(booking_id)
        return copy.deepcopy(row) if row else None

    async def add(self, booking: Booking) -> Booking:
        booking.id = next(self._ids)
        booking.version = 1
        self.rows[booking.id] = copy.deepcopy(booking)
        return booking

    async def save(self, booking: Booking) -> Booking:
        current = self.rows.get(booking.id)
        if current is None or current.version != booking.version:
            raise StaleRecordError(f"Booking {booking.id} is stale")
        booking.version += 1
        self.rows[booking.id] = copy.deepcopy(booking)
        return booking

    async def list_pending_before(self, moment: datetime) -> list[Booking]:
        return [
            copy.deepcopy(b)
            for b in self.rows.values()
            if b.status is BookingStatus.PENDING
            and b.pickup_datetime(timezone.utc) <= moment
        ]


class InMemoryVehicleStore(VehicleStore):
    def __init__(self):
        self.rows: dict[int, Vehicle] = {}
        self._ids = itertools.count(1)

    async def get(self, vehicle_id: int) -> Optional[Vehicle]:
        row = self.rows.get(vehicle_id)
        return copy.deepcopy(row) if row else None

    async def add(self, vehicle: Vehicle) -> Vehicle:
        vehicle.id = next(self._ids)
        vehicle.version = 1
        self.rows[vehicle.id] = copy.deepcopy(vehicle)
        return vehicle

    async def save(self, vehicle: Vehicle) -> Vehicle:
        current = self.rows.get(vehicle.id)
        if current is None or current.version != vehicle.version:
            raise StaleRecordError(f"Vehicle {vehicle.id} is stale")
        vehicle.version += 1
        self.rows[vehicle.id] = copy.deepcopy(vehicle)
        return vehicle

    async def reserve(self, vehicle_id: int) -> bool:
        row = self.rows.get(vehicle_id)
        if row is None or not row.is_bookable():
            return False
        row.booked = True
        row.is_available = False
        row.version += 1
        return True

    async def release(self, vehicle_id: int) -> None:
        row = self.rows[vehicle_id]
        row.mark_available()
        row.version += 1


class RecordingPublisher(EventPublisher):
    def __init__(self):
        self.events: list[StatusChange] = []

    async def publish(self, event: StatusChange) -> None:
        self.events.append(event)

    @property
    def statuses(self) -> list[BookingStatus]:
        return [e.status for e in self.events]


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ── Factories ─────────────────────────────────────────────────────────


def car_pricing() -> VehiclePricing:
    return VehiclePricing(
        distance_pricing=DistancePricing(
            one_way=DistanceRates(rate_50km=10, rate_100km=8, rate_150km=6),
            return_trip=DistanceRates(rate_50km=9, rate_100km=7, rate_150km=5),
        ),
        last_updated=NOW,
    )


def auto_pricing() -> VehiclePricing:
    return VehiclePricing(
        auto_price=AutoPrice(one_way=200, return_trip=350), last_updated=NOW
    )


def make_vehicle(category: VehicleCategory = VehicleCategory.CAR, **overrides) -> Vehicle:
    fields = dict(
        driver_id=7,
        category=category,
        vehicle_type="Sedan" if category is not VehicleCategory.AUTO else "Fuel Auto-Ricksaw",
        brand="Honda",
        model="Honda Amaze" if category is not VehicleCategory.AUTO else "Standard",
        pricing=auto_pricing() if category is VehicleCategory.AUTO else car_pricing(),
        is_verified=True,
        approval_status=ApprovalStatus.APPROVED,
    )
    fields["pricing_reference"] = PricingReference(
        category, fields["vehicle_type"], fields["model"]
    )
    fields.update(overrides)
    return Vehicle(**fields)


def make_trip(
    pickup_at: Optional[datetime] = None,
    distance: Optional[float] = 20.0,
    trip_type: TripType = TripType.ONE_WAY,
    **overrides,
) -> TripRequest:
    pickup_at = pickup_at or NOW + timedelta(hours=26)
    fields = dict(
        pickup=TripPoint(
            latitude=19.0896,
            longitude=72.8656,
            address="Mumbai Airport T2",
            date=pickup_at.date(),
            time=pickup_at.time(),
        ),
        destination=TripPoint(
            latitude=19.1176,
            longitude=72.9060,
            address="Powai",
            date=pickup_at.date(),
            time=pickup_at.time(),
        ),
        trip_type=trip_type,
        distance=distance,
    )
    fields.update(overrides)
    return TripRequest(**fields)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def booking_store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture
def vehicle_store() -> InMemoryVehicleStore:
    return InMemoryVehicleStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def service(booking_store, vehicle_store, publisher, clock) -> BookingService:
    return BookingService(
        booking_store,
        vehicle_store,
        publisher,
        tz=timezone.utc,
        clock=clock,
    )


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables, yield the session factory, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield TestSessionFactory

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
