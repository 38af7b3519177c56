"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and implements
one of the service ports.  Writes are compare-and-set:

    UPDATE ... SET ..., version = version + 1
    WHERE id = :id AND version = :loaded_version

A row count of zero means another writer got there first and surfaces as
``StaleRecordError``.  Vehicle reservation folds the whole availability
predicate into the ``WHERE`` clause so check and flip are one statement.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, VehicleModel, VehiclePricingModel
from chalo.config import settings
from chalo.domain.entities import Booking, DistanceRates, Vehicle
from chalo.domain.enums import ApprovalStatus, BookingStatus, VehicleCategory
from chalo.domain.errors import StaleRecordError
from chalo.domain.pricing import PricingEntry, PricingTable
from chalo.services.ports import BookingStore, VehicleStore

_bookings = TypeAdapter(Booking)
_vehicles = TypeAdapter(Vehicle)


def _utc(moment: datetime) -> datetime:
    return moment.astimezone(timezone.utc)


class BookingRepository(BookingStore):
    def __init__(self, session: AsyncSession, tz: Optional[tzinfo] = None):
        self.session = session
        self.tz = tz or ZoneInfo(settings.timezone)

    def _to_entity(self, row: BookingModel) -> Booking:
        booking = _bookings.validate_python(row.payload)
        booking.id = row.id
        booking.status = BookingStatus(row.status)
        booking.version = row.version
        return booking

    def _columns(self, booking: Booking) -> dict:
        return {
            "status": booking.status,
            "pickup_at": _utc(booking.pickup_datetime(self.tz)),
            "total": booking.pricing.total,
            "payload": _bookings.dump_python(booking, mode="json"),
        }

    async def get(self, booking_id: int) -> Optional[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._to_entity(row) if row else None

    async def get_by_number(self, booking_number: str) -> Optional[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.booking_number == booking_number)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._to_entity(row) if row else None

    async def list_for_rider(
        self, rider_id: int, status: Optional[BookingStatus] = None
    ) -> list[Booking]:
        query = select(BookingModel).where(BookingModel.rider_id == rider_id)
        if status is not None:
            query = query.where(BookingModel.status == status)
        result = await self.session.execute(
            query.order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_entity(row) for row in result.scalars().all()]

    async def list_pending_before(self, moment: datetime) -> list[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.status == BookingStatus.PENDING,
                BookingModel.pickup_at <= _utc(moment),
            )
            .order_by(BookingModel.pickup_at)
            .execution_options(populate_existing=True)
        )
        return [self._to_entity(row) for row in result.scalars().all()]

    async def add(self, booking: Booking) -> Booking:
        booking.version = 1
        row = BookingModel(
            booking_number=booking.booking_number,
            rider_id=booking.rider_id,
            driver_id=booking.driver_id,
            vehicle_id=booking.vehicle_id,
            version=1,
            **self._columns(booking),
        )
        self.session.add(row)
        await self.session.flush()
        booking.id = row.id
        return booking

    async def save(self, booking: Booking) -> Booking:
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking.id,
                BookingModel.version == booking.version,
            )
            .values(version=BookingModel.version + 1, **self._columns(booking))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleRecordError(
                f"Booking {booking.booking_number} was modified concurrently"
            )
        booking.version += 1
        return booking


class VehicleRepository(VehicleStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(row: VehicleModel) -> Vehicle:
        vehicle = _vehicles.validate_python(row.payload)
        vehicle.id = row.id
        vehicle.version = row.version
        vehicle.is_available = row.is_available
        vehicle.booked = row.booked
        vehicle.is_active = row.is_active
        vehicle.is_verified = row.is_verified
        vehicle.approval_status = ApprovalStatus(row.approval_status)
        vehicle.under_maintenance = row.under_maintenance
        return vehicle

    @staticmethod
    def _columns(vehicle: Vehicle) -> dict:
        return {
            "driver_id": vehicle.driver_id,
            "category": vehicle.category,
            "is_available": vehicle.is_available,
            "booked": vehicle.booked,
            "is_active": vehicle.is_active,
            "is_verified": vehicle.is_verified,
            "approval_status": vehicle.approval_status,
            "under_maintenance": vehicle.under_maintenance,
            "payload": _vehicles.dump_python(vehicle, mode="json"),
        }

    async def get(self, vehicle_id: int) -> Optional[Vehicle]:
        result = await self.session.execute(
            select(VehicleModel)
            .where(VehicleModel.id == vehicle_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._to_entity(row) if row else None

    async def add(self, vehicle: Vehicle) -> Vehicle:
        vehicle.version = 1
        row = VehicleModel(version=1, **self._columns(vehicle))
        self.session.add(row)
        await self.session.flush()
        vehicle.id = row.id
        return vehicle

    async def save(self, vehicle: Vehicle) -> Vehicle:
        result = await self.session.execute(
            update(VehicleModel)
            .where(
                VehicleModel.id == vehicle.id,
                VehicleModel.version == vehicle.version,
            )
            .values(version=VehicleModel.version + 1, **self._columns(vehicle))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleRecordError(f"Vehicle {vehicle.id} was modified concurrently")
        vehicle.version += 1
        return vehicle

    async def reserve(self, vehicle_id: int) -> bool:
        result = await self.session.execute(
            update(VehicleModel)
            .where(
                VehicleModel.id == vehicle_id,
                VehicleModel.booked.is_(False),
                VehicleModel.is_available.is_(True),
                VehicleModel.is_active.is_(True),
                VehicleModel.is_verified.is_(True),
                VehicleModel.approval_status == ApprovalStatus.APPROVED,
                VehicleModel.under_maintenance.is_(False),
            )
            .values(
                booked=True,
                is_available=False,
                version=VehicleModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release(self, vehicle_id: int) -> None:
        await self.session.execute(
            update(VehicleModel)
            .where(VehicleModel.id == vehicle_id)
            .values(
                booked=False,
                is_available=True,
                version=VehicleModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )


class PricingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entry(row: VehiclePricingModel) -> PricingEntry:
        rates = None
        if VehicleCategory(row.category) is not VehicleCategory.AUTO:
            rates = DistanceRates(
                rate_50km=row.rate_50km,
                rate_100km=row.rate_100km,
                rate_150km=row.rate_150km,
            )
        return PricingEntry(
            category=row.category,
            vehicle_type=row.vehicle_type,
            vehicle_model=row.vehicle_model,
            trip_type=row.trip_type,
            auto_price=row.auto_price,
            rates=rates,
            is_default=row.is_default,
            is_active=row.is_active,
        )

    async def load_table(self) -> PricingTable:
        result = await self.session.execute(
            select(VehiclePricingModel).where(VehiclePricingModel.is_active.is_(True))
        )
        return PricingTable(self._to_entry(row) for row in result.scalars().all())

    async def upsert(self, entry: PricingEntry, notes: Optional[str] = None) -> None:
        result = await self.session.execute(
            select(VehiclePricingModel).where(
                VehiclePricingModel.category == entry.category,
                VehiclePricingModel.vehicle_type == entry.vehicle_type,
                VehiclePricingModel.vehicle_model == entry.vehicle_model,
                VehiclePricingModel.trip_type == entry.trip_type,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = VehiclePricingModel(
                category=entry.category,
                vehicle_type=entry.vehicle_type,
                vehicle_model=entry.vehicle_model,
                trip_type=entry.trip_type,
            )
            self.session.add(row)
        rates = entry.rates or DistanceRates()
        row.auto_price = entry.auto_price
        row.rate_50km = rates.rate_50km
        row.rate_100km = rates.rate_100km
        row.rate_150km = rates.rate_150km
        row.is_default = entry.is_default
        row.is_active = entry.is_active
        row.notes = notes
        await self.session.flush()
