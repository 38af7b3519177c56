"""
Booking orchestrator
====================

Composes the domain components:

* ``FareCalculator``      -- prices a booking at creation time
* ``BookingStateMachine`` -- every status change goes through it
* ``CancellationPolicy``  -- fee / refund on cancellation
* ``RatingAggregator``    -- booking slots and the vehicle histogram

Each operation loads a fresh copy of the record, validates, mutates the
copy and persists it with one compare-and-set save, so a failed validation
never leaves a partially mutated record behind.  Creation reserves the
vehicle before inserting the booking and releases it again if the insert
fails.  Status-change events go to the injected publisher after the save;
the SQL wiring buffers them until the transaction commits.
"""

from __future__ import annotations

import logging
import secrets
import string
import time as _time
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Callable, Optional

from chalo.domain.cancellation import CancellationPolicy
from chalo.domain.distance import route_km
from chalo.domain.entities import (
    AdditionalCharges,
    Booking,
    Location,
    Message,
    Passenger,
    PaymentInfo,
    PricingBreakdown,
    TripPoint,
    Vehicle,
)
from chalo.domain.enums import (
    FARE_TRIP_TYPES,
    PAYMENT_TRANSITIONS,
    ActorRole,
    BookingStatus,
    FareTripType,
    PaymentMethod,
    PaymentStatus,
    TripType,
)
from chalo.domain.errors import (
    BookingNotFound,
    BookingNotRateable,
    InvalidPaymentStatus,
    InvalidRating,
    PricingUnavailable,
    StaleRecordError,
    VehicleNotFound,
    VehicleUnavailable,
)
from chalo.domain.pricing import FareCalculator, PricingTable
from chalo.domain.ratings import RatingAggregator
from chalo.domain.state_machine import BookingStateMachine, StatusChange
from chalo.services.ports import BookingStore, EventPublisher, VehicleStore

logger = logging.getLogger(__name__)

BASE36_UPPER = string.digits + string.ascii_uppercase


def generate_booking_number(prefix: str = "CS", now_ms: Optional[int] = None) -> str:
    """``CS`` + last 8 digits of the epoch-ms timestamp + 4 base-36 chars.

    Not guaranteed unique; the store's unique index rejects a collision.
    """
    if now_ms is None:
        now_ms = int(_time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_UPPER) for _ in range(4))
    return f"{prefix}{str(now_ms)[-8:]}{suffix}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TripRequest:
    """What a rider submits when requesting a vehicle."""

    pickup: TripPoint
    destination: TripPoint
    trip_type: TripType = TripType.ONE_WAY
    waypoints: list[Location] = field(default_factory=list)
    passengers: list[Passenger] = field(default_factory=list)
    distance: Optional[float] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    charges: AdditionalCharges = field(default_factory=AdditionalCharges)
    discount: int = 0
    special_requests: str = ""

    def route_distance(self) -> float:
        points = [(self.pickup.latitude, self.pickup.longitude)]
        points += [(w.latitude, w.longitude) for w in self.waypoints]
        points.append((self.destination.latitude, self.destination.longitude))
        return route_km(points)


class BookingService:
    def __init__(
        self,
        bookings: BookingStore,
        vehicles: VehicleStore,
        publisher: EventPublisher,
        *,
        tz: tzinfo = timezone.utc,
        tax_rate: float = 0.0,
        booking_number_prefix: str = "CS",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.bookings = bookings
        self.vehicles = vehicles
        self.publisher = publisher
        self.tz = tz
        self.tax_rate = tax_rate
        self.booking_number_prefix = booking_number_prefix
        self.clock = clock

        self.machine = BookingStateMachine()
        self.fares = FareCalculator()
        self.cancellation = CancellationPolicy()
        self.ratings = RatingAggregator()

    # ── Loading ───────────────────────────────────────────────────────

    async def get_booking(self, booking_id: int) -> Booking:
        booking = await self.bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking

    async def get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.vehicles.get(vehicle_id)
        if vehicle is None:
            raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
        return vehicle

    # ── Creation & pricing ────────────────────────────────────────────

    async def create_booking(
        self, rider_id: int, vehicle_id: int, trip: TripRequest
    ) -> Booking:
        vehicle = await self.get_vehicle(vehicle_id)

        pickup_at = datetime.combine(trip.pickup.date, trip.pickup.time, tzinfo=self.tz)
        if not vehicle.is_available_for_booking(pickup_at):
            raise VehicleUnavailable(
                f"Vehicle {vehicle_id} is not available at {pickup_at.isoformat()}"
            )

        distance = trip.distance
        if distance is None:
            distance = round(trip.route_distance(), 2)

        pricing = self.fares.breakdown(
            vehicle.pricing,
            vehicle.pricing_category,
            distance,
            FARE_TRIP_TYPES[trip.trip_type],
            charges=trip.charges,
            discount=trip.discount,
            tax_rate=self.tax_rate,
        )

        now = self.clock()
        booking = Booking(
            booking_number=generate_booking_number(self.booking_number_prefix),
            rider_id=rider_id,
            driver_id=vehicle.driver_id,
            vehicle_id=vehicle_id,
            trip_type=trip.trip_type,
            pickup=trip.pickup,
            destination=trip.destination,
            waypoints=list(trip.waypoints),
            passengers=list(trip.passengers),
            distance=distance,
            pricing=pricing,
            payment=PaymentInfo(method=trip.payment_method),
            status=BookingStatus.PENDING,
            special_requests=trip.special_requests,
            created_at=now,
            updated_at=now,
        )

        # Availability check and flag flip happen in one conditional update
        if not await self.vehicles.reserve(vehicle_id):
            logger.warning("Vehicle %d was booked concurrently", vehicle_id)
            raise VehicleUnavailable(f"Vehicle {vehicle_id} is already booked")

        try:
            booking = await self.bookings.add(booking)
        except Exception:
            try:
                await self.vehicles.release(vehicle_id)
            except Exception:
                logger.warning(
                    "Could not release vehicle %d after a failed insert",
                    vehicle_id,
                    exc_info=True,
                )
            raise
        logger.info(
            "Booking %s created for rider %d on vehicle %d (total=%d)",
            booking.booking_number,
            rider_id,
            vehicle_id,
            pricing.total,
        )
        await self._publish(
            StatusChange(
                booking_id=booking.id,
                booking_number=booking.booking_number,
                status=booking.status,
                timestamp=now,
            )
        )
        return booking

    async def quote_fare(
        self,
        vehicle_id: int,
        distance: float,
        trip_type: FareTripType = FareTripType.ONE_WAY,
    ) -> PricingBreakdown:
        vehicle = await self.get_vehicle(vehicle_id)
        return self.fares.breakdown(
            vehicle.pricing,
            vehicle.pricing_category,
            distance,
            trip_type,
            tax_rate=self.tax_rate,
        )

    async def refresh_vehicle_pricing(
        self, vehicle_id: int, table: PricingTable
    ) -> Vehicle:
        """Re-resolve the vehicle's pricing snapshot from its reference."""
        vehicle = await self.get_vehicle(vehicle_id)
        if vehicle.pricing_reference is None:
            raise PricingUnavailable(f"Vehicle {vehicle_id} has no pricing reference")
        vehicle.pricing = table.resolve(vehicle.pricing_reference, now=self.clock())
        vehicle = await self.vehicles.save(vehicle)
        logger.info("Pricing snapshot refreshed for vehicle %d", vehicle_id)
        return vehicle

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def update_status(
        self,
        booking_id: int,
        target: BookingStatus,
        reason: Optional[str] = None,
        actor: ActorRole = ActorRole.SYSTEM,
    ) -> Booking:
        if target is BookingStatus.CANCELLED:
            return await self.cancel_booking(booking_id, actor, reason)
        if target is BookingStatus.TRIP_COMPLETED:
            return await self.complete_trip(booking_id)

        booking = await self.get_booking(booking_id)
        event = self.machine.transition(booking, target, reason, now=self.clock())
        booking = await self.bookings.save(booking)
        if target is BookingStatus.EXPIRED:
            await self.vehicles.release(booking.vehicle_id)
        await self._publish(event)
        return booking

    async def confirm(self, booking_id: int) -> Booking:
        return await self.update_status(booking_id, BookingStatus.CONFIRMED)

    async def assign_driver(self, booking_id: int) -> Booking:
        return await self.update_status(booking_id, BookingStatus.DRIVER_ASSIGNED)

    async def driver_en_route(self, booking_id: int) -> Booking:
        return await self.update_status(booking_id, BookingStatus.DRIVER_EN_ROUTE)

    async def driver_arrived(self, booking_id: int) -> Booking:
        return await self.update_status(booking_id, BookingStatus.DRIVER_ARRIVED)

    async def start_trip(self, booking_id: int) -> Booking:
        return await self.update_status(booking_id, BookingStatus.TRIP_STARTED)

    async def complete_trip(
        self, booking_id: int, actual_distance: Optional[float] = None
    ) -> Booking:
        booking = await self.get_booking(booking_id)
        vehicle = await self.get_vehicle(booking.vehicle_id)

        event = self.machine.transition(
            booking, BookingStatus.TRIP_COMPLETED, now=self.clock()
        )
        distance = actual_distance if actual_distance is not None else booking.distance
        booking.trip.actual_distance = distance
        vehicle.record_trip(distance, booking.pricing.total)
        vehicle.mark_available()

        booking = await self.bookings.save(booking)
        await self.vehicles.save(vehicle)
        logger.info("Booking %s completed", booking.booking_number)
        await self._publish(event)
        return booking

    async def cancel_booking(
        self,
        booking_id: int,
        actor: ActorRole,
        reason: Optional[str] = None,
    ) -> Booking:
        booking = await self.get_booking(booking_id)

        # Reject invalid cancellations before any fee is computed
        self.machine.check(booking, BookingStatus.CANCELLED)

        now = self.clock()
        quote = self.cancellation.quote(
            booking.pickup_datetime(self.tz), now, booking.pricing.total
        )
        event = self.machine.transition(
            booking, BookingStatus.CANCELLED, reason, now=now
        )
        booking.cancellation.cancelled_by = actor
        booking.cancellation.cancellation_fee = quote.cancellation_fee
        booking.cancellation.refund_amount = quote.refund_amount

        booking = await self.bookings.save(booking)
        await self.vehicles.release(booking.vehicle_id)
        logger.info(
            "Booking %s cancelled by %s (fee=%d, refund=%d)",
            booking.booking_number,
            actor.value,
            quote.cancellation_fee,
            quote.refund_amount,
        )
        await self._publish(event)
        return booking

    async def expire_stale_bookings(self, now: Optional[datetime] = None) -> int:
        """Expire pending bookings whose pickup time has passed."""
        now = now or self.clock()
        expired = 0
        for booking in await self.bookings.list_pending_before(now):
            if booking.pickup_datetime(self.tz) > now:
                continue
            event = self.machine.transition(
                booking, BookingStatus.EXPIRED, "pickup time passed", now=now
            )
            try:
                await self.bookings.save(booking)
            except StaleRecordError:
                logger.warning(
                    "Booking %s changed during expiry sweep; skipped",
                    booking.booking_number,
                )
                continue
            await self.vehicles.release(booking.vehicle_id)
            await self._publish(event)
            expired += 1
        if expired:
            logger.info("Expiry sweep: %d bookings expired", expired)
        return expired

    # ── Ratings, messages, payment ────────────────────────────────────

    async def rate_booking(
        self,
        booking_id: int,
        rater_role: ActorRole,
        rating: int,
        comment: Optional[str] = None,
    ) -> Booking:
        booking = await self.get_booking(booking_id)
        if booking.status is not BookingStatus.TRIP_COMPLETED:
            raise BookingNotRateable(
                f"Booking {booking.booking_number} is {booking.status.value}; "
                "only completed trips can be rated"
            )
        entry = self.ratings.single(rating, comment, now=self.clock())

        if rater_role is ActorRole.RIDER:
            previous = booking.ratings.rider
            vehicle = await self.get_vehicle(booking.vehicle_id)
            if previous is None:
                self.ratings.add(vehicle.ratings, rating)
            else:
                self.ratings.replace(vehicle.ratings, previous.rating, rating)
            vehicle.statistics.average_rating = vehicle.ratings.average
            booking.ratings.rider = entry
            booking = await self.bookings.save(booking)
            await self.vehicles.save(vehicle)
        elif rater_role is ActorRole.DRIVER:
            booking.ratings.driver = entry
            booking = await self.bookings.save(booking)
        else:
            raise InvalidRating(f"{rater_role.value} cannot rate a booking")
        return booking

    async def add_message(
        self,
        booking_id: int,
        sender_role: ActorRole,
        sender_id: int,
        text: str,
    ) -> Message:
        booking = await self.get_booking(booking_id)
        message = Message(
            sender_role=sender_role,
            sender_id=sender_id,
            text=text,
            sent_at=self.clock(),
        )
        booking.messages.append(message)
        await self.bookings.save(booking)
        return message

    async def record_payment_status(
        self,
        booking_id: int,
        status: PaymentStatus,
        transaction_id: Optional[str] = None,
        gateway: Optional[str] = None,
    ) -> Booking:
        """Record a payment status reported back by the payment collaborator."""
        booking = await self.get_booking(booking_id)
        current = booking.payment.status
        if status not in PAYMENT_TRANSITIONS[current]:
            raise InvalidPaymentStatus(
                f"Payment for {booking.booking_number} cannot go "
                f"from {current.value} to {status.value}"
            )
        booking.payment.status = status
        if transaction_id is not None:
            booking.payment.transaction_id = transaction_id
        if gateway is not None:
            booking.payment.gateway = gateway
        booking.updated_at = self.clock()
        return await self.bookings.save(booking)

    # ── Internals ─────────────────────────────────────────────────────

    async def _publish(self, event: StatusChange) -> None:
        await self.publisher.publish(event)
