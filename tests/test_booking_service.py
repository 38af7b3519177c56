"""
Booking orchestration tests.

Run ``BookingService`` against the in-memory stores from ``conftest`` so
every lifecycle rule is checked without a database.
"""

import re
from datetime import timedelta

import pytest

from chalo.domain.distance import haversine_km
from chalo.domain.entities import AdditionalCharges, DistanceRates, Location, Schedule
from chalo.domain.enums import (
    ActorRole,
    ApprovalStatus,
    BookingStatus,
    FareTripType,
    PaymentStatus,
    TripType,
    VehicleCategory,
)
from chalo.domain.errors import (
    BookingNotFound,
    BookingNotRateable,
    InvalidPaymentStatus,
    InvalidRating,
    InvalidTransition,
    PricingUnavailable,
    VehicleNotFound,
    VehicleUnavailable,
)
from chalo.domain.pricing import PricingEntry, PricingTable, round_currency
from chalo.services.booking_service import BookingService, generate_booking_number
from tests.conftest import NOW, make_trip, make_vehicle

BOOKING_NUMBER = re.compile(r"^CS\d{8}[0-9A-Z]{4}$")


async def _complete(service: BookingService, booking_id: int, distance=None):
    await service.confirm(booking_id)
    await service.assign_driver(booking_id)
    await service.driver_en_route(booking_id)
    await service.driver_arrived(booking_id)
    await service.start_trip(booking_id)
    return await service.complete_trip(booking_id, distance)


class TestBookingNumber:
    def test_format(self):
        assert BOOKING_NUMBER.match(generate_booking_number())

    def test_uses_last_eight_timestamp_digits(self):
        number = generate_booking_number("CS", now_ms=1772438400123)
        assert number.startswith("CS38400123")
        assert len(number) == 14


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_prices_and_reserves(self, service, vehicle_store, booking_store, publisher):
        vehicle = await vehicle_store.add(make_vehicle())

        booking = await service.create_booking(11, vehicle.id, make_trip(distance=20))

        assert booking.status is BookingStatus.PENDING
        assert BOOKING_NUMBER.match(booking.booking_number)
        assert booking.driver_id == vehicle.driver_id
        assert booking.pricing.base_fare == 200
        assert booking.pricing.rate_per_km == 10
        assert booking.pricing.total == 200
        assert booking.created_at == NOW
        assert booking_store.rows[booking.id].booking_number == booking.booking_number

        stored = vehicle_store.rows[vehicle.id]
        assert stored.booked and not stored.is_available

        assert publisher.statuses == [BookingStatus.PENDING]
        assert publisher.events[0].previous is None

    @pytest.mark.asyncio
    async def test_tax_and_charges(self, booking_store, vehicle_store, publisher, clock):
        service = BookingService(
            booking_store, vehicle_store, publisher, tax_rate=0.18, clock=clock
        )
        vehicle = await vehicle_store.add(make_vehicle())
        trip = make_trip(distance=20, charges=AdditionalCharges(toll=50), discount=10)

        booking = await service.create_booking(11, vehicle.id, trip)

        assert booking.pricing.subtotal == 250
        assert booking.pricing.tax == 45
        assert booking.pricing.total == 285

    @pytest.mark.asyncio
    async def test_round_trip_reads_return_rates(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(
            11, vehicle.id, make_trip(distance=20, trip_type=TripType.ROUND_TRIP)
        )
        assert booking.pricing.fare_trip_type is FareTripType.RETURN
        assert booking.pricing.total == 180

    @pytest.mark.asyncio
    async def test_auto_flat_fare(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle(VehicleCategory.AUTO))
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=400))
        assert booking.pricing.total == 200
        assert booking.pricing.rate_per_km == 0

    @pytest.mark.asyncio
    async def test_distance_defaults_to_great_circle(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=None))

        expected = round(haversine_km(19.0896, 72.8656, 19.1176, 72.9060), 2)
        assert booking.distance == expected
        assert booking.pricing.total == round_currency(expected * 10)

    @pytest.mark.asyncio
    async def test_multi_city_sums_waypoints(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        stop = Location(19.0760, 72.8777)
        trip = make_trip(distance=None, trip_type=TripType.MULTI_CITY, waypoints=[stop])

        booking = await service.create_booking(11, vehicle.id, trip)

        direct = haversine_km(19.0896, 72.8656, 19.1176, 72.9060)
        assert booking.distance > direct
        assert booking.pricing.fare_trip_type is FareTripType.ONE_WAY

    @pytest.mark.asyncio
    async def test_unverified_vehicle_rejected(self, service, vehicle_store, booking_store, publisher):
        vehicle = await vehicle_store.add(make_vehicle(is_verified=False))
        with pytest.raises(VehicleUnavailable):
            await service.create_booking(11, vehicle.id, make_trip())
        assert booking_store.rows == {}
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_unapproved_vehicle_rejected(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle(approval_status=ApprovalStatus.PENDING))
        with pytest.raises(VehicleUnavailable):
            await service.create_booking(11, vehicle.id, make_trip())

    @pytest.mark.asyncio
    async def test_outside_working_hours(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        late = NOW.replace(hour=22, minute=30) + timedelta(days=1)
        with pytest.raises(VehicleUnavailable):
            await service.create_booking(11, vehicle.id, make_trip(pickup_at=late))

    @pytest.mark.asyncio
    async def test_not_a_working_day(self, service, vehicle_store):
        vehicle = await vehicle_store.add(
            make_vehicle(schedule=Schedule(working_days=["saturday", "sunday"]))
        )
        # NOW is a Monday; pickup on Tuesday
        with pytest.raises(VehicleUnavailable):
            await service.create_booking(11, vehicle.id, make_trip())

    @pytest.mark.asyncio
    async def test_second_booking_on_booked_vehicle(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        await service.create_booking(11, vehicle.id, make_trip())
        with pytest.raises(VehicleUnavailable):
            await service.create_booking(12, vehicle.id, make_trip())

    @pytest.mark.asyncio
    async def test_lost_reservation_race(self, service, vehicle_store, booking_store):
        vehicle = await vehicle_store.add(make_vehicle())

        async def taken(vehicle_id):
            return False

        vehicle_store.reserve = taken
        with pytest.raises(VehicleUnavailable, match="already booked"):
            await service.create_booking(11, vehicle.id, make_trip())
        assert booking_store.rows == {}

    @pytest.mark.asyncio
    async def test_failed_insert_releases_vehicle(self, service, vehicle_store, booking_store, publisher):
        vehicle = await vehicle_store.add(make_vehicle())

        async def duplicate_number(booking):
            raise RuntimeError("duplicate booking number")

        booking_store.add = duplicate_number
        with pytest.raises(RuntimeError, match="duplicate"):
            await service.create_booking(11, vehicle.id, make_trip())

        stored = vehicle_store.rows[vehicle.id]
        assert not stored.booked
        assert stored.is_available
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_vehicle_without_pricing(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle(pricing=None))
        with pytest.raises(PricingUnavailable):
            await service.create_booking(11, vehicle.id, make_trip())
        assert not vehicle_store.rows[vehicle.id].booked

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, service):
        with pytest.raises(VehicleNotFound):
            await service.create_booking(11, 999, make_trip())


class TestPricingOperations:
    @pytest.mark.asyncio
    async def test_quote_fare(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        quote = await service.quote_fare(vehicle.id, 120, FareTripType.RETURN)
        assert quote.rate_per_km == 5
        assert quote.total == 600

    @pytest.mark.asyncio
    async def test_refresh_vehicle_pricing(self, service, vehicle_store, clock):
        vehicle = await vehicle_store.add(make_vehicle())
        table = PricingTable(
            [
                PricingEntry(
                    VehicleCategory.CAR,
                    "Sedan",
                    "Honda Amaze",
                    FareTripType.ONE_WAY,
                    rates=DistanceRates(16, 15, 14),
                )
            ]
        )

        refreshed = await service.refresh_vehicle_pricing(vehicle.id, table)

        assert refreshed.pricing.distance_pricing.one_way.rate_50km == 16
        assert refreshed.pricing.last_updated == clock.now
        assert vehicle_store.rows[vehicle.id].pricing.distance_pricing.one_way.rate_50km == 16

    @pytest.mark.asyncio
    async def test_refresh_without_reference(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle(pricing_reference=None))
        with pytest.raises(PricingUnavailable):
            await service.refresh_vehicle_pricing(vehicle.id, PricingTable())


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_full_trip(self, service, vehicle_store, publisher, clock):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=20))

        done = await _complete(service, booking.id, distance=22.5)

        assert done.status is BookingStatus.TRIP_COMPLETED
        assert done.trip.start_time == clock.now
        assert done.trip.end_time == clock.now
        assert done.trip.actual_distance == 22.5
        assert not done.is_active

        stored = vehicle_store.rows[vehicle.id]
        assert stored.statistics.total_trips == 1
        assert stored.statistics.total_distance == 22.5
        assert stored.statistics.total_earnings == 200
        assert stored.is_available and not stored.booked

        assert publisher.statuses == [
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            BookingStatus.DRIVER_ASSIGNED,
            BookingStatus.DRIVER_EN_ROUTE,
            BookingStatus.DRIVER_ARRIVED,
            BookingStatus.TRIP_STARTED,
            BookingStatus.TRIP_COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_skipping_a_step_is_rejected(self, service, vehicle_store, booking_store, publisher):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())

        with pytest.raises(InvalidTransition):
            await service.start_trip(booking.id)

        assert booking_store.rows[booking.id].status is BookingStatus.PENDING
        assert publisher.statuses == [BookingStatus.PENDING]

    @pytest.mark.asyncio
    async def test_update_status_routes_completion(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=20))
        for status in (
            BookingStatus.CONFIRMED,
            BookingStatus.DRIVER_ASSIGNED,
            BookingStatus.DRIVER_EN_ROUTE,
            BookingStatus.DRIVER_ARRIVED,
            BookingStatus.TRIP_STARTED,
            BookingStatus.TRIP_COMPLETED,
        ):
            booking = await service.update_status(booking.id, status)

        assert booking.trip.actual_distance == 20
        assert vehicle_store.rows[vehicle.id].statistics.total_trips == 1

    @pytest.mark.asyncio
    async def test_unknown_booking(self, service):
        with pytest.raises(BookingNotFound):
            await service.confirm(404)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_a_day_ahead(self, service, vehicle_store, publisher):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=20))

        cancelled = await service.cancel_booking(booking.id, ActorRole.RIDER, "plans changed")

        assert cancelled.status is BookingStatus.CANCELLED
        assert cancelled.cancellation.is_cancelled
        assert cancelled.cancellation.cancelled_by is ActorRole.RIDER
        assert cancelled.cancellation.reason == "plans changed"
        assert cancelled.cancellation.cancellation_fee == 10
        assert cancelled.cancellation.refund_amount == 190
        assert not vehicle_store.rows[vehicle.id].booked
        assert publisher.events[-1].previous is BookingStatus.PENDING

    @pytest.mark.asyncio
    async def test_cancel_after_pickup_time(self, service, vehicle_store, clock):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=20))
        clock.advance(hours=27)

        cancelled = await service.cancel_booking(booking.id, ActorRole.DRIVER)

        assert cancelled.cancellation.cancellation_fee == 100
        assert cancelled.cancellation.refund_amount == 100

    @pytest.mark.asyncio
    async def test_cancel_twice_keeps_first_fee(self, service, vehicle_store, booking_store, clock):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=20))
        await service.cancel_booking(booking.id, ActorRole.RIDER)
        clock.advance(hours=25)

        with pytest.raises(InvalidTransition):
            await service.cancel_booking(booking.id, ActorRole.RIDER)

        stored = booking_store.rows[booking.id]
        assert stored.cancellation.cancellation_fee == 10
        assert stored.cancellation.refund_amount == 190

    @pytest.mark.asyncio
    async def test_completed_trip_cannot_be_cancelled(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        await _complete(service, booking.id)

        with pytest.raises(InvalidTransition):
            await service.cancel_booking(booking.id, ActorRole.ADMIN)

    @pytest.mark.asyncio
    async def test_update_status_cancel_goes_through_policy(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip(distance=20))

        cancelled = await service.update_status(
            booking.id, BookingStatus.CANCELLED, reason="no show", actor=ActorRole.ADMIN
        )

        assert cancelled.cancellation.cancelled_by is ActorRole.ADMIN
        assert cancelled.cancellation.cancellation_fee == 10


class TestExpiry:
    @pytest.mark.asyncio
    async def test_expires_pending_past_pickup(self, service, vehicle_store, booking_store, publisher, clock):
        first = await vehicle_store.add(make_vehicle())
        second = await vehicle_store.add(make_vehicle(driver_id=8))
        stale = await service.create_booking(11, first.id, make_trip())
        confirmed = await service.create_booking(12, second.id, make_trip())
        await service.confirm(confirmed.id)

        assert await service.expire_stale_bookings() == 0

        clock.advance(hours=27)
        assert await service.expire_stale_bookings() == 1

        assert booking_store.rows[stale.id].status is BookingStatus.EXPIRED
        assert booking_store.rows[confirmed.id].status is BookingStatus.CONFIRMED
        assert not vehicle_store.rows[first.id].booked
        assert vehicle_store.rows[second.id].booked
        assert publisher.statuses[-1] is BookingStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_expired_booking_cannot_be_confirmed(self, service, vehicle_store, clock):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        clock.advance(days=2)
        await service.expire_stale_bookings()

        with pytest.raises(InvalidTransition):
            await service.confirm(booking.id)


class TestRatings:
    @pytest.mark.asyncio
    async def test_rating_before_completion(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        with pytest.raises(BookingNotRateable):
            await service.rate_booking(booking.id, ActorRole.RIDER, 5)

    @pytest.mark.asyncio
    async def test_rider_rating_updates_vehicle(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        await _complete(service, booking.id)

        rated = await service.rate_booking(booking.id, ActorRole.RIDER, 4, "polite driver")

        assert rated.ratings.rider.rating == 4
        assert rated.ratings.rider.comment == "polite driver"
        stored = vehicle_store.rows[vehicle.id]
        assert stored.ratings.breakdown == [0, 0, 0, 1, 0]
        assert stored.ratings.count == 1
        assert stored.statistics.average_rating == 4

    @pytest.mark.asyncio
    async def test_rider_rerating_replaces(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        await _complete(service, booking.id)

        await service.rate_booking(booking.id, ActorRole.RIDER, 2)
        await service.rate_booking(booking.id, ActorRole.RIDER, 5)

        stored = vehicle_store.rows[vehicle.id]
        assert stored.ratings.count == 1
        assert stored.ratings.breakdown == [0, 0, 0, 0, 1]
        assert stored.ratings.average == 5

    @pytest.mark.asyncio
    async def test_driver_rating_only_fills_slot(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        await _complete(service, booking.id)

        rated = await service.rate_booking(booking.id, ActorRole.DRIVER, 3)

        assert rated.ratings.driver.rating == 3
        assert rated.ratings.rider is None
        assert vehicle_store.rows[vehicle.id].ratings.count == 0

    @pytest.mark.asyncio
    async def test_invalid_rating_changes_nothing(self, service, vehicle_store, booking_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        await _complete(service, booking.id)

        with pytest.raises(InvalidRating):
            await service.rate_booking(booking.id, ActorRole.RIDER, 6)
        with pytest.raises(InvalidRating):
            await service.rate_booking(booking.id, ActorRole.ADMIN, 5)

        assert booking_store.rows[booking.id].ratings.rider is None
        assert vehicle_store.rows[vehicle.id].ratings.count == 0


class TestMessagesAndPayment:
    @pytest.mark.asyncio
    async def test_add_message(self, service, vehicle_store, booking_store, clock):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())

        message = await service.add_message(booking.id, ActorRole.DRIVER, 7, "Waiting at gate 4")

        assert message.sent_at == clock.now
        stored = booking_store.rows[booking.id].messages
        assert [m.text for m in stored] == ["Waiting at gate 4"]

    @pytest.mark.asyncio
    async def test_payment_flow(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())

        paid = await service.record_payment_status(
            booking.id, PaymentStatus.COMPLETED, transaction_id="pay_123", gateway="razorpay"
        )
        assert paid.payment.status is PaymentStatus.COMPLETED
        assert paid.payment.transaction_id == "pay_123"

        refunded = await service.record_payment_status(booking.id, PaymentStatus.REFUNDED)
        assert refunded.payment.status is PaymentStatus.REFUNDED
        assert refunded.payment.gateway == "razorpay"

    @pytest.mark.asyncio
    async def test_payment_cannot_go_backwards(self, service, vehicle_store):
        vehicle = await vehicle_store.add(make_vehicle())
        booking = await service.create_booking(11, vehicle.id, make_trip())
        await service.record_payment_status(booking.id, PaymentStatus.COMPLETED)

        with pytest.raises(InvalidPaymentStatus):
            await service.record_payment_status(booking.id, PaymentStatus.PENDING)
