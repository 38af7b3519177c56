"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Booking``: the status field is owned by
  ``BookingStateMachine``; derived flags (``is_active``,
  ``can_be_cancelled``) are computed from the status on read.
- ``Vehicle.is_available_for_booking`` encapsulates the availability
  predicate checked before a booking is created.
- ``RatingAggregate`` keeps a fixed 5-slot histogram indexed by star - 1.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional

from .enums import (
    BOOKING_TRANSITIONS,
    TERMINAL_STATUSES,
    WEEKDAYS,
    ActorRole,
    ApprovalStatus,
    BookingStatus,
    FareTripType,
    PaymentMethod,
    PaymentStatus,
    TripType,
    VehicleCategory,
)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass
class TripPoint:
    latitude: float
    longitude: float
    address: str
    date: date
    time: time

    @property
    def location(self) -> Location:
        return Location(self.latitude, self.longitude)


@dataclass
class Passenger:
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    seat: Optional[str] = None
    is_child: bool = False
    needs_wheelchair: bool = False


@dataclass
class AdditionalCharges:
    toll: int = 0
    parking: int = 0
    night_charge: int = 0
    waiting_charge: int = 0
    other: int = 0

    def total(self) -> int:
        return (
            self.toll
            + self.parking
            + self.night_charge
            + self.waiting_charge
            + self.other
        )


@dataclass
class PricingBreakdown:
    fare_trip_type: FareTripType = FareTripType.ONE_WAY
    base_fare: int = 0
    distance: float = 0.0
    rate_per_km: float = 0.0
    additional_charges: AdditionalCharges = field(default_factory=AdditionalCharges)
    subtotal: int = 0
    tax: int = 0
    discount: int = 0
    total: int = 0


@dataclass
class PaymentInfo:
    method: PaymentMethod = PaymentMethod.CASH
    status: PaymentStatus = PaymentStatus.PENDING
    gateway: Optional[str] = None
    transaction_id: Optional[str] = None


@dataclass
class Cancellation:
    is_cancelled: bool = False
    cancelled_by: Optional[ActorRole] = None
    cancelled_at: Optional[datetime] = None
    reason: Optional[str] = None
    cancellation_fee: int = 0
    refund_amount: int = 0


@dataclass
class TripActuals:
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    route: list[Location] = field(default_factory=list)
    stops: list[Location] = field(default_factory=list)
    actual_distance: Optional[float] = None


@dataclass
class ParticipantRating:
    rating: int
    comment: Optional[str] = None
    rated_at: Optional[datetime] = None


@dataclass
class BookingRatings:
    rider: Optional[ParticipantRating] = None
    driver: Optional[ParticipantRating] = None


@dataclass
class Message:
    sender_role: ActorRole
    sender_id: int
    text: str
    sent_at: datetime


# ── Booking ───────────────────────────────────────────────────────────


@dataclass
class Booking:
    id: Optional[int] = None
    booking_number: str = ""
    rider_id: int = 0
    driver_id: int = 0
    vehicle_id: int = 0
    trip_type: TripType = TripType.ONE_WAY
    pickup: Optional[TripPoint] = None
    destination: Optional[TripPoint] = None
    waypoints: list[Location] = field(default_factory=list)
    passengers: list[Passenger] = field(default_factory=list)
    distance: float = 0.0
    pricing: PricingBreakdown = field(default_factory=PricingBreakdown)
    payment: PaymentInfo = field(default_factory=PaymentInfo)
    status: BookingStatus = BookingStatus.PENDING
    cancellation: Cancellation = field(default_factory=Cancellation)
    trip: TripActuals = field(default_factory=TripActuals)
    ratings: BookingRatings = field(default_factory=BookingRatings)
    messages: list[Message] = field(default_factory=list)
    special_requests: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return not self.is_terminal

    @property
    def can_be_cancelled(self) -> bool:
        return BookingStatus.CANCELLED in BOOKING_TRANSITIONS[self.status]

    def pickup_datetime(self, tz: tzinfo = timezone.utc) -> datetime:
        """Pickup date + time as an aware datetime in the service time zone."""
        if self.pickup is None:
            raise ValueError(f"Booking {self.booking_number} has no pickup point")
        return datetime.combine(self.pickup.date, self.pickup.time, tzinfo=tz)


# ── Vehicle ───────────────────────────────────────────────────────────


@dataclass
class PricingReference:
    category: VehicleCategory
    vehicle_type: str
    vehicle_model: str


@dataclass
class AutoPrice:
    one_way: int = 0
    return_trip: int = 0


@dataclass
class DistanceRates:
    """Per-km rates for the 50 / 100 / 150 km distance bands."""

    rate_50km: float = 0.0
    rate_100km: float = 0.0
    rate_150km: float = 0.0


@dataclass
class DistancePricing:
    one_way: Optional[DistanceRates] = None
    return_trip: Optional[DistanceRates] = None

    def for_trip(self, trip_type: FareTripType) -> Optional[DistanceRates]:
        if trip_type is FareTripType.RETURN and self.return_trip is not None:
            return self.return_trip
        return self.one_way


@dataclass
class VehiclePricing:
    """Pricing snapshot denormalised onto the vehicle record."""

    auto_price: Optional[AutoPrice] = None
    distance_pricing: Optional[DistancePricing] = None
    last_updated: Optional[datetime] = None


@dataclass
class RatingAggregate:
    average: float = 0.0
    count: int = 0
    breakdown: list[int] = field(default_factory=lambda: [0, 0, 0, 0, 0])


@dataclass
class Schedule:
    working_days: list[str] = field(default_factory=lambda: list(WEEKDAYS))
    start: time = time(6, 0)
    end: time = time(22, 0)

    def covers(self, when: datetime) -> bool:
        """Working day and whole-hour window ``[start.hour, end.hour)``."""
        if WEEKDAYS[when.weekday()] not in self.working_days:
            return False
        return self.start.hour <= when.hour < self.end.hour


@dataclass
class VehicleStatistics:
    total_trips: int = 0
    total_distance: float = 0.0
    total_earnings: int = 0
    average_rating: float = 0.0


@dataclass
class Vehicle:
    id: Optional[int] = None
    driver_id: int = 0
    category: VehicleCategory = VehicleCategory.CAR
    vehicle_type: str = ""
    brand: str = ""
    model: str = ""
    pricing_reference: Optional[PricingReference] = None
    pricing: Optional[VehiclePricing] = None
    is_available: bool = True
    booked: bool = False
    is_active: bool = True
    is_verified: bool = False
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    under_maintenance: bool = False
    ratings: RatingAggregate = field(default_factory=RatingAggregate)
    schedule: Schedule = field(default_factory=Schedule)
    statistics: VehicleStatistics = field(default_factory=VehicleStatistics)
    version: int = 0

    @property
    def pricing_category(self) -> VehicleCategory:
        if self.pricing_reference is not None:
            return self.pricing_reference.category
        return self.category

    def is_bookable(self) -> bool:
        """Flag part of the availability predicate (no schedule check)."""
        return (
            self.is_available
            and self.is_active
            and self.is_verified
            and self.approval_status is ApprovalStatus.APPROVED
            and not self.booked
            and not self.under_maintenance
        )

    def is_available_for_booking(self, pickup_at: datetime) -> bool:
        return self.is_bookable() and self.schedule.covers(pickup_at)

    def mark_available(self) -> None:
        self.booked = False
        self.is_available = True

    def record_trip(self, distance: float, earnings: int) -> None:
        self.statistics.total_trips += 1
        self.statistics.total_distance += distance
        self.statistics.total_earnings += earnings
