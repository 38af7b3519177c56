"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_EN_ROUTE = "driver_en_route"
    DRIVER_ARRIVED = "driver_arrived"
    TRIP_STARTED = "trip_started"
    TRIP_COMPLETED = "trip_completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    },
    BookingStatus.CONFIRMED: {BookingStatus.DRIVER_ASSIGNED, BookingStatus.CANCELLED},
    BookingStatus.DRIVER_ASSIGNED: {
        BookingStatus.DRIVER_EN_ROUTE,
        BookingStatus.CANCELLED,
    },
    BookingStatus.DRIVER_EN_ROUTE: {
        BookingStatus.DRIVER_ARRIVED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.DRIVER_ARRIVED: {BookingStatus.TRIP_STARTED, BookingStatus.CANCELLED},
    BookingStatus.TRIP_STARTED: {BookingStatus.TRIP_COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.TRIP_COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.EXPIRED: set(),
}

TERMINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    status for status, targets in BOOKING_TRANSITIONS.items() if not targets
)


class TripType(str, enum.Enum):
    ONE_WAY = "one_way"
    ROUND_TRIP = "round_trip"
    MULTI_CITY = "multi_city"


class FareTripType(str, enum.Enum):
    """Selects which pricing table (one-way or return) a fare is read from."""

    ONE_WAY = "one-way"
    RETURN = "return"


# Booking trip type -> pricing table; multi-city legs are priced one-way
FARE_TRIP_TYPES: dict[TripType, FareTripType] = {
    TripType.ONE_WAY: FareTripType.ONE_WAY,
    TripType.ROUND_TRIP: FareTripType.RETURN,
    TripType.MULTI_CITY: FareTripType.ONE_WAY,
}


class VehicleCategory(str, enum.Enum):
    AUTO = "auto"
    CAR = "car"
    BUS = "bus"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    UPI = "upi"
    NETBANKING = "netbanking"
    CARD = "card"
    WALLET = "wallet"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.COMPLETED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}


class ActorRole(str, enum.Enum):
    RIDER = "rider"
    DRIVER = "driver"
    ADMIN = "admin"
    SYSTEM = "system"


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
