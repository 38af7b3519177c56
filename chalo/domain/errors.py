"""Domain errors.  All are caller/data errors and are never retried."""


class BookingEngineError(Exception):
    """Base class for every error raised by the booking engine."""


class InvalidTransition(BookingEngineError):
    """Raised when a booking status change violates the state machine."""


class PricingUnavailable(BookingEngineError):
    """Raised when a vehicle has no resolvable pricing for a trip."""


class InvalidRating(BookingEngineError):
    """Raised when a rating is not an integer between 1 and 5."""


class VehicleUnavailable(BookingEngineError):
    """Raised when a vehicle fails the availability check at booking time."""


class BookingNotRateable(BookingEngineError):
    """Raised when a booking is rated before its trip has completed."""


class InvalidPaymentStatus(BookingEngineError):
    """Raised when a reported payment status does not follow the current one."""


class BookingNotFound(BookingEngineError):
    pass


class VehicleNotFound(BookingEngineError):
    pass


class StaleRecordError(BookingEngineError):
    """Raised by a store when a compare-and-set save loses to another writer."""
