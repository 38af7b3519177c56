"""
Booking lifecycle state machine.

Owns ``Booking.status``.  A transition either applies completely
(status + side-effect fields) or raises ``InvalidTransition`` without
touching the booking.  No locking and no persistence happen here; the
caller saves the booking through a compare-and-set store.

Complexity: O(1) per transition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .entities import Booking
from .enums import BOOKING_TRANSITIONS, BookingStatus
from .errors import InvalidTransition


@dataclass(frozen=True)
class StatusChange:
    """Booking-status-change event handed to the notification collaborator."""

    booking_id: Optional[int]
    booking_number: str
    status: BookingStatus
    timestamp: datetime
    previous: Optional[BookingStatus] = None  # None when the booking is created
    reason: Optional[str] = None


class BookingStateMachine:
    @staticmethod
    def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
        return target in BOOKING_TRANSITIONS.get(current, set())

    def check(self, booking: Booking, target: BookingStatus) -> None:
        if not self.can_transition(booking.status, target):
            raise InvalidTransition(
                f"Cannot transition booking {booking.booking_number} "
                f"from {booking.status.value} to {target.value}"
            )

    def transition(
        self,
        booking: Booking,
        target: BookingStatus,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> StatusChange:
        """Move *booking* to *target* if the transition is legal, else raise."""
        self.check(booking, target)
        now = now or datetime.now(timezone.utc)
        previous = booking.status

        booking.status = target
        booking.updated_at = now
        if target is BookingStatus.TRIP_STARTED:
            booking.trip.start_time = now
        elif target is BookingStatus.TRIP_COMPLETED:
            booking.trip.end_time = now
        elif target is BookingStatus.CANCELLED:
            booking.cancellation.is_cancelled = True
            booking.cancellation.cancelled_at = now
            if reason is not None:
                booking.cancellation.reason = reason

        return StatusChange(
            booking_id=booking.id,
            booking_number=booking.booking_number,
            status=target,
            timestamp=now,
            previous=previous,
            reason=reason,
        )
