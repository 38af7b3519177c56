"""
Collaborator ports used by ``BookingService``.

Persistence implementations must honour compare-and-set semantics:
``save`` succeeds only if the stored ``version`` still equals the one the
entity was loaded with, and raises ``StaleRecordError`` otherwise.
``VehicleStore.reserve`` must be one conditional update, never a read
followed by a write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from chalo.domain.entities import Booking, Vehicle
from chalo.domain.state_machine import StatusChange


class BookingStore(ABC):
    @abstractmethod
    async def get(self, booking_id: int) -> Optional[Booking]: ...

    @abstractmethod
    async def add(self, booking: Booking) -> Booking: ...

    @abstractmethod
    async def save(self, booking: Booking) -> Booking: ...

    @abstractmethod
    async def list_pending_before(self, moment: datetime) -> list[Booking]: ...


class VehicleStore(ABC):
    @abstractmethod
    async def get(self, vehicle_id: int) -> Optional[Vehicle]: ...

    @abstractmethod
    async def save(self, vehicle: Vehicle) -> Vehicle: ...

    @abstractmethod
    async def reserve(self, vehicle_id: int) -> bool:
        """Atomically flip an available vehicle to booked.  True if we won."""

    @abstractmethod
    async def release(self, vehicle_id: int) -> None: ...


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event: StatusChange) -> None:
        """Fire-and-forget delivery; must not raise on transport failure."""
