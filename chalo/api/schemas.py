"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from chalo.domain.entities import (
    AdditionalCharges,
    BookingRatings,
    Cancellation,
    Location,
    Message,
    Passenger,
    PaymentInfo,
    PricingBreakdown,
    PricingReference,
    RatingAggregate,
    TripActuals,
    TripPoint,
    VehiclePricing,
    VehicleStatistics,
)
from chalo.domain.enums import (
    ActorRole,
    ApprovalStatus,
    BookingStatus,
    FareTripType,
    PaymentMethod,
    PaymentStatus,
    TripType,
    VehicleCategory,
)
from chalo.services.booking_service import TripRequest


# ── Requests ──────────────────────────────────────────────────────────


class LocationIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class TripPointIn(LocationIn):
    address: str = Field(..., min_length=1, max_length=255)
    date: dt.date
    time: dt.time

    def to_domain(self) -> TripPoint:
        return TripPoint(
            latitude=self.latitude,
            longitude=self.longitude,
            address=self.address,
            date=self.date,
            time=self.time,
        )


class PassengerIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    age: Optional[int] = Field(None, ge=0, le=120)
    gender: Optional[str] = None
    seat: Optional[str] = None
    is_child: bool = False
    needs_wheelchair: bool = False


class ChargesIn(BaseModel):
    toll: int = Field(0, ge=0)
    parking: int = Field(0, ge=0)
    night_charge: int = Field(0, ge=0)
    waiting_charge: int = Field(0, ge=0)
    other: int = Field(0, ge=0)


class BookingCreateRequest(BaseModel):
    rider_id: int
    vehicle_id: int
    trip_type: TripType = TripType.ONE_WAY
    pickup: TripPointIn
    destination: TripPointIn
    waypoints: list[LocationIn] = []
    passengers: list[PassengerIn] = []
    distance: Optional[float] = Field(
        None,
        ge=0,
        description="Road distance in km; great-circle distance is used if omitted.",
    )
    payment_method: PaymentMethod = PaymentMethod.CASH
    charges: ChargesIn = ChargesIn()
    discount: int = Field(0, ge=0)
    special_requests: str = Field("", max_length=500)

    def to_trip_request(self) -> TripRequest:
        return TripRequest(
            pickup=self.pickup.to_domain(),
            destination=self.destination.to_domain(),
            trip_type=self.trip_type,
            waypoints=[Location(w.latitude, w.longitude) for w in self.waypoints],
            passengers=[Passenger(**p.model_dump()) for p in self.passengers],
            distance=self.distance,
            payment_method=self.payment_method,
            charges=AdditionalCharges(**self.charges.model_dump()),
            discount=self.discount,
            special_requests=self.special_requests,
        )


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=500)
    actor: ActorRole = ActorRole.SYSTEM
    actual_distance: Optional[float] = Field(None, ge=0)


class CancelRequest(BaseModel):
    actor: ActorRole = ActorRole.RIDER
    reason: Optional[str] = Field(None, max_length=500)


class RatingRequest(BaseModel):
    rater_role: ActorRole
    rating: int
    comment: Optional[str] = Field(None, max_length=1000)


class MessageRequest(BaseModel):
    sender_role: ActorRole
    sender_id: int
    text: str = Field(..., min_length=1, max_length=1000)


class PaymentStatusRequest(BaseModel):
    status: PaymentStatus
    transaction_id: Optional[str] = Field(None, max_length=120)
    gateway: Optional[str] = Field(None, max_length=60)


class PricingEntryRequest(BaseModel):
    category: VehicleCategory
    vehicle_type: str = Field(..., min_length=1, max_length=80)
    vehicle_model: str = Field(..., min_length=1, max_length=80)
    trip_type: FareTripType
    auto_price: int = Field(0, ge=0)
    rate_50km: float = Field(0.0, ge=0)
    rate_100km: float = Field(0.0, ge=0)
    rate_150km: float = Field(0.0, ge=0)
    is_default: bool = False
    is_active: bool = True
    notes: Optional[str] = Field(None, max_length=255)


# ── Responses ─────────────────────────────────────────────────────────


class BookingResponse(BaseModel):
    id: int
    booking_number: str
    rider_id: int
    driver_id: int
    vehicle_id: int
    trip_type: TripType
    status: BookingStatus
    pickup: TripPoint
    destination: TripPoint
    waypoints: list[Location] = []
    passengers: list[Passenger] = []
    distance: float
    pricing: PricingBreakdown
    payment: PaymentInfo
    cancellation: Cancellation
    trip: TripActuals
    ratings: BookingRatings
    special_requests: str = ""
    is_active: bool
    can_be_cancelled: bool
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    sender_role: ActorRole
    sender_id: int
    text: str
    sent_at: dt.datetime

    model_config = {"from_attributes": True}

    @classmethod
    def from_domain(cls, message: Message) -> "MessageResponse":
        return cls.model_validate(message)


class VehicleResponse(BaseModel):
    id: int
    driver_id: int
    category: VehicleCategory
    vehicle_type: str
    brand: str
    model: str
    pricing_reference: Optional[PricingReference] = None
    pricing: Optional[VehiclePricing] = None
    is_available: bool
    booked: bool
    approval_status: ApprovalStatus
    ratings: RatingAggregate
    statistics: VehicleStatistics

    model_config = {"from_attributes": True}


class FareQuoteResponse(BaseModel):
    vehicle_id: int
    distance: float
    trip_type: FareTripType
    pricing: PricingBreakdown


class HealthResponse(BaseModel):
    status: str = "ok"
