"""
SQLAlchemy ORM models.

Tables
------
* ``vehicle_pricing`` -- configured pricing rows (the pricing table)
* ``vehicles``        -- one physical vehicle per row
* ``bookings``        -- one trip request per row

Layout
------
Fields that are filtered on or changed by atomic conditional updates
(status, availability flags, pickup time) are scalar columns; the nested
blocks of each entity live in a JSON ``payload``.  Scalar columns are
authoritative when both hold a value.  ``version`` backs the
compare-and-set save used by the repositories.

Indexes
-------
* **B-Tree** on ``bookings.status + pickup_at`` for the expiry sweep,
  on ``rider_id`` / ``vehicle_id`` for look-ups, and on the vehicle
  availability flags.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB

from .database import Base
from chalo.domain.enums import (
    ApprovalStatus,
    BookingStatus,
    FareTripType,
    VehicleCategory,
)

Payload = JSON().with_variant(JSONB(), "postgresql")


class VehiclePricingModel(Base):
    __tablename__ = "vehicle_pricing"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(Enum(VehicleCategory), nullable=False)
    vehicle_type = Column(String(80), nullable=False)
    vehicle_model = Column(String(80), nullable=False)
    trip_type = Column(Enum(FareTripType), nullable=False)

    # auto: flat fare; car / bus: per-km rate per distance band
    auto_price = Column(Integer, default=0, nullable=False)
    rate_50km = Column(Float, default=0.0, nullable=False)
    rate_100km = Column(Float, default=0.0, nullable=False)
    rate_150km = Column(Float, default=0.0, nullable=False)

    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "category",
            "vehicle_type",
            "vehicle_model",
            "trip_type",
            name="uq_vehicle_pricing_config",
        ),
        Index("idx_vehicle_pricing_active", "is_active"),
    )


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, nullable=False)
    category = Column(Enum(VehicleCategory), nullable=False)

    is_available = Column(Boolean, default=True, nullable=False)
    booked = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    approval_status = Column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False
    )
    under_maintenance = Column(Boolean, default=False, nullable=False)

    version = Column(Integer, default=1, nullable=False)
    payload = Column(Payload, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_vehicles_driver", "driver_id"),
        Index("idx_vehicles_availability", "is_available", "is_active", "is_verified"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_number = Column(String(20), unique=True, nullable=False)
    rider_id = Column(Integer, nullable=False)
    driver_id = Column(Integer, nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)

    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    # Pickup date + time normalised to UTC, used by the expiry sweep
    pickup_at = Column(DateTime(timezone=True), nullable=False)
    total = Column(Integer, nullable=False)

    version = Column(Integer, default=1, nullable=False)
    payload = Column(Payload, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_bookings_status_pickup", "status", "pickup_at"),
        Index("idx_bookings_rider", "rider_id"),
        Index("idx_bookings_vehicle", "vehicle_id"),
    )
