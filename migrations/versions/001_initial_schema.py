"""Initial schema: vehicle pricing table, vehicles and bookings.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# SQLAlchemy stores Python enums by member name
VEHICLE_CATEGORY = ("AUTO", "CAR", "BUS")
FARE_TRIP_TYPE = ("ONE_WAY", "RETURN")
APPROVAL_STATUS = ("PENDING", "APPROVED", "REJECTED")
BOOKING_STATUS = (
    "PENDING",
    "CONFIRMED",
    "DRIVER_ASSIGNED",
    "DRIVER_EN_ROUTE",
    "DRIVER_ARRIVED",
    "TRIP_STARTED",
    "TRIP_COMPLETED",
    "CANCELLED",
    "EXPIRED",
)


def upgrade() -> None:
    # ── vehicle_pricing ───────────────────────────────────────────────
    op.create_table(
        "vehicle_pricing",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "category",
            sa.Enum(*VEHICLE_CATEGORY, name="vehiclecategory"),
            nullable=False,
        ),
        sa.Column("vehicle_type", sa.String(80), nullable=False),
        sa.Column("vehicle_model", sa.String(80), nullable=False),
        sa.Column(
            "trip_type",
            sa.Enum(*FARE_TRIP_TYPE, name="faretriptype"),
            nullable=False,
        ),
        sa.Column("auto_price", sa.Integer, default=0, nullable=False),
        sa.Column("rate_50km", sa.Float, default=0.0, nullable=False),
        sa.Column("rate_100km", sa.Float, default=0.0, nullable=False),
        sa.Column("rate_150km", sa.Float, default=0.0, nullable=False),
        sa.Column("is_default", sa.Boolean, default=False, nullable=False),
        sa.Column("is_active", sa.Boolean, default=True, nullable=False),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "category",
            "vehicle_type",
            "vehicle_model",
            "trip_type",
            name="uq_vehicle_pricing_config",
        ),
    )
    op.create_index("idx_vehicle_pricing_active", "vehicle_pricing", ["is_active"])

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer, nullable=False),
        sa.Column(
            "category",
            sa.Enum(*VEHICLE_CATEGORY, name="vehiclecategory", create_type=False),
            nullable=False,
        ),
        sa.Column("is_available", sa.Boolean, default=True, nullable=False),
        sa.Column("booked", sa.Boolean, default=False, nullable=False),
        sa.Column("is_active", sa.Boolean, default=True, nullable=False),
        sa.Column("is_verified", sa.Boolean, default=False, nullable=False),
        sa.Column(
            "approval_status",
            sa.Enum(*APPROVAL_STATUS, name="approvalstatus"),
            default="PENDING",
            nullable=False,
        ),
        sa.Column("under_maintenance", sa.Boolean, default=False, nullable=False),
        sa.Column("version", sa.Integer, default=1, nullable=False),
        sa.Column("payload", JSONB, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_vehicles_driver", "vehicles", ["driver_id"])
    op.create_index(
        "idx_vehicles_availability",
        "vehicles",
        ["is_available", "is_active", "is_verified"],
    )

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_number", sa.String(20), unique=True, nullable=False),
        sa.Column("rider_id", sa.Integer, nullable=False),
        sa.Column("driver_id", sa.Integer, nullable=False),
        sa.Column(
            "vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum(*BOOKING_STATUS, name="bookingstatus"),
            default="PENDING",
            nullable=False,
        ),
        sa.Column("pickup_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total", sa.Integer, nullable=False),
        sa.Column("version", sa.Integer, default=1, nullable=False),
        sa.Column("payload", JSONB, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_bookings_status_pickup", "bookings", ["status", "pickup_at"]
    )
    op.create_index("idx_bookings_rider", "bookings", ["rider_id"])
    op.create_index("idx_bookings_vehicle", "bookings", ["vehicle_id"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("vehicles")
    op.drop_table("vehicle_pricing")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS approvalstatus")
    op.execute("DROP TYPE IF EXISTS faretriptype")
    op.execute("DROP TYPE IF EXISTS vehiclecategory")
