"""Initial schema: users, rides and notifications.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


RIDE_STATUS = sa.Enum(
    "requested",
    "accepted",
    "driver_arriving",
    "in_progress",
    "completed",
    "cancelled",
    name="ridestatus",
)
VEHICLE_CLASS = sa.Enum("sedan", "suv", "hatchback", "luxury", name="vehicleclass")
USER_ROLE = sa.Enum("customer", "driver", name="userrole")
NOTIFICATION_TYPE = sa.Enum(
    "ride_request",
    "ride_accepted",
    "driver_arriving",
    "ride_started",
    "ride_completed",
    "ride_cancelled",
    name="notificationtype",
)


def _location_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_lat", sa.Float, nullable=False),
        sa.Column(f"{prefix}_lng", sa.Float, nullable=False),
        sa.Column(f"{prefix}_address", sa.String(255), default=""),
        sa.Column(f"{prefix}_city", sa.String(120), default=""),
        sa.Column(f"{prefix}_state", sa.String(120), default=""),
        sa.Column(f"{prefix}_zip_code", sa.String(20), default=""),
        sa.Column(f"{prefix}_country", sa.String(120), nullable=True),
    ]


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("phone_number", sa.String(32), default=""),
        sa.Column("license_number", sa.String(64), nullable=True),
        sa.Column("vehicle_make", sa.String(64), nullable=True),
        sa.Column("vehicle_model", sa.String(64), nullable=True),
        sa.Column("vehicle_year", sa.Integer, nullable=True),
        sa.Column("vehicle_color", sa.String(32), nullable=True),
        sa.Column("license_plate", sa.String(32), nullable=True),
        sa.Column("vehicle_class", VEHICLE_CLASS, nullable=True),
        sa.Column("is_available", sa.Boolean, default=False, nullable=False),
        sa.Column("is_verified", sa.Boolean, default=False, nullable=False),
        sa.Column("rating", sa.Float, default=5.0, nullable=False),
        sa.Column("total_rides", sa.Integer, default=0, nullable=False),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("saved_locations", sa.JSON, nullable=True),
        sa.Column("payment_methods", sa.JSON, nullable=True),
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
    op.create_index("idx_users_role_available", "users", ["role", "is_available"])
    op.create_index("idx_users_cell", "users", ["h3_cell"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        *_location_columns("pickup"),
        *_location_columns("destination"),
        sa.Column("vehicle_class", VEHICLE_CLASS, nullable=False),
        sa.Column("fare", sa.Float, nullable=False),
        sa.Column("estimated_duration", sa.Integer, nullable=False),
        sa.Column("payment_method", sa.String(64), nullable=False),
        sa.Column("status", RIDE_STATUS, nullable=False, default="requested"),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("driver_id", sa.String(64), nullable=True),
        sa.Column("driver_name", sa.String(255), nullable=True),
        sa.Column("driver_lat", sa.Float, nullable=True),
        sa.Column("driver_lng", sa.Float, nullable=True),
        sa.Column("last_location_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rating", sa.Integer, nullable=True),
        sa.Column("review", sa.Text, nullable=True),
    )
    op.create_index("idx_rides_status_requested", "rides", ["status", "requested_at"])
    op.create_index("idx_rides_customer", "rides", ["customer_id"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])

    # ── notifications ─────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("ride_id", sa.String(64), sa.ForeignKey("rides.id"), nullable=True),
        sa.Column("type", NOTIFICATION_TYPE, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("is_read", sa.Boolean, default=False, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_notifications_user", "notifications", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("rides")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS notificationtype")
    op.execute("DROP TYPE IF EXISTS ridestatus")
    op.execute("DROP TYPE IF EXISTS vehicleclass")
    op.execute("DROP TYPE IF EXISTS userrole")
