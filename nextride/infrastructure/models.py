"""
SQLAlchemy ORM models.

Tables
------
* ``users``          -- customer and driver profiles (role-discriminated)
* ``rides``          -- ride documents, one row per ride for its whole life
* ``notifications``  -- notification records shown in the in-app inbox

Indexes
-------
* **B-Tree** on ``rides.status`` + ``requested_at`` for the available-rides
  listing, on ``customer_id`` / ``driver_id`` for ride history, and on
  ``users.h3_cell`` for the nearby-driver lookup.
"""

import uuid

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
    Text,
    func,
)

from .database import Base
from nextride.domain.enums import NotificationType, RideStatus, UserRole, VehicleClass


def _new_id() -> str:
    return str(uuid.uuid4())


def _enum(enum_cls):
    # Persist the lowercase values clients see, not the member names
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e])


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(120), nullable=False)
    last_name = Column(String(120), nullable=False)
    role = Column(_enum(UserRole), nullable=False)
    phone_number = Column(String(32), default="")

    # Driver profile
    license_number = Column(String(64), nullable=True)
    vehicle_make = Column(String(64), nullable=True)
    vehicle_model = Column(String(64), nullable=True)
    vehicle_year = Column(Integer, nullable=True)
    vehicle_color = Column(String(32), nullable=True)
    license_plate = Column(String(32), nullable=True)
    vehicle_class = Column(_enum(VehicleClass), nullable=True)
    is_available = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    rating = Column(Float, default=5.0, nullable=False)
    total_rides = Column(Integer, default=0, nullable=False)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    h3_cell = Column(String(20), nullable=True)

    # Customer profile
    saved_locations = Column(JSON, nullable=True)
    payment_methods = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_users_role_available", "role", "is_available"),
        Index("idx_users_cell", "h3_cell"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(String(64), primary_key=True, default=_new_id)
    customer_id = Column(String(64), nullable=False)
    customer_name = Column(String(255), nullable=False)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String(255), default="")
    pickup_city = Column(String(120), default="")
    pickup_state = Column(String(120), default="")
    pickup_zip_code = Column(String(20), default="")
    pickup_country = Column(String(120), nullable=True)

    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)
    destination_address = Column(String(255), default="")
    destination_city = Column(String(120), default="")
    destination_state = Column(String(120), default="")
    destination_zip_code = Column(String(20), default="")
    destination_country = Column(String(120), nullable=True)

    vehicle_class = Column(_enum(VehicleClass), nullable=False)
    fare = Column(Float, nullable=False)
    estimated_duration = Column(Integer, nullable=False)
    payment_method = Column(String(64), nullable=False)
    status = Column(_enum(RideStatus), default=RideStatus.REQUESTED, nullable=False)

    requested_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    driver_id = Column(String(64), nullable=True)
    driver_name = Column(String(255), nullable=True)
    driver_lat = Column(Float, nullable=True)
    driver_lng = Column(Float, nullable=True)
    last_location_update = Column(DateTime(timezone=True), nullable=True)

    rating = Column(Integer, nullable=True)
    review = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_rides_status_requested", "status", "requested_at"),
        Index("idx_rides_customer", "customer_id"),
        Index("idx_rides_driver", "driver_id"),
    )


class NotificationModel(Base):
    __tablename__ = "notifications"

    id = Column(String(64), primary_key=True, default=_new_id)
    user_id = Column(String(64), nullable=False)
    ride_id = Column(String(64), ForeignKey("rides.id"), nullable=True)
    type = Column(_enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_notifications_user", "user_id", "created_at"),)
