"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from nextride.domain.entities import Coordinate, Location
from nextride.domain.enums import NotificationType, RideStatus, UserRole, VehicleClass


# ── Shared ────────────────────────────────────────────────────────────


class CoordinateSchema(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = {"from_attributes": True}

    def to_domain(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class LocationSchema(CoordinateSchema):
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: Optional[str] = None

    def to_domain(self) -> Location:
        return Location(**self.model_dump())


class RegionSchema(BaseModel):
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float

    model_config = {"from_attributes": True}


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    customer_name: str = Field(..., max_length=255)
    pickup: LocationSchema
    destination: LocationSchema
    vehicle_class: VehicleClass = VehicleClass.SEDAN
    payment_method: str = Field("cash", max_length=64)


class AcceptRideRequest(BaseModel):
    driver_name: str = Field(..., max_length=255)


class StatusUpdateRequest(BaseModel):
    status: str


class RatingRequest(BaseModel):
    rating: int
    review: Optional[str] = Field(None, max_length=2000)


class VehicleInfo(BaseModel):
    make: str
    model: str
    year: int = Field(..., ge=1950, le=2100)
    color: str
    license_plate: str
    vehicle_class: VehicleClass


class UserCreateRequest(BaseModel):
    email: str = Field(..., max_length=255)
    first_name: str = Field(..., max_length=120)
    last_name: str = Field(..., max_length=120)
    role: UserRole
    phone_number: str = ""
    license_number: Optional[str] = None
    vehicle: Optional[VehicleInfo] = None

    @model_validator(mode="after")
    def _driver_fields(self):
        if self.role is UserRole.DRIVER and (not self.license_number or self.vehicle is None):
            raise ValueError("License number and vehicle info are required for drivers")
        return self


class AvailabilityRequest(BaseModel):
    is_available: bool


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: str
    customer_id: str
    customer_name: str
    pickup: LocationSchema
    destination: LocationSchema
    vehicle_class: VehicleClass
    fare: float
    estimated_duration: int
    payment_method: str
    status: RideStatus
    requested_at: datetime
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    driver_position: Optional[CoordinateSchema] = None
    last_location_update: Optional[datetime] = None
    rating: Optional[int] = None
    review: Optional[str] = None

    model_config = {"from_attributes": True}


class InstructionResponse(BaseModel):
    text: str
    distance_km: float
    duration_min: float
    maneuver: str
    anchor: CoordinateSchema

    model_config = {"from_attributes": True}


class NavigationStateResponse(BaseModel):
    is_navigating: bool
    current_instruction: Optional[InstructionResponse] = None
    remaining_distance_km: float
    remaining_time_min: float
    current_position: Optional[CoordinateSchema] = None
    progress: float

    model_config = {"from_attributes": True}


class NavigationStartResponse(BaseModel):
    target: str
    distance_km: float
    duration_min: float
    coordinates: list[CoordinateSchema]
    instructions: list[InstructionResponse]
    region: RegionSchema
    state: NavigationStateResponse


class PositionResponse(BaseModel):
    accepted: bool
    arrived: bool
    suggested_status: Optional[RideStatus] = None
    state: NavigationStateResponse

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: UserRole
    phone_number: Optional[str] = ""
    license_number: Optional[str] = None
    vehicle_class: Optional[VehicleClass] = None
    license_plate: Optional[str] = None
    is_available: bool = False
    is_verified: bool = False
    rating: float = 5.0
    total_rides: int = 0
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    ride_id: Optional[str] = None
    type: NotificationType
    title: str
    body: str
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
