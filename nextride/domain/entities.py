"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (REQUESTED -> ACCEPTED -> DRIVER_ARRIVING -> IN_PROGRESS -> COMPLETED,
  with CANCELLED reachable before the trip starts) and stamps the
  matching timestamp exactly once.
- ``Route`` / ``NavigationState`` are ephemeral values owned by a single
  navigation session and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .enums import RIDE_TRANSITIONS, TRANSITION_TIMESTAMPS, RideStatus, VehicleClass
from .errors import ConflictError, InvalidTransitionError, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: Optional[str] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def format_address(self) -> str:
        return ", ".join(part for part in (self.address, self.city, self.state) if part)


@dataclass(frozen=True)
class Region:
    """Rectangular map viewport."""

    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


# ── Ride ──────────────────────────────────────────────────────────────


@dataclass
class Ride:
    customer_id: str
    customer_name: str
    pickup: Location
    destination: Location
    vehicle_class: VehicleClass
    fare: float
    estimated_duration: int
    payment_method: str
    id: Optional[str] = None
    status: RideStatus = RideStatus.REQUESTED
    requested_at: datetime = field(default_factory=utcnow)
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    rating: Optional[int] = None
    review: Optional[str] = None
    driver_position: Optional[Coordinate] = None
    last_location_update: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return not RIDE_TRANSITIONS[self.status]

    def transition_to(
        self, new_status: RideStatus, at: Optional[datetime] = None
    ) -> Optional[str]:
        """
        Move to *new_status* if the edge exists, else raise.

        Returns the name of the timestamp attribute that was stamped, or
        ``None`` for transitions that carry no timestamp.
        """
        allowed = RIDE_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        if new_status is RideStatus.ACCEPTED and not self.driver_id:
            raise ValidationError("A ride can only be accepted by a driver")

        stamp = TRANSITION_TIMESTAMPS.get(new_status)
        if stamp is not None:
            if getattr(self, stamp) is not None:
                raise InvalidTransitionError(f"{stamp} is already set")
            setattr(self, stamp, at or utcnow())
        self.status = new_status
        return stamp

    def assign_driver(
        self, driver_id: str, driver_name: str, at: Optional[datetime] = None
    ) -> None:
        if not driver_id:
            raise ValidationError("driver_id is required")
        if self.status is not RideStatus.REQUESTED or self.driver_id:
            raise ConflictError(f"Ride {self.id} already taken")
        self.driver_id = driver_id
        self.driver_name = driver_name
        self.transition_to(RideStatus.ACCEPTED, at)

    def rate(self, rating: int, review: Optional[str] = None) -> None:
        if self.status is not RideStatus.COMPLETED:
            raise ValidationError("Only completed rides can be rated")
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError(f"Rating must be an integer from 1 to 5, got {rating!r}")
        if self.rating is not None:
            raise ConflictError(f"Ride {self.id} has already been rated")
        self.rating = rating
        self.review = review or ""


# ── Routing ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RouteInstruction:
    text: str
    distance_km: float
    duration_min: float
    maneuver: str
    anchor: Coordinate


@dataclass(frozen=True)
class Route:
    distance_km: float
    duration_min: float
    coordinates: tuple[Coordinate, ...] = ()
    instructions: tuple[RouteInstruction, ...] = ()


@dataclass
class NavigationState:
    is_navigating: bool = False
    current_instruction: Optional[RouteInstruction] = None
    remaining_distance_km: float = 0.0
    remaining_time_min: float = 0.0
    current_position: Optional[Coordinate] = None
    progress: float = 0.0
