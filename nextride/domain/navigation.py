"""
Route Progress Tracker
======================

Turns a planned ``Route`` plus a stream of live positions into guidance:

* **Nearest point**   -- linear scan of the route coordinates (km Haversine),
  first minimum wins on ties.
* **Progress**        -- ``nearest_index / (n - 1) x 100``.
* **Instruction**     -- nearest instruction anchor; once the driver is
  within 50 m of it (and it is not the last one) the *next* instruction
  is shown.
* **Remaining**       -- sum of hops from the nearest index to the end;
  time assumes a flat 30 km/h city average.
* **Arrival**         -- under 100 m from the target.  Arrival only
  *suggests* the next ride status; it never mutates the ride.

Complexity: O(n) per position update for n route points.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .entities import Coordinate, NavigationState, Route, RouteInstruction
from .enums import RideStatus
from .errors import GeometryDegenerate
from .geo import haversine_km

ARRIVAL_THRESHOLD_KM = 0.1
INSTRUCTION_ADVANCE_KM = 0.05
AVERAGE_SPEED_KMH = 30.0

# Status a driver is prompted to move to on reaching the current target
ARRIVAL_TRANSITIONS: dict[RideStatus, RideStatus] = {
    RideStatus.ACCEPTED: RideStatus.DRIVER_ARRIVING,
    RideStatus.DRIVER_ARRIVING: RideStatus.IN_PROGRESS,
    RideStatus.IN_PROGRESS: RideStatus.COMPLETED,
}


@dataclass(frozen=True)
class NearestPoint:
    index: int
    distance_km: float


@dataclass(frozen=True)
class RemainingTrip:
    distance_km: float = 0.0
    time_min: float = 0.0


def find_nearest_point_on_route(
    position, coordinates: Sequence[Coordinate]
) -> NearestPoint:
    if not coordinates:
        raise GeometryDegenerate("Route has no coordinates")

    nearest_index = 0
    min_distance = haversine_km(position, coordinates[0])
    for i in range(1, len(coordinates)):
        distance = haversine_km(position, coordinates[i])
        if distance < min_distance:
            min_distance = distance
            nearest_index = i
    return NearestPoint(nearest_index, min_distance)


def calculate_route_progress(position, coordinates: Sequence[Coordinate]) -> float:
    """Percent of the route covered, 0-100.  Routes under two points give 0."""
    if len(coordinates) < 2:
        return 0.0
    nearest = find_nearest_point_on_route(position, coordinates)
    return nearest.index / (len(coordinates) - 1) * 100


def get_current_instruction(
    position,
    instructions: Sequence[RouteInstruction],
    advance_km: float = INSTRUCTION_ADVANCE_KM,
) -> Optional[RouteInstruction]:
    if not instructions:
        return None

    nearest = find_nearest_point_on_route(position, [i.anchor for i in instructions])
    if nearest.distance_km < advance_km and nearest.index < len(instructions) - 1:
        return instructions[nearest.index + 1]
    return instructions[nearest.index]


def calculate_remaining_distance_and_time(
    position,
    coordinates: Sequence[Coordinate],
    average_speed_kmh: float = AVERAGE_SPEED_KMH,
) -> RemainingTrip:
    try:
        nearest = find_nearest_point_on_route(position, coordinates)
    except GeometryDegenerate:
        return RemainingTrip()

    remaining = 0.0
    for i in range(nearest.index, len(coordinates) - 1):
        remaining += haversine_km(coordinates[i], coordinates[i + 1])
    return RemainingTrip(remaining, remaining / average_speed_kmh * 60)


def has_arrived(position, target, threshold_km: float = ARRIVAL_THRESHOLD_KM) -> bool:
    return haversine_km(position, target) < threshold_km


def arrival_transition(status: RideStatus) -> Optional[RideStatus]:
    return ARRIVAL_TRANSITIONS.get(status)


# ── Sample gating ─────────────────────────────────────────────────────


class PositionGate:
    """
    Drops position samples arriving faster than the configured cadence.

    A sample passes when it is the first one, or when it is at least
    ``min_interval_seconds`` after *and* ``min_distance_meters`` away from
    the last sample that passed.
    """

    def __init__(
        self,
        min_interval_seconds: float = 3.0,
        min_distance_meters: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = min_interval_seconds
        self.min_distance_km = min_distance_meters / 1000
        self.clock = clock
        self._last_at: Optional[float] = None
        self._last_position = None

    def accept(self, position) -> bool:
        now = self.clock()
        if self._last_position is not None:
            if now - self._last_at < self.min_interval:
                return False
            if haversine_km(self._last_position, position) < self.min_distance_km:
                return False
        self._last_at = now
        self._last_position = position
        return True

    def reset(self) -> None:
        self._last_at = None
        self._last_position = None


# ── Session ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NavigationUpdate:
    state: NavigationState
    arrived: bool = False


@dataclass
class NavigationSession:
    """Holds one active route and the last derived ``NavigationState``."""

    arrival_threshold_km: float = ARRIVAL_THRESHOLD_KM
    instruction_advance_km: float = INSTRUCTION_ADVANCE_KM
    average_speed_kmh: float = AVERAGE_SPEED_KMH
    route: Optional[Route] = None
    target: Optional[Coordinate] = None
    state: NavigationState = field(default_factory=NavigationState)

    def start(self, route: Route, target) -> NavigationState:
        """Begin guidance along *route*; any previous route and state are dropped."""
        self.route = route
        self.target = Coordinate(target.latitude, target.longitude)
        self.state = NavigationState(
            is_navigating=True,
            current_instruction=route.instructions[0] if route.instructions else None,
            remaining_distance_km=route.distance_km,
            remaining_time_min=route.duration_min,
        )
        return self.state

    def update(self, position) -> NavigationUpdate:
        current = Coordinate(position.latitude, position.longitude)
        if self.route is None:
            self.state.current_position = current
            return NavigationUpdate(self.state)

        coordinates = self.route.coordinates
        remaining = calculate_remaining_distance_and_time(
            current, coordinates, self.average_speed_kmh
        )
        self.state = NavigationState(
            is_navigating=True,
            current_instruction=get_current_instruction(
                current, self.route.instructions, self.instruction_advance_km
            ),
            remaining_distance_km=remaining.distance_km,
            remaining_time_min=remaining.time_min,
            current_position=current,
            progress=calculate_route_progress(current, coordinates),
        )
        arrived = has_arrived(current, self.target, self.arrival_threshold_km)
        return NavigationUpdate(self.state, arrived)

    def stop(self) -> None:
        self.route = None
        self.target = None
        self.state = NavigationState()
