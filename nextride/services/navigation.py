"""
Driver navigation sessions.

One ``NavigationSession`` per ride lives in this process for as long as
the driver is navigating.  Position samples for a ride are processed one
at a time under that ride's ``asyncio.Lock``: gate, recompute the
navigation state, write the driver position, report arrival.

The navigation target follows the ride: the pickup while the driver is
on the way (``accepted`` / ``driver_arriving``), the destination once the
trip is ``in_progress``.  When the ride moves to a status with a different
target, or ends, the session is stopped and must be started again.
Positions are only taken for a ride whose navigation was started, and
only from the driver who started it; a ride that has ended or vanished
loses its session on the next sample.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from nextride.config import settings
from nextride.domain.entities import Coordinate, NavigationState, Region, Ride, Route
from nextride.domain.enums import RideStatus
from nextride.domain.errors import (
    NotFoundError,
    Outcome,
    PermissionDeniedError,
    RideError,
    ValidationError,
)
from nextride.domain.geo import route_region
from nextride.domain.navigation import NavigationSession, PositionGate, arrival_transition
from nextride.infrastructure.directions import DirectionsClient
from nextride.services.rides import RideLifecycleManager

logger = logging.getLogger(__name__)

PICKUP = "pickup"
DESTINATION = "destination"


def target_for(ride: Ride) -> tuple[Optional[str], Optional[Coordinate]]:
    if ride.status in (RideStatus.ACCEPTED, RideStatus.DRIVER_ARRIVING):
        return PICKUP, ride.pickup.coordinate
    if ride.status is RideStatus.IN_PROGRESS:
        return DESTINATION, ride.destination.coordinate
    return None, None


@dataclass(frozen=True)
class NavigationStart:
    route: Route
    state: NavigationState
    region: Region
    target: str


@dataclass(frozen=True)
class PositionResult:
    accepted: bool
    state: NavigationState
    arrived: bool = False
    suggested_status: Optional[RideStatus] = None


@dataclass
class _Slot:
    session: NavigationSession
    gate: PositionGate
    driver_id: Optional[str] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    target: Optional[str] = None


class NavigationService:
    def __init__(self, directions: DirectionsClient):
        self.directions = directions
        self._slots: dict[str, _Slot] = {}

    def _new_slot(self, driver_id: Optional[str]) -> _Slot:
        return _Slot(
            driver_id=driver_id,
            session=NavigationSession(
                arrival_threshold_km=settings.arrival_threshold_km,
                instruction_advance_km=settings.instruction_advance_km,
                average_speed_kmh=settings.average_speed_kmh,
            ),
            gate=PositionGate(
                settings.position_min_interval_seconds,
                settings.position_min_distance_meters,
            ),
        )

    def state(self, ride_id: str) -> NavigationState:
        slot = self._slots.get(ride_id)
        return slot.session.state if slot else NavigationState()

    async def start(
        self,
        manager: RideLifecycleManager,
        ride_id: str,
        origin,
        caller_id: Optional[str] = None,
    ) -> Outcome[NavigationStart]:
        loaded = await manager.get_ride(ride_id)
        if not loaded.ok:
            return Outcome.failure(loaded.error)
        ride = loaded.value

        try:
            kind, target = target_for(ride)
            if target is None:
                raise ValidationError(
                    f"Ride {ride_id} is {ride.status.value}; nothing to navigate to"
                )
            if caller_id is not None and caller_id != ride.driver_id:
                raise PermissionDeniedError(f"{caller_id} is not driving ride {ride_id}")
            route = await self.directions.route(origin, target)
        except RideError as exc:
            logger.info("Navigation for ride %s not started: %s", ride_id, exc)
            return Outcome.failure(exc)

        # A fresh start drops whatever the previous session knew
        slot = self._new_slot(ride.driver_id)
        slot.target = kind
        state = slot.session.start(route, target)
        self._slots[ride_id] = slot
        logger.info(
            "Navigation started for ride %s to %s: %.2f km, %d points",
            ride_id,
            kind,
            route.distance_km,
            len(route.coordinates),
        )
        return Outcome.success(
            NavigationStart(route, state, route_region(route.coordinates), kind)
        )

    async def update_position(
        self,
        manager: RideLifecycleManager,
        ride_id: str,
        position,
        caller_id: Optional[str] = None,
    ) -> Outcome[PositionResult]:
        slot = self._slots.get(ride_id)
        if slot is None:
            return Outcome.failure(
                ValidationError(f"Navigation for ride {ride_id} has not been started")
            )
        if caller_id is not None and caller_id != slot.driver_id:
            return Outcome.failure(
                PermissionDeniedError(f"{caller_id} is not driving ride {ride_id}")
            )

        async with slot.lock:
            if not slot.gate.accept(position):
                return Outcome.success(PositionResult(False, slot.session.state))

            written = await manager.update_driver_location(ride_id, position)
            if not written.ok:
                if isinstance(written.error, (NotFoundError, ValidationError)):
                    self._discard(ride_id, slot)
                return Outcome.failure(written.error)
            ride = written.value

            kind, _ = target_for(ride)
            if slot.target is not None and kind != slot.target:
                logger.info("Ride %s is now %s; navigation stopped", ride_id, ride.status.value)
                slot.session.stop()
                slot.target = None
            if kind is None:
                self._discard(ride_id, slot)

            update = slot.session.update(position)
            suggested = arrival_transition(ride.status) if update.arrived else None
            if update.arrived:
                logger.info("Driver arrived at %s for ride %s", slot.target, ride_id)
            return Outcome.success(
                PositionResult(True, update.state, update.arrived, suggested)
            )

    def stop(self, ride_id: str, caller_id: Optional[str] = None) -> Outcome[None]:
        slot = self._slots.get(ride_id)
        if slot is None:
            return Outcome.success()
        if caller_id is not None and caller_id != slot.driver_id:
            return Outcome.failure(
                PermissionDeniedError(f"{caller_id} is not driving ride {ride_id}")
            )
        self._discard(ride_id, slot)
        return Outcome.success()

    def _discard(self, ride_id: str, slot: _Slot) -> None:
        if self._slots.get(ride_id) is slot:
            del self._slots[ride_id]
            slot.session.stop()
            logger.info("Navigation stopped for ride %s", ride_id)

    def active_count(self) -> int:
        return len(self._slots)
