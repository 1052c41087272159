"""
Ride Lifecycle Manager
======================

Owns every write to a ride after the request screen hands it over.

Write protocol (per operation)
------------------------------
1. Load the ride and apply the change to the ``Ride`` entity, which
   enforces the state machine and stamps the timestamp.
2. Persist with a **conditional UPDATE** guarded on the status that was
   read.  Zero rows updated means someone else moved the ride first:
   ``ConflictError``, nothing retried.
3. Commit, then dispatch notifications and publish the ride snapshot.
   Side effects run after the commit and never undo or repeat it.

Callers that pass ``caller_id`` are checked against the ride: the assigned
driver advances the trip and reports positions, the customer cancels and
rates.  Anyone else gets ``PermissionDeniedError``.

All public methods return an ``Outcome``; ``RideError`` subclasses never
escape this class.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Optional

from pydantic import TypeAdapter
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.config import settings
from nextride.domain.dispatch import drivers_within, location_cell, search_cells
from nextride.domain.entities import Coordinate, Location, Ride, utcnow
from nextride.domain.enums import TRANSITION_ACTORS, Actor, RideStatus, UserRole, VehicleClass
from nextride.domain.errors import (
    CollaboratorUnavailable,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    Outcome,
    PermissionDeniedError,
    RideError,
    ValidationError,
)
from nextride.domain.notifications import (
    NotificationPayload,
    notifications_for_transition,
    ride_request_notification,
)
from nextride.domain.pricing import FareEstimator
from nextride.infrastructure.events import EventBus, ride_channel
from nextride.infrastructure.notifier import NotificationDispatcher
from nextride.infrastructure.repositories import RideRepository, UserRepository

logger = logging.getLogger(__name__)

_ride_adapter = TypeAdapter(Ride)


def ride_snapshot(ride: Ride) -> dict:
    """JSON-ready dict of the full ride, as published to subscribers."""
    return _ride_adapter.dump_python(ride, mode="json")


def _require_location(location, label: str) -> Location:
    if location is None:
        raise ValidationError(f"{label} is required")
    lat = getattr(location, "latitude", None)
    lng = getattr(location, "longitude", None)
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (lat, lng)):
        raise ValidationError(f"{label} is missing coordinates")
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(f"{label} coordinates out of range: ({lat}, {lng})")
    if isinstance(location, Location):
        return location
    return Location(
        latitude=lat,
        longitude=lng,
        address=getattr(location, "address", "") or "",
        city=getattr(location, "city", "") or "",
        state=getattr(location, "state", "") or "",
        zip_code=getattr(location, "zip_code", "") or "",
        country=getattr(location, "country", None),
    )


def _status(value) -> RideStatus:
    try:
        return RideStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown ride status: {value!r}") from None


def _actor_for(ride: Ride, caller_id: str) -> Actor:
    if ride.driver_id and caller_id == ride.driver_id:
        return Actor.DRIVER
    if caller_id == ride.customer_id:
        return Actor.CUSTOMER
    raise PermissionDeniedError(f"{caller_id} is not a party to ride {ride.id}")


class RideLifecycleManager:
    def __init__(
        self,
        session: AsyncSession,
        bus: EventBus,
        estimator: Optional[FareEstimator] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        *,
        driver_search_radius_miles: float = settings.driver_search_radius_miles,
        h3_resolution: int = settings.h3_resolution,
    ):
        self.session = session
        self.bus = bus
        self.rides = RideRepository(session)
        self.users = UserRepository(session)
        self.estimator = estimator or FareEstimator.from_settings(settings)
        self.dispatcher = dispatcher or NotificationDispatcher(session, bus)
        self.driver_search_radius_miles = driver_search_radius_miles
        self.h3_resolution = h3_resolution

    # ── Public API ────────────────────────────────────────────────────

    async def create_ride_request(
        self,
        customer_id: str,
        customer_name: str,
        pickup,
        destination,
        vehicle_class,
        payment_method: str,
    ) -> Outcome[str]:
        return await self._run(
            "create_ride_request",
            self._create(
                customer_id, customer_name, pickup, destination, vehicle_class, payment_method
            ),
        )

    async def accept_ride(
        self, ride_id: str, driver_id: str, driver_name: str
    ) -> Outcome[Ride]:
        return await self._run("accept_ride", self._accept(ride_id, driver_id, driver_name))

    async def update_ride_status(
        self,
        ride_id: str,
        new_status,
        actor: Optional[Actor] = None,
        *,
        caller_id: Optional[str] = None,
    ) -> Outcome[Ride]:
        return await self._run(
            "update_ride_status",
            self._update_status(ride_id, new_status, actor, caller_id),
        )

    async def cancel_ride(
        self,
        ride_id: str,
        actor: Actor = Actor.CUSTOMER,
        *,
        caller_id: Optional[str] = None,
    ) -> Outcome[Ride]:
        return await self.update_ride_status(
            ride_id, RideStatus.CANCELLED, actor, caller_id=caller_id
        )

    async def rate_ride(
        self,
        ride_id: str,
        rating: int,
        review: Optional[str] = None,
        *,
        caller_id: Optional[str] = None,
    ) -> Outcome[Ride]:
        return await self._run("rate_ride", self._rate(ride_id, rating, review, caller_id))

    async def get_ride(self, ride_id: str) -> Outcome[Ride]:
        return await self._run("get_ride", self._load(ride_id))

    async def get_available_rides(
        self, limit: int = settings.available_rides_limit
    ) -> Outcome[list[Ride]]:
        return await self._run("get_available_rides", self.rides.get_available(limit))

    async def get_user_rides(
        self, user_id: str, role: UserRole, active_only: bool = False
    ) -> Outcome[list[Ride]]:
        return await self._run("get_user_rides", self._user_rides(user_id, role, active_only))

    async def update_driver_location(
        self, ride_id: str, position, *, caller_id: Optional[str] = None
    ) -> Outcome[Ride]:
        return await self._run(
            "update_driver_location",
            self._update_driver_location(ride_id, position, caller_id),
        )

    # ── Operations ────────────────────────────────────────────────────

    async def _create(
        self, customer_id, customer_name, pickup, destination, vehicle_class, payment_method
    ) -> str:
        if not customer_id:
            raise ValidationError("customer_id is required")
        pickup = _require_location(pickup, "pickup")
        destination = _require_location(destination, "destination")
        try:
            vehicle_class = VehicleClass(vehicle_class)
        except ValueError:
            raise ValidationError(f"Unknown vehicle class: {vehicle_class!r}") from None

        quote = self.estimator.quote(pickup, destination, vehicle_class)
        ride = Ride(
            customer_id=customer_id,
            customer_name=customer_name or "",
            pickup=pickup,
            destination=destination,
            vehicle_class=vehicle_class,
            fare=quote.fare,
            estimated_duration=quote.estimated_duration,
            payment_method=payment_method or "cash",
        )
        await self.rides.create(ride)
        await self.session.commit()
        logger.info(
            "Ride %s requested by %s: %.2f mi, fare %.2f, %d min",
            ride.id,
            customer_id,
            quote.distance_miles,
            ride.fare,
            ride.estimated_duration,
        )

        try:
            drivers = await self._eligible_drivers(pickup)
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception("Driver lookup failed for ride %s", ride.id)
            drivers = []
        await self._notify([ride_request_notification(ride, d.id) for d in drivers])
        await self._publish(ride)
        return ride.id

    async def _accept(self, ride_id: str, driver_id: str, driver_name: str) -> Ride:
        ride = await self._load(ride_id)
        if driver_id == ride.customer_id:
            raise PermissionDeniedError(f"Customer {driver_id} cannot accept their own ride")
        driver = await self.users.get_by_id(driver_id) if driver_id else None
        if driver is None or driver.role is not UserRole.DRIVER:
            raise PermissionDeniedError(f"{driver_id!r} is not a registered driver")
        ride.assign_driver(driver_id, driver_name)

        won = await self.rides.conditional_update(
            ride_id,
            RideStatus.REQUESTED,
            {
                "status": RideStatus.ACCEPTED,
                "driver_id": ride.driver_id,
                "driver_name": ride.driver_name,
                "accepted_at": ride.accepted_at,
            },
            require_unassigned=True,
        )
        if not won:
            raise ConflictError(f"Ride {ride_id} was accepted by another driver")
        await self.session.commit()
        logger.info("Ride %s accepted by driver %s", ride_id, driver_id)

        await self._notify(notifications_for_transition(ride))
        await self._publish(ride)
        return ride

    async def _update_status(
        self, ride_id: str, new_status, actor: Optional[Actor], caller_id: Optional[str]
    ) -> Ride:
        new_status = _status(new_status)
        ride = await self._load(ride_id)
        previous = ride.status

        if caller_id is not None:
            actor = _actor_for(ride, caller_id)
        if actor is not None:
            actor = Actor(actor)
            if actor not in TRANSITION_ACTORS.get(new_status, set()):
                raise PermissionDeniedError(
                    f"{actor.value} may not move a ride to {new_status.value}"
                )
        stamp = ride.transition_to(new_status)

        values = {"status": new_status}
        if stamp is not None:
            values[stamp] = getattr(ride, stamp)
        if not await self.rides.conditional_update(ride_id, previous, values):
            raise ConflictError(f"Ride {ride_id} changed while moving to {new_status.value}")
        if new_status is RideStatus.COMPLETED and ride.driver_id:
            await self.users.record_completed_ride(ride.driver_id)
        await self.session.commit()
        logger.info("Ride %s: %s -> %s", ride_id, previous.value, new_status.value)

        await self._notify(notifications_for_transition(ride))
        await self._publish(ride)
        return ride

    async def _rate(
        self, ride_id: str, rating: int, review: Optional[str], caller_id: Optional[str]
    ) -> Ride:
        ride = await self._load(ride_id)
        if caller_id is not None and caller_id != ride.customer_id:
            raise PermissionDeniedError(f"{caller_id} did not take ride {ride_id}")
        ride.rate(rating, review)

        if not await self.rides.set_rating(ride_id, ride.rating, ride.review):
            raise ConflictError(f"Ride {ride_id} has already been rated")
        if ride.driver_id:
            average = await self.rides.average_driver_rating(ride.driver_id)
            if average is not None:
                await self.users.set_rating(ride.driver_id, average)
        await self.session.commit()
        logger.info("Ride %s rated %d", ride_id, rating)

        await self._publish(ride)
        return ride

    async def _user_rides(self, user_id: str, role, active_only: bool) -> list[Ride]:
        try:
            role = UserRole(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role!r}") from None
        return await self.rides.get_user_rides(user_id, role, active_only=active_only)

    async def _update_driver_location(
        self, ride_id: str, position, caller_id: Optional[str]
    ) -> Ride:
        ride = await self._load(ride_id)
        if ride.is_terminal or not ride.driver_id:
            raise ValidationError(f"Ride {ride_id} has no active driver")
        if caller_id is not None and caller_id != ride.driver_id:
            raise PermissionDeniedError(f"{caller_id} is not driving ride {ride_id}")

        point = Coordinate(position.latitude, position.longitude)
        now = utcnow()
        await self.rides.update_driver_position(ride_id, point, now)
        await self.users.update_location(
            ride.driver_id,
            point,
            location_cell(point.latitude, point.longitude, self.h3_resolution),
        )
        await self.session.commit()

        ride.driver_position = point
        ride.last_location_update = now
        await self._publish(ride)
        return ride

    # ── Internals ─────────────────────────────────────────────────────

    async def _load(self, ride_id: str) -> Ride:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFoundError(f"Ride {ride_id} not found")
        return ride

    async def _eligible_drivers(self, pickup: Location) -> list:
        cells = search_cells(
            pickup.latitude,
            pickup.longitude,
            self.driver_search_radius_miles,
            self.h3_resolution,
        )
        candidates = await self.users.get_available_drivers(cells)
        return drivers_within(candidates, pickup, self.driver_search_radius_miles)

    async def _notify(self, payloads: list[NotificationPayload]) -> None:
        if not payloads:
            return
        try:
            for payload in payloads:
                await self.dispatcher.dispatch(payload)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.exception("Failed to dispatch %d notification(s)", len(payloads))

    async def _publish(self, ride: Ride) -> None:
        try:
            await self.bus.publish(
                ride_channel(ride.id), {"event": "ride_updated", "ride": ride_snapshot(ride)}
            )
        except Exception:
            logger.exception("Failed to publish update for ride %s", ride.id)

    async def _run(self, operation: str, pending: Awaitable) -> Outcome:
        try:
            return Outcome.success(await pending)
        except RideError as exc:
            await self.session.rollback()
            if isinstance(exc, (InvalidTransitionError, PermissionDeniedError)):
                logger.warning("%s rejected: %s", operation, exc)
            else:
                logger.info("%s failed: %s", operation, exc)
            return Outcome.failure(exc)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("%s: database error", operation)
            return Outcome.failure(CollaboratorUnavailable(str(exc)))
