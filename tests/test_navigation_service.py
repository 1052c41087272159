"""Tests for per-ride navigation sessions wired to the lifecycle manager."""

from unittest.mock import AsyncMock

import pytest

from nextride.config import settings
from nextride.domain.entities import Coordinate, Route, RouteInstruction
from nextride.domain.enums import Actor, RideStatus
from nextride.domain.errors import (
    CollaboratorUnavailable,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from nextride.services.navigation import DESTINATION as TO_DESTINATION
from nextride.services.navigation import PICKUP as TO_PICKUP
from nextride.services.navigation import NavigationService, target_for
from tests.conftest import DESTINATION, PICKUP, add_driver, request_ride

START = Coordinate(37.7700, -122.4250)
MIDWAY = Coordinate(37.7725, -122.4222)
AT_PICKUP = PICKUP.coordinate

ROUTE_TO_PICKUP = Route(
    distance_km=0.75,
    duration_min=3.0,
    coordinates=(START, MIDWAY, AT_PICKUP),
    instructions=(
        RouteInstruction("Head northeast", 0.4, 1.5, "straight", START),
        RouteInstruction("Arrive at pickup", 0.35, 1.5, "straight", AT_PICKUP),
    ),
)


@pytest.fixture
def directions():
    client = AsyncMock()
    client.route = AsyncMock(return_value=ROUTE_TO_PICKUP)
    return client


@pytest.fixture
def navigation(directions) -> NavigationService:
    return NavigationService(directions)


@pytest.fixture
def no_gate(monkeypatch):
    monkeypatch.setattr(settings, "position_min_interval_seconds", 0.0)
    monkeypatch.setattr(settings, "position_min_distance_meters", 0.0)


async def _accepted_ride(manager, db_session) -> str:
    await add_driver(db_session, "drv-1")
    ride_id = await request_ride(manager)
    outcome = await manager.accept_ride(ride_id, "drv-1", "Dana Driver")
    assert outcome.ok
    return ride_id


class TestTargetFor:
    @pytest.mark.asyncio
    async def test_target_follows_ride_phase(self, manager, db_session):
        ride_id = await _accepted_ride(manager, db_session)
        ride = (await manager.get_ride(ride_id)).value
        assert target_for(ride) == (TO_PICKUP, PICKUP.coordinate)

        ride = (await manager.update_ride_status(ride_id, RideStatus.DRIVER_ARRIVING, Actor.DRIVER)).value
        assert target_for(ride) == (TO_PICKUP, PICKUP.coordinate)

        ride = (await manager.update_ride_status(ride_id, RideStatus.IN_PROGRESS, Actor.DRIVER)).value
        assert target_for(ride) == (TO_DESTINATION, DESTINATION.coordinate)

        ride = (await manager.update_ride_status(ride_id, RideStatus.COMPLETED, Actor.DRIVER)).value
        assert target_for(ride) == (None, None)


class TestStart:
    @pytest.mark.asyncio
    async def test_start_fetches_route_to_pickup(self, manager, db_session, navigation, directions):
        ride_id = await _accepted_ride(manager, db_session)

        outcome = await navigation.start(manager, ride_id, START)

        assert outcome.ok
        started = outcome.value
        assert started.target == TO_PICKUP
        assert started.route is ROUTE_TO_PICKUP
        assert started.state.is_navigating
        assert started.state.current_instruction.text == "Head northeast"
        assert started.region.latitude_delta >= 0.01
        directions.route.assert_awaited_once_with(START, PICKUP.coordinate)
        assert navigation.state(ride_id).is_navigating

    @pytest.mark.asyncio
    async def test_nothing_to_navigate_before_acceptance(self, manager, navigation, directions):
        ride_id = await request_ride(manager)

        outcome = await navigation.start(manager, ride_id, START)

        assert isinstance(outcome.error, ValidationError)
        directions.route.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_directions_failure(self, manager, db_session, navigation, directions):
        ride_id = await _accepted_ride(manager, db_session)
        directions.route.side_effect = CollaboratorUnavailable("Directions API error: OVER_QUERY_LIMIT")

        outcome = await navigation.start(manager, ride_id, START)

        assert isinstance(outcome.error, CollaboratorUnavailable)
        assert not navigation.state(ride_id).is_navigating

    @pytest.mark.asyncio
    async def test_unknown_ride(self, manager, navigation):
        outcome = await navigation.start(manager, "missing", START)
        assert isinstance(outcome.error, NotFoundError)
        assert navigation.active_count() == 0

    @pytest.mark.asyncio
    async def test_only_assigned_driver_starts(self, manager, db_session, navigation, directions):
        ride_id = await _accepted_ride(manager, db_session)

        outcome = await navigation.start(manager, ride_id, START, caller_id="cust-1")

        assert isinstance(outcome.error, PermissionDeniedError)
        directions.route.assert_not_awaited()
        assert navigation.active_count() == 0

        assert (await navigation.start(manager, ride_id, START, caller_id="drv-1")).ok
        assert navigation.active_count() == 1


class TestUpdatePosition:
    @pytest.mark.asyncio
    async def test_progress_and_arrival(self, manager, db_session, navigation, no_gate):
        ride_id = await _accepted_ride(manager, db_session)
        await navigation.start(manager, ride_id, START)

        midway = (await navigation.update_position(manager, ride_id, MIDWAY)).value
        assert midway.accepted
        assert not midway.arrived
        assert midway.suggested_status is None
        assert midway.state.progress == 50

        arrived = (await navigation.update_position(manager, ride_id, AT_PICKUP)).value
        assert arrived.arrived
        assert arrived.suggested_status == RideStatus.DRIVER_ARRIVING
        assert arrived.state.progress == 100

        ride = (await manager.get_ride(ride_id)).value
        assert ride.status == RideStatus.ACCEPTED
        assert ride.driver_position == AT_PICKUP

    @pytest.mark.asyncio
    async def test_rapid_samples_are_dropped(self, manager, db_session, navigation):
        ride_id = await _accepted_ride(manager, db_session)
        await navigation.start(manager, ride_id, START)

        first = (await navigation.update_position(manager, ride_id, START)).value
        second = (await navigation.update_position(manager, ride_id, MIDWAY)).value

        assert first.accepted
        assert not second.accepted
        assert (await manager.get_ride(ride_id)).value.driver_position == START

    @pytest.mark.asyncio
    async def test_phase_change_stops_session(self, manager, db_session, navigation, no_gate):
        ride_id = await _accepted_ride(manager, db_session)
        await navigation.start(manager, ride_id, START)
        await manager.update_ride_status(ride_id, RideStatus.DRIVER_ARRIVING, Actor.DRIVER)
        await manager.update_ride_status(ride_id, RideStatus.IN_PROGRESS, Actor.DRIVER)

        result = (await navigation.update_position(manager, ride_id, AT_PICKUP)).value

        assert result.accepted
        assert not result.arrived
        assert not result.state.is_navigating
        assert result.state.current_position == AT_PICKUP

    @pytest.mark.asyncio
    async def test_position_before_start_is_rejected(self, manager, db_session, navigation):
        ride_id = await _accepted_ride(manager, db_session)

        outcome = await navigation.update_position(manager, ride_id, START)

        assert isinstance(outcome.error, ValidationError)
        assert navigation.active_count() == 0
        assert (await manager.get_ride(ride_id)).value.driver_position is None

    @pytest.mark.asyncio
    async def test_unknown_rides_leave_no_sessions(self, manager, navigation):
        for n in range(5):
            outcome = await navigation.update_position(manager, f"missing-{n}", START)
            assert not outcome.ok

        assert navigation.active_count() == 0

    @pytest.mark.asyncio
    async def test_ended_ride_drops_its_session(self, manager, db_session, navigation, no_gate):
        ride_id = await _accepted_ride(manager, db_session)
        await navigation.start(manager, ride_id, START)
        await manager.cancel_ride(ride_id)

        outcome = await navigation.update_position(manager, ride_id, MIDWAY)

        assert isinstance(outcome.error, ValidationError)
        assert navigation.active_count() == 0
        assert not navigation.state(ride_id).is_navigating

    @pytest.mark.asyncio
    async def test_other_driver_cannot_report(self, manager, db_session, navigation):
        ride_id = await _accepted_ride(manager, db_session)
        await navigation.start(manager, ride_id, START)

        outcome = await navigation.update_position(manager, ride_id, MIDWAY, caller_id="drv-2")
        assert isinstance(outcome.error, PermissionDeniedError)
        assert (await manager.get_ride(ride_id)).value.driver_position is None

        # The rejected sample did not consume the rate gate
        own = (await navigation.update_position(manager, ride_id, MIDWAY, caller_id="drv-1")).value
        assert own.accepted

    @pytest.mark.asyncio
    async def test_stop(self, manager, db_session, navigation):
        ride_id = await _accepted_ride(manager, db_session)
        await navigation.start(manager, ride_id, START)

        assert navigation.stop(ride_id).ok

        assert not navigation.state(ride_id).is_navigating
        assert navigation.active_count() == 0
        assert navigation.stop(ride_id).ok

    @pytest.mark.asyncio
    async def test_only_assigned_driver_stops(self, manager, db_session, navigation):
        ride_id = await _accepted_ride(manager, db_session)
        await navigation.start(manager, ride_id, START)

        outcome = navigation.stop(ride_id, caller_id="cust-1")

        assert isinstance(outcome.error, PermissionDeniedError)
        assert navigation.state(ride_id).is_navigating
