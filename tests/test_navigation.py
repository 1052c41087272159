"""Unit tests for the route progress tracker, sample gate and navigation session."""

import pytest

from nextride.domain.entities import Coordinate, Route, RouteInstruction
from nextride.domain.enums import RideStatus
from nextride.domain.errors import GeometryDegenerate
from nextride.domain.geo import haversine_km
from nextride.domain.navigation import (
    NavigationSession,
    PositionGate,
    arrival_transition,
    calculate_remaining_distance_and_time,
    calculate_route_progress,
    find_nearest_point_on_route,
    get_current_instruction,
    has_arrived,
)

# Straight line heading north, ~1.11 km between points
LINE = [Coordinate(37.70 + i * 0.01, -122.40) for i in range(5)]
HOP_KM = haversine_km(LINE[0], LINE[1])


def instruction(text: str, anchor: Coordinate) -> RouteInstruction:
    return RouteInstruction(text, 1.0, 2.0, "straight", anchor)


INSTRUCTIONS = (
    instruction("Head north", LINE[0]),
    instruction("Continue", LINE[2]),
    instruction("Arrive", LINE[4]),
)
ROUTE = Route(distance_km=HOP_KM * 4, duration_min=9.0, coordinates=tuple(LINE), instructions=INSTRUCTIONS)


class TestNearestPoint:
    def test_exact_vertex(self):
        nearest = find_nearest_point_on_route(LINE[3], LINE)
        assert nearest.index == 3
        assert nearest.distance_km == 0

    def test_between_vertices(self):
        nearest = find_nearest_point_on_route(Coordinate(37.7126, -122.40), LINE)
        assert nearest.index == 1

    def test_ties_pick_first(self):
        route = [Coordinate(37.70, -122.40), Coordinate(37.70, -122.40)]
        assert find_nearest_point_on_route(Coordinate(37.71, -122.40), route).index == 0

    def test_empty_route_is_degenerate(self):
        with pytest.raises(GeometryDegenerate):
            find_nearest_point_on_route(LINE[0], [])


class TestProgress:
    def test_start_and_end(self):
        assert calculate_route_progress(LINE[0], LINE) == 0
        assert calculate_route_progress(LINE[-1], LINE) == 100

    def test_midpoint(self):
        assert calculate_route_progress(LINE[2], LINE) == 50

    def test_monotonic_along_route(self):
        values = [calculate_route_progress(p, LINE) for p in LINE]
        assert values == sorted(values)

    @pytest.mark.parametrize("route", [[], [Coordinate(37.7, -122.4)]])
    def test_short_routes_report_zero(self, route):
        assert calculate_route_progress(Coordinate(37.7, -122.4), route) == 0


class TestInstruction:
    def test_none_without_instructions(self):
        assert get_current_instruction(LINE[0], []) is None

    def test_advances_when_close_to_anchor(self):
        assert get_current_instruction(LINE[0], INSTRUCTIONS).text == "Continue"

    def test_nearest_anchor_when_not_close(self):
        position = Coordinate(37.7125, -122.40)  # ~0.8 km short of LINE[2]
        assert get_current_instruction(position, INSTRUCTIONS).text == "Continue"
        position = Coordinate(37.7040, -122.40)
        assert get_current_instruction(position, INSTRUCTIONS).text == "Head north"

    def test_last_instruction_never_advances(self):
        assert get_current_instruction(LINE[4], INSTRUCTIONS).text == "Arrive"


class TestRemaining:
    def test_from_start(self):
        remaining = calculate_remaining_distance_and_time(LINE[0], LINE)
        assert remaining.distance_km == pytest.approx(HOP_KM * 4)
        assert remaining.time_min == pytest.approx(HOP_KM * 4 / 30 * 60)

    def test_from_middle(self):
        remaining = calculate_remaining_distance_and_time(LINE[2], LINE)
        assert remaining.distance_km == pytest.approx(HOP_KM * 2)

    def test_at_end_is_zero(self):
        remaining = calculate_remaining_distance_and_time(LINE[-1], LINE)
        assert remaining.distance_km == 0
        assert remaining.time_min == 0

    def test_empty_route_is_zero(self):
        remaining = calculate_remaining_distance_and_time(LINE[0], [])
        assert (remaining.distance_km, remaining.time_min) == (0, 0)

    def test_custom_speed(self):
        remaining = calculate_remaining_distance_and_time(LINE[0], LINE, average_speed_kmh=60)
        assert remaining.time_min == pytest.approx(HOP_KM * 4)


class TestArrival:
    def test_same_point_has_arrived(self):
        assert has_arrived(LINE[0], LINE[0])

    def test_one_km_away_has_not(self):
        assert not has_arrived(LINE[0], Coordinate(37.709, -122.40))

    def test_threshold_is_strict(self):
        near = Coordinate(37.70 + 0.0008, -122.40)  # ~89 m
        assert has_arrived(near, LINE[0])
        assert not has_arrived(near, LINE[0], threshold_km=0.05)

    @pytest.mark.parametrize(
        "status, expected",
        [
            (RideStatus.ACCEPTED, RideStatus.DRIVER_ARRIVING),
            (RideStatus.DRIVER_ARRIVING, RideStatus.IN_PROGRESS),
            (RideStatus.IN_PROGRESS, RideStatus.COMPLETED),
            (RideStatus.REQUESTED, None),
            (RideStatus.COMPLETED, None),
            (RideStatus.CANCELLED, None),
        ],
    )
    def test_suggested_transition(self, status, expected):
        assert arrival_transition(status) == expected


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestPositionGate:
    def setup_method(self):
        self.clock = FakeClock()
        self.gate = PositionGate(3.0, 5.0, clock=self.clock)

    def test_first_sample_passes(self):
        assert self.gate.accept(LINE[0])

    def test_too_soon_is_dropped(self):
        self.gate.accept(LINE[0])
        self.clock.now = 2.9
        assert not self.gate.accept(LINE[1])

    def test_too_close_is_dropped(self):
        self.gate.accept(LINE[0])
        self.clock.now = 10
        assert not self.gate.accept(Coordinate(37.70002, -122.40))  # ~2 m

    def test_far_enough_and_late_enough_passes(self):
        self.gate.accept(LINE[0])
        self.clock.now = 3.0
        assert self.gate.accept(LINE[1])

    def test_dropped_samples_do_not_move_the_baseline(self):
        self.gate.accept(LINE[0])
        self.clock.now = 1
        self.gate.accept(LINE[1])
        self.clock.now = 3.5
        assert self.gate.accept(LINE[1])

    def test_reset(self):
        self.gate.accept(LINE[0])
        self.gate.reset()
        assert self.gate.accept(LINE[0])


class TestNavigationSession:
    def test_idle_before_start(self):
        session = NavigationSession()
        assert not session.state.is_navigating
        update = session.update(LINE[0])
        assert not update.arrived
        assert update.state.current_position == LINE[0]

    def test_start_seeds_state_from_route(self):
        session = NavigationSession()
        state = session.start(ROUTE, LINE[-1])
        assert state.is_navigating
        assert state.current_instruction.text == "Head north"
        assert state.remaining_distance_km == ROUTE.distance_km
        assert state.remaining_time_min == 9.0
        assert state.progress == 0

    def test_updates_along_route(self):
        session = NavigationSession()
        session.start(ROUTE, LINE[-1])

        update = session.update(LINE[2])
        assert not update.arrived
        assert update.state.progress == 50
        assert update.state.remaining_distance_km == pytest.approx(HOP_KM * 2)
        assert update.state.current_position == LINE[2]

        update = session.update(LINE[4])
        assert update.arrived
        assert update.state.progress == 100
        assert update.state.current_instruction.text == "Arrive"

    def test_restart_replaces_route(self):
        session = NavigationSession()
        session.start(ROUTE, LINE[-1])
        session.update(LINE[3])
        other = Route(1.0, 2.0, (LINE[0], LINE[1]))
        state = session.start(other, LINE[1])
        assert state.remaining_distance_km == 1.0
        assert state.current_instruction is None
        assert state.current_position is None

    def test_stop_clears_state(self):
        session = NavigationSession()
        session.start(ROUTE, LINE[-1])
        session.stop()
        assert session.route is None
        assert not session.state.is_navigating
