"""Tests for the directions client, using httpx.MockTransport instead of the network."""

import httpx
import pytest

from nextride.domain.entities import Coordinate
from nextride.domain.errors import CollaboratorUnavailable
from nextride.infrastructure.directions import DirectionsClient, parse_route

ORIGIN = Coordinate(37.7749, -122.4194)
DESTINATION = Coordinate(37.7849, -122.4094)


def _step(points: str, text: str, lat: float, lng: float, maneuver=None) -> dict:
    step = {
        "polyline": {"points": points},
        "html_instructions": text,
        "distance": {"value": 500},
        "duration": {"value": 120},
        "start_location": {"lat": lat, "lng": lng},
    }
    if maneuver is not None:
        step["maneuver"] = maneuver
    return step


DIRECTIONS_OK = {
    "status": "OK",
    "routes": [
        {
            "legs": [
                {
                    "distance": {"value": 1200},
                    "duration": {"value": 300},
                    "steps": [
                        _step("_p~iF~ps|U", "Head <b>north</b> on <b>Market St</b>", 38.5, -120.2),
                        _step("_ulLnnqC", "Turn <b>left</b>", 40.7, -120.95, "turn-left"),
                    ],
                },
                {
                    "distance": {"value": 800},
                    "duration": {"value": 180},
                    "steps": [_step("_mqNvxq`@", "Arrive", 43.252, -126.453)],
                },
            ]
        }
    ],
}


def _client(handler) -> DirectionsClient:
    return DirectionsClient(
        "test-key",
        base_url="https://directions.test/json",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestParseRoute:
    def test_sums_all_legs(self):
        route = parse_route(DIRECTIONS_OK)
        assert route.distance_km == 2.0
        assert route.duration_min == 8.0

    def test_flattens_steps(self):
        route = parse_route(DIRECTIONS_OK)
        assert len(route.instructions) == 3
        assert len(route.coordinates) == 3

    def test_strips_html_and_defaults_maneuver(self):
        first, second, _ = parse_route(DIRECTIONS_OK).instructions
        assert first.text == "Head north on Market St"
        assert first.maneuver == "straight"
        assert second.maneuver == "turn-left"
        assert first.anchor == Coordinate(38.5, -120.2)
        assert first.distance_km == 0.5
        assert first.duration_min == 2.0


class TestDirectionsClient:
    @pytest.mark.asyncio
    async def test_route_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, json=DIRECTIONS_OK)

        client = _client(handler)
        route = await client.route(ORIGIN, DESTINATION, waypoints=[Coordinate(37.78, -122.41)])
        await client.aclose()

        assert route.distance_km == 2.0
        assert seen["origin"] == "37.7749,-122.4194"
        assert seen["destination"] == "37.7849,-122.4094"
        assert seen["waypoints"] == "37.78,-122.41"
        assert seen["mode"] == "driving"
        assert seen["key"] == "test-key"

    @pytest.mark.asyncio
    async def test_api_error_status(self):
        client = _client(
            lambda request: httpx.Response(
                200, json={"status": "REQUEST_DENIED", "error_message": "bad key", "routes": []}
            )
        )
        with pytest.raises(CollaboratorUnavailable, match="REQUEST_DENIED"):
            await client.route(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = _client(lambda request: httpx.Response(500))
        with pytest.raises(CollaboratorUnavailable):
            await client.route(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(CollaboratorUnavailable):
            await client.route(ORIGIN, DESTINATION)

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        client = _client(lambda request: httpx.Response(200, json={"status": "OK", "routes": [{}]}))
        with pytest.raises(CollaboratorUnavailable, match="Malformed"):
            await client.route(ORIGIN, DESTINATION)
