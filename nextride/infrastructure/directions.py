"""
Directions API client (Google Directions JSON).

Only the HTTP call and the response mapping live here; step geometry is
decoded with ``nextride.domain.geo.decode_polyline``.  Every leg's steps
are flattened into one coordinate sequence and one instruction list.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

import httpx

from nextride.domain.entities import Coordinate, Route, RouteInstruction
from nextride.domain.errors import CollaboratorUnavailable
from nextride.domain.geo import decode_polyline

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


def _latlng(point) -> str:
    return f"{point.latitude},{point.longitude}"


def parse_route(data: dict) -> Route:
    """Map the first route of a Directions API response to a ``Route``."""
    route = data["routes"][0]
    coordinates: list[Coordinate] = []
    instructions: list[RouteInstruction] = []
    distance_m = 0
    duration_s = 0

    for leg in route["legs"]:
        distance_m += leg["distance"]["value"]
        duration_s += leg["duration"]["value"]
        for step in leg["steps"]:
            coordinates.extend(decode_polyline(step["polyline"]["points"]))
            start = step["start_location"]
            instructions.append(
                RouteInstruction(
                    text=_TAG_RE.sub("", step.get("html_instructions", "")),
                    distance_km=step["distance"]["value"] / 1000,
                    duration_min=step["duration"]["value"] / 60,
                    maneuver=step.get("maneuver") or "straight",
                    anchor=Coordinate(start["lat"], start["lng"]),
                )
            )

    return Route(
        distance_km=distance_m / 1000,
        duration_min=duration_s / 60,
        coordinates=tuple(coordinates),
        instructions=tuple(instructions),
    )


class DirectionsClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/directions/json",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key:
            logger.warning("Directions API key not configured; routing will fail")
        self.api_key = api_key
        self.base_url = base_url
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def route(
        self, origin, destination, waypoints: Sequence = ()
    ) -> Route:
        params = {
            "origin": _latlng(origin),
            "destination": _latlng(destination),
            "key": self.api_key,
            "mode": "driving",
            "traffic_model": "best_guess",
            "departure_time": "now",
        }
        if waypoints:
            params["waypoints"] = "|".join(_latlng(w) for w in waypoints)

        try:
            response = await self.client.get(self.base_url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CollaboratorUnavailable(f"Directions request failed: {exc}") from exc

        if data.get("status") != "OK" or not data.get("routes"):
            raise CollaboratorUnavailable(
                f"Directions API error: {data.get('status')} {data.get('error_message', '')}".strip()
            )
        try:
            return parse_route(data)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise CollaboratorUnavailable(f"Malformed directions response: {exc}") from exc

    async def aclose(self) -> None:
        await self.client.aclose()
