"""
Geospatial helpers: Haversine distance, map viewports, polyline decoding.

Two Earth radii
---------------
Booking-time quotes work in **miles** (3959) while the route tracker works
in **km** (6371).  Both go through ``haversine_distance`` but keep their
own named wrapper so neither unit can leak into the other's call sites.

Every function accepts any object exposing ``latitude`` / ``longitude``
(``Coordinate``, ``Location``, ORM rows with those attributes).

Complexity: O(1) per distance call, O(n) for regions and decoding.
"""

from __future__ import annotations

import math
from typing import Iterable

from .entities import Coordinate, Region

EARTH_RADIUS_MILES = 3_959.0
EARTH_RADIUS_KM = 6_371.0

MIN_REGION_DELTA = 0.01


def haversine_distance(a, b, earth_radius: float) -> float:
    """Great-circle distance between *a* and *b* in the unit of *earth_radius*."""
    lat1_r, lat2_r = math.radians(a.latitude), math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlng = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return earth_radius * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_miles(a, b) -> float:
    """Return the great-circle distance in **miles** (fare / duration quotes)."""
    return haversine_distance(a, b, EARTH_RADIUS_MILES)


def haversine_km(a, b) -> float:
    """Return the great-circle distance in **km** (navigation)."""
    return haversine_distance(a, b, EARTH_RADIUS_KM)


def bounding_region(a, b, padding: float = 0.02) -> Region:
    """Viewport containing both points, padded by *padding* degrees on every side."""
    min_lat = min(a.latitude, b.latitude) - padding
    max_lat = max(a.latitude, b.latitude) + padding
    min_lng = min(a.longitude, b.longitude) - padding
    max_lng = max(a.longitude, b.longitude) + padding

    return Region(
        latitude=(min_lat + max_lat) / 2,
        longitude=(min_lng + max_lng) / 2,
        latitude_delta=abs(max_lat - min_lat),
        longitude_delta=abs(max_lng - min_lng),
    )


def route_region(coordinates: Iterable, padding: float = 0.02) -> Region:
    """Viewport fitting a whole route; deltas never drop below 0.01 degrees."""
    points = list(coordinates)
    if not points:
        return Region(0.0, 0.0, MIN_REGION_DELTA, MIN_REGION_DELTA)

    lats = [p.latitude for p in points]
    lngs = [p.longitude for p in points]
    min_lat, max_lat = min(lats), max(lats)
    min_lng, max_lng = min(lngs), max(lngs)

    return Region(
        latitude=(min_lat + max_lat) / 2,
        longitude=(min_lng + max_lng) / 2,
        latitude_delta=max(max_lat - min_lat + padding, MIN_REGION_DELTA),
        longitude_delta=max(max_lng - min_lng + padding, MIN_REGION_DELTA),
    )


def decode_polyline(encoded: str, precision: int = 5) -> list[Coordinate]:
    """
    Decode a Google "encoded polyline" into coordinates.

    Each value is a zig-zag encoded delta split into 5-bit chunks, least
    significant first, every chunk offset by 63.  A chunk >= 0x20 means
    another chunk of the same value follows.
    """
    factor = 10 ** precision
    coordinates: list[Coordinate] = []
    index = 0
    lat = 0
    lng = 0

    def next_delta() -> int:
        nonlocal index
        shift = 0
        result = 0
        while True:
            if index >= len(encoded):
                raise ValueError(f"Truncated polyline at offset {index}")
            chunk = ord(encoded[index]) - 63
            index += 1
            result |= (chunk & 0x1F) << shift
            shift += 5
            if chunk < 0x20:
                break
        return ~(result >> 1) if result & 1 else result >> 1

    while index < len(encoded):
        lat += next_delta()
        lng += next_delta()
        coordinates.append(Coordinate(lat / factor, lng / factor))

    return coordinates
