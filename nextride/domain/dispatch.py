"""
Nearby-driver lookup for new ride requests.

1. **Spatial Binning** -- each driver's last position is stored with its
   H3 cell (resolution 7, ~5.16 km²).
2. **Ring search**      -- the pickup cell plus ``k`` rings around it cover
   the search radius; only drivers in those cells are loaded.
3. **Exact filter**     -- Haversine miles against the radius.

Complexity: O(k²) cells for the ring, O(d) for d candidate drivers.
"""

from __future__ import annotations

import math
from typing import Iterable

import h3

from .entities import Coordinate
from .geo import haversine_miles

KM_PER_MILE = 1.609344


def location_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def search_cells(
    lat: float, lng: float, radius_miles: float, resolution: int = 7
) -> set[str]:
    """H3 cells whose union covers a *radius_miles* circle around the point."""
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    # Neighbouring cell centres sit sqrt(3) x edge apart
    k = math.ceil(radius_miles * KM_PER_MILE / (math.sqrt(3) * edge_km)) + 1
    return set(h3.grid_disk(location_cell(lat, lng, resolution), k))


def drivers_within(drivers: Iterable, pickup, radius_miles: float) -> list:
    """Drivers (rows with ``current_lat`` / ``current_lng``) inside the radius."""
    nearby = []
    for driver in drivers:
        if driver.current_lat is None or driver.current_lng is None:
            continue
        position = Coordinate(driver.current_lat, driver.current_lng)
        if haversine_miles(position, pickup) <= radius_miles:
            nearby.append(driver)
    return nearby

