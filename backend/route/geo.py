"""Great-circle helpers on (longitude, latitude) pairs in decimal degrees."""

from __future__ import annotations

import math
from typing import Sequence

EARTH_RADIUS_M = 6_371_000.0

Coordinate = tuple[float, float]


def haversine_m(a: Sequence[float], b: Sequence[float]) -> float:
    lon1, lat1 = a[0], a[1]
    lon2, lat2 = b[0], b[1]
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def initial_bearing_deg(a: Sequence[float], b: Sequence[float]) -> float:
    """Forward azimuth from ``a`` to ``b`` in [0, 360), 0 = north, 90 = east."""
    lon1, lat1 = math.radians(a[0]), math.radians(a[1])
    lon2, lat2 = math.radians(b[0]), math.radians(b[1])
    dlon = lon2 - lon1
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    bearing = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (x + 360) % 360 can round up to exactly 360 for tiny negative angles.
    return 0.0 if bearing >= 360.0 else bearing


def interpolate(a: Sequence[float], b: Sequence[float], fraction: float) -> Coordinate:
    """Linear lon/lat interpolation between ``a`` and ``b``."""
    return (
        a[0] + (b[0] - a[0]) * fraction,
        a[1] + (b[1] - a[1]) * fraction,
    )


def route_length_m(coordinates: Sequence[Sequence[float]]) -> float:
    total = 0.0
    for i in range(len(coordinates) - 1):
        total += haversine_m(coordinates[i], coordinates[i + 1])
    return total
