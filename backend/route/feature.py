"""GeoJSON route features: validation, identity and planning helpers."""

from __future__ import annotations

import copy
import json
from typing import Any, Mapping

from backend.route.geo import Coordinate, route_length_m


class InvalidGeometry(ValueError):
    """Raised when a route is not a GeoJSON Feature with a LineString geometry."""


def line_coordinates(feature: Mapping[str, Any]) -> tuple[Coordinate, ...]:
    """Validate ``feature`` and return its LineString coordinates."""
    if not isinstance(feature, Mapping) or feature.get("type") != "Feature":
        raise InvalidGeometry("Route must be a GeoJSON Feature with a LineString geometry")
    geometry = feature.get("geometry")
    if not isinstance(geometry, Mapping) or geometry.get("type") != "LineString":
        raise InvalidGeometry("Route must be a GeoJSON Feature with a LineString geometry")
    raw = geometry.get("coordinates")
    if not isinstance(raw, (list, tuple)):
        raise InvalidGeometry("LineString coordinates must be an array")

    out: list[Coordinate] = []
    for i, point in enumerate(raw):
        if not isinstance(point, (list, tuple)) or len(point) < 2:
            raise InvalidGeometry(f"Coordinate {i + 1}: expected [longitude, latitude]")
        try:
            out.append((float(point[0]), float(point[1])))
        except (TypeError, ValueError) as exc:
            raise InvalidGeometry(f"Coordinate {i + 1}: not a number") from exc
    return tuple(out)


def reverse_feature(feature: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``feature`` that runs the route in the opposite direction."""
    line_coordinates(feature)
    reversed_feature = copy.deepcopy(dict(feature))
    coords = list(reversed_feature["geometry"]["coordinates"])
    coords.reverse()
    reversed_feature["geometry"]["coordinates"] = coords
    return reversed_feature


def feature_length_m(feature: Mapping[str, Any]) -> float:
    return route_length_m(line_coordinates(feature))


def estimate_duration_sec(feature: Mapping[str, Any], speed_kmh: float) -> float:
    """Planned ride time at a steady ``speed_kmh``."""
    if speed_kmh <= 0:
        return float("inf")
    return feature_length_m(feature) / (speed_kmh * 1000.0 / 3600.0)


def route_id(feature: Mapping[str, Any]) -> str:
    """Stable identifier of a route derived from its coordinate sequence.

    31-multiplier string hash over the compact JSON coordinates, wrapped to a
    signed 32-bit integer.
    """
    line_coordinates(feature)
    text = json.dumps(
        feature["geometry"]["coordinates"], separators=(",", ":"), ensure_ascii=True
    )
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return str(value)
