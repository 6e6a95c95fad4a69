"""Route file loader (GeoJSON)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from backend.route.feature import InvalidGeometry, line_coordinates

SUPPORTED_SUFFIXES = (".json", ".geojson")


class RouteLoadError(ValueError):
    """Raised when a route file is invalid."""


def load_route(path: str | Path) -> dict[str, Any]:
    file_path = Path(path)
    if file_path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise RouteLoadError(
            f"Unsupported route format '{file_path.suffix}'. Use .json or .geojson"
        )
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RouteLoadError(f"Unable to read route file: {exc}") from exc
    return parse_route(text)


def parse_route(text: str) -> dict[str, Any]:
    """Parse GeoJSON text into a LineString Feature."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise RouteLoadError(f"Invalid JSON: {exc}") from exc

    feature = _extract_line_feature(data)
    try:
        line_coordinates(feature)
    except InvalidGeometry as exc:
        raise RouteLoadError(str(exc)) from exc
    return feature


def _extract_line_feature(data: object) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise RouteLoadError("Route GeoJSON must be an object")

    kind = data.get("type")
    if kind == "Feature":
        return data
    if kind == "LineString":
        return {"type": "Feature", "geometry": data, "properties": {}}
    if kind == "FeatureCollection":
        features = data.get("features")
        if not isinstance(features, list):
            raise RouteLoadError("FeatureCollection field 'features' must be an array")
        for item in features:
            if (
                isinstance(item, dict)
                and isinstance(item.get("geometry"), dict)
                and item["geometry"].get("type") == "LineString"
            ):
                return item
        raise RouteLoadError("FeatureCollection contains no LineString feature")
    raise RouteLoadError(f"Unsupported GeoJSON type '{kind}'")
