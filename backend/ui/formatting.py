"""Display formatting for ride metrics."""

from __future__ import annotations

import math


def format_time(seconds: float) -> str:
    """Render seconds as ``"1h 02m 03s"``, ``"2m 03s"`` or ``"03s"``."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        raise ValueError("Input must be a non-negative number")
    if math.isnan(seconds) or seconds < 0:
        raise ValueError("Input must be a non-negative number")
    if math.isinf(seconds):
        return "Infinity"

    total = int(math.floor(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs:02d}s"


def format_distance_km(meters: float) -> str:
    return f"{meters / 1000.0:.2f} km"


def format_metric(value: float | None, unit: str, digits: int = 0) -> str:
    if value is None:
        return f"-- {unit}"
    return f"{value:.{digits}f} {unit}"


_COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")


def format_bearing(degrees: float | None) -> str:
    """Render a bearing as ``"90° E"``."""
    if degrees is None:
        return "--"
    heading = round(degrees) % 360
    point = _COMPASS_POINTS[int((heading + 22.5) // 45.0) % len(_COMPASS_POINTS)]
    return f"{heading}° {point}"
