from __future__ import annotations

import math

import pytest

from backend.ui.formatting import format_bearing, format_distance_km, format_metric, format_time


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (0, "00s"),
        (30, "30s"),
        (60, "1m 00s"),
        (150, "2m 30s"),
        (90.9, "1m 30s"),
        (3600, "1h 00m 00s"),
        (3661, "1h 01m 01s"),
        (3599, "59m 59s"),
        (3601, "1h 00m 01s"),
        (7265, "2h 01m 05s"),
        (366100, "101h 41m 40s"),
        (math.inf, "Infinity"),
    ],
)
def test_format_time(seconds: float, expected: str) -> None:
    assert format_time(seconds) == expected


@pytest.mark.parametrize("bad", [-1, math.nan, "60", None, True])
def test_format_time_rejects_invalid_input(bad: object) -> None:
    with pytest.raises(ValueError):
        format_time(bad)  # type: ignore[arg-type]


def test_format_distance_and_metric() -> None:
    assert format_distance_km(1234) == "1.23 km"
    assert format_metric(25.37, "km/h", 1) == "25.4 km/h"
    assert format_metric(None, "bpm") == "-- bpm"


def test_format_bearing() -> None:
    assert format_bearing(None) == "--"
    assert format_bearing(0) == "0° N"
    assert format_bearing(90) == "90° E"
    assert format_bearing(200.4) == "200° S"
    assert format_bearing(316) == "316° NW"
    assert format_bearing(359.7) == "0° N"
