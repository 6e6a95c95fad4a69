from __future__ import annotations

import pytest

from backend.route.geo import haversine_m, initial_bearing_deg, interpolate, route_length_m


def test_identical_points_have_zero_distance_and_bearing() -> None:
    assert haversine_m((12.5, 41.9), (12.5, 41.9)) == 0
    assert initial_bearing_deg((12.5, 41.9), (12.5, 41.9)) == 0


def test_one_degree_longitude_at_equator() -> None:
    assert haversine_m((0, 0), (1, 0)) == pytest.approx(111_000, abs=1_000)


def test_short_segment_distance() -> None:
    distance = haversine_m((0, 0), (0.001, 0))
    assert 100 < distance < 200


def test_cardinal_bearings() -> None:
    assert initial_bearing_deg((0, 0), (1, 0)) == pytest.approx(90, abs=0.1)
    assert initial_bearing_deg((0, 0), (0, 1)) == pytest.approx(0, abs=0.1)
    assert initial_bearing_deg((0, 0), (-1, 0)) == pytest.approx(270, abs=0.1)
    assert initial_bearing_deg((0, 0), (0, -1)) == pytest.approx(180, abs=0.1)


def test_bearing_stays_below_360() -> None:
    bearing = initial_bearing_deg((0, 0), (-1e-12, 1))
    assert 0 <= bearing < 360


def test_route_length() -> None:
    assert route_length_m([]) == 0
    assert route_length_m([(0, 0)]) == 0
    assert route_length_m([(0, 0), (0.5, 0)]) == pytest.approx(55_600, abs=500)
    # Antimeridian crossing is a short hop, not a trip around the globe.
    assert 200_000 < route_length_m([(179, 0), (-179, 0)]) < 250_000


def test_interpolate() -> None:
    assert interpolate((0, 0), (2, 4), 0.25) == (0.5, 1.0)
