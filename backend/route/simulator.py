"""Virtual rider moving along a GeoJSON LineString at a controllable speed."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from backend.route.feature import line_coordinates
from backend.route.geo import haversine_m, initial_bearing_deg, interpolate

DEFAULT_SPEED_KMH = 10.0


@dataclass(frozen=True)
class Position:
    lat: float
    lon: float
    bearing: float


# ``advance`` returns this once the last coordinate has been reached.
ROUTE_COMPLETED: None = None


class RouteSimulator:
    """Advance a rider segment by segment along a route.

    State is the current segment index and the fractional progress along that
    segment. Distances and times are recomputed from that state on every
    access. Elapsed time is wall-clock time since the first ``advance`` call,
    not the sum of simulated steps.
    """

    def __init__(
        self,
        feature: Mapping[str, Any],
        speed_kmh: float = DEFAULT_SPEED_KMH,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._coordinates = line_coordinates(feature)
        self._segment_lengths = tuple(
            haversine_m(self._coordinates[i], self._coordinates[i + 1])
            for i in range(len(self._coordinates) - 1)
        )
        self._clock = clock
        self._speed_mps = 0.0
        self.speed_kmh = speed_kmh
        self._index = 0
        self._progress = 0.0
        self._started_at: Optional[float] = None

    @property
    def speed_kmh(self) -> float:
        return self._speed_mps * 3600.0 / 1000.0

    @speed_kmh.setter
    def speed_kmh(self, value: float) -> None:
        self._speed_mps = value * 1000.0 / 3600.0

    @property
    def speed_mps(self) -> float:
        return self._speed_mps

    @property
    def coordinates(self) -> tuple[tuple[float, float], ...]:
        return self._coordinates

    @property
    def segment_index(self) -> int:
        return self._index

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def completed(self) -> bool:
        return self._index >= len(self._coordinates) - 1

    def segment_distance(self, index: int) -> float:
        return self._segment_lengths[index]

    def advance(self, delta_time_sec: float) -> Optional[Position]:
        """Move the rider by ``speed * delta_time_sec`` meters.

        A step that finishes a segment restarts on the next one with the same
        ``delta_time_sec``, so one large step can cross several short
        segments. Returns ``ROUTE_COMPLETED`` once past the last coordinate.
        """
        if self._started_at is None:
            self._started_at = self._clock()

        move_m = self._speed_mps * delta_time_sec
        # Every pass either returns or moves to the next segment.
        for _ in range(len(self._coordinates)):
            if self.completed:
                return ROUTE_COMPLETED

            segment_m = self._segment_lengths[self._index]
            if segment_m > 0:
                self._progress += move_m / segment_m
            else:
                self._progress = 1.0

            if self._progress >= 1.0:
                self._progress = 0.0
                self._index += 1
                continue

            if self._progress < 0.0:
                # Negative speed: hold at the segment start.
                self._progress = 0.0

            return self._position_on_segment()

        return ROUTE_COMPLETED

    def current_position(self) -> Optional[Position]:
        """Where the rider is now, without moving. ``None`` for an empty route."""
        if not self._coordinates:
            return None
        if len(self._coordinates) == 1:
            lon, lat = self._coordinates[0]
            return Position(lat=lat, lon=lon, bearing=0.0)
        if self.completed:
            lon, lat = self._coordinates[-1]
            bearing = initial_bearing_deg(self._coordinates[-2], self._coordinates[-1])
            return Position(lat=lat, lon=lon, bearing=bearing)
        if self._index == 0 and self._progress == 0.0:
            lon, lat = self._coordinates[0]
            return Position(lat=lat, lon=lon, bearing=0.0)
        return self._position_on_segment()

    def _position_on_segment(self) -> Position:
        start = self._coordinates[self._index]
        end = self._coordinates[self._index + 1]
        lon, lat = interpolate(start, end, self._progress)
        return Position(lat=lat, lon=lon, bearing=initial_bearing_deg(start, end))

    @property
    def elapsed_time(self) -> float:
        """Seconds since the first ``advance`` call, 0 before it."""
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    @property
    def total_distance(self) -> float:
        return sum(self._segment_lengths)

    @property
    def traveled_distance(self) -> float:
        if self._index == 0 and self._progress == 0.0:
            return 0.0
        distance = sum(self._segment_lengths[: self._index])
        if not self.completed:
            distance += self._segment_lengths[self._index] * self._progress
        return distance

    @property
    def remaining_distance(self) -> float:
        if self.completed:
            return 0.0
        distance = self._segment_lengths[self._index] * (1.0 - self._progress)
        distance += sum(self._segment_lengths[self._index + 1 :])
        return distance

    @property
    def estimated_time(self) -> float:
        """Seconds to the end of the route at the current speed."""
        if self.completed:
            return 0.0
        if self._speed_mps == 0:
            return float("inf")
        return self.remaining_distance / self._speed_mps
