"""Step through a saved trip point by point (the "previous ride" ghost)."""

from __future__ import annotations

from backend.trip.store import SavedTrip, TripPoint


class TripReplay:
    def __init__(self, trip: SavedTrip) -> None:
        self.trip = trip
        self._index = 0

    @property
    def finished(self) -> bool:
        return self._index >= len(self.trip.points)

    def next_point(self) -> TripPoint | None:
        if self.finished:
            return None
        point = self.trip.points[self._index]
        self._index += 1
        return point

    def reset(self) -> None:
        self._index = 0
