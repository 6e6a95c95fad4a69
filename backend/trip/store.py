"""Local persistence of finished rides, keyed by route."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Protocol

TRIPS_KEY = "cyclingAppTrips"
MAX_SAVED_TRIPS = 10


def _default_trips_path() -> Path:
    return Path.home() / ".veloroute" / "trips.json"


@dataclass(frozen=True)
class TripPoint:
    lat: float
    lon: float
    bearing: float
    timestamp: float


@dataclass(frozen=True)
class SavedTrip:
    route_id: str
    points: tuple[TripPoint, ...]
    start_time: float
    end_time: float
    total_time: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, item: dict[str, Any]) -> "SavedTrip":
        return cls(
            route_id=str(item["route_id"]),
            points=tuple(TripPoint(**point) for point in item.get("points", [])),
            start_time=float(item["start_time"]),
            end_time=float(item["end_time"]),
            total_time=float(item["total_time"]),
        )


class TripStorage(Protocol):
    def load_trips(self) -> list[SavedTrip]: ...

    def save_trips(self, trips: list[SavedTrip]) -> None: ...


class JsonTripStorage:
    """Trips kept in one JSON document under ``TRIPS_KEY``."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or _default_trips_path()

    def load_trips(self) -> list[SavedTrip]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        raw_trips = payload.get(TRIPS_KEY) if isinstance(payload, dict) else None
        if not isinstance(raw_trips, list):
            return []

        out: list[SavedTrip] = []
        for item in raw_trips:
            try:
                out.append(SavedTrip.from_dict(item))
            except Exception:
                continue
        return out

    def save_trips(self, trips: list[SavedTrip]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {TRIPS_KEY: [trip.to_dict() for trip in trips]}
        # A partial write never lands on ``path``.
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=True), encoding="utf-8")
        tmp_path.replace(self.path)


class MemoryTripStorage:
    def __init__(self) -> None:
        self._trips: list[SavedTrip] = []

    def load_trips(self) -> list[SavedTrip]:
        return list(self._trips)

    def save_trips(self, trips: list[SavedTrip]) -> None:
        self._trips = list(trips)


class TripHistory:
    """Most recent trips, at most one per route."""

    def __init__(self, storage: TripStorage, limit: int = MAX_SAVED_TRIPS) -> None:
        self._storage = storage
        self._limit = limit

    def find(self, route_id: str) -> SavedTrip | None:
        for trip in self._storage.load_trips():
            if trip.route_id == route_id:
                return trip
        return None

    def record(self, trip: SavedTrip) -> None:
        trips = [t for t in self._storage.load_trips() if t.route_id != trip.route_id]
        trips.append(trip)
        self._storage.save_trips(trips[-self._limit :])

    def recent(self) -> list[SavedTrip]:
        """Newest first."""
        return list(reversed(self._storage.load_trips()))
