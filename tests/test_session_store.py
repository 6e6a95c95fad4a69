from __future__ import annotations

import json
from pathlib import Path

from backend.core.session import RideSession
from backend.trip.replay import TripReplay
from backend.trip.store import (
    MAX_SAVED_TRIPS,
    TRIPS_KEY,
    JsonTripStorage,
    MemoryTripStorage,
    SavedTrip,
    TripHistory,
    TripPoint,
)


def _trip(route_id: str, start: float = 0.0, points: int = 2) -> SavedTrip:
    return SavedTrip(
        route_id=route_id,
        points=tuple(
            TripPoint(lat=0.0, lon=i * 0.0001, bearing=90.0, timestamp=start + i * 0.5)
            for i in range(points)
        ),
        start_time=start,
        end_time=start + 60.0,
        total_time=60.0,
    )


def test_record_and_find_in_json_file(tmp_path: Path) -> None:
    store = tmp_path / "trips.json"
    history = TripHistory(JsonTripStorage(store))

    history.record(_trip("123", start=10.0))

    payload = json.loads(store.read_text(encoding="utf-8"))
    assert list(payload) == [TRIPS_KEY]
    assert payload[TRIPS_KEY][0]["route_id"] == "123"

    found = TripHistory(JsonTripStorage(store)).find("123")
    assert found == _trip("123", start=10.0)
    assert history.find("999") is None


def test_one_trip_per_route_newest_wins() -> None:
    history = TripHistory(MemoryTripStorage())

    history.record(_trip("a", start=1.0))
    history.record(_trip("b", start=2.0))
    history.record(_trip("a", start=3.0))

    recent = history.recent()
    assert [t.route_id for t in recent] == ["a", "b"]
    assert recent[0].start_time == 3.0


def test_history_keeps_last_ten_trips() -> None:
    history = TripHistory(MemoryTripStorage())

    for i in range(MAX_SAVED_TRIPS + 3):
        history.record(_trip(str(i), start=float(i)))

    recent = history.recent()
    assert len(recent) == MAX_SAVED_TRIPS
    assert recent[0].route_id == str(MAX_SAVED_TRIPS + 2)
    assert history.find("0") is None
    assert history.find("3") is not None


def test_missing_or_corrupt_file_reads_as_empty(tmp_path: Path) -> None:
    assert JsonTripStorage(tmp_path / "nope.json").load_trips() == []

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert JsonTripStorage(broken).load_trips() == []

    wrong_shape = tmp_path / "list.json"
    wrong_shape.write_text("[1, 2, 3]", encoding="utf-8")
    assert JsonTripStorage(wrong_shape).load_trips() == []

    for name, trips_value in (("null.json", None), ("int.json", 5), ("obj.json", {"a": 1})):
        store = tmp_path / name
        store.write_text(json.dumps({TRIPS_KEY: trips_value}), encoding="utf-8")
        assert JsonTripStorage(store).load_trips() == []

    not_utf8 = tmp_path / "binary.json"
    not_utf8.write_bytes(b"\xff\xfe{")
    assert JsonTripStorage(not_utf8).load_trips() == []


def test_ride_starts_with_corrupt_history_file(tmp_path: Path) -> None:
    store = tmp_path / "trips.json"
    store.write_text(json.dumps({TRIPS_KEY: None}), encoding="utf-8")
    route = {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": [[0, 0], [0.001, 0]]},
        "properties": {},
    }

    session = RideSession(route, history=TripHistory(JsonTripStorage(store)))

    assert session.previous_trip is None


def test_save_replaces_file_without_leftovers(tmp_path: Path) -> None:
    store = tmp_path / "data" / "trips.json"
    storage = JsonTripStorage(store)

    storage.save_trips([_trip("a")])
    storage.save_trips([_trip("b")])

    assert [t.route_id for t in storage.load_trips()] == ["b"]
    assert sorted(p.name for p in store.parent.iterdir()) == ["trips.json"]


def test_invalid_items_are_skipped(tmp_path: Path) -> None:
    store = tmp_path / "trips.json"
    good = _trip("ok").to_dict()
    store.write_text(json.dumps({TRIPS_KEY: [{"route_id": "x"}, good]}), encoding="utf-8")

    trips = JsonTripStorage(store).load_trips()

    assert [t.route_id for t in trips] == ["ok"]


def test_trip_replay_walks_points_in_order() -> None:
    trip = _trip("r", points=3)
    replay = TripReplay(trip)

    seen = [replay.next_point(), replay.next_point(), replay.next_point()]

    assert seen == list(trip.points)
    assert replay.finished
    assert replay.next_point() is None

    replay.reset()
    assert replay.next_point() == trip.points[0]


def test_trip_replay_of_empty_trip() -> None:
    replay = TripReplay(_trip("r", points=0))

    assert replay.finished
    assert replay.next_point() is None
