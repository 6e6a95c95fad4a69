from __future__ import annotations

import asyncio
from typing import Any

import pytest

from backend.ble.ftms_client import SIM_DEVICE_NAME, FTMSClient
from backend.cli.main import format_state_line
from backend.core.calories import UserProfile
from backend.core.session import RideSession
from backend.core.state import SessionState
from backend.route.feature import route_id
from backend.trip.store import MemoryTripStorage, TripHistory
from backend.ui.controller import UIController


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _line(coordinates: list[list[float]]) -> dict[str, Any]:
    return {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": coordinates},
        "properties": {},
    }


ROUTE = _line([[0, 0], [0.001, 0], [0.001, 0.001], [0.002, 0.001]])
SHORT_ROUTE = _line([[0, 0], [0.0001, 0]])
PROFILE = UserProfile(sex="female", age=30, height_cm=170, weight_kg=62)


def _ride_to_end(session: RideSession, clock: FakeClock, max_ticks: int = 500) -> int:
    ticks = 0
    while ticks < max_ticks:
        ticks += 1
        clock.now += 0.5
        if session.tick() is None:
            break
    return ticks


def test_demo_ride_completes_and_is_saved() -> None:
    clock = FakeClock()
    history = TripHistory(MemoryTripStorage())
    session = RideSession(ROUTE, history=history, demo_speed_kmh=360, clock=clock)

    assert session.previous_trip is None
    assert session.state.ghost is None

    ticks = _ride_to_end(session, clock)

    assert ticks < 500
    assert session.completed
    assert session.state.status == "Route completed"
    assert session.state.remaining_m == 0
    assert session.state.traveled_m == pytest.approx(session.simulator.total_distance)

    trip = session.saved_trip
    assert trip is not None
    assert trip.route_id == route_id(ROUTE)
    assert len(trip.points) == len(session.points) == ticks - 1
    assert trip.start_time == 1000.5
    assert trip.end_time == clock.now
    assert trip.total_time == pytest.approx(trip.end_time - trip.start_time)
    assert history.find(route_id(ROUTE)) == trip
    assert session.tick() is None


def test_previous_trip_drives_ghost() -> None:
    clock = FakeClock()
    history = TripHistory(MemoryTripStorage())
    first = RideSession(ROUTE, history=history, demo_speed_kmh=360, clock=clock)
    _ride_to_end(first, clock)
    assert first.saved_trip is not None

    second = RideSession(ROUTE, history=history, demo_speed_kmh=360, clock=clock)

    assert second.previous_trip == first.saved_trip
    assert second.state.ghost == first.saved_trip.points[0]
    second.tick()
    assert second.state.ghost == first.saved_trip.points[1]


def test_live_samples_keep_missing_metrics() -> None:
    session = RideSession(ROUTE, demo=False, profile=PROFILE)
    assert session.simulator.speed_kmh == 0

    session.on_sample({"speed": 25.0, "heartRate": 140, "power": 210})
    session.on_sample({"cadence": 88.5})

    state = session.state
    assert session.simulator.speed_kmh == pytest.approx(25.0)
    assert state.speed_kmh == 25.0
    assert state.heart_rate_bpm == 140
    assert state.power_watts == 210
    assert state.cadence_rpm == 88.5
    assert state.last_update is not None

    session.tick()
    assert state.calories_kcal is not None and state.calories_kcal > 0


def test_live_session_requires_client() -> None:
    session = RideSession(ROUTE, demo=False)

    with pytest.raises(RuntimeError):
        asyncio.run(session.start())


def test_live_session_with_simulated_trainer() -> None:
    async def _run() -> None:
        client = FTMSClient(simulate_ht=True, sim_interval_sec=0.05)
        session = RideSession(
            ROUTE, client=client, demo=False, profile=PROFILE, tick_interval_sec=0.05
        )
        updates: list[SessionState] = []

        task = asyncio.create_task(session.run(on_update=updates.append))
        await asyncio.sleep(0.6)
        session.stop()
        state = await task

        assert updates
        assert state.connected_device is not None
        assert SIM_DEVICE_NAME in state.connected_device
        assert state.speed_kmh > 0
        assert state.heart_rate_bpm is not None
        assert state.traveled_m > 0
        assert state.status == "Stopped"
        assert not client.is_connected

    asyncio.run(_run())


def test_controller_demo_ride_then_stop() -> None:
    async def _run() -> None:
        history = TripHistory(MemoryTripStorage())
        controller = UIController(simulate_ht=True, history=history, tick_interval_sec=0.05)
        updates: list[SessionState] = []

        await controller.start_ride(
            SHORT_ROUTE, demo=True, on_update=updates.append, speed_kmh=360
        )
        assert controller.ride_running
        with pytest.raises(RuntimeError):
            await controller.start_ride(SHORT_ROUTE, demo=True, on_update=updates.append)

        await asyncio.sleep(0.5)
        assert not controller.ride_running
        assert updates[-1].completed
        assert [t.route_id for t in controller.recent_trips()] == [route_id(SHORT_ROUTE)]

        session = await controller.start_ride(
            ROUTE, demo=False, on_update=updates.append
        )
        await asyncio.sleep(0.2)
        assert controller.ride_running
        controller.set_speed(99)
        assert session.simulator.speed_kmh != 99

        await controller.stop_ride()
        assert not controller.ride_running
        assert session.state.status == "Stopped"

    asyncio.run(_run())


def test_controller_changes_demo_speed() -> None:
    async def _run() -> None:
        controller = UIController(
            simulate_ht=True, history=TripHistory(MemoryTripStorage()), tick_interval_sec=0.05
        )

        session = await controller.start_ride(ROUTE, demo=True, on_update=lambda _s: None)
        controller.set_speed(30)

        assert session.simulator.speed_kmh == pytest.approx(30)
        assert session.state.speed_kmh == 30

        await controller.stop_ride()

    asyncio.run(_run())


def test_state_line_shows_heading() -> None:
    session = RideSession(ROUTE, demo_speed_kmh=36)
    session.tick()

    line = format_state_line(session.state)

    assert "Heading: 90° E" in line
    assert "Speed: 36.0 km/h" in line
