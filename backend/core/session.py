"""Ride session: drives the route simulator from a timer or a live trainer."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from backend.ble.ftms_client import FTMSClient
from backend.ble.indoor_bike_data import DecodedSample
from backend.core.calories import CalorieCounter, UserProfile
from backend.core.state import SessionState
from backend.route.feature import route_id
from backend.route.simulator import Position, RouteSimulator
from backend.trip.replay import TripReplay
from backend.trip.store import SavedTrip, TripHistory, TripPoint

UPDATE_INTERVAL_SEC = 0.5
AVERAGE_SPEED_KMH = 20.0

StateCallback = Callable[[SessionState], None]


class RideSession:
    """One ride along one route.

    In demo mode the rider moves at a fixed speed. Otherwise the trainer's
    Indoor Bike Data stream sets speed, heart rate, cadence and power. Either
    way ``tick`` advances the simulator by ``tick_interval_sec`` and a finished
    route is stored in the trip history.
    """

    def __init__(
        self,
        feature: Mapping[str, Any],
        *,
        client: FTMSClient | None = None,
        history: TripHistory | None = None,
        profile: UserProfile | None = None,
        demo: bool = True,
        demo_speed_kmh: float = AVERAGE_SPEED_KMH,
        tick_interval_sec: float = UPDATE_INTERVAL_SEC,
        clock: Callable[[], float] = time.time,
        debug: bool = False,
    ) -> None:
        self.route_id = route_id(feature)
        self._clock = clock
        self.simulator = RouteSimulator(
            feature, speed_kmh=demo_speed_kmh if demo else 0.0, clock=clock
        )
        self._client = client
        self._history = history
        self._demo = demo
        self._tick_interval_sec = tick_interval_sec
        self._debug = debug
        self._calories = CalorieCounter(profile) if profile is not None else None
        self._points: list[TripPoint] = []
        self._started_at: Optional[float] = None
        self._stop_event = asyncio.Event()
        self.saved_trip: SavedTrip | None = None

        self.previous_trip = history.find(self.route_id) if history is not None else None
        self._replay = TripReplay(self.previous_trip) if self.previous_trip else None

        self.state = SessionState(
            position=self.simulator.current_position(),
            speed_kmh=self.simulator.speed_kmh,
            remaining_m=self.simulator.remaining_distance,
            estimated_sec=self.simulator.estimated_time,
            calories_kcal=0.0 if self._calories is not None else None,
        )
        if self._replay is not None:
            self.state.ghost = self._replay.next_point()

    @property
    def demo(self) -> bool:
        return self._demo

    @property
    def completed(self) -> bool:
        return self.state.completed

    @property
    def points(self) -> tuple[TripPoint, ...]:
        return tuple(self._points)

    async def start(self, target: str | None = "auto") -> None:
        if self._demo:
            self.state.status = "Demo ride"
            return
        if self._client is None:
            raise RuntimeError("A trainer client is required outside demo mode")

        label = await self._client.connect(target=target)
        self.state.connected_device = label
        await self._client.subscribe_indoor_bike_data(self.on_sample)
        self.state.status = f"Connected to {label}"

    def on_sample(self, sample: DecodedSample) -> None:
        """Apply one decoded trainer record. Missing keys keep the last value."""
        if "speed" in sample:
            self.simulator.speed_kmh = sample["speed"]
            self.state.speed_kmh = sample["speed"]
        if "heartRate" in sample:
            self.state.heart_rate_bpm = sample["heartRate"]
        if "cadence" in sample:
            self.state.cadence_rpm = sample["cadence"]
        if "power" in sample:
            self.state.power_watts = sample["power"]
        self.state.last_update = datetime.now(tz=timezone.utc)

    def set_speed(self, speed_kmh: float) -> None:
        self.simulator.speed_kmh = speed_kmh
        self.state.speed_kmh = speed_kmh

    def tick(self) -> Position | None:
        """Advance one interval. Returns ``None`` once the route is done."""
        if self.state.completed:
            return None
        if self._started_at is None:
            self._started_at = self._clock()

        position = self.simulator.advance(self._tick_interval_sec)
        now = self._clock()
        if self._replay is not None and not self._replay.finished:
            self.state.ghost = self._replay.next_point()

        if position is None:
            self._complete(now)
            return None

        self._points.append(
            TripPoint(lat=position.lat, lon=position.lon, bearing=position.bearing, timestamp=now)
        )
        self.state.position = position
        if self._calories is not None:
            self._calories.add(self.state.heart_rate_bpm, self._tick_interval_sec)
        self._refresh()
        return position

    def _refresh(self) -> None:
        self.state.traveled_m = self.simulator.traveled_distance
        self.state.remaining_m = self.simulator.remaining_distance
        self.state.elapsed_sec = self.simulator.elapsed_time
        self.state.estimated_sec = self.simulator.estimated_time
        if self._calories is not None:
            self.state.calories_kcal = self._calories.total_kcal

    def _complete(self, now: float) -> None:
        self.state.completed = True
        self.state.status = "Route completed"
        self.state.position = self.simulator.current_position()
        self._refresh()

        started_at = self._started_at if self._started_at is not None else now
        self.saved_trip = SavedTrip(
            route_id=self.route_id,
            points=tuple(self._points),
            start_time=started_at,
            end_time=now,
            total_time=now - started_at,
        )
        if self._history is not None:
            self._history.record(self.saved_trip)
        if self._debug:
            print(
                f"[SESSION] route {self.route_id} completed in "
                f"{self.saved_trip.total_time:.1f}s ({len(self._points)} points)"
            )

    def stop(self) -> None:
        self._stop_event.set()

    async def run(
        self, target: str | None = "auto", on_update: StateCallback | None = None
    ) -> SessionState:
        try:
            await self.start(target=target)
        except Exception:
            await self.close()
            raise
        return await self.run_loop(on_update)

    async def run_loop(self, on_update: StateCallback | None = None) -> SessionState:
        """Tick until the route is done or ``stop`` is called, then disconnect."""
        try:
            while not self._stop_event.is_set() and not self.state.completed:
                self.tick()
                if on_update is not None:
                    on_update(self.state)
                await asyncio.sleep(self._tick_interval_sec)
        finally:
            await self.close()
        if not self.state.completed:
            self.state.status = "Stopped"
        return self.state

    async def close(self) -> None:
        if self._client is not None and self._client.is_connected:
            await self._client.disconnect()
