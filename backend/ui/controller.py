"""Async controller used by the web UI."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Mapping, Optional

from backend.ble.ftms_client import FTMSClient, ScannedDevice
from backend.core.calories import UserProfile
from backend.core.session import AVERAGE_SPEED_KMH, RideSession
from backend.core.state import SessionState
from backend.trip.store import JsonTripStorage, SavedTrip, TripHistory


class UIController:
    def __init__(
        self,
        debug_ftms: bool = False,
        simulate_ht: bool = False,
        ble_pair: bool = True,
        history: TripHistory | None = None,
        tick_interval_sec: float | None = None,
    ) -> None:
        self._client = FTMSClient(
            debug_ftms=debug_ftms,
            simulate_ht=simulate_ht,
            ble_pair=ble_pair,
        )
        self._debug_ftms = debug_ftms
        self._history = history or TripHistory(JsonTripStorage())
        self._tick_interval_sec = tick_interval_sec
        self._session: Optional[RideSession] = None
        self._task: Optional[asyncio.Task[SessionState]] = None

    async def scan(self) -> list[ScannedDevice]:
        return await self._client.scan(timeout=5.0)

    async def start_ride(
        self,
        feature: Mapping[str, Any],
        *,
        demo: bool,
        on_update: Callable[[SessionState], None],
        target: str | None = "auto",
        profile: UserProfile | None = None,
        speed_kmh: float = AVERAGE_SPEED_KMH,
    ) -> RideSession:
        """Connect (unless ``demo``) and start ticking in the background."""
        if self.ride_running:
            raise RuntimeError("Ride already running")

        extra: dict[str, Any] = {}
        if self._tick_interval_sec is not None:
            extra["tick_interval_sec"] = self._tick_interval_sec
        session = RideSession(
            feature,
            client=None if demo else self._client,
            history=self._history,
            profile=profile,
            demo=demo,
            demo_speed_kmh=speed_kmh,
            debug=self._debug_ftms,
            **extra,
        )
        try:
            await session.start(target=target)
        except Exception:
            await session.close()
            raise
        self._session = session
        self._task = asyncio.create_task(session.run_loop(on_update))
        return session

    async def stop_ride(self) -> None:
        if self._session is None or self._task is None:
            return
        self._session.stop()
        await self._task
        self._task = None

    def set_speed(self, speed_kmh: float) -> None:
        if self._session is not None and self._session.demo:
            self._session.set_speed(speed_kmh)

    def recent_trips(self) -> list[SavedTrip]:
        return self._history.recent()

    @property
    def session(self) -> RideSession | None:
        return self._session

    @property
    def ride_running(self) -> bool:
        return self._task is not None and not self._task.done()
