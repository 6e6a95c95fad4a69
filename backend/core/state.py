"""Shared runtime state of a ride session."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from backend.route.simulator import Position
from backend.trip.store import TripPoint


@dataclass
class SessionState:
    status: str = "Not started"
    connected_device: str | None = None
    position: Position | None = None
    ghost: TripPoint | None = None
    speed_kmh: float = 0.0
    heart_rate_bpm: float | None = None
    cadence_rpm: float | None = None
    power_watts: float | None = None
    traveled_m: float = 0.0
    remaining_m: float = 0.0
    elapsed_sec: float = 0.0
    estimated_sec: float = 0.0
    calories_kcal: float | None = None
    completed: bool = False
    last_update: datetime | None = None
