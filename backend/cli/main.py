"""Terminal CLI entrypoint for Veloroute."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from backend.ble.ftms_client import FTMSClient
from backend.core.calories import UserProfile
from backend.core.session import AVERAGE_SPEED_KMH, RideSession
from backend.core.state import SessionState
from backend.route.feature import estimate_duration_sec, feature_length_m, reverse_feature
from backend.route.loader import RouteLoadError, load_route
from backend.trip.store import JsonTripStorage, TripHistory
from backend.ui.formatting import (
    format_bearing,
    format_distance_km,
    format_metric,
    format_time,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Veloroute ride simulator")
    parser.add_argument("--scan", action="store_true", help="Scan BLE devices")
    parser.add_argument("--route", type=Path, default=None, help="GeoJSON route file")
    parser.add_argument(
        "--reverse", action="store_true", help="Ride the route in the opposite direction"
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Ride at a fixed speed without a trainer",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=AVERAGE_SPEED_KMH,
        help="Demo speed in km/h",
    )
    parser.add_argument(
        "--connect",
        nargs="?",
        const="auto",
        default=None,
        help="Connect to first FTMS device or the provided BLE address/name",
    )
    parser.add_argument("--sex", choices=("male", "female"), default=None)
    parser.add_argument("--age", type=int, default=None)
    parser.add_argument("--height", type=float, default=None, help="Height in cm")
    parser.add_argument("--weight", type=float, default=None, help="Weight in kg")
    parser.add_argument(
        "--history", action="store_true", help="List recently completed rides"
    )
    parser.add_argument(
        "--trips-file", type=Path, default=None, help="Override the trip history file"
    )
    parser.add_argument(
        "--ui-web",
        action="store_true",
        help="Launch web UI (NiceGUI) with map and metrics",
    )
    parser.add_argument("--web-host", default="127.0.0.1", help="Host bind for --ui-web")
    parser.add_argument("--web-port", type=int, default=8088, help="Port for --ui-web")
    parser.add_argument(
        "--debug-ftms",
        action="store_true",
        help="Print raw FTMS payload/flags parsing for each notification",
    )
    parser.add_argument(
        "--debug-sim-ht",
        action="store_true",
        help="Simulate a home trainer (no BLE required) for debug/testing",
    )
    return parser


def build_profile(args: argparse.Namespace) -> UserProfile | None:
    values = (args.sex, args.age, args.height, args.weight)
    if any(v is None for v in values):
        return None
    return UserProfile(
        sex=args.sex, age=args.age, height_cm=args.height, weight_kg=args.weight
    )


def format_state_line(state: SessionState) -> str:
    bearing = state.position.bearing if state.position is not None else None
    parts = [
        f"Speed: {format_metric(state.speed_kmh, 'km/h', 1)}",
        f"HR: {format_metric(state.heart_rate_bpm, 'bpm')}",
        f"Cadence: {format_metric(state.cadence_rpm, 'rpm')}",
        f"Power: {format_metric(state.power_watts, 'W')}",
        f"Heading: {format_bearing(bearing)}",
        f"Traveled: {format_distance_km(state.traveled_m)}",
        f"Remaining: {format_distance_km(state.remaining_m)}",
        f"Elapsed: {format_time(max(0.0, state.elapsed_sec))}",
        f"ETA: {format_time(state.estimated_sec) if state.estimated_sec >= 0 else '--'}",
    ]
    if state.calories_kcal is not None:
        parts.append(f"Calories: {state.calories_kcal:.0f} kcal")
    return " | ".join(parts)


async def run_scan(simulate_ht: bool = False) -> int:
    client = FTMSClient(simulate_ht=simulate_ht)
    devices = await client.scan(timeout=5.0)

    if not devices:
        print("No BLE devices found")
        return 0

    for device in devices:
        ftms_flag = "FTMS" if device.has_ftms else "-"
        print(f"{device.name:<24} {device.address} RSSI={device.rssi:>4} [{ftms_flag}]")
    return 0


def run_history(history: TripHistory) -> int:
    trips = history.recent()
    if not trips:
        print("No saved rides")
        return 0
    for trip in trips:
        print(
            f"route={trip.route_id:<12} time={format_time(max(0.0, trip.total_time)):<12} "
            f"points={len(trip.points)}"
        )
    return 0


async def run_ride(
    session: RideSession,
    connect_target: str | None,
) -> int:
    last_print = 0.0

    def on_update(state: SessionState) -> None:
        nonlocal last_print
        if state.completed or state.elapsed_sec - last_print >= 1.0:
            last_print = state.elapsed_sec
            print(format_state_line(state))

    try:
        state = await session.run(target=connect_target, on_update=on_update)
    except KeyboardInterrupt:
        session.stop()
        return 0
    if state.completed:
        print(f"Route completed in {format_time(max(0.0, state.elapsed_sec))}")
    return 0


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    history = TripHistory(JsonTripStorage(args.trips_file))

    if args.ui_web:
        from backend.ui.web_app import run_web_ui

        return run_web_ui(
            simulate_ht=args.debug_sim_ht,
            host=args.web_host,
            port=args.web_port,
        )

    if args.scan:
        return asyncio.run(run_scan(args.debug_sim_ht))

    if args.history:
        return run_history(history)

    if args.route is None:
        parser.print_help()
        return 1

    try:
        feature = load_route(args.route)
    except RouteLoadError as exc:
        print(f"Can't start: {exc}")
        return 1
    if args.reverse:
        feature = reverse_feature(feature)

    print(
        f"Route: {format_distance_km(feature_length_m(feature))}, "
        f"about {format_time(estimate_duration_sec(feature, args.speed))} "
        f"at {args.speed:.0f} km/h"
    )

    demo = args.demo or args.connect is None
    client = None
    if not demo:
        client = FTMSClient(debug_ftms=args.debug_ftms, simulate_ht=args.debug_sim_ht)

    session = RideSession(
        feature,
        client=client,
        history=history,
        profile=build_profile(args),
        demo=demo,
        demo_speed_kmh=args.speed,
        debug=args.debug_ftms,
    )
    if session.previous_trip is not None:
        print(
            "Previous ride on this route: "
            f"{format_time(max(0.0, session.previous_trip.total_time))}"
        )

    try:
        return asyncio.run(run_ride(session, args.connect))
    except RuntimeError as exc:
        print(f"Can't start: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
