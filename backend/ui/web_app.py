"""NiceGUI web UI for Veloroute."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from nicegui import events, ui

from backend.core.calories import UserProfile
from backend.core.session import AVERAGE_SPEED_KMH
from backend.core.state import SessionState
from backend.route.feature import estimate_duration_sec, feature_length_m, reverse_feature
from backend.route.loader import RouteLoadError, parse_route
from backend.ui.controller import UIController
from backend.ui.formatting import (
    format_bearing,
    format_distance_km,
    format_metric,
    format_time,
)

MAP_ZOOM = 17
REFRESH_SEC = 0.5


@dataclass
class WebState:
    status: str = "Load a route to start"
    feature: Optional[dict[str, Any]] = None
    route_name: str = "-"
    session_state: Optional[SessionState] = None
    running: bool = False


def _route_summary(feature: dict[str, Any]) -> str:
    length = feature_length_m(feature)
    planned = estimate_duration_sec(feature, AVERAGE_SPEED_KMH)
    return f"Distance: {format_distance_km(length)} | Planned time: {format_time(planned)}"


def _latlng_path(feature: dict[str, Any]) -> list[list[float]]:
    return [[float(lat), float(lon)] for lon, lat, *_ in feature["geometry"]["coordinates"]]


def run_web_ui(
    *,
    simulate_ht: bool = False,
    host: str = "127.0.0.1",
    port: int = 8088,
) -> int:
    controller = UIController(debug_ftms=False, simulate_ht=simulate_ht)
    state = WebState()

    rider_marker: Any = None
    ghost_marker: Any = None
    route_map: Any = None

    with ui.column().classes("w-full gap-1"):
        ui.label("VELOROUTE").classes("text-xl font-semibold tracking-wide")
        status_label = ui.label("Status: -").classes("text-lg font-semibold")
        if simulate_ht:
            ui.label("SIM MODE - no BLE required").classes("text-orange-500 font-bold")

    with ui.column().classes("w-full gap-4") as setup_view:
        with ui.card().classes("w-full"):
            ui.label("GeoJSON route").classes("text-base font-medium")
            ui.upload(
                on_upload=lambda e: on_upload(e), auto_upload=True, max_files=1
            ).props("accept=.json,.geojson")
            reverse_switch = ui.switch("Reverse", value=False)
            route_info = ui.label("No route loaded").classes("text-sm")
        with ui.card().classes("w-full"):
            ui.label("Rider").classes("text-base font-medium")
            with ui.row().classes("w-full items-end gap-2"):
                sex_select = ui.select({"male": "Male", "female": "Female"}, value="male", label="Sex")
                age_input = ui.number("Age", value=35, min=10, max=100)
                height_input = ui.number("Height (cm)", value=178, min=100, max=230)
                weight_input = ui.number("Weight (kg)", value=75, min=30, max=200)
        with ui.row().classes("w-full gap-2"):
            connect_btn = ui.button("Connect")
            demo_btn = ui.button("Demo")
        ui.label("Recent rides").classes("text-base font-medium")
        history_table = ui.table(
            columns=[
                {"name": "route", "label": "Route", "field": "route"},
                {"name": "time", "label": "Time", "field": "time"},
                {"name": "points", "label": "Points", "field": "points"},
            ],
            rows=[],
        ).classes("w-full")

    with ui.column().classes("w-full gap-2") as ride_view:
        with ui.row().classes("w-full items-center justify-between"):
            route_title = ui.label("Route").classes("text-lg")
            demo_speed_input = ui.number(
                "Demo speed (km/h)", value=AVERAGE_SPEED_KMH, min=1, max=80, step=1
            )
            stop_btn = ui.button("Stop").props("color=negative")
        map_container = ui.column().classes("w-full")
        with ui.card().classes("w-full"):
            with ui.row().classes("w-full items-center gap-4 flex-wrap"):
                speed_label = ui.label("Speed: -- km/h")
                hr_label = ui.label("HR: -- bpm")
                cadence_label = ui.label("Cadence: -- rpm")
                power_label = ui.label("Power: -- W")
                calories_label = ui.label("Calories: --")
            with ui.row().classes("w-full items-center gap-4 flex-wrap"):
                traveled_label = ui.label("Traveled: 0.00 km")
                remaining_label = ui.label("Remaining: 0.00 km")
                elapsed_label = ui.label("Elapsed: 00s")
                eta_label = ui.label("Estimated: --")
                heading_label = ui.label("Heading: --")

    def show_setup_screen() -> None:
        setup_view.set_visibility(True)
        ride_view.set_visibility(False)

    def show_ride_screen() -> None:
        setup_view.set_visibility(False)
        ride_view.set_visibility(True)

    def refresh_history() -> None:
        history_table.rows = [
            {
                "route": trip.route_id,
                "time": format_time(max(0.0, trip.total_time)),
                "points": len(trip.points),
            }
            for trip in controller.recent_trips()
        ]
        history_table.update()

    def selected_feature() -> Optional[dict[str, Any]]:
        if state.feature is None:
            return None
        if reverse_switch.value:
            return reverse_feature(state.feature)
        return state.feature

    def selected_profile() -> Optional[UserProfile]:
        values = (age_input.value, height_input.value, weight_input.value)
        if any(v is None for v in values):
            return None
        return UserProfile(
            sex=sex_select.value or "male",
            age=int(age_input.value),
            height_cm=float(height_input.value),
            weight_kg=float(weight_input.value),
        )

    def build_map(feature: dict[str, Any]) -> None:
        nonlocal route_map, rider_marker, ghost_marker
        path = _latlng_path(feature)
        start = tuple(path[0]) if path else (0.0, 0.0)
        map_container.clear()
        with map_container:
            route_map = ui.leaflet(center=start, zoom=MAP_ZOOM).classes("w-full h-96")
        route_map.generic_layer(name="polyline", args=[path, {"color": "#38bdf8", "weight": 5}])
        rider_marker = route_map.marker(latlng=start)
        ghost_marker = None
        session = controller.session
        if session is not None and session.previous_trip is not None:
            first = session.previous_trip.points[0] if session.previous_trip.points else None
            if first is not None:
                ghost_marker = route_map.marker(latlng=(first.lat, first.lon))
                ghost_marker.run_method("setOpacity", 0.5)

    def refresh_ui() -> None:
        status_label.text = f"Status: {state.status}"
        ss = state.session_state
        if ss is None:
            return
        speed_label.text = f"Speed: {format_metric(ss.speed_kmh, 'km/h')}"
        hr_label.text = f"HR: {format_metric(ss.heart_rate_bpm, 'bpm')}"
        cadence_label.text = f"Cadence: {format_metric(ss.cadence_rpm, 'rpm')}"
        power_label.text = f"Power: {format_metric(ss.power_watts, 'W')}"
        calories_label.text = f"Calories: {format_metric(ss.calories_kcal, 'kcal')}"
        traveled_label.text = f"Traveled: {format_distance_km(ss.traveled_m)}"
        remaining_label.text = f"Remaining: {format_distance_km(ss.remaining_m)}"
        elapsed_label.text = f"Elapsed: {format_time(max(0.0, ss.elapsed_sec))}"
        eta = format_time(ss.estimated_sec) if ss.estimated_sec >= 0 else "--"
        eta_label.text = f"Estimated: {eta}"
        bearing = ss.position.bearing if ss.position is not None else None
        heading_label.text = f"Heading: {format_bearing(bearing)}"

        if rider_marker is not None and ss.position is not None:
            rider_marker.move(ss.position.lat, ss.position.lon)
        if route_map is not None and ss.position is not None:
            route_map.set_center((ss.position.lat, ss.position.lon))
        if ghost_marker is not None and ss.ghost is not None:
            ghost_marker.move(ss.ghost.lat, ss.ghost.lon)

        if state.running and not controller.ride_running:
            state.running = False
            state.status = ss.status
            refresh_history()

    def on_session_update(session_state: SessionState) -> None:
        state.session_state = session_state

    def on_upload(event: events.UploadEventArguments) -> None:
        try:
            text = event.content.read().decode("utf-8")
            state.feature = parse_route(text)
        except (RouteLoadError, UnicodeDecodeError) as exc:
            state.feature = None
            route_info.text = "No route loaded"
            ui.notify(f"Invalid route: {exc}", color="negative")
            return
        state.route_name = event.name
        route_info.text = _route_summary(state.feature)
        state.status = f"Route loaded: {event.name}"
        refresh_ui()

    async def start(demo: bool) -> None:
        feature = selected_feature()
        if feature is None:
            ui.notify("Route is required!", color="negative")
            return
        state.status = "Starting demo ride..." if demo else "Connecting..."
        refresh_ui()
        try:
            session = await controller.start_ride(
                feature,
                demo=demo,
                on_update=on_session_update,
                profile=selected_profile(),
                speed_kmh=float(demo_speed_input.value or AVERAGE_SPEED_KMH),
            )
        except Exception as exc:
            state.status = "Not started"
            ui.notify(f"Can't start: {exc}", color="negative")
            refresh_ui()
            return
        state.session_state = session.state
        state.running = True
        state.status = session.state.status
        route_title.text = f"Route: {state.route_name}"
        demo_speed_input.set_visibility(demo)
        build_map(feature)
        show_ride_screen()
        refresh_ui()

    async def on_connect() -> None:
        await start(demo=False)

    async def on_demo() -> None:
        await start(demo=True)

    def on_demo_speed(event: events.ValueChangeEventArguments) -> None:
        if event.value is not None and event.value > 0:
            controller.set_speed(float(event.value))

    async def on_stop() -> None:
        await controller.stop_ride()
        state.running = False
        state.status = "Stopped"
        refresh_history()
        show_setup_screen()
        refresh_ui()

    reverse_switch.on_value_change(
        lambda _: route_info.set_text(_route_summary(state.feature)) if state.feature else None
    )
    connect_btn.on_click(on_connect)
    demo_btn.on_click(on_demo)
    stop_btn.on_click(on_stop)
    demo_speed_input.on_value_change(on_demo_speed)

    refresh_history()
    show_setup_screen()
    ui.timer(REFRESH_SEC, refresh_ui)
    ui.run(host=host, port=port, reload=False, title="Veloroute")
    return 0
