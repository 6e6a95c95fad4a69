"""Async FTMS BLE client streaming Indoor Bike Data from smart trainers."""

from __future__ import annotations

import asyncio
import contextlib
import importlib
import math
import random
import struct
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from backend.ble.constants import FTMS_SERVICE_UUID, INDOOR_BIKE_DATA_CHAR_UUID
from backend.ble.indoor_bike_data import (
    DecodedSample,
    decode_indoor_bike_data,
    describe_flags,
    encode_indoor_bike_data,
)

_bleak: Any
try:
    _bleak = importlib.import_module("bleak")
except ImportError:  # pragma: no cover - runtime dependency guard
    _bleak = None


SampleCallback = Callable[[DecodedSample], Awaitable[None] | None]

SIM_DEVICE_NAME = "Veloroute Sim HT"
SIM_DEVICE_ADDRESS = "SIM:HT:00:00:00:01"

_BLE_COMPANY_IDS: dict[int, str] = {
    0x0087: "Garmin",
    0x00D2: "Wahoo Fitness",
    0x011F: "Tacx",
    0x04D8: "Elite",
}

_BRAND_HINTS: tuple[tuple[str, str], ...] = (
    ("wahoo", "Wahoo Fitness"),
    ("kickr", "Wahoo Fitness"),
    ("elite", "Elite"),
    ("direto", "Elite"),
    ("tacx", "Tacx"),
    ("garmin", "Garmin"),
    ("saris", "Saris"),
    ("stages", "Stages"),
)


def _resolve_manufacturer(
    name: str, manufacturer_data: Any | None
) -> str | None:
    if isinstance(manufacturer_data, dict) and manufacturer_data:
        for key in sorted(manufacturer_data.keys()):
            if isinstance(key, int):
                return _BLE_COMPANY_IDS.get(key, f"MFG 0x{key:04X}")
    lowered = name.lower()
    for hint, brand in _BRAND_HINTS:
        if hint in lowered:
            return brand
    return None


@dataclass(frozen=True)
class ScannedDevice:
    name: str
    address: str
    rssi: int
    has_ftms: bool
    manufacturer: str | None = None


def _ensure_bleak_available() -> None:
    if _bleak is None:
        raise RuntimeError("bleak is not installed. Run: pip install -e .")


class FTMSClient:
    """Scan, connect and subscribe to a trainer's Indoor Bike Data stream.

    With ``simulate_ht`` no BLE stack is touched: a synthetic trainer encodes
    Indoor Bike Data records and feeds them through the same decoder.
    """

    def __init__(
        self,
        debug_ftms: bool = False,
        simulate_ht: bool = False,
        ble_pair: bool = True,
        sim_interval_sec: float = 1.0,
    ) -> None:
        self._client: Optional[Any] = None
        self._sample_callback: Optional[SampleCallback] = None
        self._debug_ftms = debug_ftms
        self._simulate_ht = simulate_ht
        self._ble_pair = ble_pair
        self._scan_cache: dict[str, Any] = {}
        self._services_discovered = False
        self._sim_connected = False
        self._sim_interval_sec = sim_interval_sec
        self._sim_task: Optional[asyncio.Task[None]] = None
        self._callback_tasks: set[asyncio.Task[Any]] = set()
        self._sim_rng = random.Random(20260225)
        self._sim_tick = 0
        self._sim_mode: str = "steady"
        self._sim_mode_remaining = 0
        self._sim_power = 120.0
        self._sim_cadence = 85.0
        self._sim_speed = 24.0
        self._sim_heart_rate = 105.0
        self._sim_distance_m = 0.0

    @property
    def is_connected(self) -> bool:
        if self._simulate_ht:
            return self._sim_connected
        return bool(self._client and self._client.is_connected)

    async def scan(self, timeout: float = 5.0) -> list[ScannedDevice]:
        if self._simulate_ht:
            return [
                ScannedDevice(
                    name=SIM_DEVICE_NAME,
                    address=SIM_DEVICE_ADDRESS,
                    rssi=-30,
                    has_ftms=True,
                    manufacturer="Veloroute",
                )
            ]
        _ensure_bleak_available()
        discovered = await _bleak.BleakScanner.discover(
            timeout=timeout, return_adv=True
        )
        devices: list[ScannedDevice] = []
        self._scan_cache = {}

        for _, (device, adv_data) in discovered.items():
            uuids = {u.lower() for u in (adv_data.service_uuids or [])}
            self._scan_cache[device.address.lower()] = device
            devices.append(
                ScannedDevice(
                    name=device.name or "Unknown",
                    address=device.address,
                    rssi=adv_data.rssi,
                    has_ftms=FTMS_SERVICE_UUID in uuids,
                    manufacturer=_resolve_manufacturer(
                        device.name or "",
                        getattr(adv_data, "manufacturer_data", None),
                    ),
                )
            )

        devices.sort(key=lambda d: d.rssi, reverse=True)
        return devices

    async def connect(self, target: Optional[str] = None, timeout: float = 25.0) -> str:
        """Connect to a specific BLE address/name, or the first FTMS capable device."""
        if self._simulate_ht:
            self._sim_connected = True
            return f"{SIM_DEVICE_NAME} ({SIM_DEVICE_ADDRESS})"

        _ensure_bleak_available()

        device = await self._resolve_device(target=target, timeout=timeout)
        # Trainers that stopped advertising are still reachable by address on BlueZ.
        if device is None and target and target != "auto":
            device = target
        if device is None:
            raise RuntimeError("No FTMS device found")

        client = self._build_bleak_client(device, pair=self._ble_pair)
        try:
            await client.connect(timeout=timeout)
        except Exception:
            # Some backends refuse pairing from the API; retry a plain connect.
            if not self._ble_pair:
                raise
            with contextlib.suppress(Exception):
                await client.disconnect()
            client = self._build_bleak_client(device, pair=False)
            await client.connect(timeout=timeout)
        self._client = client
        await self._ensure_services_discovered()

        if isinstance(device, str):
            return f"Unknown ({device})"
        return f"{device.name or 'Unknown'} ({device.address})"

    def _build_bleak_client(self, device: Any, *, pair: bool) -> Any:
        if pair:
            try:
                return _bleak.BleakClient(device, pair=True)
            except TypeError:
                if self._debug_ftms:
                    print("[BLE] pair=True unsupported by current backend, using plain connect")
        return _bleak.BleakClient(device)

    async def disconnect(self) -> None:
        self._sample_callback = None
        if self._simulate_ht:
            self._sim_connected = False
            if self._sim_task is not None:
                self._sim_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._sim_task
                self._sim_task = None
            return

        if self._client:
            with contextlib.suppress(Exception):
                await self._client.stop_notify(INDOOR_BIKE_DATA_CHAR_UUID)
            await self._client.disconnect()
            self._client = None
            self._services_discovered = False

    async def subscribe_indoor_bike_data(self, callback: SampleCallback) -> None:
        if self._simulate_ht:
            if not self._sim_connected:
                raise RuntimeError("Not connected")
            self._sample_callback = callback
            if self._sim_task is None or self._sim_task.done():
                self._sim_task = asyncio.create_task(self._simulation_loop())
            return

        if not self._client:
            raise RuntimeError("Not connected")

        await self._ensure_services_discovered()
        self._sample_callback = callback
        await self._client.start_notify(
            INDOOR_BIKE_DATA_CHAR_UUID,
            self._handle_indoor_bike_data_notification,
        )
        if self._debug_ftms:
            print("[FTMS] subscribed to Indoor Bike Data (0x2AD2)")

    async def _ensure_services_discovered(self) -> None:
        if not self._client or self._services_discovered:
            return
        if hasattr(self._client, "get_services"):
            await self._client.get_services()
        else:
            _ = self._client.services
        self._services_discovered = True

    async def _resolve_device(
        self, target: Optional[str], timeout: float
    ) -> Optional[Any]:
        if target and target != "auto":
            cached = self._scan_cache.get(target.lower())
            if cached is not None:
                return cached
            return await _bleak.BleakScanner.find_device_by_filter(
                lambda d, _: (d.address.lower() == target.lower())
                or ((d.name or "").lower() == target.lower()),
                timeout=timeout,
            )

        discovered = await _bleak.BleakScanner.discover(
            timeout=timeout, return_adv=True
        )
        for _, (device, adv_data) in discovered.items():
            uuids = {u.lower() for u in (adv_data.service_uuids or [])}
            if FTMS_SERVICE_UUID in uuids:
                return device
        return None

    def _handle_indoor_bike_data_notification(
        self, _sender: object, data: bytearray
    ) -> None:
        payload = bytes(data)
        sample = decode_indoor_bike_data(payload)
        if self._debug_ftms:
            raw_flags = struct.unpack_from("<H", payload, 0)[0] if len(payload) >= 2 else 0
            fields_repr = ",".join(describe_flags(raw_flags)) or "-"
            print(
                f"[FTMS] flags=0x{raw_flags:04X} [{fields_repr}] "
                f"payload={payload.hex(' ')} sample={sample}"
            )
        self._publish(sample)

    def _publish(self, sample: DecodedSample) -> None:
        if self._sample_callback is None:
            return
        maybe_coro = self._sample_callback(sample)
        if asyncio.iscoroutine(maybe_coro):
            task = asyncio.create_task(maybe_coro)
            self._callback_tasks.add(task)
            task.add_done_callback(self._callback_tasks.discard)

    def _next_sim_record(self) -> bytes:
        self._sim_tick += 1
        if self._sim_mode_remaining <= 0:
            roll = self._sim_rng.random()
            if roll < 0.12:
                self._sim_mode = "surge"
                self._sim_mode_remaining = self._sim_rng.randint(8, 20)
            elif roll < 0.24:
                self._sim_mode = "recovery"
                self._sim_mode_remaining = self._sim_rng.randint(8, 18)
            else:
                self._sim_mode = "steady"
                self._sim_mode_remaining = self._sim_rng.randint(18, 45)
        self._sim_mode_remaining -= 1

        mode_offset = 0.0
        if self._sim_mode == "surge":
            mode_offset = self._sim_rng.uniform(20.0, 55.0)
        elif self._sim_mode == "recovery":
            mode_offset = -self._sim_rng.uniform(15.0, 40.0)

        periodic = 10.0 * math.sin(self._sim_tick / 5.0) + 6.0 * math.sin(self._sim_tick / 11.0)
        power_target = max(
            50.0,
            min(600.0, 150.0 + mode_offset + periodic + self._sim_rng.uniform(-6.0, 6.0)),
        )
        self._sim_power += max(-30.0, min(30.0, (power_target - self._sim_power) * 0.30))

        cadence_target = 70.0 + (self._sim_power / 8.8) + self._sim_rng.uniform(-6.0, 6.0)
        speed_target = 14.0 + (self._sim_power / 11.0) + self._sim_rng.uniform(-2.2, 2.2)
        heart_rate_target = 80.0 + (self._sim_power / 3.0)
        self._sim_cadence += max(-5.5, min(5.5, (cadence_target - self._sim_cadence) * 0.55))
        self._sim_speed += max(-2.8, min(2.8, (speed_target - self._sim_speed) * 0.40))
        self._sim_heart_rate += max(-3.0, min(3.0, (heart_rate_target - self._sim_heart_rate) * 0.10))

        self._sim_cadence = max(45.0, min(128.0, self._sim_cadence))
        self._sim_speed = max(7.0, min(60.0, self._sim_speed))
        self._sim_heart_rate = max(60.0, min(195.0, self._sim_heart_rate))
        self._sim_distance_m += self._sim_speed * self._sim_interval_sec / 3.6

        return encode_indoor_bike_data(
            {
                "speed": round(self._sim_speed, 2),
                "cadence": round(self._sim_cadence * 2) / 2,
                "distance": int(self._sim_distance_m),
                "power": int(round(self._sim_power)),
                "heartRate": int(round(self._sim_heart_rate)),
                "ElapsedTime": int(self._sim_tick * self._sim_interval_sec) & 0xFFFF,
            }
        )

    async def _simulation_loop(self) -> None:
        while self._sim_connected:
            payload = self._next_sim_record()
            if self._debug_ftms:
                print(f"[SIM-HT] payload={payload.hex(' ')}")
            self._handle_indoor_bike_data_notification(self, bytearray(payload))
            await asyncio.sleep(self._sim_interval_sec)
