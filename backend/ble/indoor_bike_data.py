"""FTMS Indoor Bike Data (0x2AD2) record decoding.

A record starts with a little-endian 16-bit flags field. The flags announce
which of the optional fields follow, always in the canonical order of
``INDOOR_BIKE_DATA_FIELDS``. Trainers routinely truncate trailing fields, so
decoding stops quietly at the first field that does not fit in the payload.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from backend.ble.constants import (
    BIT_AVERAGE_CADENCE_PRESENT,
    BIT_AVERAGE_POWER_PRESENT,
    BIT_AVERAGE_SPEED_PRESENT,
    BIT_ELAPSED_TIME_PRESENT,
    BIT_EXPENDED_ENERGY_PRESENT,
    BIT_HEART_RATE_PRESENT,
    BIT_INSTANTANEOUS_CADENCE_PRESENT,
    BIT_INSTANTANEOUS_POWER_PRESENT,
    BIT_METABOLIC_EQUIVALENT_PRESENT,
    BIT_MORE_DATA,
    BIT_REMAINING_TIME_PRESENT,
    BIT_RESISTANCE_LEVEL_PRESENT,
    BIT_TOTAL_DISTANCE_PRESENT,
)


DecodedSample = dict[str, float]


class FieldKind(Enum):
    UINT8 = ("<B", 1)
    UINT16 = ("<H", 2)
    SINT16 = ("<h", 2)
    UINT24 = (None, 3)

    def __init__(self, fmt: Optional[str], size: int) -> None:
        self.fmt = fmt
        self.size = size


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    resolution: float
    unit: str
    bit: Optional[int] = None
    inverted: bool = False
    short: Optional[str] = None

    @property
    def size(self) -> int:
        return self.kind.size

    @property
    def output_name(self) -> str:
        return self.short or self.name

    def is_present(self, flags: int) -> bool:
        if self.bit is None:
            return True
        bit_set = (flags >> self.bit) & 1 == 1
        return not bit_set if self.inverted else bit_set


FLAGS_FIELD = FieldSpec("Flags", FieldKind.UINT16, 1, "bit")

INDOOR_BIKE_DATA_FIELDS: tuple[FieldSpec, ...] = (
    FLAGS_FIELD,
    FieldSpec(
        "InstantaneousSpeed",
        FieldKind.UINT16,
        0.01,
        "kph",
        bit=BIT_MORE_DATA,
        inverted=True,
        short="speed",
    ),
    FieldSpec("AverageSpeed", FieldKind.UINT16, 0.01, "kph", bit=BIT_AVERAGE_SPEED_PRESENT),
    FieldSpec(
        "InstantaneousCadence",
        FieldKind.UINT16,
        0.5,
        "rpm",
        bit=BIT_INSTANTANEOUS_CADENCE_PRESENT,
        short="cadence",
    ),
    FieldSpec("AverageCadence", FieldKind.UINT16, 0.5, "rpm", bit=BIT_AVERAGE_CADENCE_PRESENT),
    FieldSpec(
        "TotalDistance",
        FieldKind.UINT24,
        1,
        "m",
        bit=BIT_TOTAL_DISTANCE_PRESENT,
        short="distance",
    ),
    FieldSpec("ResistanceLevel", FieldKind.UINT16, 1, "unitless", bit=BIT_RESISTANCE_LEVEL_PRESENT),
    FieldSpec(
        "InstantaneousPower",
        FieldKind.UINT16,
        1,
        "W",
        bit=BIT_INSTANTANEOUS_POWER_PRESENT,
        short="power",
    ),
    FieldSpec("AveragePower", FieldKind.UINT16, 1, "W", bit=BIT_AVERAGE_POWER_PRESENT),
    # One flag bit announces all three energy fields.
    FieldSpec("TotalEnergy", FieldKind.SINT16, 1, "kcal", bit=BIT_EXPENDED_ENERGY_PRESENT),
    FieldSpec("EnergyPerHour", FieldKind.SINT16, 1, "kcal", bit=BIT_EXPENDED_ENERGY_PRESENT),
    FieldSpec("EnergyPerMinute", FieldKind.UINT8, 1, "kcal", bit=BIT_EXPENDED_ENERGY_PRESENT),
    FieldSpec(
        "HeartRate",
        FieldKind.UINT8,
        1,
        "bpm",
        bit=BIT_HEART_RATE_PRESENT,
        short="heartRate",
    ),
    FieldSpec("MetabolicEquivalent", FieldKind.UINT8, 1, "me", bit=BIT_METABOLIC_EQUIVALENT_PRESENT),
    FieldSpec("ElapsedTime", FieldKind.UINT16, 1, "s", bit=BIT_ELAPSED_TIME_PRESENT),
    FieldSpec("RemainingTime", FieldKind.UINT16, 1, "s", bit=BIT_REMAINING_TIME_PRESENT),
)


def _read_raw(kind: FieldKind, payload: bytes, offset: int) -> int:
    if kind is FieldKind.UINT24:
        return payload[offset] + payload[offset + 1] * 256 + payload[offset + 2] * 65536
    assert kind.fmt is not None
    return struct.unpack_from(kind.fmt, payload, offset)[0]


def read_field(field: FieldSpec, payload: bytes, offset: int) -> float:
    """Read one field at ``offset`` and scale it by its resolution."""
    return _read_raw(field.kind, payload, offset) * field.resolution


def decode_indoor_bike_data(payload: bytes) -> DecodedSample:
    """Decode an Indoor Bike Data record into ``{metric name: value}``.

    Only fields present in the record are returned; a missing key means the
    value is unknown, not zero. Short records yield partial results.
    """
    data = bytes(payload)
    flags = 0
    cursor = 0
    sample: DecodedSample = {}

    for field in INDOOR_BIKE_DATA_FIELDS:
        if not field.is_present(flags):
            continue
        # Absent fields occupy no bytes, so only a present field can run short.
        if cursor + field.size > len(data):
            break

        if field is FLAGS_FIELD:
            flags = _read_raw(field.kind, data, cursor)
        else:
            sample[field.output_name] = read_field(field, data, cursor)
        cursor += field.size

    return sample


def encode_indoor_bike_data(values: Mapping[str, float]) -> bytes:
    """Build a record carrying ``values`` (keyed like the decoder output).

    Used by the simulated trainer so synthetic metrics travel through the
    same decoder as real notifications.
    """
    flags = 0
    for field in INDOOR_BIKE_DATA_FIELDS[1:]:
        assert field.bit is not None
        wanted = field.output_name in values
        if field.bit == BIT_EXPENDED_ENERGY_PRESENT:
            wanted = any(
                f.output_name in values
                for f in INDOOR_BIKE_DATA_FIELDS
                if f.bit == BIT_EXPENDED_ENERGY_PRESENT
            )
        if wanted != field.inverted:
            flags |= 1 << field.bit

    out = bytearray(struct.pack("<H", flags))
    for field in INDOOR_BIKE_DATA_FIELDS[1:]:
        if not field.is_present(flags):
            continue
        raw = int(round(values.get(field.output_name, 0) / field.resolution))
        if field.kind is FieldKind.UINT24:
            out += (raw & 0xFFFFFF).to_bytes(3, "little")
        else:
            assert field.kind.fmt is not None
            out += struct.pack(field.kind.fmt, raw)
    return bytes(out)


def describe_flags(flags: int) -> list[str]:
    """Names of the optional fields announced by ``flags``."""
    return [
        field.name
        for field in INDOOR_BIKE_DATA_FIELDS[1:]
        if field.is_present(flags)
    ]
