"""FTMS constants for the BLE Fitness Machine Service."""

from __future__ import annotations

FTMS_SERVICE_UUID = "00001826-0000-1000-8000-00805f9b34fb"
INDOOR_BIKE_DATA_CHAR_UUID = "00002ad2-0000-1000-8000-00805f9b34fb"

# Indoor Bike Data flag bit indexes (FTMS 4.9.1.1).
# Bit 0 is "More Data": instantaneous speed is present when it is CLEAR.
BIT_MORE_DATA = 0
BIT_AVERAGE_SPEED_PRESENT = 1
BIT_INSTANTANEOUS_CADENCE_PRESENT = 2
BIT_AVERAGE_CADENCE_PRESENT = 3
BIT_TOTAL_DISTANCE_PRESENT = 4
BIT_RESISTANCE_LEVEL_PRESENT = 5
BIT_INSTANTANEOUS_POWER_PRESENT = 6
BIT_AVERAGE_POWER_PRESENT = 7
BIT_EXPENDED_ENERGY_PRESENT = 8
BIT_HEART_RATE_PRESENT = 9
BIT_METABOLIC_EQUIVALENT_PRESENT = 10
BIT_ELAPSED_TIME_PRESENT = 11
BIT_REMAINING_TIME_PRESENT = 12
