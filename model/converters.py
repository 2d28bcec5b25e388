"""
Decibel <-> raw fixed-point conversion for mix-bus volume values.

The device stores gain as an unsigned fixed-point multiplier where 0x01000000 is
unity (0 dB). -100 dB and below is treated as silence (raw 0).
"""
import math

DB_0_RAW_VALUE: int = 16777216  # 0x01000000
DB_FLOOR: float = -100.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return int(math.floor(value + 0.5))


def db_to_hex(db: float) -> int:
    """Convert a decibel value to the device's raw integer value."""
    if db <= DB_FLOOR:
        return 0
    return max(0, round_half_up(DB_0_RAW_VALUE * math.pow(10.0, db / 20.0)))


def hex_to_db(raw: int) -> float:
    """Convert a raw device value to decibels, rounded to one decimal place."""
    if raw <= 0:
        return DB_FLOOR
    return math.floor(20.0 * math.log10(raw / DB_0_RAW_VALUE) * 10.0 + 0.5) / 10.0
