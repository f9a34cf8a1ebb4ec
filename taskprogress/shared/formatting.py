"""
Formatting helpers

Byte size, byte rate and duration codecs. Used to read sizes out of task
log text and to render report fields.
"""

import math
from decimal import Decimal, ROUND_HALF_UP

PLACEHOLDER = "—"

KIB = 1024
MIB = 1024 * 1024
GIB = 1024 * 1024 * 1024
TIB = 1024 * 1024 * 1024 * 1024

_SIZE_UNITS = ['B', 'KiB', 'MiB', 'GiB', 'TiB']

_UNIT_MULTIPLIERS = {
    'b': 1,
    'kib': KIB,
    'kb': KIB,
    'mib': MIB,
    'mb': MIB,
    'gib': GIB,
    'gb': GIB,
    'tib': TIB,
    'tb': TIB,
}


def to_fixed(value: float, digits: int) -> str:
    """Round half-up on the exact value of `value` and render `digits` decimals."""
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a progress bar expects: 0.05 -> 0.1, 2.5 -> 3."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def parse_size(value: str, unit: str) -> float:
    """
    Convert a size token read from log text into bytes.

    Args:
        value: Numeric literal, e.g. "12.5"
        unit: Unit as written in the log, e.g. "GiB" or "mb"

    Returns:
        Size in bytes. An unknown unit leaves the number unconverted.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    multiplier = _UNIT_MULTIPLIERS.get((unit or '').lower(), 1)
    return number * multiplier


def format_size(num_bytes: float) -> str:
    """Format a byte count with binary units, e.g. '1.5 GiB'."""
    if not num_bytes or num_bytes <= 0:
        return "0 B"
    value = float(num_bytes)
    index = 0
    while value >= 1024 and index < len(_SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    if index == 0:
        return f"{int(round_half_up(value))} B"
    text = to_fixed(value, 2)
    # Keep one or two decimals: 100.00 -> 100.0, 1.50 -> 1.5, 1.25 -> 1.25
    if text.endswith('0'):
        text = text[:-1]
    return f"{text} {_SIZE_UNITS[index]}"


def format_speed(bytes_per_sec: float) -> str:
    """Format a transfer rate, e.g. '112.4 MiB/s'."""
    if bytes_per_sec <= 0:
        return PLACEHOLDER
    if bytes_per_sec < MIB:
        return f"{to_fixed(bytes_per_sec / KIB, 1)} KiB/s"
    if bytes_per_sec < GIB:
        return f"{to_fixed(bytes_per_sec / MIB, 1)} MiB/s"
    return f"{to_fixed(bytes_per_sec / GIB, 1)} GiB/s"


def format_duration(seconds: float) -> str:
    """Format a duration: '42s', '3m 7s' or '2h 15m'."""
    if seconds < 0:
        return PLACEHOLDER
    if seconds < 60:
        return f"{int(round_half_up(seconds))}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m {int(round_half_up(seconds % 60))}s"
    return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"
