"""Conversion between minutes-from-midnight and wall-clock times.

Appointments are requested as an integer minute of the day (0-1439) and
stored as ``TIME`` columns. The canonical string form is ``"HH:MM"``.
"""

import re
from datetime import time

from app.core.exceptions import InvalidFormatError, OutOfRangeError

MINUTES_PER_DAY = 1440
LAST_MINUTE = MINUTES_PER_DAY - 1

_WALL_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _check_minutes(minutes: int) -> int:
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise OutOfRangeError(f"Minutes must be an integer, got {minutes!r}")
    if minutes < 0 or minutes > LAST_MINUTE:
        raise OutOfRangeError(f"Minutes must be between 0 and {LAST_MINUTE}, got {minutes}")
    return minutes


def encode(minutes: int) -> str:
    """
    Format a minute of the day as ``"HH:MM"``.

    Raises:
        OutOfRangeError: If minutes is outside [0, 1439]
    """
    _check_minutes(minutes)
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def decode(value: str | time) -> int:
    """
    Parse a wall-clock time into minutes from midnight.

    Accepts a canonical ``"HH:MM"`` string or a ``datetime.time`` without
    seconds (as returned by the database).

    Raises:
        InvalidFormatError: If the value is not a parseable wall-clock time
    """
    if isinstance(value, time):
        return from_time(value)
    if not isinstance(value, str):
        raise InvalidFormatError(f"Expected a time string, got {value!r}")

    match = _WALL_CLOCK_RE.match(value)
    if match is None:
        raise InvalidFormatError(f"Invalid wall-clock time {value!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def to_time(minutes: int) -> time:
    """Convert a minute of the day to a ``datetime.time``."""
    _check_minutes(minutes)
    hours, mins = divmod(minutes, 60)
    return time(hours, mins)


def from_time(value: time) -> int:
    """Convert a ``datetime.time`` to minutes, rejecting sub-minute precision."""
    if value.second or value.microsecond:
        raise InvalidFormatError(f"Time {value.isoformat()} has sub-minute precision")
    return value.hour * 60 + value.minute
