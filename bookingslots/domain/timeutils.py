"""
Minute-of-day arithmetic shared by the slot generator and the overlap validator.

Times cross the package boundary as ``"HH:MM"`` strings and are converted
exactly once into integers counting minutes since midnight.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .exceptions import InvalidDurationError, InvalidTimeError

if TYPE_CHECKING:
    from .models import TimeOfDay


MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """
    Check whether two half-open intervals ``[a_start, a_end)`` and
    ``[b_start, b_end)`` share at least one minute.

    Back-to-back intervals (``a_end == b_start``) do not overlap.
    """
    return a_start < b_end and a_end > b_start


def parse_hh_mm(value: str) -> tuple[int, int]:
    """
    Parse an ``"HH:MM"`` string into an ``(hour, minute)`` pair.

    ``"HH:MM:SS"`` is accepted as long as the seconds are zero, which is how
    SQL ``TIME`` columns usually come back.

    Raises:
        InvalidTimeError: If the value is malformed or out of range
    """
    if not isinstance(value, str):
        raise InvalidTimeError(f"Time must be a string in HH:MM format, got {value!r}")

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeError(f"Invalid time '{value}': expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    seconds = match.group(3)

    if not 0 <= hour <= 23:
        raise InvalidTimeError(f"Hour must be between 0 and 23, got {hour}")
    if not 0 <= minute <= 59:
        raise InvalidTimeError(f"Minute must be between 0 and 59, got {minute}")
    if seconds is not None and int(seconds) != 0:
        raise InvalidTimeError(f"Invalid time '{value}': seconds are not supported")

    return hour, minute


def to_minutes(value: "TimeOfDay | str") -> int:
    """Convert a TimeOfDay (or an ``"HH:MM"`` string) to minutes since midnight."""
    if isinstance(value, str):
        hour, minute = parse_hh_mm(value)
        return hour * 60 + minute
    return value.hour * 60 + value.minute


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as ``"HH:MM"``. 1440 renders as ``"24:00"``."""
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Minutes must be between 0 and {MINUTES_PER_DAY}, got {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def from_minutes(minutes: int) -> "TimeOfDay":
    """Convert minutes since midnight back to a TimeOfDay."""
    from .models import TimeOfDay

    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes must be between 0 and {MINUTES_PER_DAY - 1}, got {minutes}")
    return TimeOfDay(hour=minutes // 60, minute=minutes % 60)


def validate_duration(duration_minutes) -> int:
    """
    Ensure a service duration is a positive whole number of minutes.

    Raises:
        InvalidDurationError: For non-numeric, fractional, zero or negative values
    """
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise InvalidDurationError(
            f"Duration must be a whole number of minutes, got {duration_minutes!r}"
        )
    if duration_minutes <= 0:
        raise InvalidDurationError(f"Duration must be greater than zero, got {duration_minutes}")
    return duration_minutes
