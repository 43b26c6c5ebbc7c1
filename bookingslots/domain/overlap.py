"""
Write-time overlap validation.

The same half-open overlap primitive as the slot generator is used here, so
a slot shown as available is never rejected by this check unless another
booking landed in between.
"""

from typing import Iterable, List, Union

from .exceptions import InvalidTimeError
from .models import Booking, Interval, OccupiedInterval, TimeOfDay
from .timeutils import MINUTES_PER_DAY, overlaps, validate_duration

Existing = Union[Interval, OccupiedInterval, Booking]


def requested_interval(start_time: TimeOfDay | str, duration_minutes: int) -> Interval:
    """
    Derive the exact interval of a booking request.

    The duration must come from the service or package catalog, never from
    the client.
    """
    validate_duration(duration_minutes)
    if isinstance(start_time, str):
        start_time = TimeOfDay.parse(start_time)
    if start_time.minutes + duration_minutes >= MINUTES_PER_DAY:
        raise InvalidTimeError(
            f"A {duration_minutes} minute booking at {start_time} runs past midnight"
        )
    return Interval.starting_at(start_time, duration_minutes)


def _interval_of(item: Existing) -> Interval | None:
    if isinstance(item, Booking):
        return item.interval if item.occupies() else None
    if isinstance(item, OccupiedInterval):
        return item.interval
    return item


def find_conflicts(requested: Interval, existing: Iterable[Existing]) -> List[Existing]:
    """Return every entry of ``existing`` that overlaps ``requested``, in input order."""
    conflicts: List[Existing] = []
    for item in existing:
        interval = _interval_of(item)
        if interval is None:
            continue
        if overlaps(
            requested.start_minutes, requested.end_minutes,
            interval.start_minutes, interval.end_minutes,
        ):
            conflicts.append(item)
    return conflicts


def has_conflict(requested: Interval, existing: Iterable[Existing]) -> bool:
    """
    Check if the requested interval collides with any existing booking.

    ``existing`` must already be scoped to the same business, date and (when
    staff-assigned) staff member. Cancelled bookings are ignored.
    """
    return bool(find_conflicts(requested, existing))
