"""
Scope resolution for slot generation.

Picks the working hours that apply to a day (staff first, business as
fallback) and narrows time off and bookings down to the requested scope.
"""

from datetime import date as Date
from typing import Iterable, List, Optional

from pendulum import DateTime

from .models import Booking, Interval, OccupiedInterval, TimeOffWindow, WorkingHours


def day_of_week(day: Date) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    # date.weekday() is 0=Monday .. 6=Sunday
    return (day.weekday() + 1) % 7


def resolve_working_hours(
    schedule: Iterable[WorkingHours],
    day: Date,
    staff_id: Optional[int] = None,
) -> Optional[Interval]:
    """
    Find the working hours for ``day``.

    When a staff member is given, their own active hours win; otherwise the
    business-wide hours for that weekday are used verbatim. Returns None when
    nobody works that day.
    """
    weekday = day_of_week(day)
    business_hours: Optional[Interval] = None
    staff_hours: Optional[Interval] = None

    for entry in schedule:
        if not entry.is_active or entry.day_of_week != weekday:
            continue
        if entry.staff_id is None:
            business_hours = entry.interval
        elif staff_id is not None and entry.staff_id == staff_id:
            staff_hours = entry.interval

    return staff_hours or business_hours


def time_off_for(
    windows: Iterable[TimeOffWindow],
    day: Date,
    staff_id: Optional[int],
    timezone: str,
) -> List[TimeOffWindow]:
    """
    Time off that touches ``day`` and applies to the scope.

    Without a staff member only business-wide windows are returned.
    """
    return [
        window for window in windows
        if window.touches_date(day, timezone) and window.applies_to(staff_id)
    ]


def occupied_for(
    bookings: Iterable[Booking],
    day: Date,
    staff_id: Optional[int] = None,
    now: Optional[DateTime] = None,
) -> List[OccupiedInterval]:
    """
    Intervals blocked by bookings on ``day``.

    Cancelled bookings and pending bookings whose payment window has passed
    at ``now`` are left out. A staff-scoped query only sees that staff
    member's bookings; a business-wide query sees all of them.
    """
    return [
        booking.to_occupied()
        for booking in bookings_in_scope(bookings, day, staff_id)
        if booking.occupies(now)
    ]


def bookings_in_scope(
    bookings: Iterable[Booking],
    day: Date,
    staff_id: Optional[int] = None,
) -> List[Booking]:
    """Bookings on ``day`` belonging to the staff member, or all when staff_id is None."""
    return [
        booking for booking in bookings
        if booking.date == day and (staff_id is None or booking.staff_id == staff_id)
    ]
