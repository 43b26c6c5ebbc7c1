"""
Core business logic for calculating bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from datetime import date as Date
from typing import Iterable, List, Optional, Sequence

from .models import Interval, OccupiedInterval, Slot, SlotRequest, TimeOffWindow
from .timeutils import format_minutes, overlaps, validate_duration

DEFAULT_STEP_MINUTES = 30
DEFAULT_TIMEZONE = "UTC"


class SlotCalculator:
    """
    Generates the slot grid for a single day.

    Algorithm:
    1. No working hours means the day is closed: return nothing
    2. Step a cursor from opening time in fixed increments (30 minutes),
       independent of the service duration
    3. Every candidate ``[cursor, cursor + duration)`` that still fits
       before closing time is emitted
    4. A candidate is unavailable if it overlaps an occupied interval or a
       time-off window that applies to the requested scope

    Unavailable candidates are kept in the output so a slot picker can show
    them disabled.
    """

    def __init__(self, step_minutes: int = DEFAULT_STEP_MINUTES, timezone: str = DEFAULT_TIMEZONE):
        if step_minutes <= 0:
            raise ValueError(f"step_minutes must be greater than zero, got {step_minutes}")
        self.step_minutes = step_minutes
        self.timezone = timezone

    def generate_slots(
        self,
        working_hours: Optional[Interval],
        duration_minutes: int,
        occupied: Iterable[OccupiedInterval | Interval] = (),
        time_off: Iterable[TimeOffWindow] = (),
        date: Optional[Date] = None,
        staff_id: Optional[int] = None,
    ) -> List[Slot]:
        """
        Build the slot list for one day.

        Args:
            working_hours: Opening interval for the day, None when closed
            duration_minutes: Length of the service or package being booked
            occupied: Intervals of existing bookings on that date
            time_off: Time-off windows that may block candidates
            date: Calendar date used to anchor absolute time-off windows;
                required whenever an applicable window is passed
            staff_id: Staff member the grid is generated for, None for the business

        Returns:
            Slots in ascending time order

        Raises:
            InvalidDurationError: If duration_minutes is not a positive integer
            ValueError: If applicable time off is given without a date
        """
        if working_hours is None:
            return []

        validate_duration(duration_minutes)

        busy = [self._as_interval(item) for item in occupied]
        blocking_time_off = self._applicable_time_off(time_off, staff_id)
        if blocking_time_off and date is None:
            raise ValueError("A date is required to evaluate time-off windows")

        open_minutes = working_hours.start_minutes
        close_minutes = working_hours.end_minutes

        slots: List[Slot] = []
        cursor = open_minutes

        while cursor + duration_minutes <= close_minutes:
            candidate = Interval.from_minutes(cursor, cursor + duration_minutes)

            is_booked = any(
                overlaps(candidate.start_minutes, candidate.end_minutes, b.start_minutes, b.end_minutes)
                for b in busy
            )
            is_time_off = any(
                window.blocks(date, candidate, self.timezone) for window in blocking_time_off
            )

            slots.append(Slot(time=candidate.start, available=not is_booked and not is_time_off))
            cursor += self.step_minutes

        return slots

    def generate_for_request(self, request: SlotRequest) -> List[Slot]:
        """Run :meth:`generate_slots` for a bundled SlotRequest."""
        return self.generate_slots(
            working_hours=request.working_hours,
            duration_minutes=request.duration_minutes,
            occupied=request.occupied,
            time_off=request.time_off,
            date=request.date,
            staff_id=request.staff_id,
        )

    @staticmethod
    def _as_interval(item: OccupiedInterval | Interval) -> Interval:
        if isinstance(item, OccupiedInterval):
            return item.interval
        return item

    @staticmethod
    def _applicable_time_off(
        time_off: Iterable[TimeOffWindow],
        staff_id: Optional[int],
    ) -> Sequence[TimeOffWindow]:
        return [window for window in time_off if window.applies_to(staff_id)]


def generate_slots(
    working_hours: Optional[Interval],
    duration_minutes: int,
    occupied: Iterable[OccupiedInterval | Interval] = (),
    time_off: Iterable[TimeOffWindow] = (),
    date: Optional[Date] = None,
    staff_id: Optional[int] = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> List[Slot]:
    """Generate slots with the default 30-minute grid."""
    return SlotCalculator(timezone=timezone).generate_slots(
        working_hours=working_hours,
        duration_minutes=duration_minutes,
        occupied=occupied,
        time_off=time_off,
        date=date,
        staff_id=staff_id,
    )


def describe_slots(slots: Sequence[Slot]) -> str:
    """Compact one-line rendering, e.g. ``09:00 10:00x 11:00`` (x = unavailable)."""
    return " ".join(
        f"{format_minutes(slot.time.minutes)}{'' if slot.available else 'x'}" for slot in slots
    )
