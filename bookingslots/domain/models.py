"""
Domain models for working hours, bookings and slot calculations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date as Date
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from .exceptions import InvalidTransitionError
from .timeutils import MINUTES_PER_DAY, format_minutes, overlaps, parse_hh_mm, to_minutes
from .timeutils import from_minutes as time_from_minutes


DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """
    A wall-clock time with minute precision (24h).

    Invariant: 0 <= hour <= 23 and 0 <= minute <= 59.
    """
    hour: int
    minute: int = 0

    def __post_init__(self):
        if not 0 <= self.hour <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValueError(f"Minute must be between 0 and 59, got {self.minute}")

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        """Parse an ``"HH:MM"`` string, raising InvalidTimeError on bad input."""
        hour, minute = parse_hh_mm(value)
        return cls(hour=hour, minute=minute)

    @property
    def minutes(self) -> int:
        """Minutes since midnight."""
        return to_minutes(self)

    def __str__(self) -> str:
        return format_minutes(self.minutes)


@dataclass(frozen=True)
class Interval:
    """
    A half-open ``[start, end)`` range of wall-clock time on one calendar date.

    Invariant: start must be before end.
    """
    start: TimeOfDay
    end: TimeOfDay

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def parse(cls, start: str, end: str) -> "Interval":
        """Build an interval from two ``"HH:MM"`` strings."""
        return cls(start=TimeOfDay.parse(start), end=TimeOfDay.parse(end))

    @classmethod
    def from_minutes(cls, start: int, end: int) -> "Interval":
        """Build an interval from minute-of-day integers."""
        if end >= MINUTES_PER_DAY:
            raise ValueError(f"Interval must end before midnight, got {format_minutes(end)}")
        return cls(start=time_from_minutes(start), end=time_from_minutes(end))

    @classmethod
    def starting_at(cls, start: TimeOfDay, duration_minutes: int) -> "Interval":
        """Build the interval that begins at ``start`` and lasts ``duration_minutes``."""
        return cls.from_minutes(start.minutes, start.minutes + duration_minutes)

    @property
    def start_minutes(self) -> int:
        return self.start.minutes

    @property
    def end_minutes(self) -> int:
        return self.end.minutes

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "Interval") -> bool:
        """Check if this interval overlaps with another."""
        return overlaps(self.start_minutes, self.end_minutes, other.start_minutes, other.end_minutes)

    def contains(self, other: "Interval") -> bool:
        """Check if ``other`` lies completely inside this interval."""
        return self.start_minutes <= other.start_minutes and other.end_minutes <= self.end_minutes

    def on(self, day: Date, timezone: str) -> tuple[DateTime, DateTime]:
        """Anchor the interval to a calendar date, returning absolute datetimes."""
        start = pendulum.datetime(
            day.year, day.month, day.day, self.start.hour, self.start.minute, tz=timezone
        )
        end = pendulum.datetime(
            day.year, day.month, day.day, self.end.hour, self.end.minute, tz=timezone
        )
        return start, end

    def __str__(self) -> str:
        return f"{self.start} - {self.end}"


@dataclass(frozen=True)
class WorkingHours:
    """
    Operating hours for one day of the week (0=Sunday .. 6=Saturday).

    ``staff_id`` is None for business-wide hours.
    """
    day_of_week: int
    interval: Interval
    staff_id: Optional[int] = None
    is_active: bool = True

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"Day of week must be between 0 and 6, got {self.day_of_week}")

    @property
    def start(self) -> TimeOfDay:
        return self.interval.start

    @property
    def end(self) -> TimeOfDay:
        return self.interval.end

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]


@dataclass(frozen=True)
class TimeOffWindow:
    """
    An absolute span of unavailability. May cross midnight or span several days.

    ``staff_id`` is None when the whole business is off.
    """
    start: DateTime
    end: DateTime
    staff_id: Optional[int] = None
    title: Optional[str] = None
    is_all_day: bool = False

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Time off start {self.start} must be before end {self.end}")

    def applies_to(self, staff_id: Optional[int]) -> bool:
        """
        Business-wide time off applies to everyone; staff time off only to
        that staff member.
        """
        return self.staff_id is None or self.staff_id == staff_id

    def touches_date(self, day: Date, timezone: str) -> bool:
        """Check if the window intersects the given calendar date at all."""
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=timezone)
        day_end = day_start.add(days=1)
        return self.start < day_end and self.end > day_start

    def blocks(self, day: Date, interval: Interval, timezone: str) -> bool:
        """Check if ``interval`` placed on ``day`` overlaps this window."""
        slot_start, slot_end = interval.on(day, timezone)
        return slot_start < self.end and slot_end > self.start


@dataclass(frozen=True)
class OccupiedInterval:
    """The time range of an existing, non-cancelled booking on one date."""
    interval: Interval
    staff_id: Optional[int] = None

    def overlaps(self, other: Interval) -> bool:
        return self.interval.overlaps(other)


@dataclass(frozen=True)
class Slot:
    """One candidate start time on the slot grid."""
    time: TimeOfDay
    available: bool

    def to_dict(self) -> Dict[str, object]:
        """Serialize using the ``"HH:MM"`` boundary convention."""
        return {"time": str(self.time), "available": self.available}


@dataclass(frozen=True)
class SlotRequest:
    """Everything the slot generator needs for a single day."""
    date: Date
    duration_minutes: int
    working_hours: Optional[Interval]
    occupied: Sequence[OccupiedInterval] = ()
    time_off: Sequence[TimeOffWindow] = ()
    staff_id: Optional[int] = None


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING_PAYMENT: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


@dataclass
class Booking:
    """
    An appointment held by the booking workflow.

    Only bookings that are not cancelled occupy their interval. Pending
    bookings occupy it until their payment window runs out.
    """
    business_id: int
    date: Date
    interval: Interval
    staff_id: Optional[int] = None
    status: BookingStatus = BookingStatus.PENDING_PAYMENT
    id: Optional[int] = None
    service: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    payment_expires_at: Optional[DateTime] = None
    cancelled_at: Optional[DateTime] = None
    cancellation_reason: Optional[str] = None
    history: List[BookingStatus] = field(default_factory=list)

    @property
    def start_time(self) -> TimeOfDay:
        return self.interval.start

    @property
    def end_time(self) -> TimeOfDay:
        return self.interval.end

    def is_payment_expired(self, now: DateTime) -> bool:
        return (
            self.status == BookingStatus.PENDING_PAYMENT
            and self.payment_expires_at is not None
            and self.payment_expires_at < now
        )

    def occupies(self, now: Optional[DateTime] = None) -> bool:
        """
        Check if this booking blocks its interval.

        Without ``now`` only the status is considered.
        """
        if self.status == BookingStatus.CANCELLED:
            return False
        if now is not None and self.is_payment_expired(now):
            return False
        return True

    def transition_to(self, status: BookingStatus) -> None:
        """Move to a new status, rejecting transitions the lifecycle does not allow."""
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot move booking {self.id} from {self.status.value} to {status.value}"
            )
        self.history.append(self.status)
        self.status = status

    def to_occupied(self) -> OccupiedInterval:
        return OccupiedInterval(interval=self.interval, staff_id=self.staff_id)
