"""
Application services for listing slots and creating bookings.

The services fetch schedule data through a repository protocol and delegate
the actual availability decisions to the domain layer (``SlotCalculator``
and the overlap validator). Persistence stays behind the protocol so the
in-memory adapter and tests can stand in for a database.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date as Date
from typing import Callable, Dict, List, Optional, Protocol, Tuple

import pendulum
from pendulum import DateTime

from ..domain.availability import bookings_in_scope, occupied_for, resolve_working_hours, time_off_for
from ..domain.exceptions import ClosedDayError, OutsideWorkingHoursError, SlotConflictError
from ..domain.models import Booking, BookingStatus, Interval, Slot, TimeOfDay, TimeOffWindow, WorkingHours
from ..domain.overlap import find_conflicts, requested_interval
from ..domain.slot_calculator import SlotCalculator, describe_slots
from ..domain.timeutils import validate_duration

logger = logging.getLogger(__name__)

CLOSED_MESSAGE = "Closed on this day"
STAFF_UNAVAILABLE_MESSAGE = "Staff not available on this day"
PAYMENT_EXPIRED_REASON = "Payment expired - booking not completed within time limit"
DEFAULT_PAYMENT_EXPIRY_MINUTES = 30

LockKey = Tuple[int, Optional[int], Date]


class BookingRepositoryProtocol(Protocol):
    """Protocol describing the persistence behaviour needed by the services."""

    async def get_working_hours(self, business_id: int) -> List[WorkingHours]:
        """Return all weekly working-hour rows (business and staff) of a business."""

    async def get_time_off(self, business_id: int, start: DateTime, end: DateTime) -> List[TimeOffWindow]:
        """Return time-off windows intersecting ``[start, end]``."""

    async def get_bookings(self, business_id: int, day: Date) -> List[Booking]:
        """Return every booking of the business on ``day``, any status."""

    async def get_pending_bookings(self, business_id: int) -> List[Booking]:
        """Return bookings still waiting for payment."""

    async def add_booking(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with its id set."""

    async def save_booking(self, booking: Booking) -> Booking:
        """Persist changes to an existing booking."""


@dataclass
class SlotsResult:
    """Slot listing plus the reason when the list is empty because nobody works."""
    slots: List[Slot]
    message: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.message is not None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {"slots": [slot.to_dict() for slot in self.slots]}
        if self.message:
            data["message"] = self.message
        return data


@dataclass
class BookingRequest:
    """A customer's booking submission after catalog lookup."""
    business_id: int
    date: Date
    start_time: TimeOfDay | str
    duration_minutes: int
    staff_id: Optional[int] = None
    service: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None


class AvailabilityService:
    """Builds the slot list a customer picks from."""

    def __init__(
        self,
        repository: BookingRepositoryProtocol,
        slot_calculator: SlotCalculator,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._repository = repository
        self._slot_calculator = slot_calculator
        self._clock = clock or (lambda: pendulum.now(slot_calculator.timezone))

    @property
    def timezone(self) -> str:
        return self._slot_calculator.timezone

    async def get_slots(
        self,
        *,
        business_id: int,
        day: Date,
        duration_minutes: int,
        staff_id: Optional[int] = None,
        now: Optional[DateTime] = None,
    ) -> SlotsResult:
        """
        Fetch hours, bookings and time off for ``day`` and generate slots.

        Pending bookings whose payment window already passed at ``now`` are
        not treated as occupied, even if nobody has cancelled them yet.
        """
        validate_duration(duration_minutes)
        now = now or self._clock()

        schedule = await self._repository.get_working_hours(business_id)
        hours = resolve_working_hours(schedule, day, staff_id)

        if hours is None:
            message = STAFF_UNAVAILABLE_MESSAGE if staff_id is not None else CLOSED_MESSAGE
            return SlotsResult(slots=[], message=message)

        bookings = await self._repository.get_bookings(business_id, day)
        occupied = occupied_for(bookings, day, staff_id, now)

        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        windows = await self._repository.get_time_off(business_id, day_start, day_start.add(days=1))
        time_off = time_off_for(windows, day, staff_id, self.timezone)

        slots = self._slot_calculator.generate_slots(
            working_hours=hours,
            duration_minutes=duration_minutes,
            occupied=occupied,
            time_off=time_off,
            date=day,
            staff_id=staff_id,
        )

        logger.debug(
            "Slots for business %s staff %s on %s: %s",
            business_id, staff_id, day, describe_slots(slots),
        )
        return SlotsResult(slots=slots)


class BookingService:
    """
    Creates bookings and drives their lifecycle.

    The conflict re-check and the insert run under one lock per
    ``(business_id, staff_id, date)`` so two overlapping requests for the same
    key cannot both succeed.
    """

    def __init__(
        self,
        repository: BookingRepositoryProtocol,
        timezone: str = "UTC",
        payment_expiry_minutes: int = DEFAULT_PAYMENT_EXPIRY_MINUTES,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._repository = repository
        self.timezone = timezone
        self.payment_expiry_minutes = payment_expiry_minutes
        self._clock = clock or (lambda: pendulum.now(timezone))
        self._locks: Dict[LockKey, asyncio.Lock] = {}
        self._lock_users: Dict[LockKey, int] = {}

    @asynccontextmanager
    async def _locked(self, business_id: int, staff_id: Optional[int], day: Date):
        """Hold the lock for a key; the entry is dropped once nobody holds or waits on it."""
        key = (business_id, staff_id, day)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def _ensure_within_hours(
        self,
        business_id: int,
        day: Date,
        staff_id: Optional[int],
        interval: Interval,
    ) -> None:
        schedule = await self._repository.get_working_hours(business_id)
        hours = resolve_working_hours(schedule, day, staff_id)
        if hours is None:
            raise ClosedDayError(f"No working hours on {day}")
        if not hours.contains(interval):
            raise OutsideWorkingHoursError(
                f"Requested {interval} is outside working hours {hours}"
            )

    async def _conflicts(
        self,
        business_id: int,
        day: Date,
        staff_id: Optional[int],
        interval: Interval,
        now: DateTime,
    ) -> List[Booking]:
        bookings = await self._repository.get_bookings(business_id, day)
        existing = [
            booking
            for booking in bookings_in_scope(bookings, day, staff_id)
            if booking.occupies(now)
        ]
        return find_conflicts(interval, existing)

    async def check_slot(
        self,
        *,
        business_id: int,
        day: Date,
        start_time: TimeOfDay | str,
        duration_minutes: int,
        staff_id: Optional[int] = None,
        now: Optional[DateTime] = None,
    ) -> Tuple[Interval, List[Booking]]:
        """
        Run the write-time checks without inserting anything.

        Returns the requested interval and the occupying bookings it overlaps;
        an empty list means the slot can be booked right now.

        Raises:
            ClosedDayError: If nobody works that day
            OutsideWorkingHoursError: If the interval does not fit the hours
        """
        interval = requested_interval(start_time, duration_minutes)
        await self._ensure_within_hours(business_id, day, staff_id, interval)
        conflicts = await self._conflicts(business_id, day, staff_id, interval, now or self._clock())
        return interval, conflicts

    async def create_booking(self, request: BookingRequest) -> Booking:
        """
        Validate and insert a booking in ``pending_payment`` status.

        Raises:
            InvalidDurationError: If the catalog duration is not positive
            InvalidTimeError: If the start time is malformed
            ClosedDayError: If nobody works that day
            OutsideWorkingHoursError: If the interval does not fit the hours
            SlotConflictError: If an occupying booking overlaps the interval
        """
        interval = requested_interval(request.start_time, request.duration_minutes)
        await self._ensure_within_hours(request.business_id, request.date, request.staff_id, interval)

        async with self._locked(request.business_id, request.staff_id, request.date):
            now = self._clock()
            conflicts = await self._conflicts(
                request.business_id, request.date, request.staff_id, interval, now
            )
            if conflicts:
                logger.warning(
                    "Rejected booking for business %s staff %s on %s at %s: overlaps %d booking(s)",
                    request.business_id, request.staff_id, request.date, interval, len(conflicts),
                )
                raise SlotConflictError(conflicts=conflicts)

            booking = Booking(
                business_id=request.business_id,
                date=request.date,
                interval=interval,
                staff_id=request.staff_id,
                status=BookingStatus.PENDING_PAYMENT,
                service=request.service,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                payment_expires_at=now.add(minutes=self.payment_expiry_minutes),
            )
            booking = await self._repository.add_booking(booking)

        logger.info(
            "Created booking #%s for business %s on %s at %s",
            booking.id, booking.business_id, booking.date, booking.interval,
        )
        return booking

    async def confirm(self, booking: Booking) -> Booking:
        """Mark a pending booking as paid."""
        booking.transition_to(BookingStatus.CONFIRMED)
        booking.payment_expires_at = None
        return await self._repository.save_booking(booking)

    async def complete(self, booking: Booking) -> Booking:
        booking.transition_to(BookingStatus.COMPLETED)
        return await self._repository.save_booking(booking)

    async def cancel(self, booking: Booking, reason: Optional[str] = None) -> Booking:
        """Cancel a booking, releasing its interval."""
        booking.transition_to(BookingStatus.CANCELLED)
        booking.cancelled_at = self._clock()
        booking.cancellation_reason = reason
        return await self._repository.save_booking(booking)

    async def expire_pending_payments(
        self,
        business_id: int,
        now: Optional[DateTime] = None,
    ) -> List[Booking]:
        """Cancel pending bookings whose payment window has passed."""
        now = now or self._clock()
        pending = await self._repository.get_pending_bookings(business_id)
        logger.info("Checking %d pending booking(s) of business %s for expiry", len(pending), business_id)

        expired: List[Booking] = []
        for booking in pending:
            if not booking.is_payment_expired(now):
                continue
            booking.transition_to(BookingStatus.CANCELLED)
            booking.cancelled_at = now
            booking.cancellation_reason = PAYMENT_EXPIRED_REASON
            await self._repository.save_booking(booking)
            expired.append(booking)
            logger.info("Expired booking #%s (%s)", booking.id, booking.customer_email)

        return expired
