"""
In-memory booking repository.

Stands in for the database behind ``BookingRepositoryProtocol``; the CLI
seeds it from the YAML configuration and the tests fill it directly.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import date as Date
from typing import Iterable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import UnknownServiceError
from ..domain.models import Booking, BookingStatus, Interval, TimeOfDay, TimeOffWindow, WorkingHours

logger = logging.getLogger(__name__)


class InMemoryBookingRepository:
    """
    Keeps working hours, time off and bookings for one or more businesses in lists.

    Every call yields to the event loop once, like a real database round trip
    would, so concurrent callers interleave the same way they do in production.
    """

    def __init__(
        self,
        working_hours: Optional[dict[int, Iterable[WorkingHours]]] = None,
        time_off: Optional[dict[int, Iterable[TimeOffWindow]]] = None,
        bookings: Iterable[Booking] = (),
    ):
        self._working_hours = {
            business_id: list(rows) for business_id, rows in (working_hours or {}).items()
        }
        self._time_off = {
            business_id: list(windows) for business_id, windows in (time_off or {}).items()
        }
        self._bookings: List[Booking] = []
        self._next_id = 1
        for booking in bookings:
            self._store(booking)

    @classmethod
    def from_config(cls, config) -> "InMemoryBookingRepository":
        """
        Build a repository from an AppConfig.

        Seed bookings that cannot be resolved (unknown service, bad times) are
        skipped with a warning.
        """
        business_id = config.business.id
        bookings: List[Booking] = []

        for entry in config.bookings:
            try:
                start = TimeOfDay.parse(entry.start)
                if entry.end is not None:
                    interval = Interval(start=start, end=TimeOfDay.parse(entry.end))
                else:
                    interval = Interval.starting_at(start, config.duration_for(service=entry.service))
            except (UnknownServiceError, ValueError) as exc:
                logger.warning("Skipping seed booking on %s at %s: %s", entry.date, entry.start, exc)
                continue

            bookings.append(
                Booking(
                    business_id=business_id,
                    date=pendulum.from_format(entry.date, "YYYY-MM-DD").date(),
                    interval=interval,
                    staff_id=entry.staff_id,
                    status=entry.status,
                    service=entry.service,
                    customer_name=entry.customer_name,
                    customer_email=entry.customer_email,
                    payment_expires_at=entry.expires_at(config.timezone),
                )
            )

        return cls(
            working_hours={business_id: config.working_hours()},
            time_off={business_id: config.time_off_windows()},
            bookings=bookings,
        )

    def _store(self, booking: Booking) -> Booking:
        if booking.id is None:
            booking.id = self._next_id
        self._next_id = max(self._next_id, booking.id) + 1
        self._bookings.append(booking)
        return booking

    async def get_working_hours(self, business_id: int) -> List[WorkingHours]:
        await asyncio.sleep(0)
        return list(self._working_hours.get(business_id, []))

    async def get_time_off(self, business_id: int, start: DateTime, end: DateTime) -> List[TimeOffWindow]:
        await asyncio.sleep(0)
        return [
            window for window in self._time_off.get(business_id, [])
            if window.start <= end and window.end >= start
        ]

    async def get_bookings(self, business_id: int, day: Date) -> List[Booking]:
        await asyncio.sleep(0)
        return [
            copy.copy(booking) for booking in self._bookings
            if booking.business_id == business_id and booking.date == day
        ]

    async def get_pending_bookings(self, business_id: int) -> List[Booking]:
        await asyncio.sleep(0)
        return [
            booking for booking in self._bookings
            if booking.business_id == business_id and booking.status == BookingStatus.PENDING_PAYMENT
        ]

    async def add_booking(self, booking: Booking) -> Booking:
        await asyncio.sleep(0)
        return self._store(booking)

    async def save_booking(self, booking: Booking) -> Booking:
        await asyncio.sleep(0)
        for index, stored in enumerate(self._bookings):
            if stored.id == booking.id:
                self._bookings[index] = booking
                return booking
        raise KeyError(f"Booking {booking.id} does not exist")

    def all_bookings(self) -> List[Booking]:
        """Snapshot of every stored booking (any status)."""
        return list(self._bookings)
