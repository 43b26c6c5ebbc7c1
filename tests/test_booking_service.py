"""
Tests for the booking service orchestration layer.
"""

import asyncio

import pendulum
import pytest

from bookingslots.adapters.memory_repository import InMemoryBookingRepository
from bookingslots.domain.exceptions import (
    ClosedDayError,
    InvalidDurationError,
    InvalidTransitionError,
    OutsideWorkingHoursError,
    SlotConflictError,
)
from bookingslots.domain.models import Booking, BookingStatus, Interval, TimeOffWindow, WorkingHours
from bookingslots.domain.slot_calculator import SlotCalculator, describe_slots
from bookingslots.services.booking_service import (
    PAYMENT_EXPIRED_REASON,
    AvailabilityService,
    BookingRequest,
    BookingService,
)

BUSINESS_ID = 1
MONDAY = pendulum.date(2025, 1, 6)
NOW = pendulum.datetime(2025, 1, 6, 8, 0, tz="UTC")


def _repository(bookings=(), time_off=()) -> InMemoryBookingRepository:
    hours = [
        WorkingHours(day_of_week=1, interval=Interval.parse("09:00", "12:00")),
        WorkingHours(day_of_week=1, interval=Interval.parse("10:00", "13:00"), staff_id=7),
    ]
    return InMemoryBookingRepository(
        working_hours={BUSINESS_ID: hours},
        time_off={BUSINESS_ID: list(time_off)},
        bookings=bookings,
    )


def _availability(repository) -> AvailabilityService:
    return AvailabilityService(
        repository=repository,
        slot_calculator=SlotCalculator(timezone="UTC"),
        clock=lambda: NOW,
    )


def _bookings(repository) -> BookingService:
    return BookingService(repository=repository, timezone="UTC", clock=lambda: NOW)


def _request(start="10:00", duration=60, staff_id=None, **kwargs) -> BookingRequest:
    return BookingRequest(
        business_id=BUSINESS_ID,
        date=MONDAY,
        start_time=start,
        duration_minutes=duration,
        staff_id=staff_id,
        **kwargs,
    )


def _booking(start, end, staff_id=None, **kwargs) -> Booking:
    return Booking(
        business_id=BUSINESS_ID,
        date=MONDAY,
        interval=Interval.parse(start, end),
        staff_id=staff_id,
        status=kwargs.pop("status", BookingStatus.CONFIRMED),
        **kwargs,
    )


class TestAvailabilityService:
    def test_slots_around_existing_booking(self):
        repository = _repository(bookings=[_booking("10:00", "11:00")])

        result = asyncio.run(
            _availability(repository).get_slots(business_id=BUSINESS_ID, day=MONDAY, duration_minutes=60)
        )

        assert not result.closed
        assert describe_slots(result.slots) == "09:00 09:30x 10:00x 10:30x 11:00"

    def test_closed_day_message(self):
        result = asyncio.run(
            _availability(_repository()).get_slots(
                business_id=BUSINESS_ID, day=MONDAY.add(days=1), duration_minutes=30
            )
        )

        assert result.slots == []
        assert result.message == "Closed on this day"
        assert result.to_dict() == {"slots": [], "message": "Closed on this day"}

    def test_staff_unavailable_message(self):
        result = asyncio.run(
            _availability(_repository()).get_slots(
                business_id=BUSINESS_ID, day=MONDAY.add(days=1), duration_minutes=30, staff_id=7
            )
        )

        assert result.message == "Staff not available on this day"

    def test_staff_hours_and_bookings(self):
        """Staff 7 works 10:00-13:00 and only their own bookings count."""
        repository = _repository(bookings=[
            _booking("10:00", "10:30", staff_id=7),
            _booking("11:00", "11:30", staff_id=8),
        ])

        result = asyncio.run(
            _availability(repository).get_slots(
                business_id=BUSINESS_ID, day=MONDAY, duration_minutes=30, staff_id=7
            )
        )

        assert describe_slots(result.slots) == "10:00x 10:30 11:00 11:30 12:00 12:30"

    def test_staff_fallback_to_business_hours(self):
        result = asyncio.run(
            _availability(_repository()).get_slots(
                business_id=BUSINESS_ID, day=MONDAY, duration_minutes=60, staff_id=8
            )
        )

        assert describe_slots(result.slots) == "09:00 09:30 10:00 10:30 11:00"

    def test_business_time_off_applies_to_staff(self):
        lunch = TimeOffWindow(
            start=pendulum.datetime(2025, 1, 6, 12, tz="UTC"),
            end=pendulum.datetime(2025, 1, 6, 13, tz="UTC"),
        )

        result = asyncio.run(
            _availability(_repository(time_off=[lunch])).get_slots(
                business_id=BUSINESS_ID, day=MONDAY, duration_minutes=30, staff_id=7
            )
        )

        assert describe_slots(result.slots) == "10:00 10:30 11:00 11:30 12:00x 12:30x"

    def test_expired_pending_booking_does_not_block(self):
        repository = _repository(bookings=[
            _booking("09:00", "10:00", status=BookingStatus.PENDING_PAYMENT,
                     payment_expires_at=NOW.subtract(minutes=5)),
        ])

        result = asyncio.run(
            _availability(repository).get_slots(business_id=BUSINESS_ID, day=MONDAY, duration_minutes=60)
        )

        assert all(slot.available for slot in result.slots)

    def test_invalid_duration(self):
        with pytest.raises(InvalidDurationError):
            asyncio.run(
                _availability(_repository()).get_slots(business_id=BUSINESS_ID, day=MONDAY, duration_minutes=0)
            )


class TestBookingService:
    def test_create_booking_is_pending_with_expiry(self):
        repository = _repository()

        booking = asyncio.run(_bookings(repository).create_booking(_request(customer_email="a@example.com")))

        assert booking.id == 1
        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.interval == Interval.parse("10:00", "11:00")
        assert booking.payment_expires_at == NOW.add(minutes=30)
        assert repository.all_bookings() == [booking]

    def test_conflict_creates_no_record(self):
        repository = _repository(bookings=[_booking("10:30", "11:00")])

        with pytest.raises(SlotConflictError) as exc_info:
            asyncio.run(_bookings(repository).create_booking(_request()))

        assert len(exc_info.value.conflicts) == 1
        assert len(repository.all_bookings()) == 1

    def test_conflict_is_not_a_validation_error(self):
        assert not issubclass(SlotConflictError, ValueError)

    def test_cancelled_booking_frees_interval(self):
        repository = _repository(bookings=[_booking("10:00", "11:00", status=BookingStatus.CANCELLED)])

        booking = asyncio.run(_bookings(repository).create_booking(_request()))

        assert booking.status == BookingStatus.PENDING_PAYMENT

    def test_other_staff_booking_does_not_conflict(self):
        repository = _repository(bookings=[_booking("10:00", "11:00", staff_id=8)])

        booking = asyncio.run(_bookings(repository).create_booking(_request(staff_id=7)))

        assert booking.staff_id == 7

    def test_closed_day_rejected(self):
        with pytest.raises(ClosedDayError):
            asyncio.run(
                _bookings(_repository()).create_booking(
                    BookingRequest(business_id=BUSINESS_ID, date=MONDAY.add(days=1),
                                   start_time="10:00", duration_minutes=30)
                )
            )

    def test_outside_working_hours_rejected(self):
        with pytest.raises(OutsideWorkingHoursError):
            asyncio.run(_bookings(_repository()).create_booking(_request(start="11:30", duration=60)))

    def test_concurrent_requests_only_one_wins(self):
        """Two simultaneous requests for the same interval: exactly one succeeds."""
        repository = _repository()
        service = _bookings(repository)

        async def race():
            return await asyncio.gather(
                service.create_booking(_request(staff_id=7, customer_name="first")),
                service.create_booking(_request(staff_id=7, customer_name="second")),
                return_exceptions=True,
            )

        results = asyncio.run(race())

        created = [r for r in results if isinstance(r, Booking)]
        conflicts = [r for r in results if isinstance(r, SlotConflictError)]
        assert len(created) == 1
        assert len(conflicts) == 1
        assert len(repository.all_bookings()) == 1

    def test_concurrent_overlapping_requests(self):
        repository = _repository()
        service = _bookings(repository)

        async def race():
            return await asyncio.gather(
                *(service.create_booking(_request(start=start, duration=60))
                  for start in ("09:00", "09:30", "10:00", "10:30", "11:00")),
                return_exceptions=True,
            )

        results = asyncio.run(race())

        created = sorted(str(r.interval) for r in results if isinstance(r, Booking))
        assert created == ["09:00 - 10:00", "10:00 - 11:00", "11:00 - 12:00"]

    def test_locks_released_after_requests(self):
        """Per-day locks do not pile up once their requests have finished."""
        service = _bookings(_repository())

        async def flow():
            await asyncio.gather(
                service.create_booking(_request(staff_id=7)),
                service.create_booking(_request(staff_id=7)),
                service.create_booking(_request(start="11:00")),
                return_exceptions=True,
            )
            await service.create_booking(
                BookingRequest(business_id=BUSINESS_ID, date=MONDAY.add(days=7),
                               start_time="09:00", duration_minutes=30)
            )

        asyncio.run(flow())

        assert service._locks == {}
        assert service._lock_users == {}

    def test_check_slot_reports_conflicts_without_inserting(self):
        repository = _repository(bookings=[_booking("10:00", "11:00")])

        interval, conflicts = asyncio.run(
            _bookings(repository).check_slot(
                business_id=BUSINESS_ID, day=MONDAY, start_time="10:30", duration_minutes=30
            )
        )

        assert str(interval) == "10:30 - 11:00"
        assert [str(b.interval) for b in conflicts] == ["10:00 - 11:00"]
        assert len(repository.all_bookings()) == 1

    def test_check_slot_uses_injected_clock(self):
        """A pending booking past its payment window no longer blocks the check."""
        pending = _booking(
            "10:00", "11:00",
            status=BookingStatus.PENDING_PAYMENT,
            payment_expires_at=NOW.subtract(minutes=1),
        )

        _, conflicts = asyncio.run(
            _bookings(_repository(bookings=[pending])).check_slot(
                business_id=BUSINESS_ID, day=MONDAY, start_time="10:00", duration_minutes=60
            )
        )

        assert conflicts == []

    def test_check_slot_outside_hours(self):
        with pytest.raises(OutsideWorkingHoursError):
            asyncio.run(
                _bookings(_repository()).check_slot(
                    business_id=BUSINESS_ID, day=MONDAY, start_time="11:30", duration_minutes=60
                )
            )

    def test_lifecycle(self):
        repository = _repository()
        service = _bookings(repository)

        async def flow():
            booking = await service.create_booking(_request())
            await service.confirm(booking)
            await service.complete(booking)
            return booking

        booking = asyncio.run(flow())

        assert booking.status == BookingStatus.COMPLETED
        assert booking.payment_expires_at is None
        with pytest.raises(InvalidTransitionError):
            asyncio.run(service.cancel(booking))

    def test_cancel_records_reason(self):
        repository = _repository()
        service = _bookings(repository)

        async def flow():
            booking = await service.create_booking(_request())
            return await service.cancel(booking, reason="Customer request")

        booking = asyncio.run(flow())

        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancellation_reason == "Customer request"
        assert booking.cancelled_at == NOW

    def test_expire_pending_payments(self):
        repository = _repository(bookings=[
            _booking("09:00", "10:00", status=BookingStatus.PENDING_PAYMENT,
                     payment_expires_at=NOW.subtract(minutes=1)),
            _booking("10:00", "11:00", status=BookingStatus.PENDING_PAYMENT,
                     payment_expires_at=NOW.add(minutes=10)),
            _booking("11:00", "12:00", status=BookingStatus.CONFIRMED),
        ])

        expired = asyncio.run(_bookings(repository).expire_pending_payments(BUSINESS_ID, now=NOW))

        assert [str(b.interval) for b in expired] == ["09:00 - 10:00"]
        assert expired[0].status == BookingStatus.CANCELLED
        assert expired[0].cancellation_reason == PAYMENT_EXPIRED_REASON
        statuses = [b.status for b in repository.all_bookings()]
        assert statuses == [BookingStatus.CANCELLED, BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED]

    def test_slot_freed_after_expiry_can_be_booked(self):
        repository = _repository(bookings=[
            _booking("10:00", "11:00", status=BookingStatus.PENDING_PAYMENT,
                     payment_expires_at=NOW.subtract(minutes=1)),
        ])

        booking = asyncio.run(_bookings(repository).create_booking(_request()))

        assert booking.id == 2
