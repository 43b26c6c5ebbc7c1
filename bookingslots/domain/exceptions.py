"""
Domain-specific exception hierarchy for the booking slots engine.
"""


class BookingSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidTimeError(BookingSlotsError, ValueError):
    """Raised when a wall-clock time or date string cannot be parsed."""


class InvalidDurationError(BookingSlotsError, ValueError):
    """Raised when a service duration is not a positive number of minutes."""


class InvalidTransitionError(BookingSlotsError):
    """Raised when a booking status change is not allowed."""


class UnknownServiceError(BookingSlotsError):
    """Raised when a service or package is not in the catalog."""


class ClosedDayError(BookingSlotsError):
    """Raised when a booking is requested for a day without working hours."""


class OutsideWorkingHoursError(BookingSlotsError):
    """Raised when a requested interval does not fit into the working hours."""


class SlotConflictError(BookingSlotsError):
    """
    Raised when the requested interval overlaps an existing booking.

    Kept apart from validation errors so callers can answer with
    "slot no longer available" instead of a form error.
    """

    def __init__(self, message: str = "This time slot is no longer available", conflicts=None):
        super().__init__(message)
        self.conflicts = list(conflicts or [])
