"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    Booking,
    BookingStatus,
    Interval,
    OccupiedInterval,
    Slot,
    SlotRequest,
    TimeOfDay,
    TimeOffWindow,
    WorkingHours,
)
from .overlap import find_conflicts, has_conflict, requested_interval
from .slot_calculator import SlotCalculator, generate_slots
from .timeutils import overlaps

__all__ = [
    "Booking",
    "BookingStatus",
    "Interval",
    "OccupiedInterval",
    "Slot",
    "SlotRequest",
    "TimeOfDay",
    "TimeOffWindow",
    "WorkingHours",
    "SlotCalculator",
    "generate_slots",
    "find_conflicts",
    "has_conflict",
    "requested_interval",
    "overlaps",
]
