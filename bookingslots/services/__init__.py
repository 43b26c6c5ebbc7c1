"""
Service layer helpers that orchestrate repositories and domain logic.
"""

from .booking_service import (
    AvailabilityService,
    BookingRepositoryProtocol,
    BookingRequest,
    BookingService,
    SlotsResult,
)

__all__ = [
    "AvailabilityService",
    "BookingRepositoryProtocol",
    "BookingRequest",
    "BookingService",
    "SlotsResult",
]
