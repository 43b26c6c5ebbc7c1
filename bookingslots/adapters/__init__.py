"""
Adapters layer - Persistence stand-ins for the booking services.
"""

from .memory_repository import InMemoryBookingRepository

__all__ = ["InMemoryBookingRepository"]
