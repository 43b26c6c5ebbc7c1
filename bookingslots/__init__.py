"""
bookingslots - availability and slot computation for appointment booking.
"""

__version__ = "0.1.0"
