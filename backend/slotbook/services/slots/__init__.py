# backend/slotbook/services/slots/__init__.py
"""
Slot discovery and availability.

extractor: offered times parsed from source-calendar titles
matcher:   half-open overlap against booking-calendar events
batch:     single-day and range queries over both calendars (import
           from .batch; it depends on the calendar source)
"""

from .config import BookingConfig
from .extractor import extract_day_slots, extract_slots, parse_title_times
from .matcher import check_availability, check_slots

__all__ = [
    "BookingConfig",
    "extract_day_slots",
    "extract_slots",
    "parse_title_times",
    "check_availability",
    "check_slots",
]
