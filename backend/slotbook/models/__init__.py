from .domain import (
    AvailabilityRecord,
    BookingRecord,
    CalendarEvent,
    CustomerRecord,
    DayPeriod,
    SlotSource,
    TimeSlot,
)

__all__ = [
    "AvailabilityRecord",
    "BookingRecord",
    "CalendarEvent",
    "CustomerRecord",
    "DayPeriod",
    "SlotSource",
    "TimeSlot",
]
