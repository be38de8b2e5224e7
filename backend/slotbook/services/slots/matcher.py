# backend/slotbook/services/slots/matcher.py
"""
Availability matching: candidate slots vs booking-calendar events.

Slot window is half-open [start, start + duration). An event [a, b) conflicts
iff start < b and a < start + duration, so touching boundaries never conflict.
All-day events occupy every slot of the dates they cover.

Results are never memoized; callers cache event lists, not availability.
"""

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable

from ...models.domain import AvailabilityRecord, CalendarEvent, TimeSlot
from .extractor import classify_period

logger = logging.getLogger(__name__)


def slot_window(
    target_date: date,
    time_str: str,
    duration_hours: float,
    tz: tzinfo,
) -> tuple[datetime, datetime]:
    hour, minute = (int(p) for p in time_str.split(":"))
    start = datetime.combine(target_date, time(hour, minute), tzinfo=tz)
    return start, start + timedelta(hours=duration_hours)


def event_conflicts(
    event: CalendarEvent,
    slot_start: datetime,
    slot_end: datetime,
    target_date: date,
) -> bool:
    if event.all_day:
        return event.covers_date(target_date)
    return slot_start < event.end and slot_end > event.start


def check_availability(
    booking_events: Iterable[CalendarEvent],
    target_date: date,
    time_str: str,
    duration_hours: float,
    tz: tzinfo,
) -> AvailabilityRecord:
    """Availability of one (date, time) against the given events."""
    slot_start, slot_end = slot_window(target_date, time_str, duration_hours, tz)
    conflicts = [
        event
        for event in booking_events
        if event_conflicts(event, slot_start, slot_end, target_date)
    ]

    if conflicts:
        logger.debug(
            f"Slot {target_date} {time_str} conflicts with "
            f"{[e.title for e in conflicts]}"
        )

    return AvailabilityRecord(
        date=target_date,
        time=time_str,
        available=not conflicts,
        conflict_count=len(conflicts),
        conflicts=conflicts,
        period=classify_period(time_str),
    )


def check_slots(
    booking_events: Iterable[CalendarEvent],
    target_date: date,
    slots: Iterable[TimeSlot | str],
    duration_hours: float,
    tz: tzinfo,
) -> dict[str, AvailabilityRecord]:
    """Per-slot availability for one day, keyed by HH:MM in chronological order."""
    events = list(booking_events)
    times = sorted({s.time if isinstance(s, TimeSlot) else s for s in slots})
    return {
        t: check_availability(events, target_date, t, duration_hours, tz)
        for t in times
    }
