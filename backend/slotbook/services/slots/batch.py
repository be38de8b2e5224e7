# backend/slotbook/services/slots/batch.py
"""
Availability queries: single slot list, single day, and date ranges.

Every query fetches each calendar once for the whole window, buckets the
events by local date and then extracts/matches per day. A failure while
computing one day is reported on that day only.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ...errors import InvalidDateFormat, RangeTooLarge, UpstreamUnavailable
from ...models.domain import AvailabilityRecord, CalendarEvent, TimeSlot
from ..calendar.source import CalendarEventSource
from .config import BookingConfig, normalize_time, parse_date
from .extractor import extract_day_slots
from .matcher import check_slots, slot_window

logger = logging.getLogger(__name__)


@dataclass
class DayAvailability:
    date: date
    slots: dict[str, AvailabilityRecord] = field(default_factory=dict)
    candidates: list[TimeSlot] = field(default_factory=list)
    error: str | None = None

    @property
    def available_times(self) -> list[str]:
        return [t for t, record in self.slots.items() if record.available]

    def to_dict(self) -> dict:
        data = {
            "date": self.date.isoformat(),
            "slots": {t: record.to_dict() for t, record in self.slots.items()},
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class AvailabilityResult:
    """Per-date availability plus any upstream degradation."""
    days: dict[date, DayAvailability] = field(default_factory=dict)
    upstream_errors: list[UpstreamUnavailable] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "days": {d.isoformat(): day.to_dict() for d, day in self.days.items()},
            "upstream_errors": [e.to_dict() for e in self.upstream_errors],
        }


def bucket_by_date(events: list[CalendarEvent], config: BookingConfig) -> dict[date, list[CalendarEvent]]:
    """Group events under every local date they occupy."""
    buckets: dict[date, list[CalendarEvent]] = {}
    for event in events:
        for day in event.local_dates(config.tz):
            buckets.setdefault(day, []).append(event)
    return buckets


def overlapping(events: list[CalendarEvent], start: datetime, end: datetime) -> list[CalendarEvent]:
    """Events intersecting [start, end), the same rule the Calendar API applies to timeMin/timeMax."""
    return [e for e in events if e.start < end and e.end > start]


def iter_dates(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class AvailabilityService:
    """
    Slot discovery and availability over the two calendars.

    Args:
        source: Calendar Event Source (cached, paginated)
        config: Resolved booking configuration
    """

    def __init__(self, source: CalendarEventSource, config: BookingConfig):
        self.source = source
        self.config = config

    def validate_range(self, start_date, end_date) -> tuple[date, date]:
        start = parse_date(start_date)
        end = parse_date(end_date)
        if end < start:
            raise InvalidDateFormat(
                f"end_date {end.isoformat()} is before start_date {start.isoformat()}"
            )
        days = (end - start).days + 1
        if days > self.config.max_range_days:
            raise RangeTooLarge(days, self.config.max_range_days)
        return start, end

    # ── Fetch ────────────────────────────────────────────────────────────

    def _source_events(self, start: datetime, end: datetime, errors: list) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        for calendar_id in self.config.source_calendar_ids:
            result = self.source.get_events(calendar_id, start, end)
            if result.error:
                errors.append(result.error)
            events.extend(result.events)
        return events

    def _booking_events(self, start: datetime, end: datetime, errors: list) -> list[CalendarEvent]:
        if not self.config.booking_calendar_id:
            return []
        result = self.source.get_events(self.config.booking_calendar_id, start, end)
        if result.error:
            errors.append(result.error)
        return result.events

    def _booking_window(self, start: datetime, end: datetime) -> tuple[datetime, datetime]:
        # Slots starting near closing time run past it
        return start, end + timedelta(hours=self.config.slot_duration_hours)

    # ── Queries ──────────────────────────────────────────────────────────

    def batch_availability(self, start_date, end_date) -> AvailabilityResult:
        """
        Availability for every date in [start_date, end_date].

        Raises:
            InvalidDateFormat: Malformed dates or end before start
            RangeTooLarge: Span above max_range_days
        """
        start, end = self.validate_range(start_date, end_date)
        window_start, window_end = self.config.day_window(start, end)
        result = AvailabilityResult()

        source_events = self._source_events(window_start, window_end, result.upstream_errors)
        booking_events = self._booking_events(
            *self._booking_window(window_start, window_end),
            result.upstream_errors,
        )

        source_by_date = bucket_by_date(source_events, self.config)
        booking_by_date = bucket_by_date(booking_events, self.config)

        for day in iter_dates(start, end):
            result.days[day] = self._compute_day(day, source_by_date, booking_by_date)

        logger.info(
            f"Batch availability {start}..{end}: {len(result.days)} days, "
            f"{len(source_events)} source / {len(booking_events)} booking events"
        )
        return result

    def day_availability(self, target_date) -> tuple[DayAvailability, list[UpstreamUnavailable]]:
        """Extracted slots and their availability for one date."""
        day = parse_date(target_date)
        result = self.batch_availability(day, day)
        return result.days[day], result.upstream_errors

    def available_time_slots(self, target_date) -> tuple[list[dict], list[UpstreamUnavailable]]:
        """Only the bookable slots of one date, chronological."""
        day, errors = self.day_availability(target_date)
        slots = [
            slot.to_dict()
            for slot in day.candidates
            if slot.time in day.slots and day.slots[slot.time].available
        ]
        return slots, errors

    def check_availability(self, target_date, times: list[str]) -> AvailabilityResult:
        """
        Availability of caller-supplied times on one date.

        Raises:
            InvalidDateFormat: Malformed date or time
        """
        day = parse_date(target_date)
        normalized = [normalize_time(t) for t in times]
        result = AvailabilityResult()
        if not normalized:
            result.days[day] = DayAvailability(date=day)
            return result

        tz = self.config.tz
        open_start, close_end = self.config.day_window(day)
        windows = [slot_window(day, t, self.config.slot_duration_hours, tz) for t in normalized]
        window_start = min([open_start] + [w[0] for w in windows])
        window_end = max([close_end] + [w[1] for w in windows])

        booking_events = self._booking_events(window_start, window_end, result.upstream_errors)
        records = check_slots(booking_events, day, normalized, self.config.slot_duration_hours, tz)
        result.days[day] = DayAvailability(date=day, slots=records)
        return result

    # ── Per day ──────────────────────────────────────────────────────────

    def _compute_day(
        self,
        day: date,
        source_by_date: dict[date, list[CalendarEvent]],
        booking_by_date: dict[date, list[CalendarEvent]],
    ) -> DayAvailability:
        try:
            # A range fetch spans the nights between days: keep each day to its own window
            open_start, close_end = self.config.day_window(day)
            source_events = overlapping(source_by_date.get(day, []), open_start, close_end)
            candidates = extract_day_slots(source_events, self.config.tz)
            if not candidates:
                return DayAvailability(date=day)

            nearby = booking_by_date.get(day, []) + booking_by_date.get(day + timedelta(days=1), [])
            booking_events = overlapping(
                list(dict.fromkeys(nearby)),
                *self._booking_window(open_start, close_end),
            )
            records = check_slots(
                booking_events,
                day,
                candidates,
                self.config.slot_duration_hours,
                self.config.tz,
            )
            return DayAvailability(date=day, slots=records, candidates=candidates)
        except Exception as e:
            logger.exception(f"Availability failed for {day}: {e}")
            return DayAvailability(date=day, error=str(e))
