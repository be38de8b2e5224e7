# backend/slotbook/services/slots/config.py
"""
Booking configuration for availability and commit calculation.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from functools import cached_property
from zoneinfo import ZoneInfo

from ...config import Settings
from ...errors import InvalidDateFormat


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight ("24:00" allowed)."""
    hour, minute = value.strip().split(":")
    return int(hour) * 60 + int(minute)


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


# Hard cap on pages fetched for one calendar window
PAGE_LIMIT = 20

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_date(value) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value.strip()):
        raise InvalidDateFormat(f"Invalid date {value!r}, expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDateFormat(f"Invalid date {value!r}, expected YYYY-MM-DD") from None


def normalize_time(value) -> str:
    """Validate "H:MM"/"HH:MM" and return zero-padded "HH:MM"."""
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidDateFormat(f"Invalid time {value!r}, expected HH:MM")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the availability engine.

    Attributes:
        timezone: IANA name of the fixed business timezone
        business_open / business_close: daily window scanned for slots ("HH:MM")
        slot_duration_hours: length of one booked appointment
        min_advance_hours: minimum hours between now and a committed slot
        max_range_days: largest inclusive span accepted by batch queries
        lock_timeout_seconds: bounded wait for the commit lock
        average_daily_events / buffer_multiplier / max_estimation_days:
            inputs of the event-volume estimate that selects pagination
        page_size / min_page_size / max_page_size / max_pages: pagination bounds
    """
    source_calendar_ids: tuple[str, ...] = ()
    booking_calendar_id: str = ""
    timezone: str = "Asia/Taipei"
    business_open: str = "09:00"
    business_close: str = "21:00"
    slot_duration_hours: float = 2.0
    min_advance_hours: int = 3
    max_range_days: int = 62
    lock_timeout_seconds: float = 30.0
    calendar_timeout_seconds: float = 10.0

    average_daily_events: int = 8
    buffer_multiplier: float = 1.5
    max_estimation_days: int = 90
    page_size: int = 100
    min_page_size: int = 20
    max_page_size: int = 250
    max_pages: int = 20

    def __post_init__(self):
        """Validate configuration."""
        open_min = time_str_to_minutes(self.business_open)
        close_min = time_str_to_minutes(self.business_close)
        if not 0 <= open_min < close_min <= 24 * 60:
            raise ValueError(
                f"business hours must satisfy 00:00 <= open < close <= 24:00, "
                f"got {self.business_open}-{self.business_close}"
            )
        if self.slot_duration_hours <= 0:
            raise ValueError(f"slot_duration_hours must be positive, got {self.slot_duration_hours}")
        if not 0 < self.min_page_size <= self.max_page_size:
            raise ValueError("min_page_size must be positive and <= max_page_size")
        if not 1 <= self.max_pages <= PAGE_LIMIT:
            raise ValueError(f"max_pages must be between 1 and {PAGE_LIMIT}, got {self.max_pages}")

    @classmethod
    def from_settings(cls, s: Settings) -> "BookingConfig":
        return cls(
            source_calendar_ids=tuple(s.source_calendar_ids),
            booking_calendar_id=s.booking_calendar_id,
            timezone=s.timezone,
            business_open=s.business_open,
            business_close=s.business_close,
            slot_duration_hours=s.slot_duration_hours,
            min_advance_hours=s.min_advance_hours,
            max_range_days=s.max_range_days,
            lock_timeout_seconds=s.lock_timeout_seconds,
            calendar_timeout_seconds=s.calendar_timeout_seconds,
            average_daily_events=s.average_daily_events,
            buffer_multiplier=s.buffer_multiplier,
            max_estimation_days=s.max_estimation_days,
            page_size=s.page_size,
            min_page_size=s.min_page_size,
            max_page_size=s.max_page_size,
            max_pages=s.max_pages,
        )

    @cached_property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    def day_window(self, start: date, end: date | None = None) -> tuple[datetime, datetime]:
        """
        Business-hours window from start's opening to end's closing.

        A close of "24:00" maps to the next midnight.
        """
        end = end or start
        open_min = time_str_to_minutes(self.business_open)
        close_min = time_str_to_minutes(self.business_close)
        window_start = datetime.combine(start, time(open_min // 60, open_min % 60), tzinfo=self.tz)
        if close_min >= 24 * 60:
            window_end = datetime.combine(end, time.max, tzinfo=self.tz)
        else:
            window_end = datetime.combine(end, time(close_min // 60, close_min % 60), tzinfo=self.tz)
        return window_start, window_end
