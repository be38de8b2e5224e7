# backend/slotbook/models/domain.py
"""
Domain records shared by the calendar, slots, store and booking services.

CalendarEvent is the only event representation downstream code sees: both
calendar transports and persisted bookings are adapted into it at the boundary.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum


class DayPeriod(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def label(self) -> str:
        return _PERIOD_LABELS[self]


_PERIOD_LABELS = {
    DayPeriod.MORNING: "上午",
    DayPeriod.AFTERNOON: "下午",
    DayPeriod.EVENING: "晚上",
}


class SlotSource(str, Enum):
    TITLE = "title"
    START_TIME = "start_time"


# ── Calendar events ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    title: str
    start: datetime
    end: datetime
    calendar_id: str
    all_day: bool = False

    @classmethod
    def from_api(cls, item: dict, calendar_id: str, tz: tzinfo) -> "CalendarEvent | None":
        """
        Adapt a Calendar API event resource.

        Returns None for events without usable start/end (cancelled instances).
        """
        start_raw = item.get("start") or {}
        end_raw = item.get("end") or {}

        if start_raw.get("dateTime") and end_raw.get("dateTime"):
            start = _parse_datetime(start_raw["dateTime"], tz)
            end = _parse_datetime(end_raw["dateTime"], tz)
            all_day = False
        elif start_raw.get("date"):
            start_day = date.fromisoformat(start_raw["date"])
            end_day = (
                date.fromisoformat(end_raw["date"])
                if end_raw.get("date")
                else start_day + timedelta(days=1)
            )
            start = datetime.combine(start_day, time.min, tzinfo=tz)
            end = datetime.combine(end_day, time.min, tzinfo=tz)
            all_day = True
        else:
            return None

        return cls(
            id=item.get("id", ""),
            title=item.get("summary") or "",
            start=start,
            end=end,
            calendar_id=calendar_id,
            all_day=all_day,
        )

    def local_dates(self, tz: tzinfo) -> list[date]:
        """Local calendar dates this event occupies (end exclusive)."""
        if self.all_day:
            first = self.start.date()
            last = (self.end - timedelta(days=1)).date()
        else:
            first = self.start.astimezone(tz).date()
            last = (self.end - timedelta(microseconds=1)).astimezone(tz).date()
        last = max(first, last)
        days = []
        current = first
        while current <= last:
            days.append(current)
            current += timedelta(days=1)
        return days

    def covers_date(self, target: date) -> bool:
        """True for an all-day event spanning target."""
        return self.all_day and self.start.date() <= target < self.end.date()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "all_day": self.all_day,
            "calendar_id": self.calendar_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CalendarEvent":
        return cls(
            id=data["id"],
            title=data["title"],
            start=datetime.fromisoformat(data["start"]),
            end=datetime.fromisoformat(data["end"]),
            calendar_id=data["calendar_id"],
            all_day=data.get("all_day", False),
        )


def _parse_datetime(value: str, tz: tzinfo) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


# ── Slots & availability ─────────────────────────────────────────────────


@dataclass(frozen=True)
class TimeSlot:
    time: str  # "HH:MM"
    period: DayPeriod
    source: SlotSource

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "period": self.period.value,
            "period_label": self.period.label,
            "source": self.source.value,
        }


@dataclass
class AvailabilityRecord:
    date: date
    time: str
    available: bool
    conflict_count: int = 0
    conflicts: list[CalendarEvent] = field(default_factory=list)
    period: DayPeriod | None = None

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "time": self.time,
            "available": self.available,
            "conflict_count": self.conflict_count,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "period": self.period.value if self.period else None,
        }


# ── Store records ────────────────────────────────────────────────────────

CUSTOMER_COLUMNS = (
    "line_user_id",
    "name",
    "phone",
    "created_at",
    "last_booking",
    "total_bookings",
)

BOOKING_COLUMNS = (
    "user_id",
    "name",
    "phone",
    "date",
    "time",
    "services",
    "removal",
    "extension",
    "remarks",
    "created_at",
    "event_id",
)


@dataclass
class CustomerRecord:
    line_user_id: str
    name: str
    phone: str
    created_at: str
    last_booking: str = ""
    total_bookings: int = 0
    row_id: int | None = None

    def to_row(self) -> list:
        return [
            self.line_user_id,
            self.name,
            self.phone,
            self.created_at,
            self.last_booking,
            self.total_bookings,
        ]

    @classmethod
    def from_row(cls, row: list, row_id: int | None = None) -> "CustomerRecord":
        values = _pad(row, len(CUSTOMER_COLUMNS))
        try:
            total = int(values[5] or 0)
        except (TypeError, ValueError):
            total = 0
        return cls(
            line_user_id=str(values[0]),
            name=str(values[1]),
            phone=str(values[2]),
            created_at=str(values[3]),
            last_booking=str(values[4]),
            total_bookings=total,
            row_id=row_id,
        )

    def to_dict(self) -> dict:
        return {
            "line_user_id": self.line_user_id,
            "name": self.name,
            "phone": self.phone,
            "created_at": self.created_at,
            "last_booking": self.last_booking,
            "total_bookings": self.total_bookings,
        }


@dataclass
class BookingRecord:
    user_id: str
    name: str
    phone: str
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    services: str
    removal: str = ""
    extension: str = ""
    remarks: str = ""
    created_at: str = ""
    event_id: str = ""
    booking_id: str | None = None

    def to_row(self) -> list:
        return [
            self.user_id,
            self.name,
            self.phone,
            self.date,
            self.time,
            self.services,
            self.removal,
            self.extension,
            self.remarks,
            self.created_at,
            self.event_id,
        ]

    @classmethod
    def from_row(cls, row: list, booking_id: str | None = None) -> "BookingRecord":
        values = [str(v) if v is not None else "" for v in _pad(row, len(BOOKING_COLUMNS))]
        return cls(*values, booking_id=booking_id)

    def start_at(self, tz: tzinfo) -> datetime:
        hour, minute = (int(p) for p in self.time.split(":"))
        return datetime.combine(date.fromisoformat(self.date), time(hour, minute), tzinfo=tz)

    def as_event(self, tz: tzinfo, duration_hours: float) -> CalendarEvent:
        """Persisted booking seen as an occupied interval."""
        start = self.start_at(tz)
        return CalendarEvent(
            id=self.event_id or f"booking:{self.booking_id}",
            title=f"{self.name} {self.time}",
            start=start,
            end=start + timedelta(hours=duration_hours),
            calendar_id="store",
        )

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "date": self.date,
            "time": self.time,
            "services": self.services,
            "removal": self.removal,
            "extension": self.extension,
            "remarks": self.remarks,
            "created_at": self.created_at,
            "event_id": self.event_id,
        }


def _pad(row: list, size: int) -> list:
    values = list(row)[:size]
    return values + [""] * (size - len(values))
