# backend/slotbook/services/slots/extractor.py
"""
Time-slot extraction from source-calendar event titles.

The source calendar declares offered hours in free text, e.g.
"下午2:00", "10:30 / 14:00", "3點半", "上午11點", "2pm".

Patterns are tried in table order. Each match consumes its span of the title so
that a later, looser pattern cannot re-read the same digits ("下午2:00" must not
also yield "02:00" through the plain clock pattern).

When a title carries no parseable time, the event's own start time is used.
"""

import re
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Iterable

from ...models.domain import CalendarEvent, DayPeriod, SlotSource, TimeSlot


@dataclass(frozen=True)
class TimePattern:
    name: str
    regex: re.Pattern


# Groups: marker (上午/下午/...), meridiem (am/pm), hour, minute, cn_minute, half
TIME_PATTERNS: tuple[TimePattern, ...] = (
    TimePattern(
        "period_prefixed",
        re.compile(
            r"(?P<marker>上午|早上|中午|下午|晚上)\s*(?P<hour>\d{1,2})"
            r"(?:[:：](?P<minute>\d{2})|\s*[點点時时](?:(?P<half>半)|\s*(?P<cn_minute>\d{1,2})\s*分?)?)?"
            r"(?!\d)"
        ),
    ),
    TimePattern(
        "meridiem",
        re.compile(
            r"(?<!\d)(?P<hour>\d{1,2})(?:[:：](?P<minute>\d{2}))?\s*"
            r"(?P<meridiem>[AaPp]\.?[Mm]\.?)(?![A-Za-z])"
        ),
    ),
    TimePattern(
        "clock",
        re.compile(r"(?<!\d)(?P<hour>\d{1,2})[:：](?P<minute>\d{2})(?!\d)"),
    ),
    TimePattern(
        "hour_suffix",
        re.compile(
            r"(?<!\d)(?P<hour>\d{1,2})\s*[點点時时]"
            r"(?:(?P<half>半)|\s*(?P<cn_minute>\d{1,2})\s*分?)?"
        ),
    ),
)

# Marker word → meridiem kind
PERIOD_MARKERS = {
    "上午": "am",
    "早上": "am",
    "中午": "noon",
    "下午": "pm",
    "晚上": "pm",
}

_TITLE_PM = re.compile(r"下午|晚上|(?<![A-Za-z])p\.?m(?![A-Za-z])", re.IGNORECASE)
_TITLE_AM = re.compile(r"上午|早上|(?<![A-Za-z])a\.?m(?![A-Za-z])", re.IGNORECASE)
_TITLE_NOON = re.compile(r"中午")


def classify_period(time_str: str) -> DayPeriod:
    """06:00–11:59 morning, 12:00–17:59 afternoon, everything else evening."""
    hour = int(time_str.split(":")[0])
    if 6 <= hour < 12:
        return DayPeriod.MORNING
    if 12 <= hour < 18:
        return DayPeriod.AFTERNOON
    return DayPeriod.EVENING


def _title_meridiem(title: str) -> str | None:
    if _TITLE_PM.search(title):
        return "pm"
    if _TITLE_AM.search(title):
        return "am"
    if _TITLE_NOON.search(title):
        return "noon"
    return None


def _apply_meridiem(hour: int, meridiem: str | None) -> int:
    if meridiem == "pm" and hour < 12:
        return hour + 12
    if meridiem == "am" and hour == 12:
        return 0
    if meridiem == "noon" and hour < 6:
        return hour + 12
    return hour


def _match_to_time(match: re.Match, title_meridiem: str | None) -> str | None:
    groups = match.groupdict()
    hour = int(groups["hour"])

    if groups.get("minute"):
        minute = int(groups["minute"])
    elif groups.get("cn_minute"):
        minute = int(groups["cn_minute"])
    elif groups.get("half"):
        minute = 30
    else:
        minute = 0

    if groups.get("marker"):
        meridiem = PERIOD_MARKERS[groups["marker"]]
    elif groups.get("meridiem"):
        meridiem = "pm" if groups["meridiem"][0] in "Pp" else "am"
    else:
        meridiem = title_meridiem

    hour = _apply_meridiem(hour, meridiem)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return f"{hour:02d}:{minute:02d}"


def parse_title_times(title: str | None) -> list[str]:
    """All distinct HH:MM times declared in a title, in order of appearance."""
    if not title or not isinstance(title, str):
        return []

    text = title.strip()
    title_meridiem = _title_meridiem(text)
    consumed: list[tuple[int, int]] = []
    found: list[tuple[int, str]] = []

    for pattern in TIME_PATTERNS:
        for match in pattern.regex.finditer(text):
            start, end = match.span()
            if any(start < c_end and end > c_start for c_start, c_end in consumed):
                continue
            consumed.append((start, end))
            time_str = _match_to_time(match, title_meridiem)
            if time_str:
                found.append((start, time_str))

    times: list[str] = []
    for _, time_str in sorted(found):
        if time_str not in times:
            times.append(time_str)
    return times


def extract_slots(
    title: str | None,
    event_start: datetime | None = None,
    tz: tzinfo | None = None,
) -> list[TimeSlot]:
    """
    Slots declared by one event.

    Never raises: no parseable title time and no start time → [].
    """
    times = parse_title_times(title)
    if times:
        return [TimeSlot(t, classify_period(t), SlotSource.TITLE) for t in times]

    if event_start is None:
        return []

    local = event_start.astimezone(tz) if tz is not None and event_start.tzinfo else event_start
    time_str = f"{local.hour:02d}:{local.minute:02d}"
    return [TimeSlot(time_str, classify_period(time_str), SlotSource.START_TIME)]


def extract_day_slots(events: Iterable[CalendarEvent], tz: tzinfo | None = None) -> list[TimeSlot]:
    """
    Candidate slots for one day: deduplicated by HH:MM (first occurrence wins)
    and sorted ascending.
    """
    by_time: dict[str, TimeSlot] = {}
    for event in events:
        start = None if event.all_day else event.start
        for slot in extract_slots(event.title, start, tz):
            by_time.setdefault(slot.time, slot)
    return [by_time[t] for t in sorted(by_time)]
