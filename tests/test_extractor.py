"""Slot extraction from source-calendar titles."""

from datetime import datetime

import pytest

from conftest import TZ
from slotbook.models.domain import CalendarEvent, DayPeriod, SlotSource
from slotbook.services.slots.extractor import (
    classify_period,
    extract_day_slots,
    extract_slots,
    parse_title_times,
)


def _event(title, start, end, all_day=False):
    return CalendarEvent(
        id=title,
        title=title,
        start=start,
        end=end,
        calendar_id="src",
        all_day=all_day,
    )


def test_afternoon_marker_converts_to_24h():
    slots = extract_slots("下午2:00")

    assert len(slots) == 1
    assert slots[0].time == "14:00"
    assert slots[0].period == DayPeriod.AFTERNOON
    assert slots[0].source == SlotSource.TITLE


def test_no_pattern_falls_back_to_start_time():
    start = datetime(2025, 7, 15, 9, 15, tzinfo=TZ)

    slots = extract_slots("Nail art open", start, TZ)

    assert [(s.time, s.period, s.source) for s in slots] == [
        ("09:15", DayPeriod.MORNING, SlotSource.START_TIME)
    ]


def test_no_pattern_and_no_start_yields_nothing():
    assert extract_slots("休息") == []
    assert extract_slots(None) == []
    assert extract_slots("") == []


@pytest.mark.parametrize(
    "title, expected",
    [
        ("10:30", ["10:30"]),
        ("14:00", ["14:00"]),
        ("10:30 / 14:00", ["10:30", "14:00"]),
        ("上午11點", ["11:00"]),
        ("上午12點", ["00:00"]),
        ("晚上7點", ["19:00"]),
        ("下午3點半", ["15:30"]),
        ("3點半", ["03:30"]),
        ("下午2時", ["14:00"]),
        ("早上9:30", ["09:30"]),
        ("中午12:30", ["12:30"]),
        ("中午1點", ["13:00"]),
        ("2pm", ["14:00"]),
        ("10:30am", ["10:30"]),
        ("12am", ["00:00"]),
        ("11：30", ["11:30"]),
        ("上午10:00 下午2:00", ["10:00", "14:00"]),
        ("預約 下午 2:00、4:00", ["14:00", "16:00"]),
    ],
)
def test_title_patterns(title, expected):
    assert parse_title_times(title) == expected


def test_prefixed_time_is_not_read_twice():
    # "下午2:00" must not also produce 02:00 through the plain clock pattern
    assert parse_title_times("下午2:00") == ["14:00"]


def test_out_of_range_times_are_ignored():
    assert parse_title_times("25:00") == []
    assert parse_title_times("12:75") == []


def test_duplicate_times_in_one_title_collapse():
    assert parse_title_times("14:00 14:00 下午2點") == ["14:00"]


def test_extraction_is_idempotent():
    titles = ["下午2:00", "10:30 / 14:00", "3點半", "上午11點", "random"]
    first = [parse_title_times(t) for t in titles]
    second = [parse_title_times(t) for t in titles]
    assert first == second


@pytest.mark.parametrize(
    "time_str, period",
    [
        ("06:00", DayPeriod.MORNING),
        ("11:59", DayPeriod.MORNING),
        ("12:00", DayPeriod.AFTERNOON),
        ("17:59", DayPeriod.AFTERNOON),
        ("18:00", DayPeriod.EVENING),
        ("05:59", DayPeriod.EVENING),
    ],
)
def test_classify_period(time_str, period):
    assert classify_period(time_str) == period


def test_period_labels():
    assert DayPeriod.MORNING.label == "上午"
    assert DayPeriod.AFTERNOON.label == "下午"
    assert DayPeriod.EVENING.label == "晚上"


def test_day_slots_dedup_first_wins_and_sorted():
    events = [
        _event("下午2:00", datetime(2025, 7, 15, 14, 0, tzinfo=TZ), datetime(2025, 7, 15, 16, 0, tzinfo=TZ)),
        _event("Open", datetime(2025, 7, 15, 14, 0, tzinfo=TZ), datetime(2025, 7, 15, 15, 0, tzinfo=TZ)),
        _event("10:00", datetime(2025, 7, 15, 10, 0, tzinfo=TZ), datetime(2025, 7, 15, 11, 0, tzinfo=TZ)),
    ]

    slots = extract_day_slots(events, TZ)

    assert [s.time for s in slots] == ["10:00", "14:00"]
    assert slots[1].source == SlotSource.TITLE


def test_all_day_event_without_title_time_yields_no_slot():
    events = [
        _event(
            "Open all day",
            datetime(2025, 7, 15, tzinfo=TZ),
            datetime(2025, 7, 16, tzinfo=TZ),
            all_day=True,
        )
    ]

    assert extract_day_slots(events, TZ) == []
