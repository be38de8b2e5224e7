"""
Shared pytest setup: environment before the app is imported, plus fakes for
the Google API client objects (`service.events().list(...).execute()`).
"""
from __future__ import annotations

import os
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

TZ = ZoneInfo("Asia/Taipei")
SOURCE_CAL = "slots@group.calendar.google.com"
BOOKING_CAL = "bookings@group.calendar.google.com"


def pytest_configure(config):
    """Settings are read at import time: point them at an in-memory store."""
    os.environ.setdefault("DATABASE_URL", "sqlite://")
    os.environ.setdefault("SOURCE_CALENDAR_ID", SOURCE_CAL)
    os.environ.setdefault("BOOKING_CALENDAR_ID", BOOKING_CAL)
    os.environ.setdefault("LOCK_BACKEND", "local")
    os.environ.pop("REDIS_URL", None)


# ── Google Calendar fake ─────────────────────────────────────────────────


class FakeRequest:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeEvents:
    def __init__(self, service: "FakeCalendarService"):
        self.service = service

    def list(self, **kwargs):
        return FakeRequest(lambda: self.service._list(kwargs))

    def insert(self, calendarId=None, body=None):
        return FakeRequest(lambda: self.service._insert(calendarId, body))


class FakeCalendarService:
    """
    In-memory calendar API. Items overlapping timeMin/timeMax are returned in
    insertion order; pageToken is the offset of the next page.
    """

    def __init__(self, calendars: dict[str, list[dict]] | None = None):
        self.calendars = {k: list(v) for k, v in (calendars or {}).items()}
        self.list_calls: list[dict] = []
        self.inserted: list[dict] = []
        self.fail_calendars: set[str] = set()
        self.fail_on_page: int | None = None  # 1-based page that raises
        self.endless = False
        self.insert_error: Exception | None = None

    def events(self):
        return FakeEvents(self)

    def calls_for(self, calendar_id: str) -> list[dict]:
        return [c for c in self.list_calls if c["calendarId"] == calendar_id]

    def _list(self, params: dict) -> dict:
        self.list_calls.append(params)
        calendar_id = params["calendarId"]
        if calendar_id in self.fail_calendars:
            raise RuntimeError(f"calendar {calendar_id} down")

        offset = int(params.get("pageToken") or 0)
        page_number = len(self.calls_for(calendar_id))
        if self.fail_on_page is not None and page_number == self.fail_on_page:
            raise RuntimeError(f"page {page_number} failed")

        items = [
            item for item in self.calendars.get(calendar_id, [])
            if _in_window(item, params.get("timeMin"), params.get("timeMax"))
        ]
        size = params.get("maxResults", 250)
        page = items[offset:offset + size]
        response = {"items": page}
        if self.endless or offset + size < len(items):
            response["nextPageToken"] = str(offset + size)
        return response

    def _insert(self, calendar_id: str, body: dict) -> dict:
        if self.insert_error is not None:
            raise self.insert_error
        event_id = f"evt_{len(self.inserted) + 1}"
        self.inserted.append({"calendarId": calendar_id, "body": body, "id": event_id})
        self.calendars.setdefault(calendar_id, []).append({
            "id": event_id,
            "summary": body["summary"],
            "start": {"dateTime": body["start"]["dateTime"]},
            "end": {"dateTime": body["end"]["dateTime"]},
        })
        return {"id": event_id}


def _item_bound(raw: dict) -> datetime | None:
    if raw.get("dateTime"):
        return datetime.fromisoformat(raw["dateTime"].replace("Z", "+00:00"))
    if raw.get("date"):
        return datetime.fromisoformat(raw["date"]).replace(tzinfo=TZ)
    return None


def _in_window(item: dict, time_min: str | None, time_max: str | None) -> bool:
    """Same filter as the API: end after timeMin, start before timeMax."""
    start = _item_bound(item.get("start") or {})
    end = _item_bound(item.get("end") or {})
    if start is None or end is None:
        return True
    if time_min and end <= datetime.fromisoformat(time_min):
        return False
    if time_max and start >= datetime.fromisoformat(time_max):
        return False
    return True


def timed_item(event_id: str, summary: str, start: str, end: str) -> dict:
    """Calendar API item with local Asia/Taipei date-times ("2025-07-15T14:00")."""
    return {
        "id": event_id,
        "summary": summary,
        "start": {"dateTime": f"{start}:00+08:00", "timeZone": "Asia/Taipei"},
        "end": {"dateTime": f"{end}:00+08:00", "timeZone": "Asia/Taipei"},
    }


def all_day_item(event_id: str, summary: str, start: str, end: str) -> dict:
    return {"id": event_id, "summary": summary, "start": {"date": start}, "end": {"date": end}}


# ── Fixtures ─────────────────────────────────────────────────────────────


@pytest.fixture
def booking_config():
    from slotbook.services.slots.config import BookingConfig

    return BookingConfig(
        source_calendar_ids=(SOURCE_CAL,),
        booking_calendar_id=BOOKING_CAL,
        timezone="Asia/Taipei",
        lock_timeout_seconds=2.0,
    )


@pytest.fixture
def fake_calendar():
    return FakeCalendarService()


@pytest.fixture
def sql_store():
    from slotbook.database import init_db, make_engine, make_session_factory
    from slotbook.services.store import SqlTabularStore

    engine = make_engine("sqlite://")
    init_db(engine)
    return SqlTabularStore(make_session_factory(engine))


@pytest.fixture
def fixed_now():
    return datetime(2025, 7, 1, 10, 0, tzinfo=TZ)
