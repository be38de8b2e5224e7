"""Calendar Event Source: fetch planning, pagination, fallback, caching."""

from datetime import datetime, timedelta

import httpx
import pytest

from conftest import BOOKING_CAL, TZ, FakeCalendarService, all_day_item, timed_item
from slotbook.errors import UpstreamUnavailable
from slotbook.services.cache import CacheNamespace, MemoryCache
from slotbook.services.calendar.source import (
    CalendarEventSource,
    RestEventFallback,
    adaptive_page_size,
    plan_fetch,
)

START = datetime(2025, 7, 1, 9, 0, tzinfo=TZ)


def _window(days):
    return START, START + timedelta(days=days)


def _items(n):
    return [
        timed_item(f"e{i}", f"event {i}", f"2025-07-01T{9 + i % 10:02d}:00", f"2025-07-01T{10 + i % 10:02d}:00")
        for i in range(n)
    ]


class StaticFallback:
    def __init__(self, items=None, error=None):
        self.items = items or []
        self.error = error
        self.calls = 0

    def list_items(self, calendar_id, time_min, time_max):
        self.calls += 1
        if self.error:
            raise self.error
        return self.items


# ── Planning ─────────────────────────────────────────────────────────────


def test_short_window_uses_direct_request(booking_config):
    plan = plan_fetch(*_window(7), booking_config)

    # 7 days * 8 events * 1.5 = 84
    assert plan.estimated_events == 84
    assert plan.paginate is False


@pytest.mark.parametrize("days", [31, 62])
def test_long_window_paginates(booking_config, days):
    assert plan_fetch(*_window(days), booking_config).paginate is True


def test_high_estimate_paginates(booking_config):
    # 17 days * 8 * 1.5 = 204 > 200
    plan = plan_fetch(*_window(17), booking_config)
    assert plan.days == 17
    assert plan.paginate is True


def test_page_size_is_clamped(booking_config):
    for days in (1, 3, 10, 40, 62, 90):
        estimated = int(days * booking_config.average_daily_events * booking_config.buffer_multiplier)
        size = adaptive_page_size(days, estimated, booking_config)
        assert booking_config.min_page_size <= size <= booking_config.max_page_size


def test_page_size_shrinks_for_small_estimates_and_long_ranges(booking_config):
    small = adaptive_page_size(10, 50, booking_config)
    medium = adaptive_page_size(20, 250, booking_config)
    long_range = adaptive_page_size(62, 250, booking_config)

    assert small < booking_config.page_size
    assert medium > booking_config.page_size
    assert long_range < medium


# ── Fetching ─────────────────────────────────────────────────────────────


def test_direct_fetch_adapts_items(booking_config):
    service = FakeCalendarService({
        BOOKING_CAL: [
            timed_item("a", "下午2:00", "2025-07-01T14:00", "2025-07-01T16:00"),
            all_day_item("b", "店休", "2025-07-02", "2025-07-03"),
            {"id": "c", "status": "cancelled", "start": {}, "end": {}},
        ]
    })
    source = CalendarEventSource(lambda: service, booking_config)

    result = source.get_events(BOOKING_CAL, *_window(3))

    assert result.ok
    assert result.strategy == "direct"
    assert [e.id for e in result.events] == ["a", "b"]
    assert result.events[1].all_day
    assert len(service.list_calls) == 1
    assert service.list_calls[0]["singleEvents"] is True
    assert service.list_calls[0]["orderBy"] == "startTime"


def test_paginated_fetch_collects_every_page(booking_config):
    service = FakeCalendarService({BOOKING_CAL: _items(130)})
    source = CalendarEventSource(lambda: service, booking_config)

    result = source.get_events(BOOKING_CAL, *_window(40))

    assert result.strategy == "paginated"
    assert len(result.events) == 130
    assert result.pages == len(service.list_calls) > 1
    assert not result.truncated


def test_pagination_halts_at_page_limit(booking_config):
    service = FakeCalendarService({BOOKING_CAL: _items(5)})
    service.endless = True
    source = CalendarEventSource(lambda: service, booking_config)

    result = source.get_events(BOOKING_CAL, *_window(40))

    assert len(service.list_calls) == booking_config.max_pages == 20
    assert result.pages == 20
    assert result.truncated


def test_page_error_returns_accumulated_events(booking_config):
    service = FakeCalendarService({BOOKING_CAL: _items(200)})
    service.fail_on_page = 2
    fallback = StaticFallback()
    source = CalendarEventSource(lambda: service, booking_config, fallback=fallback)

    result = source.get_events(BOOKING_CAL, *_window(40))

    assert result.ok
    assert result.truncated
    assert result.pages == 1
    assert 0 < len(result.events) < 200
    assert fallback.calls == 0


def test_primary_failure_uses_fallback(booking_config):
    service = FakeCalendarService()
    service.fail_calendars.add(BOOKING_CAL)
    fallback = StaticFallback(items=_items(3))
    source = CalendarEventSource(lambda: service, booking_config, fallback=fallback)

    result = source.get_events(BOOKING_CAL, *_window(1))

    assert result.ok
    assert result.strategy == "fallback"
    assert len(result.events) == 3


def test_service_build_failure_uses_fallback(booking_config):
    def broken_factory():
        raise UpstreamUnavailable("no credentials")

    fallback = StaticFallback(items=_items(1))
    source = CalendarEventSource(broken_factory, booking_config, fallback=fallback)

    result = source.get_events(BOOKING_CAL, *_window(1))

    assert result.strategy == "fallback"
    assert len(result.events) == 1


def test_both_transports_failing_returns_empty_with_error(booking_config):
    service = FakeCalendarService()
    service.fail_calendars.add(BOOKING_CAL)
    fallback = StaticFallback(error=RuntimeError("fallback down"))
    source = CalendarEventSource(lambda: service, booking_config, fallback=fallback)

    result = source.get_events(BOOKING_CAL, *_window(1))

    assert result.events == []
    assert isinstance(result.error, UpstreamUnavailable)
    assert result.error.calendar_id == BOOKING_CAL
    assert result.error.retryable


def test_results_are_cached_per_calendar_and_window(booking_config):
    service = FakeCalendarService({BOOKING_CAL: _items(2)})
    cache = CacheNamespace(MemoryCache(), "events", ttl=300)
    source = CalendarEventSource(lambda: service, booking_config, cache=cache)

    first = source.get_events(BOOKING_CAL, *_window(1))
    second = source.get_events(BOOKING_CAL, *_window(1))
    uncached = source.get_events(BOOKING_CAL, *_window(1), use_cache=False)

    assert first.strategy == "direct"
    assert second.strategy == "cache"
    assert [e.to_dict() for e in second.events] == [e.to_dict() for e in first.events]
    assert uncached.strategy == "direct"
    assert len(service.list_calls) == 2


def test_failed_fetch_is_not_cached(booking_config):
    service = FakeCalendarService()
    service.fail_calendars.add(BOOKING_CAL)
    cache = CacheNamespace(MemoryCache(), "events", ttl=300)
    source = CalendarEventSource(lambda: service, booking_config, cache=cache)

    source.get_events(BOOKING_CAL, *_window(1))
    service.fail_calendars.clear()
    result = source.get_events(BOOKING_CAL, *_window(1))

    assert result.strategy == "direct"


# ── REST fallback ────────────────────────────────────────────────────────


def test_rest_fallback_sends_key_and_window():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"items": [{"id": "x"}]})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    fallback = RestEventFallback("api-key", client=client)

    items = fallback.list_items("a@group.calendar.google.com", "2025-07-01T09:00:00+08:00", "2025-07-01T21:00:00+08:00")

    assert items == [{"id": "x"}]
    assert "a%40group.calendar.google.com" in seen["url"]
    assert seen["params"]["key"] == "api-key"
    assert seen["params"]["singleEvents"] == "true"
    assert seen["params"]["timeMin"] == "2025-07-01T09:00:00+08:00"


def test_rest_fallback_without_key_is_unavailable():
    with pytest.raises(UpstreamUnavailable):
        RestEventFallback(None).list_items("cal", "a", "b")
