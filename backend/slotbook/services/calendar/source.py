"""
backend/slotbook/services/calendar/source.py

Calendar Event Source.

Fetches events for one calendar and time window:
- Small windows: one direct list() request
- Large windows: sequential pagination with an adaptive page size, capped at
  max_pages; a failing page ends the loop with what was already collected
- Primary transport failure: read-only REST fallback (API key, httpx)
- Both transports down: empty list + UpstreamUnavailable on the result

get_events() never raises.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from urllib.parse import quote

import httpx

from ...errors import UpstreamUnavailable
from ...models.domain import CalendarEvent
from ..cache import CacheNamespace
from ..slots.config import BookingConfig

logger = logging.getLogger(__name__)

# Calendar API hard maximum for maxResults
DIRECT_MAX_RESULTS = 2500
REST_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"


# ── Fetch planning ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class FetchPlan:
    days: int
    estimated_events: int
    paginate: bool
    page_size: int


def adaptive_page_size(days: int, estimated_events: int, config: BookingConfig) -> int:
    """
    Page size scaled to the expected volume.

    Under 100 expected events the base shrinks toward the estimate plus a 20%
    margin; 100-300 grows it up to 1.5x. Long windows (>60 days) shrink by 0.7,
    short ones (<7 days) grow by 1.3. Result is clamped to [min, max].
    """
    size = float(config.page_size)
    if estimated_events < 100:
        size = min(size, estimated_events * 1.2 + 10)
    elif estimated_events <= 300:
        size = size * min(1.5, estimated_events / 200)

    if days > 60:
        size *= 0.7
    elif days < 7:
        size *= 1.3

    return max(config.min_page_size, min(config.max_page_size, int(size)))


def plan_fetch(start: datetime, end: datetime, config: BookingConfig) -> FetchPlan:
    """Choose direct vs paginated fetch for a window."""
    days = max(1, math.ceil((end - start).total_seconds() / 86400))
    estimated = int(days * config.average_daily_events * config.buffer_multiplier)
    paginate = (
        days > 30
        or estimated > 200
        or days > config.max_estimation_days / 3
    )
    return FetchPlan(
        days=days,
        estimated_events=estimated,
        paginate=paginate,
        page_size=adaptive_page_size(days, estimated, config),
    )


# ── Results ──────────────────────────────────────────────────────────────


@dataclass
class EventFetchResult:
    calendar_id: str
    events: list[CalendarEvent] = field(default_factory=list)
    strategy: str = "direct"  # direct | paginated | fallback | cache | none
    pages: int = 0
    truncated: bool = False
    error: UpstreamUnavailable | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# ── Fallback transport ───────────────────────────────────────────────────


class RestEventFallback:
    """Read-only Calendar REST enumeration with an API key (public calendars)."""

    def __init__(self, api_key: str | None, timeout: float = 10.0, client: httpx.Client | None = None):
        self.api_key = api_key
        self.timeout = timeout
        self.client = client

    def list_items(self, calendar_id: str, time_min: str, time_max: str) -> list[dict]:
        if not self.api_key:
            raise UpstreamUnavailable("No API key configured for fallback", calendar_id)

        url = REST_EVENTS_URL.format(calendar_id=quote(calendar_id, safe=""))
        params = {
            "key": self.api_key,
            "timeMin": time_min,
            "timeMax": time_max,
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": DIRECT_MAX_RESULTS,
        }
        if self.client is not None:
            response = self.client.get(url, params=params, timeout=self.timeout)
        else:
            response = httpx.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("items", [])


# ── Source ───────────────────────────────────────────────────────────────


class CalendarEventSource:
    """
    Event fetcher for both calendars.

    Args:
        service_factory: Returns a Calendar v3 client (built lazily, once)
        config: Pagination and timezone settings
        fallback: Secondary transport, optional
        cache: `events` cache namespace, optional
    """

    def __init__(
        self,
        service_factory: Callable[[], Any],
        config: BookingConfig,
        fallback: RestEventFallback | None = None,
        cache: CacheNamespace | None = None,
    ):
        self._service_factory = service_factory
        self._service = None
        self.config = config
        self.fallback = fallback
        self.cache = cache

    @property
    def service(self):
        if self._service is None:
            self._service = self._service_factory()
        return self._service

    def get_events(
        self,
        calendar_id: str,
        start: datetime,
        end: datetime,
        use_cache: bool = True,
    ) -> EventFetchResult:
        """
        Events of one calendar in [start, end).

        use_cache=False bypasses the events namespace for reads (commit
        validation); successful results are still written back.
        """
        time_min = start.isoformat()
        time_max = end.isoformat()
        cache_key = f"{calendar_id}:{time_min}:{time_max}"

        if use_cache and self.cache is not None:
            cached, hit = self.cache.get(cache_key)
            if hit:
                return EventFetchResult(
                    calendar_id=calendar_id,
                    events=[CalendarEvent.from_dict(e) for e in cached],
                    strategy="cache",
                )

        result = self._fetch(calendar_id, time_min, time_max, start, end)

        if result.ok and not result.truncated and self.cache is not None:
            self.cache.set(cache_key, [e.to_dict() for e in result.events])
        return result

    def _fetch(
        self,
        calendar_id: str,
        time_min: str,
        time_max: str,
        start: datetime,
        end: datetime,
    ) -> EventFetchResult:
        plan = plan_fetch(start, end, self.config)
        logger.debug(
            f"Fetching {calendar_id}: {plan.days}d, ~{plan.estimated_events} events, "
            f"{'paginated' if plan.paginate else 'direct'} (page size {plan.page_size})"
        )

        try:
            if plan.paginate:
                return self._fetch_paginated(calendar_id, time_min, time_max, plan.page_size)
            return self._fetch_direct(calendar_id, time_min, time_max)
        except Exception as e:
            logger.warning(f"Calendar API fetch failed for {calendar_id}: {e}")
            primary_error = e

        if self.fallback is not None:
            try:
                items = self.fallback.list_items(calendar_id, time_min, time_max)
                events = self._adapt(items, calendar_id)
                logger.info(f"Fallback fetch for {calendar_id} returned {len(events)} events")
                return EventFetchResult(calendar_id, events, strategy="fallback", pages=1)
            except Exception as e:
                logger.error(f"Fallback fetch failed for {calendar_id}: {e}")

        return EventFetchResult(
            calendar_id,
            strategy="none",
            error=UpstreamUnavailable(
                f"Calendar {calendar_id} unavailable: {primary_error}",
                calendar_id,
            ),
        )

    def _list_request(self, calendar_id: str, time_min: str, time_max: str, max_results: int, page_token=None):
        params = {
            "calendarId": calendar_id,
            "timeMin": time_min,
            "timeMax": time_max,
            "singleEvents": True,
            "orderBy": "startTime",
            "maxResults": max_results,
        }
        if page_token:
            params["pageToken"] = page_token
        return self.service.events().list(**params).execute()

    def _fetch_direct(self, calendar_id: str, time_min: str, time_max: str) -> EventFetchResult:
        response = self._list_request(calendar_id, time_min, time_max, DIRECT_MAX_RESULTS)
        events = self._adapt(response.get("items", []), calendar_id)
        return EventFetchResult(calendar_id, events, strategy="direct", pages=1)

    def _fetch_paginated(
        self,
        calendar_id: str,
        time_min: str,
        time_max: str,
        page_size: int,
    ) -> EventFetchResult:
        """
        Sequential pagination. The first page failing is a primary failure
        (raised); a later page failing returns the accumulated events.
        """
        events: list[CalendarEvent] = []
        page_token = None
        pages = 0
        truncated = False

        while pages < self.config.max_pages:
            try:
                response = self._list_request(calendar_id, time_min, time_max, page_size, page_token)
            except Exception as e:
                if pages == 0:
                    raise
                logger.warning(
                    f"Page {pages + 1} failed for {calendar_id}, "
                    f"returning {len(events)} events: {e}"
                )
                truncated = True
                break

            pages += 1
            events.extend(self._adapt(response.get("items", []), calendar_id))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        else:
            if page_token:
                logger.warning(f"Page limit {self.config.max_pages} reached for {calendar_id}")
                truncated = True

        logger.debug(f"Fetched {len(events)} events for {calendar_id} in {pages} pages")
        return EventFetchResult(
            calendar_id,
            events,
            strategy="paginated",
            pages=pages,
            truncated=truncated,
        )

    def _adapt(self, items: list[dict], calendar_id: str) -> list[CalendarEvent]:
        events = []
        for item in items:
            if item.get("status") == "cancelled":
                continue
            event = CalendarEvent.from_api(item, calendar_id, self.config.tz)
            if event is not None:
                events.append(event)
        return events
