# backend/slotbook/context.py
"""
Application context: owns the cache layer and builds services per request.

Routers receive the context through Depends(get_context); tests replace it
with app.dependency_overrides.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Callable

from redis import Redis

from .config import Settings, settings as default_settings
from .database import init_db, make_engine, make_session_factory
from .errors import UpstreamUnavailable
from .redis_client import make_redis
from .services.booking import BookingCommitter, LocalBookingLock, RedisBookingLock
from .services.booking.lock import BookingLock
from .services.cache import CacheLayer, MemoryCache, RedisCache
from .services.calendar.google_api import CalendarWriter, build_calendar_service, build_sheets_service
from .services.calendar.source import CalendarEventSource, RestEventFallback
from .services.events import EventEmitter
from .services.slots import BookingConfig
from .services.slots.batch import AvailabilityService
from .services.store import CustomerService, SheetsTabularStore, SqlTabularStore
from .services.store.base import TabularStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "booking"
STORE_KEY = "handle"


class AppContext:
    def __init__(
        self,
        settings: Settings,
        redis: Redis | None = None,
        cache: CacheLayer | None = None,
        calendar_service_factory: Callable[[], Any] | None = None,
        store_factory: Callable[[], TabularStore] | None = None,
        lock: BookingLock | None = None,
        emitter: EventEmitter | None = None,
        fallback: RestEventFallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.settings = settings
        self.redis = redis
        self.cache = cache or CacheLayer(
            backend=RedisCache(redis) if redis is not None else MemoryCache(),
            config_ttl=settings.config_cache_ttl,
            store_ttl=settings.store_cache_ttl,
            customer_ttl=settings.customer_cache_ttl,
            booking_ttl=settings.booking_cache_ttl,
            events_ttl=settings.events_cache_ttl,
        )
        self._calendar_service_factory = calendar_service_factory or self._build_calendar_service
        self._calendar_service = None
        self._store_factory = store_factory or self._build_store
        self._session_factory = None
        self.lock = lock or self._build_lock()
        self.emitter = emitter or EventEmitter(redis, enabled=settings.notifications_enabled)
        self.fallback = fallback or RestEventFallback(
            settings.google_api_key,
            timeout=settings.calendar_timeout_seconds,
        )
        self.clock = clock

    # ── Builders ─────────────────────────────────────────────────────────

    def _build_lock(self) -> BookingLock:
        if self.settings.lock_backend == "redis":
            if self.redis is None:
                raise ValueError("LOCK_BACKEND=redis requires REDIS_URL")
            return RedisBookingLock(self.redis)
        return LocalBookingLock()

    def _build_calendar_service(self):
        if not self.settings.google_service_account_file:
            raise UpstreamUnavailable("GOOGLE_SERVICE_ACCOUNT_FILE is not configured")
        return build_calendar_service(
            self.settings.google_service_account_file,
            timeout=self.settings.calendar_timeout_seconds,
        )

    def _build_store(self) -> TabularStore:
        if self.settings.store_backend == "sheets":
            if not self.settings.spreadsheet_id or not self.settings.google_service_account_file:
                raise ValueError(
                    "STORE_BACKEND=sheets requires SPREADSHEET_ID and GOOGLE_SERVICE_ACCOUNT_FILE"
                )
            service = build_sheets_service(
                self.settings.google_service_account_file,
                timeout=self.settings.calendar_timeout_seconds,
            )
            return SheetsTabularStore(
                service,
                self.settings.spreadsheet_id,
                customers_sheet=self.settings.customers_sheet,
                bookings_sheet=self.settings.bookings_sheet,
            )

        if self._session_factory is None:
            engine = make_engine(self.settings.resolved_database_url)
            init_db(engine)
            self._session_factory = make_session_factory(engine)
        return SqlTabularStore(self._session_factory)

    # ── Shared resources ─────────────────────────────────────────────────

    @property
    def config(self) -> BookingConfig:
        return self.cache.config.get_or_load(
            CONFIG_KEY,
            lambda: BookingConfig.from_settings(self.settings),
        )

    @property
    def store(self) -> TabularStore:
        return self.cache.store.get_or_load(STORE_KEY, self._store_factory)

    def calendar_service(self):
        if self._calendar_service is None:
            self._calendar_service = self._calendar_service_factory()
        return self._calendar_service

    # ── Services ─────────────────────────────────────────────────────────

    def event_source(self, config: BookingConfig | None = None) -> CalendarEventSource:
        return CalendarEventSource(
            self.calendar_service,
            config or self.config,
            fallback=self.fallback,
            cache=self.cache.events,
        )

    def availability(self) -> AvailabilityService:
        config = self.config
        return AvailabilityService(self.event_source(config), config)

    def customers(self) -> CustomerService:
        return CustomerService(self.store, self.cache, self.config.tz)

    def committer(self) -> BookingCommitter:
        config = self.config
        store = self.store
        writer = (
            CalendarWriter(self.calendar_service, config)
            if config.booking_calendar_id
            else None
        )
        return BookingCommitter(
            config=config,
            lock=self.lock,
            source=self.event_source(config),
            store=store,
            customers=CustomerService(store, self.cache, config.tz),
            cache=self.cache,
            writer=writer,
            emitter=self.emitter,
            clock=self.clock,
        )


@lru_cache
def get_context() -> AppContext:
    return AppContext(default_settings, redis=make_redis(default_settings.redis_url))
