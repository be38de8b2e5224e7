# backend/slotbook/services/cache.py
"""
TTL cache layer.

Namespaces (each with its own TTL and invalidation trigger):
  config:*     resolved BookingConfig
  store:*      tabular store handle (in-process only)
  customers:*  customer lookup index (phone / LINE id)
  bookings:*   booking lookup index (user id)
  events:*     calendar event lists per calendar + window

Values written to shared namespaces are plain JSON-compatible data so the same
code runs on MemoryCache and RedisCache. A read after expiry is a miss.
Writers invalidate, they never patch cached values.
"""

import json
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from redis import Redis

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    def get(self, key: str) -> tuple[Any, bool]: ...

    def set(self, key: str, value: Any, ttl: float) -> None: ...

    def invalidate(self, key: str, prefix: bool = False) -> int: ...


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class MemoryCache:
    """Thread-safe in-process cache with an injectable monotonic clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> tuple[Any, bool]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None, False
            return entry.value, True

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            now = self._clock()
            self._sweep(now)
            self._entries[key] = CacheEntry(value, now + ttl)

    def _sweep(self, now: float) -> None:
        # Windows that are never read again would otherwise stay forever
        expired = [k for k, entry in self._entries.items() if now >= entry.expires_at]
        for k in expired:
            del self._entries[k]

    def invalidate(self, key: str, prefix: bool = False) -> int:
        with self._lock:
            if prefix:
                keys = [k for k in self._entries if k.startswith(key)]
            else:
                keys = [key] if key in self._entries else []
            for k in keys:
                del self._entries[k]
            return len(keys)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache:
    """Redis-backed cache with JSON serialization. Redis errors read as misses."""

    KEY_PREFIX = "slotbook"

    def __init__(self, redis: Redis):
        self.redis = redis

    def _key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}:{key}"

    def get(self, key: str) -> tuple[Any, bool]:
        try:
            raw = self.redis.get(self._key(key))
        except Exception as e:
            logger.error(f"Cache get error for {key}: {e}")
            return None, False
        if raw is None:
            return None, False
        return json.loads(raw), True

    def set(self, key: str, value: Any, ttl: float) -> None:
        try:
            self.redis.setex(self._key(key), max(1, math.ceil(ttl)), json.dumps(value))
        except Exception as e:
            logger.error(f"Cache set error for {key}: {e}")

    def invalidate(self, key: str, prefix: bool = False) -> int:
        try:
            if prefix:
                keys = list(self.redis.scan_iter(f"{self._key(key)}*"))
            else:
                keys = [self._key(key)]
            if not keys:
                return 0
            return self.redis.delete(*keys)
        except Exception as e:
            logger.error(f"Cache invalidate error for {key}: {e}")
            return 0


class CacheNamespace:
    """One resource class: key prefix + TTL over a backend."""

    def __init__(self, backend: CacheBackend, name: str, ttl: float):
        self.backend = backend
        self.name = name
        self.ttl = ttl

    def _key(self, key: str) -> str:
        return f"{self.name}:{key}"

    def get(self, key: str) -> tuple[Any, bool]:
        value, hit = self.backend.get(self._key(key))
        logger.debug(f"Cache {'HIT' if hit else 'MISS'}: {self._key(key)}")
        return value, hit

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self.backend.set(self._key(key), value, self.ttl if ttl is None else ttl)

    def invalidate(self, key: str | None = None) -> int:
        """Drop one key, a key prefix ending in "*", or (None) the whole namespace."""
        if key is None:
            deleted = self.backend.invalidate(f"{self.name}:", prefix=True)
        elif key.endswith("*"):
            deleted = self.backend.invalidate(self._key(key[:-1]), prefix=True)
        else:
            deleted = self.backend.invalidate(self._key(key))
        logger.debug(f"Cache invalidate {self.name}:{key or '*'} ({deleted} keys)")
        return deleted

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        value, hit = self.get(key)
        if hit:
            return value
        value = loader()
        self.set(key, value)
        return value


class CacheLayer:
    """
    The process cache service, owned by the application context.

    Shared namespaces use `backend` (memory or Redis); the store handle is
    not serializable and always lives in `local`.
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        local: MemoryCache | None = None,
        config_ttl: float = 300,
        store_ttl: float = 600,
        customer_ttl: float = 300,
        booking_ttl: float = 300,
        events_ttl: float = 300,
    ):
        self.local = local or MemoryCache()
        self.backend = backend or self.local
        self.config = CacheNamespace(self.local, "config", config_ttl)
        self.store = CacheNamespace(self.local, "store", store_ttl)
        self.customers = CacheNamespace(self.backend, "customers", customer_ttl)
        self.bookings = CacheNamespace(self.backend, "bookings", booking_ttl)
        self.events = CacheNamespace(self.backend, "events", events_ttl)

    @property
    def namespaces(self) -> dict[str, CacheNamespace]:
        return {
            "config": self.config,
            "store": self.store,
            "customers": self.customers,
            "bookings": self.bookings,
            "events": self.events,
        }

    def invalidate_customers(self) -> int:
        return self.customers.invalidate()

    def invalidate_bookings(self, calendar_id: str | None = None) -> int:
        """Booking write: booking index plus cached booking-calendar event lists."""
        deleted = self.bookings.invalidate()
        if calendar_id:
            deleted += self.events.invalidate(f"{calendar_id}:*")
        return deleted

    def invalidate_all(self) -> dict[str, int]:
        return {name: ns.invalidate() for name, ns in self.namespaces.items()}
