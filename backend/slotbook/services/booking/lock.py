# backend/slotbook/services/booking/lock.py
"""
Commit lock: at most one booking commit past validation at a time.

Both locks wait at most `timeout` seconds and raise LockTimeout otherwise.
Release happens on every exit path of the `hold()` block.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Protocol

from redis import Redis
from redis.exceptions import LockError

from ...errors import LockTimeout

logger = logging.getLogger(__name__)


class BookingLock(Protocol):
    def hold(self, timeout: float) -> Iterator[None]: ...


class LocalBookingLock:
    """Process-wide mutex."""

    def __init__(self):
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, timeout: float) -> Iterator[None]:
        if not self._lock.acquire(timeout=timeout):
            raise LockTimeout(timeout)
        try:
            yield
        finally:
            self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()


class RedisBookingLock:
    """
    Redis lock shared by the worker processes of one instance.

    lease_seconds bounds how long a crashed holder can block others.
    """

    def __init__(self, redis: Redis, name: str = "slotbook:booking-lock", lease_seconds: float = 60):
        self.redis = redis
        self.name = name
        self.lease_seconds = lease_seconds

    @contextmanager
    def hold(self, timeout: float) -> Iterator[None]:
        lock = self.redis.lock(
            self.name,
            timeout=self.lease_seconds,
            blocking_timeout=timeout,
        )
        if not lock.acquire():
            raise LockTimeout(timeout)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # Lease expired while holding
                logger.warning(f"Booking lock release failed: {e}")
