# backend/slotbook/services/store/indexes.py
"""
Lookup indexes over the store.

Each index is one cached map keyed by a natural identifier, rebuilt from a
single store scan on miss or expiry. Writers invalidate the whole index.
"""

import logging
import re
from dataclasses import asdict

from ...models.domain import BookingRecord, CustomerRecord
from ..cache import CacheNamespace
from .base import TabularStore

logger = logging.getLogger(__name__)

INDEX_KEY = "index"


def normalize_phone(phone: str) -> str:
    return re.sub(r"[\s\-()]", "", phone or "")


class CustomerIndex:
    """Customers by phone and by LINE user id. Later rows win on duplicates."""

    def __init__(self, store: TabularStore, cache: CacheNamespace):
        self.store = store
        self.cache = cache

    def _build(self) -> dict:
        by_phone: dict[str, dict] = {}
        by_line: dict[str, dict] = {}
        customers = self.store.list_customers()
        for customer in customers:
            data = asdict(customer)
            if customer.phone:
                by_phone[normalize_phone(customer.phone)] = data
            if customer.line_user_id:
                by_line[customer.line_user_id] = data
        logger.info(f"Customer index rebuilt: {len(customers)} rows")
        return {"by_phone": by_phone, "by_line": by_line}

    def _lookup(self, table: str, key: str) -> CustomerRecord | None:
        index = self.cache.get_or_load(INDEX_KEY, self._build)
        data = index[table].get(key)
        return CustomerRecord(**data) if data else None

    def by_phone(self, phone: str) -> CustomerRecord | None:
        return self._lookup("by_phone", normalize_phone(phone))

    def by_line_id(self, line_user_id: str) -> CustomerRecord | None:
        return self._lookup("by_line", line_user_id)

    def invalidate(self) -> None:
        self.cache.invalidate()


class BookingIndex:
    """Bookings grouped by user id, chronological."""

    def __init__(self, store: TabularStore, cache: CacheNamespace):
        self.store = store
        self.cache = cache

    def _build(self) -> dict:
        by_user: dict[str, list[dict]] = {}
        bookings = self.store.list_bookings()
        for booking in sorted(bookings, key=lambda b: (b.date, b.time)):
            by_user.setdefault(booking.user_id, []).append(booking.to_dict())
        logger.info(f"Booking index rebuilt: {len(bookings)} rows")
        return {"by_user": by_user}

    def by_user(self, user_id: str) -> list[BookingRecord]:
        index = self.cache.get_or_load(INDEX_KEY, self._build)
        return [BookingRecord(**data) for data in index["by_user"].get(user_id, [])]

    def invalidate(self) -> None:
        self.cache.invalidate()
