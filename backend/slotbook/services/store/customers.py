# backend/slotbook/services/store/customers.py
"""
Customer management over the tabular store.

Reads go through the cached indexes. Counter updates made while a booking
is committed read the store directly, never the index.
"""

import logging
import re
from datetime import datetime, tzinfo

from ...errors import ValidationError
from ...models.domain import BookingRecord, CustomerRecord
from ..cache import CacheLayer
from .base import TabularStore
from .indexes import BookingIndex, CustomerIndex, normalize_phone

logger = logging.getLogger(__name__)

_PHONE_RE = re.compile(r"^\+?\d{8,15}$")


def now_iso(tz: tzinfo) -> str:
    return datetime.now(tz).isoformat(timespec="seconds")


def validate_customer_fields(name: str, phone: str) -> None:
    fields = {}
    if not (name or "").strip():
        fields["name"] = "required"
    if not (phone or "").strip():
        fields["phone"] = "required"
    elif not _PHONE_RE.match(normalize_phone(phone)):
        fields["phone"] = "invalid phone number"
    if fields:
        raise ValidationError("Invalid customer data", fields)


class CustomerService:
    def __init__(self, store: TabularStore, cache: CacheLayer, tz: tzinfo):
        self.store = store
        self.cache = cache
        self.tz = tz
        self.customers = CustomerIndex(store, cache.customers)
        self.bookings = BookingIndex(store, cache.bookings)

    def get_by_phone(self, phone: str) -> CustomerRecord | None:
        return self.customers.by_phone(phone)

    def get_by_line_id(self, line_user_id: str) -> CustomerRecord | None:
        return self.customers.by_line_id(line_user_id)

    def verify_line_id(self, line_user_id: str) -> CustomerRecord | None:
        """Registered customer for a LINE user id, None if unknown."""
        if not line_user_id:
            return None
        return self.customers.by_line_id(line_user_id)

    def bookings_for_user(self, user_id: str) -> list[BookingRecord]:
        return self.bookings.by_user(user_id)

    def save_customer(self, line_user_id: str, name: str, phone: str) -> CustomerRecord:
        """
        Create or update a customer.

        Matched by LINE user id first, then by phone. Counters and
        created_at of an existing customer are kept.

        Raises:
            ValidationError: Missing name or malformed phone
        """
        validate_customer_fields(name, phone)
        name = name.strip()
        phone = normalize_phone(phone)

        existing = None
        for customer in self.store.list_customers():
            if line_user_id and customer.line_user_id == line_user_id:
                existing = customer
                break
            if existing is None and normalize_phone(customer.phone) == phone:
                existing = customer

        if existing is None:
            saved = self.store.append_customer(
                CustomerRecord(
                    line_user_id=line_user_id or "",
                    name=name,
                    phone=phone,
                    created_at=now_iso(self.tz),
                )
            )
            logger.info(f"Customer created: {phone}")
        else:
            existing.name = name
            existing.phone = phone
            if line_user_id:
                existing.line_user_id = line_user_id
            self.store.update_customer(existing)
            saved = existing
            logger.info(f"Customer updated: {phone}")

        self.cache.invalidate_customers()
        return saved

    def record_booking(self, booking: BookingRecord) -> CustomerRecord:
        """
        Bump the booking customer's counters, creating the customer if new.

        Matched by LINE user id first, then by phone; a phone match without a
        LINE id is linked to the booking's user id.
        """
        phone = normalize_phone(booking.phone)
        customer = None
        for c in self.store.list_customers():
            if booking.user_id and c.line_user_id == booking.user_id:
                customer = c
                break
            if customer is None and normalize_phone(c.phone) == phone:
                customer = c

        if customer is None:
            customer = self.store.append_customer(
                CustomerRecord(
                    line_user_id=booking.user_id,
                    name=booking.name,
                    phone=phone,
                    created_at=now_iso(self.tz),
                    last_booking=booking.date,
                    total_bookings=1,
                )
            )
        else:
            if not customer.line_user_id:
                customer.line_user_id = booking.user_id
            customer.last_booking = booking.date
            customer.total_bookings += 1
            self.store.update_customer(customer)
        return customer
