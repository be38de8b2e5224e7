# backend/slotbook/services/store/base.py

from typing import Protocol

from ...models.domain import BookingRecord, CustomerRecord


class TabularStore(Protocol):
    """
    Two-table booking store (customers, bookings).

    Rows are append-only except customer counters and a booking's linked
    calendar event id.
    """

    def list_customers(self) -> list[CustomerRecord]: ...

    def append_customer(self, customer: CustomerRecord) -> CustomerRecord: ...

    def update_customer(self, customer: CustomerRecord) -> None: ...

    def list_bookings(self) -> list[BookingRecord]: ...

    def append_booking(self, booking: BookingRecord) -> BookingRecord: ...

    def set_booking_event_id(self, booking_id: str, event_id: str) -> None: ...
