# backend/slotbook/services/store/sql_store.py

import logging

from sqlalchemy.orm import sessionmaker

from ...models.domain import BookingRecord, CustomerRecord
from ...models.tables import Bookings, Customers

logger = logging.getLogger(__name__)


def _customer_from_row(row: Customers) -> CustomerRecord:
    return CustomerRecord(
        line_user_id=row.line_user_id or "",
        name=row.name,
        phone=row.phone,
        created_at=row.created_at,
        last_booking=row.last_booking or "",
        total_bookings=row.total_bookings or 0,
        row_id=row.id,
    )


def _booking_from_row(row: Bookings) -> BookingRecord:
    return BookingRecord(
        user_id=row.user_id,
        name=row.name,
        phone=row.phone,
        date=row.date,
        time=row.time,
        services=row.services or "",
        removal=row.removal or "",
        extension=row.extension or "",
        remarks=row.remarks or "",
        created_at=row.created_at,
        event_id=row.event_id or "",
        booking_id=str(row.id),
    )


class SqlTabularStore:
    """Customers/bookings tables through SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ── Customers ────────────────────────────────────────────────────────

    def list_customers(self) -> list[CustomerRecord]:
        with self.session_factory() as db:
            rows = db.query(Customers).order_by(Customers.id).all()
            return [_customer_from_row(r) for r in rows]

    def append_customer(self, customer: CustomerRecord) -> CustomerRecord:
        with self.session_factory() as db:
            row = Customers(
                line_user_id=customer.line_user_id,
                name=customer.name,
                phone=customer.phone,
                created_at=customer.created_at,
                last_booking=customer.last_booking,
                total_bookings=customer.total_bookings,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _customer_from_row(row)

    def update_customer(self, customer: CustomerRecord) -> None:
        if customer.row_id is None:
            raise ValueError("Customer has no row id")
        with self.session_factory() as db:
            row = db.get(Customers, customer.row_id)
            if row is None:
                raise LookupError(f"Customer row {customer.row_id} not found")
            row.line_user_id = customer.line_user_id
            row.name = customer.name
            row.phone = customer.phone
            row.last_booking = customer.last_booking
            row.total_bookings = customer.total_bookings
            db.commit()

    # ── Bookings ─────────────────────────────────────────────────────────

    def list_bookings(self) -> list[BookingRecord]:
        with self.session_factory() as db:
            rows = db.query(Bookings).order_by(Bookings.id).all()
            return [_booking_from_row(r) for r in rows]

    def append_booking(self, booking: BookingRecord) -> BookingRecord:
        with self.session_factory() as db:
            row = Bookings(
                user_id=booking.user_id,
                name=booking.name,
                phone=booking.phone,
                date=booking.date,
                time=booking.time,
                services=booking.services,
                removal=booking.removal,
                extension=booking.extension,
                remarks=booking.remarks,
                created_at=booking.created_at,
                event_id=booking.event_id,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info(f"Booking {row.id} stored for {row.date} {row.time}")
            return _booking_from_row(row)

    def set_booking_event_id(self, booking_id: str, event_id: str) -> None:
        with self.session_factory() as db:
            row = db.get(Bookings, int(booking_id))
            if row is None:
                raise LookupError(f"Booking {booking_id} not found")
            row.event_id = event_id
            db.commit()
