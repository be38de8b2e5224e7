# backend/slotbook/services/store/sheets_store.py
"""
Google Sheets backed store.

Row 1 of each sheet is a header. A record's id is its 1-based sheet row
number, so bookings written here keep stable ids as long as rows are never
deleted or reordered by hand.
"""

import logging
import re

from googleapiclient.errors import HttpError

from ...models.domain import BOOKING_COLUMNS, CUSTOMER_COLUMNS, BookingRecord, CustomerRecord

logger = logging.getLogger(__name__)

_ROW_RE = re.compile(r"![A-Z]+(\d+)")

FIRST_DATA_ROW = 2


def _column_letter(index: int) -> str:
    """0 → A, 25 → Z, 26 → AA."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def parse_updated_row(updated_range: str) -> int:
    """Row number from an append response range such as "Bookings!A5:K5"."""
    match = _ROW_RE.search(updated_range or "")
    if not match:
        raise ValueError(f"Cannot parse row from range {updated_range!r}")
    return int(match.group(1))


class SheetsTabularStore:
    """Customers/bookings worksheets through the Sheets v4 values API."""

    def __init__(
        self,
        service,
        spreadsheet_id: str,
        customers_sheet: str = "Customers",
        bookings_sheet: str = "Bookings",
    ):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.customers_sheet = customers_sheet
        self.bookings_sheet = bookings_sheet

    def _values(self):
        return self.service.spreadsheets().values()

    def _range(self, sheet: str, width: int, row: int | None = None) -> str:
        last = _column_letter(width - 1)
        if row is None:
            return f"{sheet}!A{FIRST_DATA_ROW}:{last}"
        return f"{sheet}!A{row}:{last}{row}"

    def _read(self, sheet: str, width: int) -> list[list]:
        response = self._values().get(
            spreadsheetId=self.spreadsheet_id,
            range=self._range(sheet, width),
        ).execute()
        return response.get("values", [])

    def _append(self, sheet: str, width: int, row: list) -> int:
        try:
            response = self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{sheet}!A:{_column_letter(width - 1)}",
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [row]},
            ).execute()
        except HttpError as e:
            logger.error(f"Sheets append to {sheet} failed: {e}")
            raise
        return parse_updated_row(response.get("updates", {}).get("updatedRange", ""))

    def _update(self, range_: str, row: list) -> None:
        self._values().update(
            spreadsheetId=self.spreadsheet_id,
            range=range_,
            valueInputOption="RAW",
            body={"values": [row]},
        ).execute()

    # ── Customers ────────────────────────────────────────────────────────

    def list_customers(self) -> list[CustomerRecord]:
        rows = self._read(self.customers_sheet, len(CUSTOMER_COLUMNS))
        return [
            CustomerRecord.from_row(row, row_id=index + FIRST_DATA_ROW)
            for index, row in enumerate(rows)
            if any(row)
        ]

    def append_customer(self, customer: CustomerRecord) -> CustomerRecord:
        row_id = self._append(self.customers_sheet, len(CUSTOMER_COLUMNS), customer.to_row())
        customer.row_id = row_id
        return customer

    def update_customer(self, customer: CustomerRecord) -> None:
        if customer.row_id is None:
            raise ValueError("Customer has no row id")
        self._update(
            self._range(self.customers_sheet, len(CUSTOMER_COLUMNS), customer.row_id),
            customer.to_row(),
        )

    # ── Bookings ─────────────────────────────────────────────────────────

    def list_bookings(self) -> list[BookingRecord]:
        rows = self._read(self.bookings_sheet, len(BOOKING_COLUMNS))
        return [
            BookingRecord.from_row(row, booking_id=str(index + FIRST_DATA_ROW))
            for index, row in enumerate(rows)
            if any(row)
        ]

    def append_booking(self, booking: BookingRecord) -> BookingRecord:
        row_id = self._append(self.bookings_sheet, len(BOOKING_COLUMNS), booking.to_row())
        booking.booking_id = str(row_id)
        logger.info(f"Booking row {row_id} appended for {booking.date} {booking.time}")
        return booking

    def set_booking_event_id(self, booking_id: str, event_id: str) -> None:
        column = _column_letter(BOOKING_COLUMNS.index("event_id"))
        self._update(f"{self.bookings_sheet}!{column}{booking_id}", [event_id])
