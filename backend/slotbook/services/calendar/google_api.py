"""
backend/slotbook/services/calendar/google_api.py

Google API client construction and booking-calendar writes.

Handles:
- Service-account credentials for Calendar and Sheets
- Building API clients with an explicit HTTP timeout
- Creating the booking-calendar event for a committed booking
"""

import logging
from datetime import timedelta
from typing import Any, Callable

import google_auth_httplib2
import httplib2
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest

from ...models.domain import BookingRecord
from ..slots.config import BookingConfig

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

EVENT_TITLE_PREFIX = "美甲預約"


def load_credentials(service_account_file: str, scopes: list[str]):
    """Load service-account credentials from a JSON key file."""
    return service_account.Credentials.from_service_account_file(
        service_account_file,
        scopes=scopes,
    )


def _authorized_http(credentials, timeout: float) -> google_auth_httplib2.AuthorizedHttp:
    return google_auth_httplib2.AuthorizedHttp(
        credentials,
        http=httplib2.Http(timeout=timeout),
    )


def request_builder(credentials, timeout: float) -> Callable[..., HttpRequest]:
    """
    Request factory giving every API request its own AuthorizedHttp.

    httplib2.Http is not thread-safe; built clients are shared by the
    request threads, so no request may reuse the client's own http.
    """
    def build_request(http, *args, **kwargs):
        return HttpRequest(_authorized_http(credentials, timeout), *args, **kwargs)
    return build_request


def build_calendar_service(service_account_file: str, timeout: float = 10.0):
    """Build Google Calendar API v3 client."""
    credentials = load_credentials(service_account_file, CALENDAR_SCOPES)
    return build(
        "calendar",
        "v3",
        http=_authorized_http(credentials, timeout),
        requestBuilder=request_builder(credentials, timeout),
        cache_discovery=False,
    )


def build_sheets_service(service_account_file: str, timeout: float = 10.0):
    """Build Google Sheets API v4 client."""
    credentials = load_credentials(service_account_file, SHEETS_SCOPES)
    return build(
        "sheets",
        "v4",
        http=_authorized_http(credentials, timeout),
        requestBuilder=request_builder(credentials, timeout),
        cache_discovery=False,
    )


def build_booking_event(booking: BookingRecord, config: BookingConfig) -> dict:
    """
    Calendar event body for a booking.

    Args:
        booking: Persisted booking (booking_id set)
        config: Supplies timezone and appointment duration

    Returns:
        Event resource for events().insert()
    """
    start = booking.start_at(config.tz)
    end = start + timedelta(hours=config.slot_duration_hours)

    description_parts = [
        f"客戶姓名: {booking.name}",
        f"聯絡電話: {booking.phone}",
        f"服務項目: {booking.services or '待確認'}",
    ]
    if booking.removal:
        description_parts.append(f"卸甲: {booking.removal}")
    if booking.extension:
        description_parts.append(f"延甲: {booking.extension}")
    description_parts.append(f"預約ID: {booking.booking_id}")
    description_parts.append(f"LINE User ID: {booking.user_id}")
    description_parts.append("")
    description_parts.append(f"備註: {booking.remarks or '無'}")

    return {
        "summary": f"{EVENT_TITLE_PREFIX} - {booking.name}",
        "description": "\n".join(description_parts),
        "start": {
            "dateTime": start.isoformat(),
            "timeZone": config.timezone,
        },
        "end": {
            "dateTime": end.isoformat(),
            "timeZone": config.timezone,
        },
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "popup", "minutes": 60},
                {"method": "popup", "minutes": 1440},
            ],
        },
    }


class CalendarWriter:
    """
    Writes booking events to the booking calendar.

    The client comes from service_factory on each write, so a missing or
    broken credential surfaces as a failed write, not a failed startup.
    """

    def __init__(self, service_factory: Callable[[], Any], config: BookingConfig):
        self.service_factory = service_factory
        self.config = config

    def create_booking_event(self, booking: BookingRecord) -> str:
        """
        Create the booking-calendar event.

        Returns:
            Created event id

        Raises:
            HttpError: If API call fails
        """
        body = build_booking_event(booking, self.config)
        try:
            created = self.service_factory().events().insert(
                calendarId=self.config.booking_calendar_id,
                body=body,
            ).execute()
        except HttpError as e:
            logger.error(f"Failed to create booking calendar event: {e}")
            raise

        event_id = created.get("id", "")
        logger.info(f"Created booking calendar event: {event_id}")
        return event_id
