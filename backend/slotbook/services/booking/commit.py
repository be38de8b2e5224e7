# backend/slotbook/services/booking/commit.py
"""
Booking commit protocol.

States:
    idle → lock_acquiring → validating → persisting → notifying_and_linking → released

The slot is re-validated inside the lock against fresh (uncached) booking
calendar events and against bookings already in the store, so a booking whose
calendar event could not be created still blocks its slot.

Customer counters, calendar linking and notification run after the booking
row is stored and never undo it: their failures come back as warnings.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from ...errors import InvalidDateFormat, SlotConflict, ValidationError
from ...models.domain import BookingRecord, CalendarEvent
from ..cache import CacheLayer
from ..calendar.google_api import CalendarWriter
from ..calendar.source import CalendarEventSource
from ..events import EventEmitter
from ..slots.config import BookingConfig, normalize_time, parse_date
from ..slots.matcher import check_availability, slot_window
from ..store.base import TabularStore
from ..store.customers import CustomerService, now_iso, validate_customer_fields
from .lock import BookingLock

logger = logging.getLogger(__name__)


class CommitState(str, Enum):
    IDLE = "idle"
    LOCK_ACQUIRING = "lock_acquiring"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    NOTIFYING_AND_LINKING = "notifying_and_linking"
    RELEASED = "released"


@dataclass
class BookingRequest:
    user_id: str
    name: str
    phone: str
    date: str
    time: str
    services: str = ""
    removal: str = ""
    extension: str = ""
    remarks: str = ""


@dataclass
class CommitResult:
    booking: BookingRecord
    warnings: list[str] = field(default_factory=list)
    trace: list[CommitState] = field(default_factory=list)


class BookingCommitter:
    """
    Commits bookings one at a time.

    Args:
        config: Booking configuration
        lock: Commit lock (local or Redis)
        source: Calendar Event Source used uncached for validation
        store: Tabular store
        customers: Customer counters
        cache: Cache layer to invalidate on write
        writer: Booking-calendar writer, None disables linking
        emitter: Notification emitter, None disables notifications
        clock: Current time, for the minimum-advance check
    """

    def __init__(
        self,
        config: BookingConfig,
        lock: BookingLock,
        source: CalendarEventSource,
        store: TabularStore,
        customers: CustomerService,
        cache: CacheLayer,
        writer: CalendarWriter | None = None,
        emitter: EventEmitter | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config
        self.lock = lock
        self.source = source
        self.store = store
        self.customers = customers
        self.cache = cache
        self.writer = writer
        self.emitter = emitter
        self.clock = clock or (lambda: datetime.now(config.tz))

    def _enter(self, trace: list[CommitState], state: CommitState, request: BookingRequest) -> None:
        trace.append(state)
        logger.info(f"Booking {request.date} {request.time} ({request.user_id}): {state.value}")

    # ── Pre-lock checks ──────────────────────────────────────────────────

    def validate_request(self, request: BookingRequest) -> BookingRequest:
        """
        Field and timing checks done before the lock is requested.

        Raises:
            ValidationError: Missing fields, malformed date/time, slot in the
                past or inside the minimum advance window
        """
        fields = {}
        if not (request.user_id or "").strip():
            fields["user_id"] = "required"
        try:
            validate_customer_fields(request.name, request.phone)
        except ValidationError as e:
            fields.update(e.fields)

        try:
            day = parse_date(request.date)
        except InvalidDateFormat:
            day = None
            fields["date"] = "expected YYYY-MM-DD"
        try:
            time_str = normalize_time(request.time)
        except InvalidDateFormat:
            time_str = None
            fields["time"] = "expected HH:MM"

        if fields:
            raise ValidationError("Invalid booking request", fields)

        slot_start, _ = slot_window(day, time_str, self.config.slot_duration_hours, self.config.tz)
        earliest = self.clock() + timedelta(hours=self.config.min_advance_hours)
        if slot_start < earliest:
            raise ValidationError(
                f"Bookings must be made at least {self.config.min_advance_hours} hours in advance",
                {"time": "too soon"},
            )

        request.date = day.isoformat()
        request.time = time_str
        return request

    # ── Protocol ─────────────────────────────────────────────────────────

    def commit(self, request: BookingRequest) -> CommitResult:
        """
        Validate, lock, re-check, persist, then link and notify.

        Raises:
            ValidationError: Rejected before the lock
            LockTimeout: Lock not acquired within lock_timeout_seconds
            SlotConflict: Slot taken (calendar event or stored booking)
            UpstreamUnavailable: Booking calendar unreadable during validation
        """
        trace = [CommitState.IDLE]
        request = self.validate_request(request)

        try:
            self._enter(trace, CommitState.LOCK_ACQUIRING, request)
            with self.lock.hold(self.config.lock_timeout_seconds):
                self._enter(trace, CommitState.VALIDATING, request)
                self._revalidate(request)

                self._enter(trace, CommitState.PERSISTING, request)
                booking, warnings = self._persist(request)

                self._enter(trace, CommitState.NOTIFYING_AND_LINKING, request)
                warnings += self._notify_and_link(booking)
        finally:
            self._enter(trace, CommitState.RELEASED, request)

        return CommitResult(booking=booking, warnings=warnings, trace=trace)

    def _revalidate(self, request: BookingRequest) -> None:
        day = parse_date(request.date)
        tz = self.config.tz
        duration = self.config.slot_duration_hours
        slot_start, slot_end = slot_window(day, request.time, duration, tz)

        events: list[CalendarEvent] = []
        if self.config.booking_calendar_id:
            result = self.source.get_events(
                self.config.booking_calendar_id,
                slot_start,
                slot_end,
                use_cache=False,
            )
            if result.error:
                raise result.error
            events.extend(result.events)

        linked = {e.id for e in events}
        nearby = {(day + timedelta(days=offset)).isoformat() for offset in (-1, 0, 1)}
        for stored in self.store.list_bookings():
            if stored.date not in nearby or (stored.event_id and stored.event_id in linked):
                continue
            try:
                events.append(stored.as_event(tz, duration))
            except ValueError:
                logger.warning(f"Skipping malformed stored booking {stored.booking_id}")

        record = check_availability(events, day, request.time, duration, tz)
        if not record.available:
            logger.info(
                f"Slot {request.date} {request.time} taken: {record.conflict_count} conflict(s)"
            )
            raise SlotConflict(request.date, request.time, record.conflicts)

    def _persist(self, request: BookingRequest) -> tuple[BookingRecord, list[str]]:
        """
        Append the booking row. Once it is stored the booking is committed:
        a failed customer counter update is reported as a warning.
        """
        warnings: list[str] = []
        booking = self.store.append_booking(
            BookingRecord(
                user_id=request.user_id,
                name=request.name.strip(),
                phone=request.phone.strip(),
                date=request.date,
                time=request.time,
                services=request.services,
                removal=request.removal,
                extension=request.extension,
                remarks=request.remarks,
                created_at=now_iso(self.config.tz),
            )
        )
        try:
            self.customers.record_booking(booking)
        except Exception as e:
            logger.error(f"Customer counters for booking {booking.booking_id} failed: {e}")
            warnings.append(f"customer_update_failed: {e}")
        finally:
            self.cache.invalidate_bookings(self.config.booking_calendar_id)
            self.cache.invalidate_customers()
        return booking, warnings

    def _notify_and_link(self, booking: BookingRecord) -> list[str]:
        warnings: list[str] = []

        if self.writer is not None:
            try:
                event_id = self.writer.create_booking_event(booking)
                if event_id:
                    self.store.set_booking_event_id(booking.booking_id, event_id)
                    booking.event_id = event_id
                self.cache.invalidate_bookings(self.config.booking_calendar_id)
            except Exception as e:
                logger.error(f"Calendar event for booking {booking.booking_id} failed: {e}")
                warnings.append(f"calendar_event_failed: {e}")

        if self.emitter is not None:
            sent = self.emitter.emit_event("booking_created", {
                "booking_id": booking.booking_id,
                "user_id": booking.user_id,
                "name": booking.name,
                "date": booking.date,
                "time": booking.time,
                "services": booking.services,
            })
            if not sent:
                warnings.append("notification_failed")

        return warnings
