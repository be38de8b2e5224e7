"""Booking commit protocol: lock, re-validation, persistence, linking."""

import threading
from datetime import date

import pytest

from conftest import BOOKING_CAL, FakeCalendarService, timed_item
from slotbook.errors import LockTimeout, SlotConflict, UpstreamUnavailable, ValidationError
from slotbook.services.booking import BookingCommitter, BookingRequest, CommitState, LocalBookingLock
from slotbook.services.cache import CacheLayer
from slotbook.services.calendar.google_api import CalendarWriter
from slotbook.services.calendar.source import CalendarEventSource
from slotbook.services.events import EventEmitter
from slotbook.services.store import CustomerService


class FailingRedis:
    def rpush(self, *args):
        raise ConnectionError("redis down")


class RecordingRedis:
    def __init__(self):
        self.pushed = []

    def rpush(self, queue, value):
        self.pushed.append((queue, value))


def _request(**overrides):
    data = dict(
        user_id="U123",
        name="Amy",
        phone="0912345678",
        date="2025-07-15",
        time="14:00",
        services="凝膠美甲",
    )
    data.update(overrides)
    return BookingRequest(**data)


@pytest.fixture
def cache():
    return CacheLayer()


@pytest.fixture
def make_committer(booking_config, sql_store, cache, fixed_now):
    def factory(calendar=None, lock=None, emitter=None, writer=True):
        calendar = calendar or FakeCalendarService()
        return BookingCommitter(
            config=booking_config,
            lock=lock or LocalBookingLock(),
            source=CalendarEventSource(lambda: calendar, booking_config, cache=cache.events),
            store=sql_store,
            customers=CustomerService(sql_store, cache, booking_config.tz),
            cache=cache,
            writer=CalendarWriter(lambda: calendar, booking_config) if writer else None,
            emitter=emitter,
            clock=lambda: fixed_now,
        )
    return factory


def test_successful_commit_walks_every_state(make_committer, sql_store):
    calendar = FakeCalendarService()
    committer = make_committer(calendar)

    result = committer.commit(_request())

    assert result.trace == [
        CommitState.IDLE,
        CommitState.LOCK_ACQUIRING,
        CommitState.VALIDATING,
        CommitState.PERSISTING,
        CommitState.NOTIFYING_AND_LINKING,
        CommitState.RELEASED,
    ]
    assert result.warnings == []
    assert result.booking.booking_id == "1"
    assert result.booking.event_id == "evt_1"
    assert sql_store.list_bookings()[0].event_id == "evt_1"
    assert calendar.inserted[0]["calendarId"] == BOOKING_CAL
    assert calendar.inserted[0]["body"]["summary"] == "美甲預約 - Amy"


def test_commit_updates_customer_counters(make_committer, sql_store):
    committer = make_committer()

    committer.commit(_request())
    committer.commit(_request(time="18:00"))

    customers = sql_store.list_customers()
    assert len(customers) == 1
    assert customers[0].line_user_id == "U123"
    assert customers[0].total_bookings == 2
    assert customers[0].last_booking == "2025-07-15"


def test_calendar_conflict_raises_slot_conflict(make_committer, sql_store):
    calendar = FakeCalendarService({
        BOOKING_CAL: [timed_item("busy", "美甲預約 - Ben", "2025-07-15T13:00", "2025-07-15T15:00")]
    })
    committer = make_committer(calendar)

    with pytest.raises(SlotConflict) as exc:
        committer.commit(_request())

    assert [c.id for c in exc.value.conflicts] == ["busy"]
    assert exc.value.to_dict()["conflicts"][0]["id"] == "busy"
    assert sql_store.list_bookings() == []


def test_stored_booking_blocks_slot_when_calendar_event_is_missing(make_committer):
    calendar = FakeCalendarService()
    calendar.insert_error = RuntimeError("calendar write failed")
    committer = make_committer(calendar)

    first = committer.commit(_request())

    assert first.warnings and first.warnings[0].startswith("calendar_event_failed")
    with pytest.raises(SlotConflict):
        committer.commit(_request(user_id="U999", name="Ben", time="15:00"))


def test_validation_reads_fresh_calendar_events(make_committer, cache):
    calendar = FakeCalendarService()
    committer = make_committer(calendar)
    # Prime the events cache with an empty window, then book the slot out-of-band
    committer.source.get_events(BOOKING_CAL, *committer.config.day_window(date(2025, 7, 15)))
    calendar.calendars[BOOKING_CAL] = [
        timed_item("late", "walk-in", "2025-07-15T14:30", "2025-07-15T15:00")
    ]

    with pytest.raises(SlotConflict):
        committer.commit(_request())


def test_concurrent_commits_for_same_slot_book_once(make_committer, sql_store):
    committer = make_committer(FakeCalendarService())
    barrier = threading.Barrier(2)
    outcomes = []

    def submit(user_id):
        barrier.wait()
        try:
            committer.commit(_request(user_id=user_id))
            outcomes.append("ok")
        except SlotConflict:
            outcomes.append("conflict")

    threads = [threading.Thread(target=submit, args=(u,)) for u in ("U1", "U2")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert sorted(outcomes) == ["conflict", "ok"]
    assert len(sql_store.list_bookings()) == 1


def test_lock_timeout_is_retryable_and_persists_nothing(make_committer, sql_store):
    lock = LocalBookingLock()
    committer = make_committer(lock=lock)

    with lock.hold(1):
        with pytest.raises(LockTimeout) as exc:
            committer.commit(_request())

    assert exc.value.retryable
    assert sql_store.list_bookings() == []
    assert not lock.locked()


def test_lock_is_released_after_conflict(make_committer):
    lock = LocalBookingLock()
    calendar = FakeCalendarService({
        BOOKING_CAL: [timed_item("busy", "x", "2025-07-15T14:00", "2025-07-15T15:00")]
    })
    committer = make_committer(calendar, lock=lock)

    with pytest.raises(SlotConflict):
        committer.commit(_request())

    assert not lock.locked()


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"name": ""}, "name"),
        ({"phone": "abc"}, "phone"),
        ({"user_id": ""}, "user_id"),
        ({"date": "15/07/2025"}, "date"),
        ({"time": "2pm"}, "time"),
    ],
)
def test_invalid_request_is_rejected_before_the_lock(make_committer, overrides, field):
    lock = LocalBookingLock()
    committer = make_committer(lock=lock)

    with lock.hold(1):
        with pytest.raises(ValidationError) as exc:
            committer.commit(_request(**overrides))

    assert field in exc.value.fields


def test_slot_inside_advance_window_is_rejected(make_committer):
    committer = make_committer()

    # fixed_now is 2025-07-01 10:00; minimum advance is 3 hours
    with pytest.raises(ValidationError):
        committer.commit(_request(date="2025-07-01", time="12:00"))
    result = committer.commit(_request(date="2025-07-01", time="13:00"))
    assert result.booking.time == "13:00"


def test_time_is_normalized(make_committer):
    result = make_committer().commit(_request(time="9:30"))
    assert result.booking.time == "09:30"


def test_calendar_outage_during_validation_fails_commit(make_committer, sql_store):
    calendar = FakeCalendarService()
    calendar.fail_calendars.add(BOOKING_CAL)
    committer = make_committer(calendar)

    with pytest.raises(UpstreamUnavailable):
        committer.commit(_request())
    assert sql_store.list_bookings() == []


def test_notification_failure_is_a_warning(make_committer, sql_store):
    committer = make_committer(emitter=EventEmitter(FailingRedis()))

    result = committer.commit(_request())

    assert result.warnings == ["notification_failed"]
    assert len(sql_store.list_bookings()) == 1


def test_notification_is_queued(make_committer):
    redis = RecordingRedis()
    committer = make_committer(emitter=EventEmitter(redis))

    result = committer.commit(_request())

    queue, payload = redis.pushed[0]
    assert queue == "events:p2p"
    assert '"booking_created"' in payload
    assert f'"booking_id": "{result.booking.booking_id}"' in payload


def test_commit_invalidates_booking_and_customer_indexes(make_committer, cache):
    committer = make_committer()
    cache.bookings.set("index", {"by_user": {}})
    cache.customers.set("index", {"by_phone": {}, "by_line": {}})

    committer.commit(_request())

    assert cache.bookings.get("index")[1] is False
    assert cache.customers.get("index")[1] is False


class BrokenCounters(CustomerService):
    def record_booking(self, booking):
        raise RuntimeError("sheet update failed")


def test_counter_failure_keeps_booking_and_refreshes_indexes(make_committer, sql_store, cache, booking_config):
    committer = make_committer()
    committer.customers = BrokenCounters(sql_store, cache, booking_config.tz)
    lookup = CustomerService(sql_store, cache, booking_config.tz)
    assert lookup.bookings_for_user("U123") == []

    result = committer.commit(_request())

    assert result.warnings == ["customer_update_failed: sheet update failed"]
    assert result.booking.event_id == "evt_1"
    assert [b.booking_id for b in lookup.bookings_for_user("U123")] == [result.booking.booking_id]
