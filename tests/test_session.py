"""Behavioural tests for the session-scoped notification engine."""

from datetime import timedelta

import anyio
import pytest
from anyio import to_thread

from notifyhub.application.engine import RecencyBucket
from notifyhub.application.session import NotificationSession
from notifyhub.domain.entities import Notification, Preferences, RemovalReason
from notifyhub.domain.exceptions import OfferExpiredError
from notifyhub.infrastructure.notifications import EventSource, InMemoryEventChannel

from support import BASE_TIME, RecordingPersistence, make_payload, no_sleep


@pytest.fixture
def session(settings, clock):
    return NotificationSession(settings=settings, clock=clock, sleep=no_sleep)


def _visible_ids(session):
    return [view.notification_id for view in session.queries.visible_toasts()]


def test_ingest_admits_up_to_max_visible(session):
    for index in range(5):
        session.ingest(make_payload(f"n{index}", created_at=BASE_TIME + timedelta(seconds=index)))

    assert _visible_ids(session) == ["n0", "n1", "n2"]
    assert session.queries.overflow_count() == 2
    assert session.queries.unread_count() == 5


def test_freed_slot_goes_to_best_waiting_candidate(session):
    for index in range(3):
        session.ingest(make_payload(f"low{index}", priority="low"))
    session.ingest(make_payload("normal", created_at=BASE_TIME - timedelta(minutes=1)))
    session.ingest(make_payload("urgent", priority="urgent", created_at=BASE_TIME - timedelta(minutes=5)))

    assert "urgent" not in _visible_ids(session)
    assert session.queries.overflow_count() == 2

    session.dismiss("low0")

    assert _visible_ids(session) == ["low1", "low2", "urgent"]
    assert session.queries.overflow_count() == 1


def test_ingest_many_runs_one_pass_in_priority_order(session):
    session.ingest_many(
        [
            make_payload("low", priority="low"),
            make_payload("urgent", priority="urgent"),
            make_payload("normal-t1", created_at=BASE_TIME + timedelta(seconds=1)),
            make_payload("high", priority="high"),
            make_payload("normal-t0"),
            make_payload("normal-t2", created_at=BASE_TIME + timedelta(seconds=2)),
        ]
    )

    assert _visible_ids(session) == ["urgent", "high", "normal-t2"]
    assert session.queries.overflow_count() == 3


def test_waiting_candidate_read_elsewhere_is_dropped(session):
    for index in range(4):
        session.ingest(make_payload(f"n{index}", created_at=BASE_TIME + timedelta(seconds=index)))

    assert session.queries.overflow_count() == 1
    assert session.mark_as_read("n3") is True
    assert session.queries.overflow_count() == 0

    session.dismiss("n0")
    assert "n3" not in _visible_ids(session)


@pytest.mark.anyio
async def test_quiet_hours_archive_without_toast(session, clock):
    clock.now = BASE_TIME.replace(hour=23)
    await session.update_preference("quiet_hours", {"start": "22:00", "end": "08:00"})

    session.ingest(make_payload("night", created_at=clock.now))
    session.ingest(make_payload("alarm", priority="urgent", created_at=clock.now))

    assert _visible_ids(session) == ["alarm"]
    alarm = session.queries.visible_toasts()[0]
    assert alarm.sound is False and alarm.vibrate is False

    clock.now = BASE_TIME.replace(hour=23, minute=30)
    grouped = session.queries.grouped_list()
    night = [n for n in grouped[RecencyBucket.TODAY] if n.id == "night"]
    assert night and night[0].is_read is False

    clock.advance(hours=10)
    session.dismiss("alarm")
    session.tick()
    assert "night" not in _visible_ids(session)


def test_countdown_through_session_frees_slot(session):
    session.ingest(make_payload("first"))

    for _ in range(49):
        session.tick()
    assert _visible_ids(session) == ["first"]

    removed = session.tick()
    assert [toast.notification_id for toast in removed] == ["first"]
    assert session.queries.visible_toasts() == []
    assert session.store.get("first").is_read is False


def test_action_dismisses_and_marks_read(session):
    session.ingest(
        make_payload("ride", category="transport", action={"label": "Track", "target": "/bookings/1"})
    )
    removals = []
    session.lifecycle.subscribe_removals(removals.append)

    action = session.invoke_action("ride")

    assert action.target == "/bookings/1"
    assert removals[0].removal_reason is RemovalReason.ACTION
    assert session.store.get("ride").is_read is True


def test_expired_offer_rejects_action_regardless_of_countdown(session, clock):
    session.ingest(
        make_payload(
            "offer",
            category="dispatch",
            priority="urgent",
            expires_at=clock.now + timedelta(seconds=30),
            action={"label": "Accept", "target": "/driver/offers/1"},
        )
    )
    session.pause("offer")
    clock.advance(seconds=31)

    assert session.lifecycle.get("offer").remaining_ms > 0
    with pytest.raises(OfferExpiredError):
        session.invoke_action("offer")

    assert "offer" not in session.lifecycle
    assert session.store.get("offer").is_read is False


def test_waiting_offer_leaves_overflow_once_it_lapses(session, clock):
    for index in range(3):
        session.ingest(make_payload(f"n{index}"))
    session.ingest(
        make_payload(
            "offer", category="dispatch", expires_at=clock.now + timedelta(seconds=30)
        )
    )
    snapshots = []
    session.queries.subscribe(snapshots.append)
    assert session.queries.overflow_count() == 1

    clock.advance(seconds=31)
    session.tick()

    assert session.queries.overflow_count() == 0
    assert snapshots[-1].overflow_count == 0
    session.dismiss("n0")
    assert "offer" not in _visible_ids(session)


@pytest.mark.anyio
async def test_accept_offer_revalidates_deadline(session, clock):
    session.ingest(
        make_payload(
            "offer",
            category="dispatch",
            expires_at=clock.now + timedelta(seconds=30),
            action={"label": "Accept", "target": "/driver/offers/1"},
        )
    )
    accepted = []

    async def acceptor(notification):
        accepted.append(notification.id)
        return "booked"

    clock.advance(seconds=31)
    with pytest.raises(OfferExpiredError):
        await session.accept_offer("offer", acceptor)
    assert accepted == []


@pytest.mark.anyio
async def test_accept_offer_within_deadline(session, clock):
    session.ingest(
        make_payload(
            "offer",
            category="dispatch",
            expires_at=clock.now + timedelta(seconds=30),
            action={"label": "Accept", "target": "/driver/offers/1"},
        )
    )
    clock.advance(seconds=10)

    result = await session.accept_offer("offer", lambda notification: "booked")

    assert result == "booked"
    assert "offer" not in session.lifecycle
    assert session.store.get("offer").is_read is True


def test_mark_all_as_read_does_not_touch_later_notifications(session):
    session.ingest(make_payload("a"))
    session.ingest(make_payload("b"))

    assert session.mark_all_as_read() == 2
    session.ingest(make_payload("c"))

    assert session.queries.unread_count() == 1
    assert session.store.get("c").is_read is False


def test_snapshot_listeners_follow_mutations(session):
    snapshots = []
    unsubscribe = session.queries.subscribe(snapshots.append)

    session.ingest(make_payload("a"))
    session.mark_as_read("a")
    session.ingest(make_payload("a"))
    unsubscribe()
    session.ingest(make_payload("b"))

    assert [snapshot.unread_count for snapshot in snapshots] == [1, 0]
    assert snapshots[0].visible_toasts[0].notification_id == "a"


def test_failing_snapshot_listener_is_isolated(session, caplog):
    def explode(_snapshot):
        raise RuntimeError("boom")

    session.queries.subscribe(explode)

    assert session.ingest(make_payload("a")) is not None
    assert "Presentation listener" in caplog.text


@pytest.mark.anyio
async def test_start_seeds_store_and_stop_leaves_nothing_running(settings, clock):
    stored = [Notification.from_payload(make_payload("old", is_read=True))]
    persistence = RecordingPersistence(stored=stored)
    channel = InMemoryEventChannel("transport_bookings")
    session = NotificationSession(
        [EventSource("transport_bookings", channel)],
        persistence=persistence,
        settings=settings,
        clock=clock,
        sleep=no_sleep,
    )

    await session.start("user-1")
    channel.publish(
        {
            "entity_id": "b1",
            "previous_status": "pending",
            "new_status": "driver_arrived",
            "timestamp": clock.now.isoformat(),
        }
    )
    for _ in range(10):
        await anyio.sleep(0)

    assert session.store.get("old").is_read is True
    assert _visible_ids(session) == ["transport_bookings:b1:driver_arrived"]
    session.mark_as_read("transport_bookings:b1:driver_arrived")

    await session.stop()

    assert session.running is False
    assert session.lifecycle.active_timer_count == 0
    assert session.adapter.running is False
    assert ("read", "user-1", "transport_bookings:b1:driver_arrived") in persistence.calls


@pytest.mark.anyio
async def test_submit_from_worker_thread(session):
    await session.start("user-1")
    try:
        await to_thread.run_sync(session.submit, make_payload("threaded"))
        for _ in range(10):
            if "threaded" in session.store:
                break
            await anyio.sleep(0.01)
        assert "threaded" in session.store
    finally:
        await session.stop()


def test_submit_requires_running_session(session):
    with pytest.raises(RuntimeError):
        session.submit(make_payload("a"))


@pytest.mark.anyio
async def test_preference_provider_is_loaded_and_saved(settings, clock):
    class FakePreferenceProvider:
        def __init__(self):
            self.saved = []

        def load_preferences(self, user_id):
            return Preferences(priority_only=True)

        def save_preference(self, user_id, key, value):
            self.saved.append((user_id, key, value))

    provider = FakePreferenceProvider()
    session = NotificationSession(preference_provider=provider, settings=settings, clock=clock)

    await session.start("user-1")
    try:
        session.ingest(make_payload("normal"))
        assert _visible_ids(session) == []

        await session.update_preference("priority_only", False)
        session.ingest(make_payload("later"))
        assert _visible_ids(session) == ["later"]
        assert provider.saved == [("user-1", "priority_only", False)]
    finally:
        await session.stop()


@pytest.mark.anyio
async def test_invalid_preference_update_raises(session):
    with pytest.raises(ValueError):
        await session.update_preference("volume", 3)
