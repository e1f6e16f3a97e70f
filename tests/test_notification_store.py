"""Tests for the in-memory notification store."""

from datetime import timedelta

import pytest

from notifyhub.application.engine import NotificationStore, RecencyBucket, recency_bucket
from notifyhub.domain.entities import NotificationCategory, NotificationPriority

from support import BASE_TIME, make_payload


def _unread(store):
    return sum(1 for notification in store.list() if not notification.is_read)


def test_ingest_normalizes_payload():
    store = NotificationStore()

    notification = store.ingest(
        make_payload(
            "n1",
            priority="warning",
            category="payment",
            action={"label": "Retry", "target": "/payments/1"},
            metadata={"amount": 10},
        )
    )

    assert notification is not None
    assert notification.category is NotificationCategory.PAYMENT
    assert notification.priority is NotificationPriority.HIGH
    assert notification.action.target == "/payments/1"
    assert notification.is_read is False
    assert store.unread_count == 1


def test_duplicate_ingest_is_a_no_op():
    store = NotificationStore()
    assert store.ingest(make_payload("n1")) is not None

    assert store.ingest(make_payload("n1", title="changed")) is None
    assert len(store) == 1
    assert store.get("n1").title == "Title n1"


@pytest.mark.parametrize(
    "payload",
    [
        make_payload("bad", category="spaceship"),
        make_payload("bad", priority="whenever"),
        {k: v for k, v in make_payload("bad").items() if k != "created_at"},
        {k: v for k, v in make_payload("bad").items() if k != "id"},
        make_payload("bad", created_at="yesterday"),
        make_payload("bad", metadata="not-a-mapping"),
        make_payload("bad", metadata=["amount", 10]),
        "not-a-mapping",
    ],
)
def test_malformed_payloads_are_dropped_without_mutation(payload, caplog):
    store = NotificationStore()

    assert store.ingest(payload) is None
    assert len(store) == 0
    assert store.unread_count == 0
    assert "Dropping malformed notification" in caplog.text


def test_unread_count_matches_unread_notifications_after_every_call():
    store = NotificationStore()
    operations = [
        lambda: store.ingest(make_payload("a")),
        lambda: store.ingest(make_payload("b")),
        lambda: store.mark_as_read("a"),
        lambda: store.mark_as_read("a"),
        lambda: store.mark_as_read("missing"),
        lambda: store.ingest(make_payload("c")),
        lambda: store.mark_all_as_read(),
        lambda: store.ingest(make_payload("d")),
        lambda: store.ingest(make_payload("d")),
        lambda: store.mark_as_read("d"),
    ]
    for operation in operations:
        operation()
        assert store.unread_count == _unread(store)


def test_mark_as_read_is_idempotent():
    store = NotificationStore()
    store.ingest(make_payload("a"))
    store.ingest(make_payload("b"))

    assert store.mark_as_read("a") is True
    assert store.mark_as_read("a") is False
    assert store.unread_count == 1


def test_mark_all_as_read_leaves_later_notifications_unread():
    store = NotificationStore()
    store.ingest(make_payload("a"))
    store.ingest(make_payload("b"))

    assert sorted(store.mark_all_as_read()) == ["a", "b"]
    store.ingest(make_payload("c"))

    assert store.unread_count == 1
    assert store.get("c").is_read is False


def test_returned_notifications_are_copies():
    store = NotificationStore()
    notification = store.ingest(make_payload("a", metadata={"k": "v"}))
    notification.is_read = True
    notification.metadata["k"] = "changed"

    stored = store.get("a")
    assert stored.is_read is False
    assert stored.metadata == {"k": "v"}
    assert store.unread_count == 1


def test_list_is_newest_first():
    store = NotificationStore()
    store.ingest(make_payload("old", created_at=BASE_TIME - timedelta(hours=2)))
    store.ingest(make_payload("new", created_at=BASE_TIME))
    store.ingest(make_payload("mid", created_at=BASE_TIME - timedelta(hours=1)))

    assert [n.id for n in store.list()] == ["new", "mid", "old"]


def test_grouped_list_uses_calendar_days():
    store = NotificationStore()
    now = BASE_TIME.replace(hour=9)
    store.ingest(make_payload("today", created_at=now.replace(hour=0, minute=5)))
    store.ingest(make_payload("yesterday", created_at=now - timedelta(days=1, hours=8)))
    store.ingest(make_payload("week", created_at=now - timedelta(days=4)))
    store.ingest(make_payload("older", created_at=now - timedelta(days=10)))

    groups = store.list(grouped_by_recency=True, now=now)

    assert list(groups) == list(RecencyBucket)
    assert [n.id for n in groups[RecencyBucket.TODAY]] == ["today"]
    assert [n.id for n in groups[RecencyBucket.YESTERDAY]] == ["yesterday"]
    assert [n.id for n in groups[RecencyBucket.THIS_WEEK]] == ["week"]
    assert [n.id for n in groups[RecencyBucket.OLDER]] == ["older"]


def test_future_timestamps_count_as_today():
    assert recency_bucket(BASE_TIME + timedelta(days=2), BASE_TIME) is RecencyBucket.TODAY


def test_filter_by_category_read_state_and_text():
    store = NotificationStore()
    store.ingest(make_payload("ride", category="transport", title="Driver arrived"))
    store.ingest(make_payload("pay", category="payment", title="Payment failed"))
    store.ingest(make_payload("pay2", category="payment", title="Payment successful"))
    store.mark_as_read("pay2")

    # Equal timestamps fall back to descending id order.
    assert [n.id for n in store.filter(category=NotificationCategory.PAYMENT)] == ["pay2", "pay"]
    assert [n.id for n in store.filter(unread_only=True, query="payment")] == ["pay"]
    assert [n.id for n in store.filter(query="DRIVER")] == ["ride"]


def test_seed_keeps_read_state_and_skips_duplicates():
    from notifyhub.domain.entities import Notification

    seeded = [
        Notification.from_payload(make_payload("a", is_read=True)),
        Notification.from_payload(make_payload("b")),
    ]
    store = NotificationStore()
    store.ingest(make_payload("b"))

    assert store.seed(seeded) == 1
    assert store.get("a").is_read is True
    assert store.unread_count == 1
