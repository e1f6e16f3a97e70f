"""Tests for the per-source mapping tables."""

from datetime import timedelta

import pytest

from notifyhub.application.use_cases.notifications import (
    map_source_event,
    notification_id_for,
    offer_priority,
)
from notifyhub.domain.entities import Notification, NotificationPriority, SourceEvent
from notifyhub.domain.exceptions import NormalizationError

from support import BASE_TIME


def _event(source, new_status=None, previous_status="pending", **payload):
    return SourceEvent(
        source=source,
        entity_id="42",
        previous_status=previous_status,
        new_status=new_status,
        timestamp=BASE_TIME,
        payload=payload,
    )


def test_transport_status_change_maps_to_notification(settings):
    raw = map_source_event(_event("transport_bookings", "driver_arrived"), settings=settings)

    notification = Notification.from_payload(raw)
    assert notification.id == "transport_bookings:42:driver_arrived"
    assert notification.priority is NotificationPriority.URGENT
    assert notification.action.target == "/bookings/42"
    assert notification.metadata["status"] == "driver_arrived"
    assert notification.created_at == BASE_TIME


def test_insert_uses_created_template_with_payload_fields(settings):
    event = _event(
        "transport_bookings",
        "pending",
        previous_status=None,
        pickup_location="Gombe",
        destination_location="Ngaliema",
    )

    raw = map_source_event(event, settings=settings)

    assert raw["id"] == "transport_bookings:42:created"
    assert "Gombe" in raw["message"] and "Ngaliema" in raw["message"]


def test_unchanged_status_is_ignored(settings):
    assert map_source_event(_event("delivery_orders", "pending"), settings=settings) is None


def test_unknown_status_is_malformed(settings):
    with pytest.raises(NormalizationError):
        map_source_event(_event("marketplace_orders", "teleported"), settings=settings)


def test_unknown_source_is_malformed(settings):
    with pytest.raises(NormalizationError):
        map_source_event(_event("weather", "sunny"), settings=settings)


def test_explicit_notification_id_wins(settings):
    event = _event("payments", "failed", notification_id="pay-failed-7")

    raw = map_source_event(event, settings=settings)

    assert raw["id"] == "pay-failed-7"
    assert raw["priority"] == "urgent"


def test_redelivered_event_maps_to_same_id():
    event = _event("delivery_orders", "delivered")
    assert notification_id_for(event) == notification_id_for(_event("delivery_orders", "delivered"))


def test_wallet_debit_below_threshold_raises_alert(settings):
    event = _event(
        "wallet_transactions",
        previous_status=None,
        transaction_type="debit",
        amount=500,
        balance_after=200,
    )

    raw = map_source_event(event, settings=settings)

    assert raw["title"] == "Low wallet balance"
    assert raw["priority"] == "high"


def test_wallet_unknown_transaction_type(settings):
    event = _event("wallet_transactions", previous_status=None, transaction_type="gift")
    with pytest.raises(NormalizationError):
        map_source_event(event, settings=settings)


def test_chat_message_preview_is_truncated(settings):
    event = _event(
        "chat_messages",
        previous_status=None,
        content="x" * 150,
        sender_id="other",
        conversation_id="c1",
    )

    raw = map_source_event(event, settings=settings, user_id="me")

    assert raw["message"] == "x" * 100 + "..."
    assert raw["action"]["target"] == "/chat/c1"


def test_own_chat_messages_are_ignored(settings):
    event = _event(
        "chat_messages", previous_status=None, content="hi", sender_id="me", conversation_id="c1"
    )
    assert map_source_event(event, settings=settings, user_id="me") is None


def test_lottery_win(settings):
    raw = map_source_event(
        _event("lottery_wins", previous_status=None, prize_value=5000), settings=settings
    )
    assert "5000" in raw["message"]
    assert raw["category"] == "lottery"


@pytest.mark.parametrize(
    ("distance", "priority"),
    [
        (0.4, NotificationPriority.URGENT),
        (1.5, NotificationPriority.HIGH),
        (3, NotificationPriority.NORMAL),
        (None, NotificationPriority.NORMAL),
    ],
)
def test_offer_priority_by_distance(distance, priority):
    assert offer_priority(distance) is priority


def test_ride_offer_defaults_to_two_minute_deadline(settings):
    event = _event(
        "ride_offers",
        previous_status=None,
        distance=0.8,
        estimated_price=4500,
        pickup_location="Limete",
    )

    notification = Notification.from_payload(map_source_event(event, settings=settings))

    assert notification.is_offer
    assert notification.expires_at == BASE_TIME + timedelta(seconds=120)
    assert notification.priority is NotificationPriority.URGENT
    assert notification.metadata["distance"] == 0.8
    assert notification.metadata["estimatedPrice"] == 4500


def test_ride_offer_explicit_deadline(settings):
    deadline = BASE_TIME + timedelta(seconds=45)
    event = _event("ride_offers", previous_status=None, expires_at=deadline.isoformat())

    raw = map_source_event(event, settings=settings)

    assert raw["expires_at"] == deadline


def test_source_event_accepts_camel_case_keys():
    event = SourceEvent.from_payload(
        "payments",
        {
            "entityId": 7,
            "previousStatus": "pending",
            "newStatus": "completed",
            "timestamp": "2024-05-17T12:00:00Z",
            "payload": {"amount": "10 USD"},
        },
    )

    assert event.entity_id == "7"
    assert event.status_changed
    assert event.timestamp == BASE_TIME


@pytest.mark.parametrize(
    "raw",
    [
        {"timestamp": "2024-05-17T12:00:00Z"},
        {"entity_id": "1"},
        {"entity_id": "1", "timestamp": "soon"},
        {"entity_id": "1", "timestamp": "2024-05-17T12:00:00Z", "payload": [1, 2]},
    ],
)
def test_malformed_source_events(raw):
    with pytest.raises(NormalizationError):
        SourceEvent.from_payload("payments", raw)
