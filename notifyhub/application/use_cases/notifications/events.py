"""Mapping tables turning source events into raw notification payloads."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from notifyhub.config import Settings, get_settings
from notifyhub.domain.entities import NotificationCategory, NotificationPriority, SourceEvent
from notifyhub.domain.exceptions import NormalizationError
from notifyhub.utils import parse_datetime

DEFAULT_OFFER_TTL_SECONDS = 120
CREATED_KEY = "created"


@dataclass(frozen=True)
class StatusTemplate:
    title: str
    message: str
    priority: NotificationPriority
    action_label: str | None = None


@dataclass(frozen=True)
class StatusMapping:
    """Per-source table of status templates.

    ``created`` describes inserts; ``statuses`` describes updates keyed by the
    new status. Messages may reference payload fields with ``{field}``.
    """

    category: NotificationCategory
    action_target: str
    statuses: Mapping[str, StatusTemplate] = field(default_factory=dict)
    created: StatusTemplate | None = None


class _PayloadFields(dict):
    def __missing__(self, key: str) -> str:
        return "?"


def _render(text: str, event: SourceEvent) -> str:
    fields = _PayloadFields(event.payload)
    fields.setdefault("entity_id", event.entity_id)
    return text.format_map(fields)


def notification_id_for(event: SourceEvent) -> str:
    """Stable id so that redelivered events collapse onto one notification."""

    explicit = event.payload.get("notification_id")
    if explicit:
        return str(explicit)
    key = CREATED_KEY if event.is_insert else event.new_status
    return f"{event.source}:{event.entity_id}:{key}"


def _build(
    event: SourceEvent,
    category: NotificationCategory,
    template: StatusTemplate,
    target: str,
    **extra: Any,
) -> dict[str, Any]:
    metadata = {"source": event.source, "entity_id": event.entity_id}
    if event.new_status is not None:
        metadata["status"] = event.new_status
    metadata.update(extra.pop("metadata", {}))
    payload: dict[str, Any] = {
        "id": notification_id_for(event),
        "category": category.value,
        "priority": template.priority.value,
        "title": _render(template.title, event),
        "message": _render(template.message, event),
        "created_at": event.timestamp,
        "metadata": metadata,
    }
    if template.action_label:
        payload["action"] = {"label": template.action_label, "target": _render(target, event)}
    payload.update(extra)
    return payload


def _status_mapper(mapping: StatusMapping) -> "SourceMapper":
    def mapper(event: SourceEvent, settings: Settings, user_id: str | None) -> dict[str, Any] | None:
        if event.is_insert:
            template = mapping.created
            if template is None:
                return None
        else:
            if not event.status_changed:
                return None
            template = mapping.statuses.get(event.new_status or "")
            if template is None:
                raise NormalizationError(
                    f"Unknown {event.source} status: {event.new_status!r}"
                )
        return _build(event, mapping.category, template, mapping.action_target)

    return mapper


_P = NotificationPriority

TRANSPORT_BOOKINGS = StatusMapping(
    category=NotificationCategory.TRANSPORT,
    action_target="/bookings/{entity_id}",
    created=StatusTemplate(
        "New booking",
        "Your ride from {pickup_location} to {destination_location} has been booked.",
        _P.NORMAL,
        "View",
    ),
    statuses={
        "confirmed": StatusTemplate("Booking confirmed", "Your booking has been confirmed.", _P.HIGH, "View"),
        "driver_assigned": StatusTemplate("Driver assigned", "Your driver is on the way.", _P.HIGH, "Track"),
        "driver_arrived": StatusTemplate("Driver arrived", "Your driver is waiting for you.", _P.URGENT, "Track"),
        "in_progress": StatusTemplate("Ride started", "Enjoy your ride!", _P.NORMAL),
        "completed": StatusTemplate("Ride completed", "Thanks for riding with us.", _P.NORMAL, "Rate"),
        "cancelled": StatusTemplate("Booking cancelled", "Your booking has been cancelled.", _P.NORMAL, "View"),
    },
)

DELIVERY_ORDERS = StatusMapping(
    category=NotificationCategory.DELIVERY,
    action_target="/deliveries/{entity_id}",
    created=StatusTemplate(
        "New delivery order",
        "{delivery_type} delivery from {pickup_location} to {delivery_location}.",
        _P.NORMAL,
        "View",
    ),
    statuses={
        "confirmed": StatusTemplate("Order confirmed", "Your delivery is being prepared.", _P.NORMAL, "View"),
        "picked_up": StatusTemplate("Parcel picked up", "The courier is on the way.", _P.HIGH, "Track"),
        "in_transit": StatusTemplate("Out for delivery", "Your parcel arrives soon.", _P.NORMAL, "Track"),
        "delivered": StatusTemplate("Delivered", "Your parcel has been delivered.", _P.HIGH, "View"),
        "cancelled": StatusTemplate("Delivery cancelled", "Your delivery has been cancelled.", _P.NORMAL, "View"),
    },
)

MARKETPLACE_ORDERS = StatusMapping(
    category=NotificationCategory.MARKETPLACE,
    action_target="/marketplace/orders/{entity_id}",
    statuses={
        "confirmed": StatusTemplate("Order confirmed", "The seller confirmed your order.", _P.NORMAL, "View"),
        "shipped": StatusTemplate("Order shipped", "Your order has been shipped.", _P.NORMAL, "Track"),
        "delivered": StatusTemplate("Order delivered", "Your order has been delivered.", _P.HIGH, "View"),
        "cancelled": StatusTemplate("Order cancelled", "Your order has been cancelled.", _P.NORMAL, "View"),
    },
)

PAYMENTS = StatusMapping(
    category=NotificationCategory.PAYMENT,
    action_target="/payments/{entity_id}",
    created=StatusTemplate("Payment pending", "Your transaction is being processed.", _P.NORMAL),
    statuses={
        "pending": StatusTemplate("Payment pending", "Your transaction is being processed.", _P.NORMAL),
        "completed": StatusTemplate("Payment successful", "{amount} charged successfully.", _P.HIGH, "Receipt"),
        "failed": StatusTemplate(
            "Payment failed", "Please retry or use another payment method.", _P.URGENT, "Retry"
        ),
        "refunded": StatusTemplate("Payment refunded", "{amount} has been refunded.", _P.NORMAL, "Receipt"),
    },
)


def _map_wallet_transaction(
    event: SourceEvent, settings: Settings, user_id: str | None
) -> dict[str, Any] | None:
    if not event.is_insert:
        return None
    kind = str(event.payload.get("transaction_type") or "").lower()
    if kind == "credit":
        template = StatusTemplate("Wallet credited", "{amount} added to your wallet.", _P.NORMAL, "Wallet")
    elif kind == "debit":
        template = StatusTemplate("Wallet debited", "{amount} spent from your wallet.", _P.NORMAL, "Wallet")
        balance = event.payload.get("balance_after")
        if isinstance(balance, (int, float)) and balance < settings.low_balance_threshold:
            template = StatusTemplate(
                "Low wallet balance",
                "Your balance is down to {balance_after}. Top up to keep riding.",
                _P.HIGH,
                "Top up",
            )
    else:
        raise NormalizationError(f"Unknown wallet transaction type: {kind!r}")
    return _build(event, NotificationCategory.WALLET, template, "/wallet")


def _map_chat_message(
    event: SourceEvent, settings: Settings, user_id: str | None
) -> dict[str, Any] | None:
    if not event.is_insert:
        return None
    sender = event.payload.get("sender_id")
    if user_id is not None and sender is not None and str(sender) == str(user_id):
        return None
    content = str(event.payload.get("content") or "")
    limit = settings.chat_preview_length
    preview = content[:limit] + ("..." if len(content) > limit else "")
    conversation = event.payload.get("conversation_id")
    if conversation is None:
        raise NormalizationError("chat_messages event is missing 'conversation_id'")
    template = StatusTemplate("New message", "", _P.NORMAL, "Reply")
    payload = _build(
        event,
        NotificationCategory.CHAT,
        template,
        f"/chat/{conversation}",
        metadata={"conversation_id": conversation},
    )
    payload["message"] = preview
    return payload


def _map_lottery_win(
    event: SourceEvent, settings: Settings, user_id: str | None
) -> dict[str, Any] | None:
    if not event.is_insert:
        return None
    template = StatusTemplate(
        "Congratulations, you won!",
        "You won {prize_value} in the lottery!",
        _P.HIGH,
        "Claim",
    )
    return _build(
        event,
        NotificationCategory.LOTTERY,
        template,
        "/lottery",
        metadata={"amount": event.payload.get("prize_value")},
    )


def offer_priority(distance_km: object) -> NotificationPriority:
    """Closer pickups are more urgent for the driver."""

    if not isinstance(distance_km, (int, float)):
        return NotificationPriority.NORMAL
    if distance_km < 1:
        return NotificationPriority.URGENT
    if distance_km < 2:
        return NotificationPriority.HIGH
    return NotificationPriority.NORMAL


def _map_ride_offer(
    event: SourceEvent, settings: Settings, user_id: str | None
) -> dict[str, Any] | None:
    if not event.is_insert:
        return None

    try:
        expires_at = parse_datetime(event.payload.get("expires_at"))
    except ValueError as exc:
        raise NormalizationError(f"ride_offers event has an invalid expires_at: {exc}") from None
    if expires_at is None:
        ttl = event.payload.get("expires_in", DEFAULT_OFFER_TTL_SECONDS)
        if not isinstance(ttl, (int, float)) or ttl <= 0:
            raise NormalizationError(f"ride_offers event has an invalid expires_in: {ttl!r}")
        expires_at = event.timestamp + timedelta(seconds=ttl)

    distance = event.payload.get("distance")
    template = StatusTemplate(
        "New ride request",
        "Pickup at {pickup_location}, {distance} km away.",
        offer_priority(distance),
        "Accept",
    )
    return _build(
        event,
        NotificationCategory.DISPATCH,
        template,
        "/driver/offers/{entity_id}",
        expires_at=expires_at,
        metadata={
            "distance": distance,
            "estimatedPrice": event.payload.get("estimated_price", event.payload.get("estimatedPrice")),
        },
    )


SourceMapper = Callable[[SourceEvent, Settings, "str | None"], "dict[str, Any] | None"]

SOURCE_MAPPERS: dict[str, SourceMapper] = {
    "transport_bookings": _status_mapper(TRANSPORT_BOOKINGS),
    "delivery_orders": _status_mapper(DELIVERY_ORDERS),
    "marketplace_orders": _status_mapper(MARKETPLACE_ORDERS),
    "payments": _status_mapper(PAYMENTS),
    "wallet_transactions": _map_wallet_transaction,
    "chat_messages": _map_chat_message,
    "lottery_wins": _map_lottery_win,
    "ride_offers": _map_ride_offer,
}


def map_source_event(
    event: SourceEvent,
    *,
    settings: Settings | None = None,
    user_id: str | None = None,
) -> dict[str, Any] | None:
    """Return the raw notification payload for ``event``.

    ``None`` means the event is valid but not worth a notification (an update
    that leaves the status unchanged, a chat message sent by the user).
    Raises :class:`NormalizationError` for unknown sources or statuses.
    """

    mapper = SOURCE_MAPPERS.get(event.source)
    if mapper is None:
        raise NormalizationError(f"Unknown event source: {event.source!r}")
    return mapper(event, settings or get_settings(), user_id)


__all__ = [
    "DEFAULT_OFFER_TTL_SECONDS",
    "SOURCE_MAPPERS",
    "SourceMapper",
    "StatusMapping",
    "StatusTemplate",
    "map_source_event",
    "notification_id_for",
    "offer_priority",
]
