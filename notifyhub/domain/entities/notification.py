"""Domain entity representing a user notification."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from notifyhub.domain.exceptions import NormalizationError, OfferExpiredError
from notifyhub.utils import parse_datetime


class NotificationCategory(str, Enum):
    TRANSPORT = "transport"
    DELIVERY = "delivery"
    MARKETPLACE = "marketplace"
    RENTAL = "rental"
    FOOD = "food"
    PAYMENT = "payment"
    WALLET = "wallet"
    CHAT = "chat"
    LOTTERY = "lottery"
    DISPATCH = "dispatch"
    SUPPORT = "support"
    SYSTEM = "system"


# Categories whose notifications are time-boxed offers.
OFFER_CATEGORIES = frozenset({NotificationCategory.DISPATCH})


class NotificationPriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def is_critical(self) -> bool:
        return self in (NotificationPriority.URGENT, NotificationPriority.HIGH)

    @classmethod
    def parse(cls, value: object) -> "NotificationPriority":
        """Return the priority for ``value``, accepting legacy severity words."""

        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        try:
            return _SEVERITY_ALIASES[key]
        except KeyError:
            raise NormalizationError(f"Unknown priority: {value!r}") from None


_PRIORITY_RANK = {
    NotificationPriority.URGENT: 3,
    NotificationPriority.HIGH: 2,
    NotificationPriority.NORMAL: 1,
    NotificationPriority.LOW: 0,
}

# Severity vocabulary used by older producers, folded into one priority scale.
_SEVERITY_ALIASES = {
    "urgent": NotificationPriority.URGENT,
    "critical": NotificationPriority.URGENT,
    "error": NotificationPriority.URGENT,
    "high": NotificationPriority.HIGH,
    "warning": NotificationPriority.HIGH,
    "normal": NotificationPriority.NORMAL,
    "medium": NotificationPriority.NORMAL,
    "info": NotificationPriority.NORMAL,
    "success": NotificationPriority.NORMAL,
    "low": NotificationPriority.LOW,
    "debug": NotificationPriority.LOW,
}


@dataclass(frozen=True)
class NotificationAction:
    """Single follow-up suggested to the user; the engine only forwards it."""

    label: str
    target: str


@dataclass
class Notification:
    """Archived record of a domain event relevant to the user."""

    id: str
    category: NotificationCategory
    priority: NotificationPriority
    title: str
    message: str
    created_at: datetime
    expires_at: datetime | None = None
    is_read: bool = False
    action: NotificationAction | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_offer(self) -> bool:
        return self.category in OFFER_CATEGORIES and self.expires_at is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Notification":
        """Normalize a raw mapping into a :class:`Notification`.

        Raises :class:`NormalizationError` when a required field is missing or a
        value falls outside the known vocabularies.
        """

        if not isinstance(payload, Mapping):
            raise NormalizationError("Notification payload must be a mapping")

        notification_id = payload.get("id")
        if notification_id in (None, ""):
            raise NormalizationError("Notification payload is missing 'id'")

        category = parse_category(payload.get("category"))

        priority = NotificationPriority.parse(payload.get("priority") or "normal")

        title = payload.get("title")
        message = payload.get("message")
        if not title:
            raise NormalizationError("Notification payload is missing 'title'")
        if message is None:
            raise NormalizationError("Notification payload is missing 'message'")

        try:
            created_at = parse_datetime(payload.get("created_at"))
            expires_at = parse_datetime(payload.get("expires_at"))
        except (TypeError, ValueError) as exc:
            raise NormalizationError(f"Invalid timestamp: {exc}") from None
        if created_at is None:
            raise NormalizationError("Notification payload is missing 'created_at'")

        metadata = payload.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise NormalizationError("Notification metadata must be a mapping")

        return cls(
            id=str(notification_id),
            category=category,
            priority=priority,
            title=str(title),
            message=str(message),
            created_at=created_at,
            expires_at=expires_at,
            is_read=bool(payload.get("is_read", False)),
            action=_parse_action(payload.get("action")),
            metadata=dict(metadata),
        )


def parse_category(value: object) -> NotificationCategory:
    """Return the category for ``value`` or raise :class:`NormalizationError`."""

    if isinstance(value, NotificationCategory):
        return value
    try:
        return NotificationCategory(str(value or "").strip().lower())
    except ValueError:
        raise NormalizationError(f"Unknown category: {value!r}") from None


def _parse_action(value: Any) -> NotificationAction | None:
    if value is None:
        return None
    if isinstance(value, NotificationAction):
        return value
    if not isinstance(value, Mapping):
        raise NormalizationError("Notification action must be a mapping")
    label, target = value.get("label"), value.get("target")
    if not label or not target:
        raise NormalizationError("Notification action requires 'label' and 'target'")
    return NotificationAction(label=str(label), target=str(target))


def ensure_offer_acceptable(notification: Notification, now: datetime) -> None:
    """Raise :class:`OfferExpiredError` once an offer is past its deadline."""

    if notification.is_offer and notification.is_expired(now):
        raise OfferExpiredError(notification.id, notification.expires_at)


__all__ = [
    "Notification",
    "NotificationAction",
    "NotificationCategory",
    "NotificationPriority",
    "OFFER_CATEGORIES",
    "ensure_offer_acceptable",
    "parse_category",
]
