"""Domain entities exposed by the engine."""

from .notification import (
    OFFER_CATEGORIES,
    Notification,
    NotificationAction,
    NotificationCategory,
    NotificationPriority,
    ensure_offer_acceptable,
    parse_category,
)
from .preferences import Preferences, QuietHours, apply_preference
from .source_event import SourceEvent
from .toast import RemovalReason, ToastInstance, ToastState

__all__ = [
    "Notification",
    "NotificationAction",
    "NotificationCategory",
    "NotificationPriority",
    "OFFER_CATEGORIES",
    "ensure_offer_acceptable",
    "parse_category",
    "Preferences",
    "QuietHours",
    "apply_preference",
    "SourceEvent",
    "RemovalReason",
    "ToastInstance",
    "ToastState",
]
