"""Live event channels, subscriptions and presentation delivery."""

from .channels import EventChannel, InMemoryEventChannel
from .manager import PresentationConnectionManager
from .persistence import SqlAlchemyNotificationPersistence, SqlAlchemyPreferenceStore
from .publisher import (
    SnapshotPublisher,
    serialize_notification,
    serialize_snapshot,
    serialize_toast,
)
from .subscriptions import (
    EventIngestionAdapter,
    EventSource,
    SourceSubscription,
    SubscriptionStatus,
)

__all__ = [
    "EventChannel",
    "InMemoryEventChannel",
    "PresentationConnectionManager",
    "SqlAlchemyNotificationPersistence",
    "SqlAlchemyPreferenceStore",
    "SnapshotPublisher",
    "serialize_notification",
    "serialize_snapshot",
    "serialize_toast",
    "EventIngestionAdapter",
    "EventSource",
    "SourceSubscription",
    "SubscriptionStatus",
]
