"""Event mapping and read-state reconciliation for notifications."""

from .collaborators import NotificationPersistence, PreferenceProvider
from .events import (
    DEFAULT_OFFER_TTL_SECONDS,
    SOURCE_MAPPERS,
    map_source_event,
    notification_id_for,
    offer_priority,
)
from .read_state import ReadStateSynchronizer, ReadStateWrite

__all__ = [
    "NotificationPersistence",
    "PreferenceProvider",
    "DEFAULT_OFFER_TTL_SECONDS",
    "SOURCE_MAPPERS",
    "map_source_event",
    "notification_id_for",
    "offer_priority",
    "ReadStateSynchronizer",
    "ReadStateWrite",
]
