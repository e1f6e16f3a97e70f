"""Interfaces of the host-provided collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from notifyhub.domain.entities import Notification, Preferences


@runtime_checkable
class NotificationPersistence(Protocol):
    """Durable store for notifications; every method may block."""

    def fetch_notifications(self, user_id: str) -> list[Notification]:
        ...

    def persist_mark_as_read(self, user_id: str, notification_id: str) -> None:
        ...

    def persist_mark_all_as_read(self, user_id: str, notification_ids: Sequence[str]) -> None:
        """Mark exactly ``notification_ids`` read; later arrivals stay unread."""


@runtime_checkable
class PreferenceProvider(Protocol):
    def load_preferences(self, user_id: str) -> Preferences:
        ...

    def save_preference(self, user_id: str, key: str, value: Any) -> None:
        ...


__all__ = ["NotificationPersistence", "PreferenceProvider"]
