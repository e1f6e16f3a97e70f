"""In-memory notification store with read/unread bookkeeping."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Any

from notifyhub.domain.entities import Notification, NotificationCategory
from notifyhub.domain.exceptions import NormalizationError
from notifyhub.utils import ensure_app_timezone, now_in_app_timezone

logger = logging.getLogger(__name__)


class RecencyBucket(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "this_week"
    OLDER = "older"


def recency_bucket(created_at: datetime, now: datetime) -> RecencyBucket:
    """Classify ``created_at`` by calendar day relative to ``now``."""

    created_day = ensure_app_timezone(created_at).date()
    today = ensure_app_timezone(now).date()
    age_in_days = (today - created_day).days
    if age_in_days <= 0:
        return RecencyBucket.TODAY
    if age_in_days == 1:
        return RecencyBucket.YESTERDAY
    if age_in_days < 7:
        return RecencyBucket.THIS_WEEK
    return RecencyBucket.OLDER


class NotificationStore:
    """Single source of truth for the notifications of one session.

    Every mutation happens under one re-entrant lock so ingestion callbacks
    arriving from different threads are serialized. Queries return copies.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._notifications: dict[str, Notification] = {}
        self._unread = 0

    def __len__(self) -> int:
        return len(self._notifications)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._notifications

    @property
    def unread_count(self) -> int:
        return self._unread

    def ingest(self, event: Mapping[str, Any]) -> Notification | None:
        """Normalize ``event`` and store it.

        Returns ``None`` without touching state when the id was already seen or
        the payload cannot be normalized.
        """

        try:
            notification = Notification.from_payload(event)
        except NormalizationError as exc:
            logger.warning("Dropping malformed notification %s: %s", _event_id(event), exc)
            return None

        with self._lock:
            if notification.id in self._notifications:
                logger.debug("Ignoring duplicate notification %s", notification.id)
                return None
            notification.is_read = False
            self._insert(notification)
            return _copy(notification)

    def seed(self, notifications: Iterable[Notification]) -> int:
        """Load previously persisted notifications, keeping their read state."""

        added = 0
        with self._lock:
            for notification in notifications:
                if notification.id in self._notifications:
                    continue
                self._insert(_copy(notification))
                added += 1
        return added

    def get(self, notification_id: str) -> Notification | None:
        with self._lock:
            notification = self._notifications.get(notification_id)
            return _copy(notification) if notification else None

    def mark_as_read(self, notification_id: str) -> bool:
        """Mark one notification as read; returns ``True`` only on a change."""

        with self._lock:
            notification = self._notifications.get(notification_id)
            if notification is None or notification.is_read:
                return False
            notification.is_read = True
            self._unread -= 1
            return True

    def mark_all_as_read(self) -> list[str]:
        """Mark every stored notification as read and return the changed ids."""

        with self._lock:
            changed = [n.id for n in self._notifications.values() if not n.is_read]
            for notification_id in changed:
                self._notifications[notification_id].is_read = True
            self._unread = 0
            return changed

    def list(
        self, grouped_by_recency: bool = False, now: datetime | None = None
    ) -> list[Notification] | dict[RecencyBucket, list[Notification]]:
        """Return notifications newest first, optionally grouped by recency."""

        with self._lock:
            ordered = self._ordered()
        if not grouped_by_recency:
            return ordered

        reference = now or now_in_app_timezone()
        groups: dict[RecencyBucket, list[Notification]] = {bucket: [] for bucket in RecencyBucket}
        for notification in ordered:
            groups[recency_bucket(notification.created_at, reference)].append(notification)
        return groups

    def filter(
        self,
        *,
        category: NotificationCategory | None = None,
        unread_only: bool = False,
        query: str | None = None,
    ) -> list[Notification]:
        """Return notifications matching a category, read state and search text."""

        needle = (query or "").strip().lower()
        with self._lock:
            ordered = self._ordered()
        results = []
        for notification in ordered:
            if category is not None and notification.category != category:
                continue
            if unread_only and notification.is_read:
                continue
            if needle and needle not in notification.title.lower() and needle not in notification.message.lower():
                continue
            results.append(notification)
        return results

    def _insert(self, notification: Notification) -> None:
        self._notifications[notification.id] = notification
        if not notification.is_read:
            self._unread += 1

    def _ordered(self) -> list[Notification]:
        return [
            _copy(notification)
            for notification in sorted(
                self._notifications.values(),
                key=lambda n: (n.created_at, n.id),
                reverse=True,
            )
        ]


def _copy(notification: Notification) -> Notification:
    return replace(notification, metadata=dict(notification.metadata))


def _event_id(event: object) -> object:
    if isinstance(event, Mapping):
        return event.get("id", "<no id>")
    return "<invalid>"


__all__ = ["NotificationStore", "RecencyBucket", "recency_bucket"]
