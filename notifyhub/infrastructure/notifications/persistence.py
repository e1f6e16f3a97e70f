"""SQLAlchemy-backed implementations of the persistence collaborators."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from notifyhub.domain.entities import Notification, Preferences
from notifyhub.infrastructure.database import SessionLocal
from notifyhub.infrastructure.repositories import NotificationRepository, PreferenceRepository

logger = logging.getLogger(__name__)


class SqlAlchemyNotificationPersistence:
    """Blocking persistence for notifications; the session calls it from worker threads."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def fetch_notifications(self, user_id: str) -> list[Notification]:
        with self._session_factory() as session:
            return list(NotificationRepository(session).list_for_user(user_id))

    def save_notification(self, user_id: str, notification: Notification) -> Notification:
        with self._session_factory() as session:
            return NotificationRepository(session).create(user_id, notification)

    def persist_mark_as_read(self, user_id: str, notification_id: str) -> None:
        with self._session_factory() as session:
            if not NotificationRepository(session).mark_as_read(user_id, notification_id):
                logger.debug("Notification %s was not pending a read update", notification_id)

    def persist_mark_all_as_read(self, user_id: str, notification_ids: Sequence[str]) -> None:
        with self._session_factory() as session:
            updated = NotificationRepository(session).mark_all_as_read(user_id, notification_ids)
        logger.debug("Marked %d stored notifications as read for %s", updated, user_id)


class SqlAlchemyPreferenceStore:
    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def load_preferences(self, user_id: str) -> Preferences:
        with self._session_factory() as session:
            return PreferenceRepository(session).get(user_id)

    def save_preference(self, user_id: str, key: str, value: Any) -> None:
        with self._session_factory() as session:
            PreferenceRepository(session).update(user_id, key, value)


__all__ = ["SqlAlchemyNotificationPersistence", "SqlAlchemyPreferenceStore"]
