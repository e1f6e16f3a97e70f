"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy.orm import Session

from notifyhub.domain.entities import (
    Notification,
    NotificationAction,
    NotificationCategory,
    NotificationPriority,
)
from notifyhub.infrastructure.models import NotificationModel
from notifyhub.utils import ensure_app_naive_datetime, ensure_app_timezone, now_in_app_naive_datetime


class NotificationRepository:
    """Store :class:`Notification` objects per user."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(self, user_id: str, *, limit: int | None = 200) -> Sequence[Notification]:
        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def get(self, user_id: str, notification_id: str) -> Notification | None:
        model = self.session.get(NotificationModel, (notification_id, user_id))
        return self._to_entity(model) if model else None

    def create(self, user_id: str, notification: Notification) -> Notification:
        model = NotificationModel(id=notification.id, user_id=user_id)
        self._apply_entity_to_model(model, notification)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def mark_as_read(self, user_id: str, notification_id: str) -> bool:
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.user_id == user_id,
                NotificationModel.is_read.is_(False),
            )
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: now_in_app_naive_datetime(),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return bool(updated)

    def mark_all_as_read(self, user_id: str, notification_ids: Iterable[str] | None = None) -> int:
        """Mark unread notifications read, limited to ``notification_ids`` when given."""

        query = self.session.query(NotificationModel).filter(
            NotificationModel.user_id == user_id,
            NotificationModel.is_read.is_(False),
        )
        if notification_ids is not None:
            ids = list(notification_ids)
            if not ids:
                return 0
            query = query.filter(NotificationModel.id.in_(ids))
        updated = query.update(
            {
                NotificationModel.is_read: True,
                NotificationModel.read_at: now_in_app_naive_datetime(),
            },
            synchronize_session=False,
        )
        self.session.commit()
        return int(updated)

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.category = notification.category.value
        model.priority = notification.priority.value
        model.title = notification.title
        model.message = notification.message
        model.action_label = notification.action.label if notification.action else None
        model.action_target = notification.action.target if notification.action else None
        model.extra = dict(notification.metadata)
        model.created_at = ensure_app_naive_datetime(notification.created_at)
        model.expires_at = ensure_app_naive_datetime(notification.expires_at)
        model.is_read = notification.is_read
        model.read_at = now_in_app_naive_datetime() if notification.is_read else None

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        action = None
        if model.action_label and model.action_target:
            action = NotificationAction(label=model.action_label, target=model.action_target)
        return Notification(
            id=model.id,
            category=NotificationCategory(model.category),
            priority=NotificationPriority(model.priority),
            title=model.title,
            message=model.message,
            created_at=ensure_app_timezone(model.created_at),
            expires_at=ensure_app_timezone(model.expires_at),
            is_read=bool(model.is_read),
            action=action,
            metadata=dict(model.extra or {}),
        )


__all__ = ["NotificationRepository"]
