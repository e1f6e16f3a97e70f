"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from notifyhub.application.engine import ToastView
from notifyhub.domain.entities import Notification, NotificationAction


class ActionRead(BaseModel):
    label: str
    target: str

    @classmethod
    def from_entity(cls, action: NotificationAction | None) -> "ActionRead | None":
        return cls(label=action.label, target=action.target) if action else None


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: str
    category: str
    priority: str
    title: str
    message: str
    created_at: datetime
    expires_at: datetime | None = None
    is_read: bool
    action: ActionRead | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        return cls(
            id=notification.id,
            category=notification.category.value,
            priority=notification.priority.value,
            title=notification.title,
            message=notification.message,
            created_at=notification.created_at,
            expires_at=notification.expires_at,
            is_read=notification.is_read,
            action=ActionRead.from_entity(notification.action),
            metadata=dict(notification.metadata),
        )


class GroupedNotificationsRead(BaseModel):
    today: list[NotificationRead] = Field(default_factory=list)
    yesterday: list[NotificationRead] = Field(default_factory=list)
    this_week: list[NotificationRead] = Field(default_factory=list)
    older: list[NotificationRead] = Field(default_factory=list)


class NotificationMarkReadRequest(BaseModel):
    """Payload used to mark a batch of notifications as read."""

    ids: list[str] = Field(..., min_length=1, description="Notification identifiers")

    def unique_ids(self) -> list[str]:
        """Return the list of identifiers without duplicates preserving order."""

        return list(dict.fromkeys(self.ids))


class MarkReadResult(BaseModel):
    updated: int
    unread_count: int


class UnreadCountRead(BaseModel):
    unread_count: int


class ToastRead(BaseModel):
    notification_id: str
    category: str
    priority: str
    title: str
    message: str
    slot: int
    state: str
    remaining_ms: int
    duration_ms: int
    progress: float
    paused: bool
    visible_since: datetime
    expires_at: datetime | None = None
    sound: bool = False
    vibrate: bool = False
    action: ActionRead | None = None

    @classmethod
    def from_view(cls, view: ToastView) -> "ToastRead":
        return cls(
            notification_id=view.notification_id,
            category=view.category.value,
            priority=view.priority.value,
            title=view.title,
            message=view.message,
            slot=view.slot,
            state=view.state.value,
            remaining_ms=view.remaining_ms,
            duration_ms=view.duration_ms,
            progress=view.progress,
            paused=view.paused,
            visible_since=view.visible_since,
            expires_at=view.expires_at,
            sound=view.sound,
            vibrate=view.vibrate,
            action=ActionRead.from_entity(view.action),
        )


class ToastOverlayRead(BaseModel):
    toasts: list[ToastRead]
    overflow_count: int


class DragRequest(BaseModel):
    """Outcome of a drag gesture as measured by the rendering surface."""

    distance: float = Field(0.0, description="Horizontal drag distance in pixels")
    velocity: float = Field(0.0, description="Release velocity in pixels per millisecond")


class ToastChangeResult(BaseModel):
    notification_id: str
    removed: bool


class PreferenceUpdate(BaseModel):
    value: Any = None


class PreferencesRead(BaseModel):
    enabled: bool
    priority_only: bool
    quiet_hours: dict[str, str] | None = None
    category_enabled: dict[str, bool] = Field(default_factory=dict)
    sound_enabled: bool
    vibration_enabled: bool


__all__ = [
    "ActionRead",
    "DragRequest",
    "GroupedNotificationsRead",
    "MarkReadResult",
    "NotificationMarkReadRequest",
    "NotificationRead",
    "PreferenceUpdate",
    "PreferencesRead",
    "ToastChangeResult",
    "ToastOverlayRead",
    "ToastRead",
    "UnreadCountRead",
]
