"""Pydantic schemas for the notification API."""

from .notification import (
    ActionRead,
    DragRequest,
    GroupedNotificationsRead,
    MarkReadResult,
    NotificationMarkReadRequest,
    NotificationRead,
    PreferenceUpdate,
    PreferencesRead,
    ToastChangeResult,
    ToastOverlayRead,
    ToastRead,
    UnreadCountRead,
)

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
