"""Read-only presentation surface consumed by rendering layers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from notifyhub.domain.entities import (
    Notification,
    NotificationAction,
    NotificationCategory,
    NotificationPriority,
    ToastInstance,
    ToastState,
)
from notifyhub.utils import now_in_app_timezone

from .lifecycle import ToastLifecycleController, TransitionListener
from .store import NotificationStore, RecencyBucket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToastView:
    """A live toast joined with the notification it presents."""

    notification_id: str
    category: NotificationCategory
    priority: NotificationPriority
    title: str
    message: str
    slot: int
    state: ToastState
    remaining_ms: int
    duration_ms: int
    progress: float
    paused: bool
    visible_since: datetime
    expires_at: datetime | None = None
    sound: bool = False
    vibrate: bool = False
    action: NotificationAction | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, toast: ToastInstance, notification: Notification) -> "ToastView":
        return cls(
            notification_id=toast.notification_id,
            category=notification.category,
            priority=notification.priority,
            title=notification.title,
            message=notification.message,
            slot=toast.slot,
            state=toast.state,
            remaining_ms=toast.remaining_ms,
            duration_ms=toast.duration_ms,
            progress=toast.progress,
            paused=toast.paused,
            visible_since=toast.visible_since,
            expires_at=toast.expires_at,
            sound=toast.sound,
            vibrate=toast.vibrate,
            action=notification.action,
            metadata=dict(notification.metadata),
        )


@dataclass(frozen=True)
class PresentationSnapshot:
    visible_toasts: list[ToastView]
    unread_count: int
    overflow_count: int
    grouped: dict[RecencyBucket, list[Notification]]
    generated_at: datetime


SnapshotListener = Callable[[PresentationSnapshot], None]


class PresentationQueries:
    """Derived views over the store and the live toasts.

    Nothing returned here aliases engine state, so rendering surfaces can
    hold on to results without being able to mutate notifications or toasts.
    """

    def __init__(
        self,
        store: NotificationStore,
        lifecycle: ToastLifecycleController,
        overflow: Callable[[], int],
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self._overflow = overflow
        self._clock = clock
        self._listeners: list[SnapshotListener] = []

    def visible_toasts(self) -> list[ToastView]:
        views = []
        for toast in self._lifecycle.live():
            notification = self._store.get(toast.notification_id)
            if notification is not None:
                views.append(ToastView.build(toast, notification))
        return views

    def unread_count(self) -> int:
        return self._store.unread_count

    def grouped_list(self, now: datetime | None = None) -> dict[RecencyBucket, list[Notification]]:
        return self._store.list(grouped_by_recency=True, now=now or self._clock())

    def overflow_count(self) -> int:
        return self._overflow()

    def notifications(
        self,
        category: NotificationCategory | None = None,
        unread_only: bool = False,
        query: str | None = None,
    ) -> list[Notification]:
        return self._store.filter(category=category, unread_only=unread_only, query=query)

    def snapshot(self, now: datetime | None = None) -> PresentationSnapshot:
        now = now or self._clock()
        return PresentationSnapshot(
            visible_toasts=self.visible_toasts(),
            unread_count=self.unread_count(),
            overflow_count=self.overflow_count(),
            grouped=self.grouped_list(now),
            generated_at=now,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot after every mutation."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def on_transition(self, listener: TransitionListener) -> Callable[[], None]:
        """Forward toast state transitions, e.g. to drive enter/exit animations."""

        return self._lifecycle.subscribe_transitions(listener)

    def publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Presentation listener %r failed", listener)


__all__ = ["PresentationQueries", "PresentationSnapshot", "SnapshotListener", "ToastView"]
