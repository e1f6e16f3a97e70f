"""Push presentation snapshots to websocket subscribers."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from anyio import from_thread

from notifyhub.application.engine import PresentationQueries, PresentationSnapshot, ToastView
from notifyhub.domain.entities import Notification, ToastInstance, ToastState

from .manager import PresentationConnectionManager


class SnapshotPublisher:
    """Serialize presentation changes and schedule their delivery to one user.

    ``user_id`` may be a callable; it is resolved on every send so a publisher
    attached before the session starts follows the user the session is
    eventually started for.
    """

    def __init__(
        self,
        manager: PresentationConnectionManager,
        user_id: str | Callable[[], str | None],
    ) -> None:
        self._manager = manager
        self._user_id = user_id
        self._unsubscribers: list[Callable[[], None]] = []
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach(self, queries: PresentationQueries) -> None:
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        self._unsubscribers.append(queries.subscribe(self.dispatch_snapshot))
        self._unsubscribers.append(queries.on_transition(self.dispatch_transition))

    def detach(self) -> None:
        while self._unsubscribers:
            self._unsubscribers.pop()()

    def dispatch_snapshot(self, snapshot: PresentationSnapshot) -> None:
        self._schedule_send({"type": "snapshot", "data": serialize_snapshot(snapshot)})

    def dispatch_transition(self, toast: ToastInstance, previous: ToastState) -> None:
        self._schedule_send(
            {
                "type": "toast-transition",
                "data": {
                    "notification_id": toast.notification_id,
                    "from": previous.value,
                    "to": toast.state.value,
                    "slot": toast.slot,
                    "reason": toast.removal_reason.value if toast.removal_reason else None,
                },
            }
        )

    @property
    def user_id(self) -> str | None:
        return self._user_id() if callable(self._user_id) else self._user_id

    def _schedule_send(self, message: dict[str, Any]) -> None:
        user_id = self.user_id
        if user_id is None or not self._manager.connection_count(user_id):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            loop.create_task(self._manager.send_to_user(user_id, message))
        elif self._loop is not None and not self._loop.is_closed():
            # Changes applied from a foreign thread are delivered on the app loop.
            asyncio.run_coroutine_threadsafe(
                self._manager.send_to_user(user_id, message), self._loop
            )
        else:
            from_thread.run(self._manager.send_to_user, user_id, message)


def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "category": notification.category.value,
        "priority": notification.priority.value,
        "title": notification.title,
        "message": notification.message,
        "created_at": _isoformat(notification.created_at),
        "expires_at": _isoformat(notification.expires_at),
        "is_read": notification.is_read,
        "action": (
            {"label": notification.action.label, "target": notification.action.target}
            if notification.action
            else None
        ),
        "metadata": dict(notification.metadata),
    }


def serialize_toast(view: ToastView) -> dict[str, Any]:
    return {
        "notification_id": view.notification_id,
        "category": view.category.value,
        "priority": view.priority.value,
        "title": view.title,
        "message": view.message,
        "slot": view.slot,
        "state": view.state.value,
        "remaining_ms": view.remaining_ms,
        "duration_ms": view.duration_ms,
        "progress": view.progress,
        "paused": view.paused,
        "visible_since": _isoformat(view.visible_since),
        "expires_at": _isoformat(view.expires_at),
        "sound": view.sound,
        "vibrate": view.vibrate,
        "action": (
            {"label": view.action.label, "target": view.action.target} if view.action else None
        ),
        "metadata": dict(view.metadata),
    }


def serialize_snapshot(snapshot: PresentationSnapshot) -> dict[str, Any]:
    return {
        "visible_toasts": [serialize_toast(view) for view in snapshot.visible_toasts],
        "unread_count": snapshot.unread_count,
        "overflow_count": snapshot.overflow_count,
        "grouped": {
            bucket.value: [serialize_notification(n) for n in notifications]
            for bucket, notifications in snapshot.grouped.items()
        },
        "generated_at": _isoformat(snapshot.generated_at),
    }


__all__ = [
    "SnapshotPublisher",
    "serialize_notification",
    "serialize_snapshot",
    "serialize_toast",
]
