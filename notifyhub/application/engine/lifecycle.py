"""Timed lifecycle of visible toasts driven by one shared tick."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from notifyhub.domain.entities import (
    Notification,
    NotificationPriority,
    RemovalReason,
    ToastInstance,
    ToastState,
)
from notifyhub.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

TransitionListener = Callable[[ToastInstance, ToastState], None]
RemovalListener = Callable[[ToastInstance], None]


_VALID_TRANSITIONS = {
    ToastState.QUEUED: {ToastState.VISIBLE, ToastState.REMOVED},
    ToastState.VISIBLE: {ToastState.COUNTING, ToastState.DISMISSING, ToastState.EXPIRED},
    ToastState.COUNTING: {ToastState.DISMISSING, ToastState.EXPIRED},
    ToastState.DISMISSING: {ToastState.REMOVED},
    ToastState.EXPIRED: {ToastState.REMOVED},
    ToastState.REMOVED: set(),  # Terminal
}


class ToastLifecycleController:
    """Own every live :class:`ToastInstance` and its countdown.

    A toast has a timer exactly while its id is in the tick set. Each call to
    :meth:`tick` advances all timers by one interval, so cancelling a
    countdown is nothing more than discarding the id. The timer is always
    discarded before the exit transition, which keeps removed toasts from
    ever being ticked again.

    The controller is not thread-safe; callers serialize access.
    """

    def __init__(
        self,
        tick_interval_ms: int = 100,
        default_duration_ms: int = 5000,
        critical_duration_multiplier: float = 0.6,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self.tick_interval_ms = tick_interval_ms
        self.default_duration_ms = default_duration_ms
        self.critical_duration_multiplier = critical_duration_multiplier
        self._clock = clock
        # Insertion order doubles as admission order for slot compaction.
        self._toasts: dict[str, ToastInstance] = {}
        self._ticking: set[str] = set()
        self._transition_listeners: list[TransitionListener] = []
        self._removal_listeners: list[RemovalListener] = []

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._toasts

    def __len__(self) -> int:
        return len(self._toasts)

    @property
    def active_timer_count(self) -> int:
        return len(self._ticking)

    def duration_for(self, priority: NotificationPriority) -> int:
        if priority.is_critical:
            return int(self.default_duration_ms * self.critical_duration_multiplier)
        return self.default_duration_ms

    def admit(
        self,
        notification: Notification,
        now: datetime | None = None,
        *,
        sound: bool = False,
        vibrate: bool = False,
    ) -> ToastInstance:
        """Create the toast for ``notification`` and start its countdown."""

        existing = self._toasts.get(notification.id)
        if existing is not None:
            logger.warning("Toast for notification %s is already live", notification.id)
            return replace(existing)

        duration = self.duration_for(notification.priority)
        toast = ToastInstance(
            notification_id=notification.id,
            visible_since=now or self._clock(),
            duration_ms=duration,
            remaining_ms=duration,
            slot=len(self._toasts),
            expires_at=notification.expires_at if notification.is_offer else None,
            sound=sound,
            vibrate=vibrate,
        )
        self._toasts[toast.notification_id] = toast
        self._transition(toast, ToastState.VISIBLE)
        self._transition(toast, ToastState.COUNTING)
        self._ticking.add(toast.notification_id)
        return replace(toast)

    def tick(self, now: datetime | None = None) -> list[ToastInstance]:
        """Advance every live countdown by one interval.

        Offers past their deadline are expired first, whatever their countdown
        shows, and paused toasts keep their remaining time. Returns the toasts
        removed during this tick.
        """

        now = now or self._clock()
        removed: list[ToastInstance] = []
        for toast_id in [toast_id for toast_id in self._toasts if toast_id in self._ticking]:
            toast = self._toasts[toast_id]
            if toast.expires_at is not None and now > toast.expires_at:
                removed.append(self._finish(toast, ToastState.EXPIRED, RemovalReason.OFFER_EXPIRED))
                continue
            if toast.paused:
                continue
            toast.remaining_ms = max(0, toast.remaining_ms - self.tick_interval_ms)
            if toast.remaining_ms <= 0:
                removed.append(self._finish(toast, ToastState.EXPIRED, RemovalReason.TIMEOUT))
        return removed

    def dismiss(self, notification_id: str, reason: RemovalReason = RemovalReason.DISMISSED) -> bool:
        toast = self._toasts.get(notification_id)
        if toast is None:
            logger.warning("Ignoring removal of toast %s: not live", notification_id)
            return False
        self._finish(toast, ToastState.DISMISSING, reason)
        return True

    def expire(
        self, notification_id: str, reason: RemovalReason = RemovalReason.OFFER_EXPIRED
    ) -> bool:
        toast = self._toasts.get(notification_id)
        if toast is None:
            logger.warning("Ignoring expiry of toast %s: not live", notification_id)
            return False
        self._finish(toast, ToastState.EXPIRED, reason)
        return True

    def drag(self, notification_id: str, dismiss_requested: bool) -> bool:
        """Finish a drag gesture; returns ``True`` when the toast was removed.

        A drag that does not request dismissal resumes the countdown where it
        stopped.
        """

        if dismiss_requested:
            return self.dismiss(notification_id, RemovalReason.SWIPED)
        self.resume(notification_id)
        return False

    def pause(self, notification_id: str) -> bool:
        return self._set_paused(notification_id, True)

    def resume(self, notification_id: str) -> bool:
        return self._set_paused(notification_id, False)

    def clear(self, reason: RemovalReason = RemovalReason.SESSION_ENDED) -> list[ToastInstance]:
        return [
            self._finish(toast, ToastState.DISMISSING, reason)
            for toast in list(self._toasts.values())
        ]

    def get(self, notification_id: str) -> ToastInstance | None:
        toast = self._toasts.get(notification_id)
        return replace(toast) if toast else None

    def live(self) -> list[ToastInstance]:
        return [replace(toast) for toast in sorted(self._toasts.values(), key=lambda t: t.slot)]

    def subscribe_transitions(self, listener: TransitionListener) -> Callable[[], None]:
        self._transition_listeners.append(listener)
        return lambda: _discard(self._transition_listeners, listener)

    def subscribe_removals(self, listener: RemovalListener) -> Callable[[], None]:
        self._removal_listeners.append(listener)
        return lambda: _discard(self._removal_listeners, listener)

    def _set_paused(self, notification_id: str, paused: bool) -> bool:
        toast = self._toasts.get(notification_id)
        if toast is None:
            logger.debug("Ignoring pause change for toast %s: not live", notification_id)
            return False
        toast.paused = paused
        return True

    def _finish(
        self, toast: ToastInstance, exit_state: ToastState, reason: RemovalReason
    ) -> ToastInstance:
        self._ticking.discard(toast.notification_id)
        self._transition(toast, exit_state)
        toast.removal_reason = reason
        toast.paused = False
        self._transition(toast, ToastState.REMOVED)
        self._toasts.pop(toast.notification_id, None)
        self._compact_slots()

        removed = replace(toast)
        for listener in list(self._removal_listeners):
            try:
                listener(replace(removed))
            except Exception:
                logger.exception("Toast removal listener failed for %s", toast.notification_id)
        return removed

    def _transition(self, toast: ToastInstance, target: ToastState) -> bool:
        previous = toast.state
        if target not in _VALID_TRANSITIONS[previous]:
            logger.warning(
                "Invalid toast transition %s -> %s for %s",
                previous.value,
                target.value,
                toast.notification_id,
            )
            return False
        toast.state = target
        for listener in list(self._transition_listeners):
            try:
                listener(replace(toast), previous)
            except Exception:
                logger.exception("Toast transition listener failed for %s", toast.notification_id)
        return True

    def _compact_slots(self) -> None:
        for slot, toast in enumerate(self._toasts.values()):
            toast.slot = slot


def _discard(listeners: list, listener: object) -> None:
    if listener in listeners:
        listeners.remove(listener)


__all__ = ["RemovalListener", "ToastLifecycleController", "TransitionListener"]
