"""Transient on-screen presentation of a notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ToastState(str, Enum):
    QUEUED = "queued"
    VISIBLE = "visible"
    COUNTING = "counting"
    DISMISSING = "dismissing"
    EXPIRED = "expired"
    REMOVED = "removed"


class RemovalReason(str, Enum):
    DISMISSED = "dismissed"
    SWIPED = "swiped"
    ACTION = "action"
    TIMEOUT = "timeout"
    OFFER_EXPIRED = "offer_expired"
    SESSION_ENDED = "session_ended"


@dataclass
class ToastInstance:
    """Countdown state for one visible notification.

    The instance only references its notification by id; removing the toast
    never touches the archived notification.
    """

    notification_id: str
    visible_since: datetime
    duration_ms: int
    remaining_ms: int
    slot: int
    state: ToastState = ToastState.QUEUED
    paused: bool = False
    expires_at: datetime | None = None
    sound: bool = False
    vibrate: bool = False
    removal_reason: RemovalReason | None = None

    @property
    def progress(self) -> float:
        """Fraction of the countdown still remaining, from 1.0 down to 0.0."""

        if self.duration_ms <= 0:
            return 0.0
        return max(0.0, min(1.0, self.remaining_ms / self.duration_ms))

    @property
    def is_live(self) -> bool:
        return self.state not in (ToastState.REMOVED,)


__all__ = ["RemovalReason", "ToastInstance", "ToastState"]
