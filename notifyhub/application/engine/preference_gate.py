"""Decide which stored notifications may be presented as toasts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from notifyhub.domain.entities import Notification, NotificationPriority, Preferences
from notifyhub.utils import local_wall_clock


class RejectionReason(str, Enum):
    DISABLED = "disabled"
    CATEGORY_DISABLED = "category_disabled"
    PRIORITY_FILTERED = "priority_filtered"
    QUIET_HOURS = "quiet_hours"


@dataclass(frozen=True)
class ToastFeedback:
    sound: bool
    vibrate: bool


def quiet_hours_active(preferences: Preferences, now: datetime) -> bool:
    if preferences.quiet_hours is None:
        return False
    return preferences.quiet_hours.contains(local_wall_clock(now))


def rejection_reason(
    notification: Notification, preferences: Preferences, now: datetime
) -> RejectionReason | None:
    """Return the first rule that keeps ``notification`` off screen.

    Rules are evaluated in a fixed order and only the first match is
    reported: master switch, category toggle, priority-only mode, then quiet
    hours (which never hold back ``urgent`` notifications).
    """

    if not preferences.enabled:
        return RejectionReason.DISABLED
    if not preferences.is_category_enabled(notification.category):
        return RejectionReason.CATEGORY_DISABLED
    if preferences.priority_only and not notification.priority.is_critical:
        return RejectionReason.PRIORITY_FILTERED
    if (
        notification.priority is not NotificationPriority.URGENT
        and quiet_hours_active(preferences, now)
    ):
        return RejectionReason.QUIET_HOURS
    return None


def admit(notification: Notification, preferences: Preferences, now: datetime) -> bool:
    return rejection_reason(notification, preferences, now) is None


def feedback_for(
    notification: Notification, preferences: Preferences, now: datetime
) -> ToastFeedback:
    """Sound and vibration flags for an admitted toast.

    Urgent toasts may pass through quiet hours but still arrive silently.
    """

    silent = quiet_hours_active(preferences, now)
    return ToastFeedback(
        sound=preferences.sound_enabled and not silent,
        vibrate=preferences.vibration_enabled and not silent,
    )


__all__ = [
    "RejectionReason",
    "ToastFeedback",
    "admit",
    "feedback_for",
    "quiet_hours_active",
    "rejection_reason",
]
