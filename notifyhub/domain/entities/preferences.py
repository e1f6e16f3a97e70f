"""Per-user notification preferences."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import time
from typing import Any

from notifyhub.utils import parse_clock_time

from .notification import NotificationCategory, parse_category

_BOOLEAN_KEYS = ("enabled", "priority_only", "sound_enabled", "vibration_enabled")
_CATEGORY_PREFIX = "category_enabled."


@dataclass(frozen=True)
class QuietHours:
    """Do-not-disturb window expressed in wall-clock times.

    The window may wrap midnight (``22:00``–``08:00``). A window whose start
    equals its end is empty.
    """

    start: time
    end: time

    def contains(self, moment: time) -> bool:
        moment = moment.replace(tzinfo=None)
        if self.start < self.end:
            return self.start <= moment < self.end
        if self.start > self.end:
            return moment >= self.start or moment < self.end
        return False

    @classmethod
    def parse(cls, value: Any) -> "QuietHours | None":
        if value is None or isinstance(value, QuietHours):
            return value
        if not isinstance(value, Mapping):
            raise ValueError("quiet_hours must be a mapping with 'start' and 'end'")
        start, end = value.get("start"), value.get("end")
        if not start or not end:
            raise ValueError("Both start and end times are required")
        return cls(start=parse_clock_time(start), end=parse_clock_time(end))

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.strftime("%H:%M"), "end": self.end.strftime("%H:%M")}


@dataclass(frozen=True)
class Preferences:
    """Configuration deciding which notifications may become toasts."""

    enabled: bool = True
    priority_only: bool = False
    quiet_hours: QuietHours | None = None
    category_enabled: Mapping[NotificationCategory, bool] = field(default_factory=dict)
    sound_enabled: bool = True
    vibration_enabled: bool = True

    def is_category_enabled(self, category: NotificationCategory) -> bool:
        return self.category_enabled.get(category, True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "priority_only": self.priority_only,
            "quiet_hours": self.quiet_hours.to_dict() if self.quiet_hours else None,
            "category_enabled": {
                category.value: enabled for category, enabled in self.category_enabled.items()
            },
            "sound_enabled": self.sound_enabled,
            "vibration_enabled": self.vibration_enabled,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Preferences":
        preferences = cls()
        for key, value in (data or {}).items():
            preferences = apply_preference(preferences, key, value)
        return preferences


def apply_preference(preferences: Preferences, key: str, value: Any) -> Preferences:
    """Return a copy of ``preferences`` with ``key`` set to ``value``.

    Raises ``ValueError`` for unknown keys or values of the wrong shape.
    """

    if key in _BOOLEAN_KEYS:
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be a boolean")
        return replace(preferences, **{key: value})

    if key == "quiet_hours":
        return replace(preferences, quiet_hours=QuietHours.parse(value))

    if key == "category_enabled":
        if not isinstance(value, Mapping):
            raise ValueError("category_enabled must be a mapping of category to boolean")
        categories: dict[NotificationCategory, bool] = {}
        for raw_category, enabled in value.items():
            if not isinstance(enabled, bool):
                raise ValueError(f"category_enabled.{raw_category} must be a boolean")
            categories[parse_category(raw_category)] = enabled
        return replace(preferences, category_enabled=categories)

    if key.startswith(_CATEGORY_PREFIX):
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be a boolean")
        category = parse_category(key[len(_CATEGORY_PREFIX):])
        categories = dict(preferences.category_enabled)
        categories[category] = value
        return replace(preferences, category_enabled=categories)

    raise ValueError(f"Unknown preference: {key}")


__all__ = ["Preferences", "QuietHours", "apply_preference"]
