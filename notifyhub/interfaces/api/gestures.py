"""Reduce pointer gestures to the single dismissal signal the engine understands."""

from __future__ import annotations

from notifyhub.config import Settings, get_settings


def should_dismiss(distance: float, velocity: float, settings: Settings | None = None) -> bool:
    """Return ``True`` when a drag travelled or flicked far enough to dismiss.

    Direction does not matter; both thresholds are compared on magnitudes.
    """

    settings = settings or get_settings()
    return (
        abs(distance) >= settings.dismiss_distance_threshold
        or abs(velocity) >= settings.dismiss_velocity_threshold
    )


__all__ = ["should_dismiss"]
