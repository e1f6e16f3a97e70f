"""Errors raised by the notification domain."""

from __future__ import annotations

from datetime import datetime


class NormalizationError(ValueError):
    """Raised when a raw event cannot be turned into a notification."""


class OfferExpiredError(ValueError):
    """Raised when an offer notification is accepted after its deadline."""

    def __init__(self, notification_id: str, expires_at: datetime | None) -> None:
        self.notification_id = notification_id
        self.expires_at = expires_at
        deadline = expires_at.isoformat() if expires_at else "unknown"
        super().__init__(f"Offer {notification_id} expired at {deadline}")


__all__ = ["NormalizationError", "OfferExpiredError"]
