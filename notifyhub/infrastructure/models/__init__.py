"""SQLAlchemy models."""

from .notification import NotificationModel
from .preference import NotificationPreferenceModel

__all__ = ["NotificationModel", "NotificationPreferenceModel"]
