"""SQLAlchemy model for notification preferences."""

from sqlalchemy import Column, DateTime, JSON, String

from notifyhub.infrastructure.database import Base
from notifyhub.utils import now_in_app_naive_datetime


class NotificationPreferenceModel(Base):
    """Stored preferences of one user, kept as a single JSON document."""

    __tablename__ = "notification_preference"

    user_id = Column(String(191), primary_key=True)
    settings = Column(JSON, nullable=False, default=dict)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["NotificationPreferenceModel"]
