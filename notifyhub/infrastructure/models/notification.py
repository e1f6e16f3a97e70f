"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import Boolean, Column, DateTime, JSON, String, Text

from notifyhub.infrastructure.database import Base


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"

    id = Column(String(191), primary_key=True)
    user_id = Column(String(191), primary_key=True, index=True)
    category = Column(String(30), nullable=False)
    priority = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    action_label = Column(String(80), nullable=True)
    action_target = Column(String(255), nullable=True)
    # ``metadata`` is reserved on declarative classes.
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(), nullable=False)
    expires_at = Column(DateTime(), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(), nullable=True)


__all__ = ["NotificationModel"]
