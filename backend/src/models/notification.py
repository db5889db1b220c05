"""
Notification model for in-app notification history.

Stores notification events sent to users, independent of push delivery status.
Notifications are the source of truth for the notification bell panel; push
delivery is a side channel and its outcome is never recorded here.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Index, JSON
from sqlalchemy.dialects.postgresql import JSONB

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class NotificationType(enum.Enum):
    """What produced the notification."""
    TASK = "task"
    EVENT = "event"
    DEAL = "deal"
    ASSIGNMENT = "assignment"
    REMINDER = "reminder"
    SYSTEM = "system"
    MESSAGE = "message"


class ReferenceType(enum.Enum):
    """Entity kinds a notification may point at."""
    TASK = "task"
    EVENT = "event"
    DEAL = "deal"
    MESSAGE = "message"


class Notification(Base, GuidMixin):
    """
    Notification sent to a user.

    Attributes:
        user_id: Recipient (external user identifier)
        type: NotificationType value
        title: Short notification title (max 200 chars)
        message: Notification text (max 500 chars)
        reference_id: GUID of the referenced entity (task, deal, event, message)
        reference_type: ReferenceType value
        data: Optional JSON metadata (navigation URL, chat context)
        is_read / read_at: Read state, the only mutable part of a notification

    Lifecycle:
        Created by the reminder scanner (type=reminder) or other producers.
        Marked read by the user. Deleted only by an explicit user action.
    """

    __tablename__ = "notifications"
    GUID_PREFIX = "ntf"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(String(64), nullable=False, index=True)

    type = Column(String(30), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(String(500), nullable=False)

    reference_id = Column(String(64), nullable=True)
    reference_type = Column(String(30), nullable=True)

    data = Column(JSONB().with_variant(JSON(), "sqlite"), nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        # Dedup lookups: (user, reference, type) within a time window
        Index(
            "ix_notifications_user_reference",
            "user_id",
            "reference_id",
            "type",
            "created_at",
        ),
        Index(
            "ix_notifications_user_unread",
            "user_id",
            postgresql_where=(is_read.is_(False)),
        ),
    )

    def to_feed_dict(self) -> dict:
        """Serialize for the live change feed."""
        return {
            "guid": self.guid,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "reference_id": self.reference_id,
            "reference_type": self.reference_type,
            "data": self.data,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() + "Z" if self.read_at else None,
            "created_at": self.created_at.isoformat() + "Z" if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type='{self.type}', user_id='{self.user_id}')>"
