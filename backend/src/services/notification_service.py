"""
Notification service for creating, querying, and managing notifications.

Provides business logic for:
- Creating notification records (the source of truth for the bell panel)
- Listing, counting, and dedup lookups over a user's notification history
- Read-state changes and explicit deletion
- Publishing insert/update/delete events to the live change feed
- Orchestrating create → push dispatch for producers that want delivery
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.src.models.notification import Notification, NotificationType, ReferenceType
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.utils.logging_config import get_logger
from backend.src.utils.notification_feed import NotificationFeed, get_notification_feed

if TYPE_CHECKING:
    from backend.src.services.push_dispatcher import DeliveryReport, PushDispatcher


logger = get_logger("services")


NOTIFICATION_TYPES = {t.value for t in NotificationType}
REFERENCE_TYPES = {t.value for t in ReferenceType}

MAX_TITLE_LENGTH = 200
MAX_MESSAGE_LENGTH = 500


class NotificationService:
    """
    Notification store for a single database session.

    Notifications are append-only apart from their read state. Every change
    is published to the user's channel on the NotificationFeed so open UI
    sessions can update without polling.
    """

    def __init__(
        self,
        db: Session,
        feed: Optional[NotificationFeed] = None,
        dispatcher: Optional["PushDispatcher"] = None,
    ):
        """
        Initialize notification service.

        Args:
            db: SQLAlchemy database session
            feed: Change feed to publish to (defaults to the process-wide feed)
            dispatcher: Optional push dispatcher used by send_notification
        """
        self.db = db
        self.feed = feed if feed is not None else get_notification_feed()
        self.dispatcher = dispatcher

    # ========================================================================
    # Notification CRUD
    # ========================================================================

    def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> Notification:
        """
        Create a notification record in the database.

        Args:
            user_id: Recipient user identifier
            notification_type: NotificationType value (reminder, task, deal, ...)
            title: Notification title (truncated to 200 chars)
            message: Notification text (truncated to 500 chars)
            reference_id: GUID of the referenced entity
            reference_type: ReferenceType value of the referenced entity
            data: Optional JSON metadata (navigation URL, chat context)
            created_at: Creation timestamp (defaults to now, UTC)

        Returns:
            Created Notification instance

        Raises:
            ValidationError: If type/reference are unknown, or a reminder does
                not reference exactly one task
        """
        if notification_type not in NOTIFICATION_TYPES:
            raise ValidationError(
                f"Unknown notification type: {notification_type}", field="type"
            )
        if reference_type is not None and reference_type not in REFERENCE_TYPES:
            raise ValidationError(
                f"Unknown reference type: {reference_type}", field="reference_type"
            )
        if notification_type == NotificationType.REMINDER.value and (
            reference_type != ReferenceType.TASK.value or not reference_id
        ):
            raise ValidationError(
                "Reminder notifications must reference a task", field="reference_id"
            )

        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title[:MAX_TITLE_LENGTH],
            message=message[:MAX_MESSAGE_LENGTH],
            reference_id=reference_id,
            reference_type=reference_type,
            data=data,
            is_read=False,
            created_at=created_at or datetime.utcnow(),
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.info(
            "Created notification",
            extra={
                "guid": notification.guid,
                "type": notification_type,
                "user_id": user_id,
                "reference_id": reference_id,
            },
        )
        self.feed.publish(user_id, "INSERT", notification.to_feed_dict())
        return notification

    def get_notification_by_guid(self, guid: str, user_id: str) -> Notification:
        """
        Get a user's notification by GUID.

        Args:
            guid: Notification GUID (ntf_xxx)
            user_id: Owning user identifier

        Returns:
            Notification instance

        Raises:
            NotFoundError: If not found or owned by another user
        """
        try:
            uuid_value = Notification.parse_guid(guid)
        except ValueError:
            raise NotFoundError("Notification", guid)

        notification = (
            self.db.query(Notification)
            .filter(
                Notification.uuid == uuid_value,
                Notification.user_id == user_id,
            )
            .first()
        )

        if not notification:
            raise NotFoundError("Notification", guid)

        return notification

    def list_notifications(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        notification_type: Optional[str] = None,
        unread_only: bool = False,
        reference_id: Optional[str] = None,
        created_after: Optional[datetime] = None,
    ) -> Tuple[List[Notification], int]:
        """
        List notifications for a user, most recent first.

        Args:
            user_id: User identifier
            limit: Maximum results
            offset: Number to skip
            notification_type: Optional type filter
            unread_only: If True, only return unread notifications
            reference_id: Optional referenced-entity filter
            created_after: Optional lower bound (inclusive) on created_at

        Returns:
            Tuple of (notifications list, total count)
        """
        query = self.db.query(Notification).filter(Notification.user_id == user_id)

        if notification_type:
            query = query.filter(Notification.type == notification_type)

        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        if reference_id:
            query = query.filter(Notification.reference_id == reference_id)

        if created_after is not None:
            query = query.filter(Notification.created_at >= created_after)

        total = query.count()

        notifications = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return notifications, total

    def find_recent(
        self,
        user_id: str,
        reference_id: str,
        notification_type: str,
        created_after: datetime,
    ) -> Optional[Notification]:
        """
        Find the newest notification of a type for a referenced entity.

        Used by the reminder scanner as its dedup existence check.

        Returns:
            Matching Notification or None
        """
        return (
            self.db.query(Notification)
            .filter(
                Notification.user_id == user_id,
                Notification.reference_id == reference_id,
                Notification.type == notification_type,
                Notification.created_at >= created_after,
            )
            .order_by(Notification.created_at.desc())
            .first()
        )

    def get_unread_count(self, user_id: str) -> int:
        """Count of unread notifications for the bell badge."""
        return (
            self.db.query(func.count(Notification.id))
            .filter(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .scalar()
        )

    def mark_as_read(self, guid: str, user_id: str) -> Notification:
        """
        Mark a notification as read (idempotent).

        Raises:
            NotFoundError: If not found or owned by another user
        """
        notification = self.get_notification_by_guid(guid, user_id)

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(notification)
            self.feed.publish(user_id, "UPDATE", notification.to_feed_dict())

        return notification

    def mark_all_as_read(self, user_id: str) -> int:
        """
        Mark all unread notifications as read for a user.

        Returns:
            Number of notifications that were marked as read
        """
        unread = (
            self.db.query(Notification)
            .filter(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
            .all()
        )
        if not unread:
            return 0

        now = datetime.utcnow()
        for notification in unread:
            notification.is_read = True
            notification.read_at = now
        self.db.commit()

        for notification in unread:
            self.feed.publish(user_id, "UPDATE", notification.to_feed_dict())

        return len(unread)

    def delete_notification(self, guid: str, user_id: str) -> None:
        """
        Delete a notification on explicit user request.

        Raises:
            NotFoundError: If not found or owned by another user
        """
        notification = self.get_notification_by_guid(guid, user_id)
        snapshot = notification.to_feed_dict()
        self.db.delete(notification)
        self.db.commit()
        logger.info(
            "Deleted notification",
            extra={"guid": guid, "user_id": user_id},
        )
        self.feed.publish(user_id, "DELETE", snapshot)

    # ========================================================================
    # Orchestration
    # ========================================================================

    def send_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        reference_id: Optional[str] = None,
        reference_type: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> Tuple[Notification, Optional["DeliveryReport"]]:
        """
        Create a notification, then hand it to the push dispatcher.

        The record is committed before delivery starts; the dispatcher never
        raises, so push problems cannot undo or block the insert.

        Returns:
            Tuple of (created notification, delivery report or None when no
            dispatcher is attached)
        """
        notification = self.create_notification(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            reference_id=reference_id,
            reference_type=reference_type,
            data=data,
            created_at=created_at,
        )

        if self.dispatcher is None:
            return notification, None

        return notification, self.dispatcher.dispatch(notification)
