"""
Live change feed for notification inserts and updates.

Each connected UI session registers an asyncio queue on its user's channel.
Services publish events synchronously (they run in request handlers or in
worker threads), and delivery onto each listener's event loop is scheduled
with call_soon_threadsafe.

Usage:
    from backend.src.utils.notification_feed import get_notification_feed

    feed = get_notification_feed()

    # In a WebSocket endpoint
    queue = feed.subscribe(user_id)
    try:
        event = await queue.get()
    finally:
        feed.unsubscribe(user_id, queue)

    # From a service
    feed.publish(user_id, "INSERT", notification.to_feed_dict())
"""

import asyncio
import threading
from typing import Any, Dict, Optional, Set, Tuple

from backend.src.utils.logging_config import get_logger

logger = get_logger("websocket")


FEED_EVENTS = ("INSERT", "UPDATE", "DELETE")


class NotificationFeed:
    """
    Per-user publish/subscribe hub for notification change events.

    Multiple listeners per user are supported (multi-tab / multi-device).
    Listeners whose event loop has closed are dropped on the next publish.
    """

    def __init__(self):
        self._listeners: Dict[str, Set[Tuple[asyncio.AbstractEventLoop, asyncio.Queue]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, user_id: str) -> asyncio.Queue:
        """
        Register a listener for a user's channel.

        Must be called from the coroutine that will consume the queue.

        Args:
            user_id: Channel owner

        Returns:
            Queue receiving {"event": ..., "notification": {...}} dicts
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._listeners.setdefault(user_id, set()).add((loop, queue))
            count = len(self._listeners[user_id])
        logger.debug(f"Feed listener registered for user {user_id}. Total listeners: {count}")
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        """Remove a listener; empty channels are cleaned up."""
        with self._lock:
            listeners = self._listeners.get(user_id)
            if not listeners:
                return
            for entry in [e for e in listeners if e[1] is queue]:
                listeners.discard(entry)
            if not listeners:
                del self._listeners[user_id]
        logger.debug(f"Feed listener removed for user {user_id}")

    def publish(self, user_id: str, event: str, notification: Dict[str, Any]) -> int:
        """
        Publish a change event to every listener of a user.

        Args:
            user_id: Channel owner
            event: INSERT, UPDATE or DELETE
            notification: Serialized notification

        Returns:
            Number of listeners the event was scheduled for

        Raises:
            ValueError: If event is not a known feed event
        """
        if event not in FEED_EVENTS:
            raise ValueError(f"Unknown feed event: {event}")

        with self._lock:
            listeners = list(self._listeners.get(user_id, ()))

        payload = {"event": event, "notification": notification}
        delivered = 0
        stale = []

        for loop, queue in listeners:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, payload)
                delivered += 1
            except RuntimeError:
                # Event loop already closed
                stale.append(queue)

        for queue in stale:
            self.unsubscribe(user_id, queue)

        return delivered

    def listener_count(self, user_id: Optional[str] = None) -> int:
        """Number of listeners for one user, or across all users."""
        with self._lock:
            if user_id is not None:
                return len(self._listeners.get(user_id, ()))
            return sum(len(entries) for entries in self._listeners.values())


# Singleton instance
_notification_feed: Optional[NotificationFeed] = None


def get_notification_feed() -> NotificationFeed:
    """
    Get the singleton NotificationFeed instance.

    Note:
        Creates the instance on first call.
    """
    global _notification_feed
    if _notification_feed is None:
        _notification_feed = NotificationFeed()
    return _notification_feed
