"""
Utility modules for the reminders backend.

This package contains shared utilities used across the application:
- logging_config: Structured logging setup and named loggers
- notification_feed: Per-user live change feed for notifications
- rate_limit: Shared slowapi limiter
"""

from backend.src.utils.notification_feed import (
    NotificationFeed,
    get_notification_feed,
)

__all__ = [
    "NotificationFeed",
    "get_notification_feed",
]
