"""
Service layer for business logic.

This module exports all service classes for use in API endpoints.
"""

from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ValidationError,
)
from backend.src.services.task_service import TaskService
from backend.src.services.push_subscription_service import PushSubscriptionService
from backend.src.services.notification_service import NotificationService
from backend.src.services.push_dispatcher import (
    PushDispatcher,
    DeliveryReport,
    PushGoneError,
    PushDeliveryError,
)
from backend.src.services.reminder_service import (
    ReminderScanner,
    ReminderKind,
    ReminderDecision,
    ScanOutcome,
    ScanReport,
    TaskScanResult,
    decide_reminder,
)

__all__ = [
    "ServiceError",
    "NotFoundError",
    "ValidationError",
    "TaskService",
    "PushSubscriptionService",
    "NotificationService",
    "PushDispatcher",
    "DeliveryReport",
    "PushGoneError",
    "PushDeliveryError",
    "ReminderScanner",
    "ReminderKind",
    "ReminderDecision",
    "ScanOutcome",
    "ScanReport",
    "TaskScanResult",
    "decide_reminder",
]
