"""
Pydantic schemas for API request/response validation.
"""

from backend.src.schemas.notifications import (
    PushSubscriptionCreate,
    PushSubscriptionResponse,
    PushSubscriptionListResponse,
    PushSubscriptionRemove,
    NotificationResponse,
    NotificationListResponse,
    UnreadCountResponse,
    MarkAllReadResponse,
    DeliveryReportResponse,
    TestNotificationRequest,
    TestNotificationResponse,
    VapidKeyResponse,
)
from backend.src.schemas.reminders import (
    TaskScanResultResponse,
    ScanReportResponse,
    ScanRunResponse,
)

__all__ = [
    "PushSubscriptionCreate",
    "PushSubscriptionResponse",
    "PushSubscriptionListResponse",
    "PushSubscriptionRemove",
    "NotificationResponse",
    "NotificationListResponse",
    "UnreadCountResponse",
    "MarkAllReadResponse",
    "DeliveryReportResponse",
    "TestNotificationRequest",
    "TestNotificationResponse",
    "VapidKeyResponse",
    "TaskScanResultResponse",
    "ScanReportResponse",
    "ScanRunResponse",
]
