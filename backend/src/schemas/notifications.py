"""
Pydantic schemas for notification API request/response validation.

Provides data validation and serialization for:
- Push subscription management (subscribe, unsubscribe, list)
- Notification history (list, unread count, mark as read)
- Test notifications and VAPID public key retrieval
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator


# ============================================================================
# Push Subscription Schemas
# ============================================================================


class PushSubscriptionCreate(BaseModel):
    """
    Schema for registering a push subscription.

    Required:
        endpoint: Push service endpoint URL (must be HTTPS)
        p256dh_key: Base64url-encoded ECDH public key
        auth_key: Base64url-encoded auth secret

    Optional:
        user_agent: Browser user-agent string (defaults to the request header)
    """

    endpoint: str = Field(..., max_length=1024, description="Push service endpoint URL (must be HTTPS)")
    p256dh_key: str = Field(..., min_length=1, description="Base64url-encoded ECDH public key")
    auth_key: str = Field(..., min_length=1, description="Base64url-encoded auth secret")
    user_agent: Optional[str] = Field(default=None, max_length=512)

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint_https(cls, v: str) -> str:
        """Ensure endpoint uses HTTPS."""
        if not v.startswith("https://"):
            raise ValueError("Push subscription endpoint must use HTTPS")
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "endpoint": "https://fcm.googleapis.com/fcm/send/abc123...",
                "p256dh_key": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0...",
                "auth_key": "tBHItJI5svbpC7htUH8g...",
            }
        }
    }


class PushSubscriptionResponse(BaseModel):
    """Response schema for a push subscription."""

    guid: str = Field(..., description="Subscription GUID (sub_xxx)")
    endpoint: str
    user_agent: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_used_at: Optional[datetime] = None

    @field_serializer("created_at", "last_used_at")
    @classmethod
    def serialize_datetime_utc(cls, v: Optional[datetime]) -> Optional[str]:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return v.isoformat() + "Z" if v else None

    model_config = {"from_attributes": True}


class PushSubscriptionListResponse(BaseModel):
    items: List[PushSubscriptionResponse] = Field(default_factory=list)


class PushSubscriptionRemove(BaseModel):
    """Schema for removing a push subscription by endpoint."""

    endpoint: str = Field(..., description="The push service endpoint URL to unsubscribe")


# ============================================================================
# Notification History Schemas
# ============================================================================


class NotificationResponse(BaseModel):
    """Response schema for a single notification."""

    guid: str = Field(..., description="Notification GUID (ntf_xxx)")
    type: str
    title: str
    message: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    @field_serializer("read_at", "created_at")
    @classmethod
    def serialize_datetime_utc(cls, v: Optional[datetime]) -> Optional[str]:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return v.isoformat() + "Z" if v else None

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Paginated notification list."""

    items: List[NotificationResponse]
    total: int
    limit: int
    offset: int


class UnreadCountResponse(BaseModel):
    unread_count: int = Field(..., ge=0)


class MarkAllReadResponse(BaseModel):
    updated_count: int = Field(..., ge=0, description="Number of notifications marked as read")


# ============================================================================
# Delivery Schemas
# ============================================================================


class DeliveryReportResponse(BaseModel):
    """Outcome of fanning one notification out to a user's devices."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    deactivated: int = 0
    skipped_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class TestNotificationRequest(BaseModel):
    title: str = Field(default="Test notification", min_length=1, max_length=200)
    message: str = Field(
        default="Push notifications are working on this device.",
        min_length=1,
        max_length=500,
    )


class TestNotificationResponse(BaseModel):
    """Created notification plus the push delivery outcome."""

    notification: NotificationResponse
    delivery: Optional[DeliveryReportResponse] = None


class VapidKeyResponse(BaseModel):
    """VAPID public key for client-side PushManager.subscribe()."""

    vapid_public_key: str = Field(..., description="Base64url-encoded VAPID public key")
