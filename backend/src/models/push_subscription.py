"""
PushSubscription model for Web Push notification subscriptions.

Stores the push service endpoint and encryption keys needed to deliver
push notifications to a specific user's device/browser.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, UniqueConstraint

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class PushSubscription(Base, GuidMixin):
    """
    Web Push subscription for a specific user on a specific device/browser.

    Attributes:
        user_id: Owning user (external identifier)
        endpoint: Push service URL, unique per user
        p256dh_key: ECDH public key for payload encryption (Base64url)
        auth_key: Auth secret for message authentication (Base64url)
        user_agent: Browser user-agent string captured at opt-in
        is_active: False once the push service reports the endpoint gone
        last_used_at: Timestamp of last opt-in or successful delivery

    Lifecycle:
        Upserted (and reactivated) when the user opts in on a device.
        Deactivated, not deleted, when the push service returns 410/404.
        Deleted when the user explicitly opts out.
    """

    __tablename__ = "push_subscriptions"
    GUID_PREFIX = "sub"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(String(64), nullable=False, index=True)

    endpoint = Column(String(1024), nullable=False)
    p256dh_key = Column(String(255), nullable=False)
    auth_key = Column(String(255), nullable=False)

    user_agent = Column(String(512), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_used_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscriptions_user_endpoint"),
    )

    @property
    def subscription_info(self) -> dict:
        """Subscription dict in the shape pywebpush expects."""
        return {
            "endpoint": self.endpoint,
            "keys": {
                "p256dh": self.p256dh_key,
                "auth": self.auth_key,
            },
        }

    def __repr__(self) -> str:
        return (
            f"<PushSubscription(id={self.id}, user_id='{self.user_id}', "
            f"active={self.is_active})>"
        )
