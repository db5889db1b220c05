"""
Push subscription service for managing Web Push subscriptions.

Provides business logic for registering, deactivating, unregistering
and listing push notification subscriptions, keyed by (user, endpoint).
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from backend.src.models.push_subscription import PushSubscription
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


class PushSubscriptionService:
    """
    Service for managing Web Push subscriptions.

    Handles subscription lifecycle:
    - Register (upsert by user + endpoint, reactivates)
    - Deactivate (push service reported the endpoint gone; row retained)
    - Unregister (explicit opt-out; row deleted)
    - List (all or active only, by user)
    """

    def __init__(self, db: Session):
        self.db = db

    def register(
        self,
        user_id: str,
        endpoint: str,
        p256dh_key: str,
        auth_key: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """
        Create or update a push subscription.

        Registering the same endpoint twice for a user updates the existing
        row instead of duplicating it, and always leaves it active.

        Args:
            user_id: Owning user identifier
            endpoint: Push service endpoint URL
            p256dh_key: ECDH public key (Base64url)
            auth_key: Auth secret (Base64url)
            user_agent: Browser user-agent string

        Returns:
            Created or updated PushSubscription

        Raises:
            ValidationError: If endpoint or keys are missing
        """
        if not endpoint:
            raise ValidationError("Endpoint required", field="endpoint")
        if not p256dh_key or not auth_key:
            raise ValidationError("Subscription keys required", field="keys")

        now = datetime.utcnow()
        existing = self._get(user_id, endpoint)

        if existing:
            was_active = existing.is_active
            existing.p256dh_key = p256dh_key
            existing.auth_key = auth_key
            existing.user_agent = user_agent
            existing.is_active = True
            existing.last_used_at = now
            self.db.commit()
            self.db.refresh(existing)
            logger.info(
                "Updated push subscription" if was_active else "Reactivated push subscription",
                extra={"endpoint_prefix": endpoint[:60], "user_id": user_id},
            )
            return existing

        subscription = PushSubscription(
            user_id=user_id,
            endpoint=endpoint,
            p256dh_key=p256dh_key,
            auth_key=auth_key,
            user_agent=user_agent,
            is_active=True,
            last_used_at=now,
        )
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(
            "Created push subscription",
            extra={"guid": subscription.guid, "user_id": user_id},
        )
        return subscription

    def deactivate(self, endpoint: str, user_id: Optional[str] = None) -> int:
        """
        Mark subscriptions for an endpoint inactive after a permanent failure.

        The rows are kept for history; a later register() reactivates them.

        Args:
            endpoint: The endpoint the push service reported as gone
            user_id: Restrict to one user's subscription (all owners if None)

        Returns:
            Number of subscriptions deactivated
        """
        query = self.db.query(PushSubscription).filter(
            PushSubscription.endpoint == endpoint,
            PushSubscription.is_active.is_(True),
        )
        if user_id is not None:
            query = query.filter(PushSubscription.user_id == user_id)

        count = query.update({"is_active": False}, synchronize_session="fetch")
        self.db.commit()

        if count > 0:
            logger.info(
                "Deactivated push subscription (gone)",
                extra={"endpoint_prefix": endpoint[:60], "user_id": user_id, "count": count},
            )
        return count

    def unregister(self, user_id: str, endpoint: str) -> bool:
        """
        Delete a subscription on explicit opt-out.

        Returns:
            True if the subscription was found and removed

        Raises:
            NotFoundError: If no subscription matches endpoint + user
        """
        subscription = self._get(user_id, endpoint)
        if not subscription:
            raise NotFoundError("PushSubscription", endpoint[:60])

        self.db.delete(subscription)
        self.db.commit()
        logger.info(
            "Removed push subscription",
            extra={"endpoint_prefix": endpoint[:60], "user_id": user_id},
        )
        return True

    def list_subscriptions(self, user_id: str) -> List[PushSubscription]:
        """All of a user's subscriptions, active or not, newest first."""
        return (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.created_at.desc())
            .all()
        )

    def list_active(self, user_id: str) -> List[PushSubscription]:
        """Subscriptions eligible for delivery."""
        return (
            self.db.query(PushSubscription)
            .filter(
                PushSubscription.user_id == user_id,
                PushSubscription.is_active.is_(True),
            )
            .all()
        )

    def touch(self, subscriptions: List[PushSubscription]) -> None:
        """
        Refresh last_used_at after successful deliveries.

        Args:
            subscriptions: Subscriptions that accepted a push
        """
        if not subscriptions:
            return
        now = datetime.utcnow()
        for subscription in subscriptions:
            subscription.last_used_at = now
        self.db.commit()

    def _get(self, user_id: str, endpoint: str) -> Optional[PushSubscription]:
        return (
            self.db.query(PushSubscription)
            .filter(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            )
            .first()
        )
