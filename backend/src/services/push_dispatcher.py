"""
Push dispatcher for fanning a notification out to a user's devices.

Delivers a newly created notification to every active Web Push subscription
of its owner. Delivery is best effort:
- Missing VAPID configuration skips delivery entirely (fail closed)
- Each subscription is attempted once, concurrently, with isolated failures
- 410 Gone / 404 Not Found deactivate the subscription
- Any other failure is logged and left for the next notification

The dispatcher never raises. Its DeliveryReport is informational; the
notification record already exists regardless of what happens here.
"""

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pywebpush import webpush, WebPushException

from backend.src.config.settings import AppSettings, get_settings
from backend.src.models.notification import Notification, ReferenceType
from backend.src.models.push_subscription import PushSubscription
from backend.src.services.push_subscription_service import PushSubscriptionService
from backend.src.utils.logging_config import get_logger


logger = get_logger("push")


# Status codes meaning the subscription will never accept delivery again
GONE_STATUS_CODES = (404, 410)

SKIP_NOT_CONFIGURED = "push_not_configured"
SKIP_LOOKUP_FAILED = "subscription_lookup_failed"

DEFAULT_URL = "/dashboard"


@dataclass
class DeliveryReport:
    """
    Aggregate outcome of one dispatch call.

    attempted == succeeded + failed; deactivated counts the subset of failed
    attempts that were permanent and deactivated their subscription.
    """

    user_id: str
    notification_guid: Optional[str] = None
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    deactivated: int = 0
    skipped_reason: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "notification_guid": self.notification_guid,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "deactivated": self.deactivated,
            "skipped_reason": self.skipped_reason,
        }


def build_notification_url(reference_type: Optional[str], reference_id: Optional[str]) -> str:
    """In-app URL the service worker opens when the push is clicked."""
    if not reference_id:
        return DEFAULT_URL
    if reference_type == ReferenceType.TASK.value:
        return f"/tasks?open={reference_id}"
    if reference_type == ReferenceType.DEAL.value:
        return f"/tasks?deal={reference_id}"
    if reference_type == ReferenceType.EVENT.value:
        return "/calendar"
    if reference_type == ReferenceType.MESSAGE.value:
        return "/chat"
    return DEFAULT_URL


def build_push_payload(notification: Notification) -> Dict[str, Any]:
    """
    Build the JSON object sent to the device.

    Shape: {title, message, type, reference_id, reference_type, url,
    notification_id}
    """
    url = (notification.data or {}).get("url") or build_notification_url(
        notification.reference_type, notification.reference_id
    )
    return {
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "reference_id": notification.reference_id,
        "reference_type": notification.reference_type,
        "url": url,
        "notification_id": notification.guid,
    }


class PushDispatcher:
    """
    Fan-out of notifications to Web Push subscriptions.

    Sends run on a thread pool; all subscription state changes happen on the
    calling thread once every send has finished.
    """

    def __init__(
        self,
        subscriptions: PushSubscriptionService,
        vapid_private_key: str = "",
        vapid_claims: Optional[Dict[str, str]] = None,
        ttl: int = 86400,
        max_workers: int = 8,
    ):
        """
        Initialize the dispatcher.

        Args:
            subscriptions: Subscription registry bound to the caller's session
            vapid_private_key: VAPID private key for push authentication
            vapid_claims: VAPID claims dict (e.g., {"sub": "mailto:..."})
            ttl: Seconds the push service should keep an undelivered message
            max_workers: Upper bound on concurrent sends
        """
        self.subscriptions = subscriptions
        self.vapid_private_key = vapid_private_key
        self.vapid_claims = vapid_claims or {}
        self.ttl = ttl
        self.max_workers = max_workers

    @classmethod
    def from_settings(
        cls,
        subscriptions: PushSubscriptionService,
        settings: Optional[AppSettings] = None,
    ) -> "PushDispatcher":
        """Build a dispatcher from application settings."""
        settings = settings or get_settings()
        private_key = settings.vapid_private_key if settings.vapid_configured else ""
        return cls(
            subscriptions=subscriptions,
            vapid_private_key=private_key,
            vapid_claims=settings.vapid_claims,
            ttl=settings.push_ttl_seconds,
            max_workers=settings.push_max_workers,
        )

    @property
    def configured(self) -> bool:
        """True when server keys are present; otherwise delivery is skipped."""
        return bool(self.vapid_private_key and self.vapid_claims.get("sub"))

    def dispatch(self, notification: Notification) -> DeliveryReport:
        """
        Deliver a notification to all of its owner's active subscriptions.

        Args:
            notification: The committed notification record

        Returns:
            DeliveryReport with attempted/succeeded/failed/deactivated counts
        """
        report = DeliveryReport(
            user_id=notification.user_id,
            notification_guid=notification.guid,
        )

        if not self.configured:
            logger.warning(
                "VAPID keys not configured, skipping push delivery",
                extra={"notification_guid": report.notification_guid},
            )
            report.skipped_reason = SKIP_NOT_CONFIGURED
            return report

        try:
            targets = self.subscriptions.list_active(notification.user_id)
            # Read everything the workers need while still on this thread
            subscription_infos = [sub.subscription_info for sub in targets]
        except Exception as e:
            logger.error(
                f"Could not load push subscriptions: {e}",
                extra={"user_id": notification.user_id},
            )
            report.skipped_reason = SKIP_LOOKUP_FAILED
            return report

        if not targets:
            return report

        payload_json = json.dumps(build_push_payload(notification))
        results = self._fan_out(subscription_infos, payload_json)

        delivered: List[PushSubscription] = []
        gone: List[PushSubscription] = []

        for sub, error in zip(targets, results):
            report.attempted += 1
            endpoint_short = sub.endpoint[:60]
            if error is None:
                report.succeeded += 1
                delivered.append(sub)
                logger.debug(
                    "Push delivered",
                    extra={"subscription_guid": sub.guid, "endpoint": endpoint_short},
                )
            elif isinstance(error, PushGoneError):
                report.failed += 1
                gone.append(sub)
            else:
                report.failed += 1
                report.errors.append(str(error))
                logger.warning(
                    f"Push delivery failed: {error}",
                    extra={
                        "subscription_guid": sub.guid,
                        "user_id": notification.user_id,
                        "endpoint": endpoint_short,
                    },
                )

        self._apply_outcomes(report, delivered, gone)

        if report.failed > 0:
            logger.info("Push delivery summary", extra=report.to_dict())

        return report

    def _fan_out(
        self, subscription_infos: List[Dict[str, Any]], payload_json: str
    ) -> List[Optional[Exception]]:
        """
        Send to every subscription concurrently and wait for all of them.

        Returns:
            One entry per subscription, in order: None on success, otherwise
            the PushGoneError / PushDeliveryError raised for it
        """
        workers = max(1, min(self.max_workers, len(subscription_infos)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._send_push, info, payload_json)
                for info in subscription_infos
            ]

        results: List[Optional[Exception]] = []
        for future in futures:
            error = future.exception()
            if error is not None and not isinstance(error, (PushGoneError, PushDeliveryError)):
                error = PushDeliveryError(str(error))
            results.append(error)
        return results

    def _apply_outcomes(
        self,
        report: DeliveryReport,
        delivered: List[PushSubscription],
        gone: List[PushSubscription],
    ) -> None:
        """Persist last-used and deactivation changes; store errors are logged only."""
        for sub in gone:
            logger.info(
                "Deactivating expired push subscription",
                extra={"subscription_guid": sub.guid, "user_id": sub.user_id},
            )
            try:
                report.deactivated += self.subscriptions.deactivate(
                    sub.endpoint, user_id=sub.user_id
                )
            except Exception as e:
                self.subscriptions.db.rollback()
                logger.error(
                    f"Could not deactivate push subscription: {e}",
                    extra={"subscription_guid": sub.guid},
                )

        try:
            self.subscriptions.touch(delivered)
        except Exception as e:
            self.subscriptions.db.rollback()
            logger.warning(f"Could not refresh subscription last_used_at: {e}")

    def _send_push(self, subscription_info: Dict[str, Any], payload_json: str) -> None:
        """
        Send a push notification to a single subscription via pywebpush.

        Args:
            subscription_info: {"endpoint": ..., "keys": {"p256dh": ..., "auth": ...}}
            payload_json: JSON-encoded push payload

        Raises:
            PushGoneError: If the push service returned 410 Gone or 404
            PushDeliveryError: If delivery failed for any other reason
        """
        try:
            webpush(
                subscription_info=subscription_info,
                data=payload_json,
                vapid_private_key=self.vapid_private_key,
                vapid_claims=dict(self.vapid_claims),
                ttl=self.ttl,
                headers={"Urgency": "high"},
            )
        except WebPushException as e:
            response = getattr(e, "response", None)
            if response is not None and response.status_code in GONE_STATUS_CODES:
                raise PushGoneError(subscription_info["endpoint"]) from e
            raise PushDeliveryError(str(e)) from e
        except Exception as e:
            raise PushDeliveryError(str(e)) from e


# ============================================================================
# Push Delivery Exceptions
# ============================================================================


class PushGoneError(Exception):
    """Raised when push service returns 410 Gone (subscription invalid)."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Push subscription gone: {endpoint[:60]}")


class PushDeliveryError(Exception):
    """Raised when push delivery fails for a transient reason."""
    pass
