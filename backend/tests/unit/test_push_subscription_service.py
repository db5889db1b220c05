"""
Unit tests for PushSubscriptionService.

Tests registration upserts, reactivation, gone-endpoint deactivation,
explicit opt-out, and listing.
"""

import pytest

from backend.src.models.push_subscription import PushSubscription
from backend.src.services.exceptions import NotFoundError, ValidationError


ENDPOINT = "https://fcm.googleapis.com/fcm/send/abc123"


# ============================================================================
# Test: register
# ============================================================================


class TestRegister:
    """Tests for PushSubscriptionService.register."""

    def test_creates_subscription(self, subscription_service):
        sub = subscription_service.register(
            user_id="user-1",
            endpoint=ENDPOINT,
            p256dh_key="p256dh",
            auth_key="auth",
            user_agent="Mozilla/5.0",
        )

        assert sub.id is not None
        assert sub.guid.startswith("sub_")
        assert sub.is_active is True
        assert sub.user_agent == "Mozilla/5.0"
        assert sub.last_used_at is not None

    def test_same_endpoint_updates_existing(self, subscription_service, test_db_session):
        """Registering twice keeps a single row and refreshes the keys."""
        first = subscription_service.register("user-1", ENDPOINT, "old-p256dh", "old-auth")
        second = subscription_service.register("user-1", ENDPOINT, "new-p256dh", "new-auth")

        assert first.id == second.id
        assert second.p256dh_key == "new-p256dh"
        assert second.auth_key == "new-auth"
        assert test_db_session.query(PushSubscription).count() == 1

    def test_reactivates_inactive_subscription(self, subscription_service, create_subscription):
        sub = create_subscription(endpoint=ENDPOINT, is_active=False)

        result = subscription_service.register("user-1", ENDPOINT, "p256dh", "auth")

        assert result.id == sub.id
        assert result.is_active is True

    def test_same_endpoint_different_users(self, subscription_service, test_db_session):
        subscription_service.register("user-1", ENDPOINT, "p256dh", "auth")
        subscription_service.register("user-2", ENDPOINT, "p256dh", "auth")

        assert test_db_session.query(PushSubscription).count() == 2

    @pytest.mark.parametrize(
        "endpoint,p256dh,auth",
        [
            ("", "p256dh", "auth"),
            (ENDPOINT, "", "auth"),
            (ENDPOINT, "p256dh", ""),
        ],
    )
    def test_rejects_missing_fields(self, subscription_service, endpoint, p256dh, auth):
        with pytest.raises(ValidationError):
            subscription_service.register("user-1", endpoint, p256dh, auth)


# ============================================================================
# Test: deactivate / unregister
# ============================================================================


class TestDeactivate:
    """Tests for deactivation after a permanent push failure."""

    def test_marks_inactive_and_keeps_row(
        self, subscription_service, create_subscription, test_db_session
    ):
        sub = create_subscription(endpoint=ENDPOINT)

        count = subscription_service.deactivate(ENDPOINT, user_id="user-1")

        assert count == 1
        test_db_session.refresh(sub)
        assert sub.is_active is False
        assert test_db_session.query(PushSubscription).count() == 1

    def test_scoped_to_user(self, subscription_service, create_subscription, test_db_session):
        mine = create_subscription(endpoint=ENDPOINT)
        theirs = create_subscription(endpoint=ENDPOINT, user_id="user-2")

        subscription_service.deactivate(ENDPOINT, user_id="user-2")

        test_db_session.refresh(mine)
        test_db_session.refresh(theirs)
        assert mine.is_active is True
        assert theirs.is_active is False

    def test_unknown_endpoint_returns_zero(self, subscription_service):
        assert subscription_service.deactivate("https://push.example.com/none") == 0

    def test_already_inactive_returns_zero(self, subscription_service, create_subscription):
        create_subscription(endpoint=ENDPOINT, is_active=False)

        assert subscription_service.deactivate(ENDPOINT) == 0


class TestUnregister:
    """Tests for explicit opt-out."""

    def test_deletes_subscription(self, subscription_service, create_subscription, test_db_session):
        create_subscription(endpoint=ENDPOINT)

        assert subscription_service.unregister("user-1", ENDPOINT) is True
        assert test_db_session.query(PushSubscription).count() == 0

    def test_unknown_endpoint_raises(self, subscription_service):
        with pytest.raises(NotFoundError):
            subscription_service.unregister("user-1", ENDPOINT)

    def test_cannot_remove_other_users_subscription(
        self, subscription_service, create_subscription
    ):
        create_subscription(endpoint=ENDPOINT, user_id="user-2")

        with pytest.raises(NotFoundError):
            subscription_service.unregister("user-1", ENDPOINT)


# ============================================================================
# Test: listing
# ============================================================================


class TestListing:
    """Tests for list_subscriptions, list_active and touch."""

    def test_list_subscriptions_includes_inactive(self, subscription_service, create_subscription):
        create_subscription()
        create_subscription(is_active=False)
        create_subscription(user_id="user-2")

        assert len(subscription_service.list_subscriptions("user-1")) == 2

    def test_list_active(self, subscription_service, create_subscription):
        active = create_subscription()
        create_subscription(is_active=False)

        result = subscription_service.list_active("user-1")

        assert [s.id for s in result] == [active.id]

    def test_touch_sets_last_used(self, subscription_service, create_subscription, test_db_session):
        sub = create_subscription()

        subscription_service.touch([sub])

        test_db_session.refresh(sub)
        assert sub.last_used_at is not None

    def test_touch_empty_list(self, subscription_service):
        subscription_service.touch([])
