"""
Unit tests for PushDispatcher.

Tests fan-out isolation, 410/404 deactivation, transient failures,
fail-closed behavior without VAPID keys, and the push payload shape.
"""

import json
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from pywebpush import WebPushException

from backend.src.config.settings import AppSettings
from backend.src.models.push_subscription import PushSubscription
from backend.src.services.push_dispatcher import (
    PushDeliveryError,
    PushDispatcher,
    PushGoneError,
    build_notification_url,
    build_push_payload,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def dispatcher(subscription_service):
    """Dispatcher with VAPID configured."""
    return PushDispatcher(
        subscription_service,
        vapid_private_key="test-private-key",
        vapid_claims={"sub": "mailto:admin@example.com"},
        ttl=600,
        max_workers=4,
    )


@pytest.fixture
def notification(notification_service):
    """A stored reminder notification for the default test user."""
    return notification_service.create_notification(
        user_id="user-1",
        notification_type="reminder",
        title="Task Reminder",
        message='The task "Report" is overdue!',
        reference_id="tsk_01hgw2bbg0000000000000000",
        reference_type="task",
    )


def _web_push_error(status_code):
    response = MagicMock()
    response.status_code = status_code
    return WebPushException(f"Push failed: {status_code}", response=response)


# ============================================================================
# Test: dispatch
# ============================================================================


class TestDispatch:
    """Tests for PushDispatcher.dispatch."""

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_isolates_gone_subscription(
        self, mock_send, dispatcher, notification, create_subscription, test_db_session
    ):
        """Of three devices, only the one returning 410 is deactivated."""
        first = create_subscription()
        second = create_subscription()
        third = create_subscription()

        def _send(subscription_info, payload_json):
            if subscription_info["endpoint"] == second.endpoint:
                raise PushGoneError(subscription_info["endpoint"])

        mock_send.side_effect = _send

        report = dispatcher.dispatch(notification)

        assert report.attempted == 3
        assert report.succeeded == 2
        assert report.failed == 1
        assert report.deactivated == 1

        test_db_session.expire_all()
        assert test_db_session.get(PushSubscription, first.id).is_active is True
        assert test_db_session.get(PushSubscription, second.id).is_active is False
        assert test_db_session.get(PushSubscription, third.id).is_active is True

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_transient_failure_keeps_subscription_active(
        self, mock_send, dispatcher, notification, create_subscription, test_db_session
    ):
        """Other errors are logged only; no retry, no deactivation."""
        sub = create_subscription()
        mock_send.side_effect = PushDeliveryError("503 Service Unavailable")

        report = dispatcher.dispatch(notification)

        assert mock_send.call_count == 1
        assert report.attempted == 1
        assert report.failed == 1
        assert report.deactivated == 0
        assert report.errors == ["503 Service Unavailable"]
        test_db_session.refresh(sub)
        assert sub.is_active is True

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_unexpected_exception_is_absorbed(
        self, mock_send, dispatcher, notification, create_subscription
    ):
        """Even an unexpected error type never escapes dispatch."""
        create_subscription()
        mock_send.side_effect = RuntimeError("boom")

        report = dispatcher.dispatch(notification)

        assert report.failed == 1
        assert report.succeeded == 0

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_skips_inactive_and_other_users(
        self, mock_send, dispatcher, notification, create_subscription
    ):
        """Only the owner's active subscriptions are targeted."""
        active = create_subscription()
        create_subscription(is_active=False)
        create_subscription(user_id="user-2")

        report = dispatcher.dispatch(notification)

        assert report.attempted == 1
        sent_to = mock_send.call_args[0][0]["endpoint"]
        assert sent_to == active.endpoint

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_refreshes_last_used_on_success(
        self, mock_send, dispatcher, notification, create_subscription, test_db_session
    ):
        sub = create_subscription()
        assert sub.last_used_at is None

        dispatcher.dispatch(notification)

        test_db_session.refresh(sub)
        assert isinstance(sub.last_used_at, datetime)

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_no_subscriptions(self, mock_send, dispatcher, notification):
        report = dispatcher.dispatch(notification)

        mock_send.assert_not_called()
        assert report.attempted == 0
        assert report.skipped_reason is None

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_fails_closed_without_vapid(
        self, mock_send, subscription_service, notification_service, notification,
        create_subscription, test_settings
    ):
        """Missing keys: zero attempts, and the notification is still queryable."""
        create_subscription()
        dispatcher = PushDispatcher.from_settings(subscription_service, test_settings)

        report = dispatcher.dispatch(notification)

        mock_send.assert_not_called()
        assert dispatcher.configured is False
        assert report.attempted == 0
        assert report.skipped_reason == "push_not_configured"

        items, total = notification_service.list_notifications("user-1")
        assert total == 1
        assert items[0].guid == notification.guid

    def test_subscription_lookup_failure_is_reported(self, dispatcher, notification):
        """A store error while loading subscriptions never raises."""
        with patch.object(
            dispatcher.subscriptions, "list_active", side_effect=RuntimeError("db down")
        ):
            report = dispatcher.dispatch(notification)

        assert report.attempted == 0
        assert report.skipped_reason == "subscription_lookup_failed"

    @patch("backend.src.services.push_dispatcher.PushDispatcher._send_push")
    def test_deactivation_failure_is_absorbed(
        self, mock_send, dispatcher, notification, create_subscription
    ):
        create_subscription()
        mock_send.side_effect = PushGoneError("https://push.example.com/sub/1")

        with patch.object(
            dispatcher.subscriptions, "deactivate", side_effect=RuntimeError("locked")
        ):
            report = dispatcher.dispatch(notification)

        assert report.failed == 1
        assert report.deactivated == 0


class TestFromSettings:
    """Tests for PushDispatcher.from_settings."""

    def test_configured_with_all_keys(self, subscription_service):
        settings = AppSettings(
            _env_file=None,
            vapid_public_key="public",
            vapid_private_key="private",
            vapid_subject="mailto:admin@example.com",
            push_ttl_seconds=120,
            push_max_workers=3,
        )

        dispatcher = PushDispatcher.from_settings(subscription_service, settings)

        assert dispatcher.configured is True
        assert dispatcher.vapid_claims == {"sub": "mailto:admin@example.com"}
        assert dispatcher.ttl == 120
        assert dispatcher.max_workers == 3

    def test_partial_keys_are_not_configured(self, subscription_service):
        """A private key without a public key or subject is not usable."""
        settings = AppSettings(_env_file=None, vapid_private_key="private")

        dispatcher = PushDispatcher.from_settings(subscription_service, settings)

        assert dispatcher.configured is False


# ============================================================================
# Test: _send_push
# ============================================================================


class TestSendPush:
    """Tests for the pywebpush wrapper."""

    INFO = {
        "endpoint": "https://push.example.com/sub/1",
        "keys": {"p256dh": "p256dh", "auth": "auth"},
    }

    @patch("backend.src.services.push_dispatcher.webpush")
    def test_passes_vapid_and_ttl(self, mock_webpush, dispatcher):
        dispatcher._send_push(self.INFO, '{"title": "x"}')

        kwargs = mock_webpush.call_args.kwargs
        assert kwargs["subscription_info"] == self.INFO
        assert kwargs["data"] == '{"title": "x"}'
        assert kwargs["vapid_private_key"] == "test-private-key"
        assert kwargs["vapid_claims"] == {"sub": "mailto:admin@example.com"}
        assert kwargs["ttl"] == 600

    @pytest.mark.parametrize("status_code", [404, 410])
    @patch("backend.src.services.push_dispatcher.webpush")
    def test_gone_status_raises_gone(self, mock_webpush, dispatcher, status_code):
        mock_webpush.side_effect = _web_push_error(status_code)

        with pytest.raises(PushGoneError):
            dispatcher._send_push(self.INFO, "{}")

    @patch("backend.src.services.push_dispatcher.webpush")
    def test_server_error_is_transient(self, mock_webpush, dispatcher):
        mock_webpush.side_effect = _web_push_error(500)

        with pytest.raises(PushDeliveryError):
            dispatcher._send_push(self.INFO, "{}")

    @patch("backend.src.services.push_dispatcher.webpush")
    def test_network_error_is_transient(self, mock_webpush, dispatcher):
        mock_webpush.side_effect = ConnectionError("connection reset")

        with pytest.raises(PushDeliveryError):
            dispatcher._send_push(self.INFO, "{}")


# ============================================================================
# Test: payload
# ============================================================================


class TestPayload:
    """Tests for push payload construction."""

    def test_payload_shape(self, notification):
        payload = build_push_payload(notification)

        assert payload == {
            "title": "Task Reminder",
            "message": 'The task "Report" is overdue!',
            "type": "reminder",
            "reference_id": "tsk_01hgw2bbg0000000000000000",
            "reference_type": "task",
            "url": "/tasks?open=tsk_01hgw2bbg0000000000000000",
            "notification_id": notification.guid,
        }
        json.dumps(payload)

    def test_data_url_takes_precedence(self, notification_service):
        notification = notification_service.create_notification(
            user_id="user-1",
            notification_type="system",
            title="Hello",
            message="World",
            data={"url": "/settings"},
        )

        assert build_push_payload(notification)["url"] == "/settings"

    @pytest.mark.parametrize(
        "reference_type,reference_id,expected",
        [
            ("task", "tsk_1", "/tasks?open=tsk_1"),
            ("deal", "deal_1", "/tasks?deal=deal_1"),
            ("event", "evt_1", "/calendar"),
            ("message", "msg_1", "/chat"),
            (None, None, "/dashboard"),
            ("task", None, "/dashboard"),
        ],
    )
    def test_notification_url(self, reference_type, reference_id, expected):
        assert build_notification_url(reference_type, reference_id) == expected
