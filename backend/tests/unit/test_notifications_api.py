"""
Unit tests for the notifications API endpoints.

Tests history listing, read state, deletion, push subscription management,
the VAPID key endpoint, test notifications, and the WebSocket change feed.
"""

from datetime import datetime, timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from backend.src.models.push_subscription import PushSubscription


SUBSCRIPTION_BODY = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/abc123",
    "p256dh_key": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0",
    "auth_key": "tBHItJI5svbpC7htUH8g",
}


# ============================================================================
# Test: authentication
# ============================================================================


class TestAuthentication:
    """Every user-scoped endpoint requires the user header."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/notifications"),
            ("GET", "/api/notifications/unread-count"),
            ("POST", "/api/notifications/mark-all-read"),
            ("GET", "/api/notifications/subscriptions"),
            ("POST", "/api/notifications/test"),
        ],
    )
    def test_missing_user_header(self, test_client, method, path):
        response = test_client.request(method, path)

        assert response.status_code == 401

    def test_overlong_user_id(self, test_client):
        response = test_client.get(
            "/api/notifications/unread-count", headers={"X-User-Id": "u" * 65}
        )

        assert response.status_code == 401


# ============================================================================
# Test: history
# ============================================================================


class TestNotificationHistory:
    """Tests for listing, counting, reading and deleting notifications."""

    def test_list_notifications(self, test_client, auth_headers, create_notification):
        base = datetime(2026, 3, 10, 8, 0)
        create_notification(reference_id="tsk_1", created_at=base)
        newest = create_notification(reference_id="tsk_2", created_at=base + timedelta(hours=1))
        create_notification(user_id="user-2", reference_id="tsk_3")

        response = test_client.get("/api/notifications", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["items"][0]["guid"] == newest.guid
        assert data["items"][0]["created_at"].endswith("Z")

    def test_list_rejects_unknown_type(self, test_client, auth_headers):
        response = test_client.get(
            "/api/notifications", params={"type": "newsletter"}, headers=auth_headers
        )

        assert response.status_code == 400

    def test_list_limit_bounds(self, test_client, auth_headers):
        response = test_client.get(
            "/api/notifications", params={"limit": 51}, headers=auth_headers
        )

        assert response.status_code == 422

    def test_unread_count(self, test_client, auth_headers, create_notification):
        create_notification(reference_id="tsk_1")
        create_notification(reference_id="tsk_2", is_read=True)

        response = test_client.get("/api/notifications/unread-count", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"unread_count": 1}

    def test_mark_read(self, test_client, auth_headers, create_notification):
        notification = create_notification(reference_id="tsk_1")

        response = test_client.post(
            f"/api/notifications/{notification.guid}/read", headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert response.json()["read_at"] is not None

    def test_mark_read_other_user_is_not_found(
        self, test_client, auth_headers, create_notification
    ):
        notification = create_notification(user_id="user-2", reference_id="tsk_1")

        response = test_client.post(
            f"/api/notifications/{notification.guid}/read", headers=auth_headers
        )

        assert response.status_code == 404

    def test_mark_all_read(self, test_client, auth_headers, create_notification):
        create_notification(reference_id="tsk_1")
        create_notification(reference_id="tsk_2")

        response = test_client.post("/api/notifications/mark-all-read", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"updated_count": 2}

    def test_delete_notification(self, test_client, auth_headers, create_notification):
        notification = create_notification(reference_id="tsk_1")

        response = test_client.delete(
            f"/api/notifications/{notification.guid}", headers=auth_headers
        )
        missing = test_client.delete(
            f"/api/notifications/{notification.guid}", headers=auth_headers
        )

        assert response.status_code == 204
        assert missing.status_code == 404


# ============================================================================
# Test: push subscriptions
# ============================================================================


class TestPushSubscriptions:
    """Tests for subscribe, unsubscribe and listing."""

    def test_subscribe(self, test_client, auth_headers):
        response = test_client.post(
            "/api/notifications/subscribe",
            json=SUBSCRIPTION_BODY,
            headers={**auth_headers, "User-Agent": "Mozilla/5.0 (X11)"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["guid"].startswith("sub_")
        assert data["is_active"] is True
        assert data["user_agent"] == "Mozilla/5.0 (X11)"

    def test_subscribe_twice_keeps_one_row(self, test_client, auth_headers, test_db_session):
        test_client.post("/api/notifications/subscribe", json=SUBSCRIPTION_BODY, headers=auth_headers)
        test_client.post("/api/notifications/subscribe", json=SUBSCRIPTION_BODY, headers=auth_headers)

        assert test_db_session.query(PushSubscription).count() == 1

    def test_subscribe_requires_https(self, test_client, auth_headers):
        body = {**SUBSCRIPTION_BODY, "endpoint": "http://push.example.com/sub/1"}

        response = test_client.post("/api/notifications/subscribe", json=body, headers=auth_headers)

        assert response.status_code == 422

    def test_unsubscribe(self, test_client, auth_headers, create_subscription):
        create_subscription(endpoint=SUBSCRIPTION_BODY["endpoint"])

        response = test_client.request(
            "DELETE",
            "/api/notifications/subscribe",
            json={"endpoint": SUBSCRIPTION_BODY["endpoint"]},
            headers=auth_headers,
        )

        assert response.status_code == 204

    def test_unsubscribe_unknown(self, test_client, auth_headers):
        response = test_client.request(
            "DELETE",
            "/api/notifications/subscribe",
            json={"endpoint": SUBSCRIPTION_BODY["endpoint"]},
            headers=auth_headers,
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Subscription not found"

    def test_list_subscriptions(self, test_client, auth_headers, create_subscription):
        create_subscription()
        create_subscription(is_active=False)
        create_subscription(user_id="user-2")

        response = test_client.get("/api/notifications/subscriptions", headers=auth_headers)

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 2
        assert sorted(i["is_active"] for i in items) == [False, True]


# ============================================================================
# Test: VAPID key and test notification
# ============================================================================


class TestVapidKey:
    """Tests for GET /api/notifications/vapid-key."""

    def test_not_configured(self, test_client):
        response = test_client.get("/api/notifications/vapid-key")

        assert response.status_code == 503

    def test_configured(self, test_client, vapid_env):
        response = test_client.get("/api/notifications/vapid-key")

        assert response.status_code == 200
        assert response.json() == {"vapid_public_key": vapid_env["VAPID_PUBLIC_KEY"]}


class TestSendTestNotification:
    """Tests for POST /api/notifications/test."""

    def test_creates_notification_without_push(self, test_client, auth_headers):
        """Without VAPID keys the record is still created and delivery is skipped."""
        response = test_client.post(
            "/api/notifications/test",
            json={"title": "Ping", "message": "Hello"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["notification"]["type"] == "system"
        assert data["notification"]["title"] == "Ping"
        assert data["delivery"]["attempted"] == 0
        assert data["delivery"]["skipped_reason"] == "push_not_configured"

        listing = test_client.get("/api/notifications", headers=auth_headers).json()
        assert listing["total"] == 1

    def test_default_body(self, test_client, auth_headers):
        response = test_client.post("/api/notifications/test", headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["notification"]["title"]


# ============================================================================
# Test: WebSocket feed
# ============================================================================


class TestNotificationFeedWebSocket:
    """Tests for WS /api/notifications/ws."""

    def test_rejects_missing_user(self, test_client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with test_client.websocket_connect("/api/notifications/ws") as websocket:
                websocket.receive_text()

        assert exc_info.value.code == 4401

    def test_ping_pong(self, test_client):
        with test_client.websocket_connect(
            "/api/notifications/ws", headers={"X-User-Id": "user-9"}
        ) as websocket:
            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"

    def test_connect_runs_initial_scan(
        self, test_client, auth_headers, create_task, test_session_manager
    ):
        """Connecting starts the user's reminder session, whose first scan
        inserts a reminder that is pushed over the feed."""
        due = datetime.utcnow() - timedelta(hours=3)
        task = create_task(
            title="Send invoice",
            due_date=due.date(),
            due_time=due.time().replace(microsecond=0),
        )

        with test_client.websocket_connect(
            "/api/notifications/ws", headers=auth_headers
        ) as websocket:
            message = websocket.receive_json()

            assert message["event"] == "INSERT"
            assert message["notification"]["type"] == "reminder"
            assert message["notification"]["reference_id"] == task.guid
            assert "overdue" in message["notification"]["message"]
            assert test_session_manager.connection_count("user-1") == 1

    def test_query_parameter_does_not_identify_user(self, test_client):
        """Only the gateway header identifies the user; a query id is ignored."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with test_client.websocket_connect("/api/notifications/ws?user_id=user-1") as websocket:
                websocket.receive_text()

        assert exc_info.value.code == 4401

    def test_disconnect_releases_feed_and_session(
        self, test_client, auth_headers, feed, test_session_manager
    ):
        with test_client.websocket_connect(
            "/api/notifications/ws", headers=auth_headers
        ) as websocket:
            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"
            assert feed.listener_count("user-1") == 1

        assert feed.listener_count("user-1") == 0
        assert test_session_manager.connection_count("user-1") == 0
        assert test_session_manager.get("user-1") is None
