"""
Notifications API endpoints for history, push subscriptions and the live feed.

Provides endpoints for:
- Notification history (list, unread count, mark as read, delete)
- Push subscription management (subscribe, unsubscribe, list)
- VAPID public key retrieval and test notifications
- WebSocket change feed; a connected user's reminder session runs while
  at least one feed connection is open
"""

import asyncio
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session

from backend.src.config.settings import get_settings
from backend.src.db.database import get_db
from backend.src.middleware.auth import require_user, MAX_USER_ID_LENGTH, USER_ID_HEADER
from backend.src.models.notification import NotificationType
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
from backend.src.services.exceptions import NotFoundError
from backend.src.services.notification_service import NotificationService
from backend.src.services.push_dispatcher import PushDispatcher
from backend.src.services.push_subscription_service import PushSubscriptionService
from backend.src.services.reminder_session import (
    ReminderSessionManager,
    get_reminder_session_manager,
)
from backend.src.utils.logging_config import get_logger
from backend.src.utils.notification_feed import NotificationFeed, get_notification_feed
from backend.src.utils.rate_limit import limiter


logger = get_logger("api")

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"],
)

# Seconds of client silence before the server sends a heartbeat
WS_HEARTBEAT_SECONDS = 30.0

# Application-defined close code for a feed connection without a gateway user id
WS_CLOSE_UNAUTHORIZED = 4401


# ============================================================================
# Dependencies
# ============================================================================


def get_push_subscription_service(
    db: Session = Depends(get_db),
) -> PushSubscriptionService:
    """Create PushSubscriptionService instance with database session."""
    return PushSubscriptionService(db=db)


def get_notification_service(
    db: Session = Depends(get_db),
    feed: NotificationFeed = Depends(get_notification_feed),
) -> NotificationService:
    """Create NotificationService with the live feed and a push dispatcher."""
    dispatcher = PushDispatcher.from_settings(PushSubscriptionService(db=db))
    return NotificationService(db=db, feed=feed, dispatcher=dispatcher)


def _not_found(err: NotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=str(err),
    )


# ============================================================================
# Notification History Endpoints
# ============================================================================


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notification history",
)
@limiter.limit("60/minute")
async def list_notifications(
    request: Request,
    limit: int = Query(default=20, ge=1, le=50),
    offset: int = Query(default=0, ge=0),
    type: Optional[str] = Query(
        default=None,
        description="Filter by notification type",
    ),
    unread_only: bool = Query(default=False),
    user_id: str = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Returns the authenticated user's notifications, most recent first.
    """
    if type is not None and type not in {t.value for t in NotificationType}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown notification type: {type}",
        )

    notifications, total = service.list_notifications(
        user_id=user_id,
        limit=limit,
        offset=offset,
        notification_type=type,
        unread_only=unread_only,
    )
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/unread-count",
    response_model=UnreadCountResponse,
    summary="Get unread notification count",
)
@limiter.limit("60/minute")
async def get_unread_count(
    request: Request,
    user_id: str = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Returns the count of unread notifications for the notification bell badge.
    """
    return UnreadCountResponse(unread_count=service.get_unread_count(user_id))


@router.post(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications as read",
)
@limiter.limit("10/minute")
async def mark_all_notifications_read(
    request: Request,
    user_id: str = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Mark all unread notifications as read for the authenticated user.

    Idempotent: calling when everything is already read returns 0.
    """
    updated_count = service.mark_all_as_read(user_id)
    return MarkAllReadResponse(updated_count=updated_count)


@router.post(
    "/{guid}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
)
@limiter.limit("60/minute")
async def mark_notification_read(
    request: Request,
    guid: str,
    user_id: str = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Mark a single notification as read. Already-read notifications are
    returned unchanged.
    """
    try:
        notification = service.mark_as_read(guid, user_id)
    except NotFoundError as err:
        raise _not_found(err) from err
    return NotificationResponse.model_validate(notification)


# ============================================================================
# Push Subscription Endpoints
# ============================================================================


@router.post(
    "/subscribe",
    response_model=PushSubscriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a push subscription",
)
@limiter.limit("10/minute")
async def create_push_subscription(
    request: Request,
    body: PushSubscriptionCreate,
    user_id: str = Depends(require_user),
    service: PushSubscriptionService = Depends(get_push_subscription_service),
):
    """
    Register a Web Push subscription for the authenticated user's device.

    Registering an endpoint that already exists for the user updates its keys
    and reactivates it.
    """
    subscription = service.register(
        user_id=user_id,
        endpoint=body.endpoint,
        p256dh_key=body.p256dh_key,
        auth_key=body.auth_key,
        user_agent=body.user_agent or request.headers.get("user-agent"),
    )
    return PushSubscriptionResponse.model_validate(subscription)


@router.delete(
    "/subscribe",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a push subscription",
)
@limiter.limit("10/minute")
async def remove_push_subscription(
    request: Request,
    body: PushSubscriptionRemove,
    user_id: str = Depends(require_user),
    service: PushSubscriptionService = Depends(get_push_subscription_service),
):
    """
    Remove the push subscription matching the given endpoint for the
    authenticated user.
    """
    try:
        service.unregister(user_id=user_id, endpoint=body.endpoint)
    except NotFoundError as err:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        ) from err


@router.get(
    "/subscriptions",
    response_model=PushSubscriptionListResponse,
    summary="List push subscriptions",
)
@limiter.limit("30/minute")
async def list_push_subscriptions(
    request: Request,
    user_id: str = Depends(require_user),
    service: PushSubscriptionService = Depends(get_push_subscription_service),
):
    """
    Returns all of the authenticated user's subscriptions, including ones
    deactivated after the push service reported them gone.
    """
    subscriptions = service.list_subscriptions(user_id)
    return PushSubscriptionListResponse(
        items=[PushSubscriptionResponse.model_validate(s) for s in subscriptions]
    )


@router.get(
    "/vapid-key",
    response_model=VapidKeyResponse,
    summary="Get VAPID public key",
)
async def get_vapid_key():
    """
    Returns the server's VAPID public key used by the browser when creating
    a push subscription.
    """
    settings = get_settings()
    if not settings.vapid_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Push notifications are not configured on this server",
        )
    return VapidKeyResponse(vapid_public_key=settings.vapid_public_key)


@router.post(
    "/test",
    response_model=TestNotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a test notification",
)
@limiter.limit("5/minute")
def send_test_notification(
    request: Request,
    body: Optional[TestNotificationRequest] = None,
    user_id: str = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Create a system notification and push it to all of the user's devices.

    Exercises the full pipeline (store, change feed, push) so users can
    confirm delivery works.
    """
    body = body or TestNotificationRequest()
    notification, delivery = service.send_notification(
        user_id=user_id,
        notification_type=NotificationType.SYSTEM.value,
        title=body.title,
        message=body.message,
    )
    return TestNotificationResponse(
        notification=NotificationResponse.model_validate(notification),
        delivery=DeliveryReportResponse.model_validate(delivery) if delivery else None,
    )


# Registered after /subscribe so DELETE /subscribe is not captured by /{guid}
@router.delete(
    "/{guid}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a notification",
)
@limiter.limit("30/minute")
async def delete_notification(
    request: Request,
    guid: str,
    user_id: str = Depends(require_user),
    service: NotificationService = Depends(get_notification_service),
):
    """
    Delete one of the authenticated user's notifications.
    """
    try:
        service.delete_notification(guid, user_id)
    except NotFoundError as err:
        raise _not_found(err) from err


# ============================================================================
# Live Feed
# ============================================================================


@router.websocket("/ws")
async def notifications_websocket(
    websocket: WebSocket,
    feed: NotificationFeed = Depends(get_notification_feed),
    sessions: ReminderSessionManager = Depends(get_reminder_session_manager),
):
    """
    WebSocket endpoint for live notification changes.

    Messages are JSON objects:
    {
        "event": "INSERT" | "UPDATE" | "DELETE",
        "notification": { ...notification fields... }
    }

    While connected, the user's tasks are scanned for reminders right away
    and then once per reminder interval.
    """
    # Set by the auth gateway on the upgrade request, like on HTTP routes
    user_id = (websocket.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()
    queue = feed.subscribe(user_id)
    sessions.acquire(user_id)
    logger.info(f"Notification feed connected for user {user_id}")

    async def forward_events():
        while True:
            event = await queue.get()
            await websocket.send_json(event)

    forwarder = asyncio.create_task(forward_events())

    try:
        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=WS_HEARTBEAT_SECONDS,
                )
                if data == "ping":
                    await websocket.send_text("pong")
            except asyncio.TimeoutError:
                try:
                    await websocket.send_text('{"type": "heartbeat"}')
                except Exception:
                    break
    except WebSocketDisconnect:
        logger.info(f"Notification feed disconnected for user {user_id}")
    finally:
        forwarder.cancel()
        try:
            await forwarder
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Notification feed forwarder for user {user_id} ended: {e}")
        feed.unsubscribe(user_id, queue)
        await sessions.release(user_id)
