"""
Reminder scan endpoints.

Provides endpoints for:
- On-demand scan of the authenticated user's tasks
- Scheduled scan of every user with open, dated tasks (cron-triggered)
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from backend.src.db.database import get_db
from backend.src.middleware.auth import require_user, require_cron_secret
from backend.src.schemas.reminders import ScanReportResponse, ScanRunResponse
from backend.src.services.reminder_service import ReminderScanner, ScanReport
from backend.src.utils.logging_config import get_logger
from backend.src.utils.notification_feed import NotificationFeed, get_notification_feed
from backend.src.utils.rate_limit import limiter


logger = get_logger("api")

router = APIRouter(
    prefix="/reminders",
    tags=["Reminders"],
)


def get_reminder_scanner(
    db: Session = Depends(get_db),
    feed: NotificationFeed = Depends(get_notification_feed),
) -> ReminderScanner:
    """Create a ReminderScanner bound to the request's database session."""
    return ReminderScanner.for_session(db, feed=feed)


def _to_response(report: ScanReport) -> ScanReportResponse:
    return ScanReportResponse.model_validate(report.to_dict())


@router.post(
    "/scan",
    response_model=ScanReportResponse,
    summary="Scan the current user's tasks for reminders",
)
@limiter.limit("6/minute")
def scan_current_user(
    request: Request,
    user_id: str = Depends(require_user),
    scanner: ReminderScanner = Depends(get_reminder_scanner),
):
    """
    Run a reminder scan for the authenticated user now.

    Reminders already sent within the dedup window are reported as
    duplicates rather than sent again.
    """
    return _to_response(scanner.scan_user(user_id))


@router.post(
    "/run",
    response_model=ScanRunResponse,
    summary="Scan all users (scheduled)",
    dependencies=[Depends(require_cron_secret)],
)
def run_scheduled_scan(
    scanner: ReminderScanner = Depends(get_reminder_scanner),
):
    """
    Scan every user that has open tasks with a due date.

    Intended for an external scheduler; requires the cron bearer secret.
    """
    reports = scanner.scan_all()
    summary = ScanRunResponse(
        users_scanned=len(reports),
        created=sum(r.created for r in reports),
        skipped=sum(r.skipped for r in reports),
        failed=sum(r.failed for r in reports),
        reports=[_to_response(r) for r in reports],
    )
    logger.info(
        "Scheduled reminder run complete",
        extra={
            "users_scanned": summary.users_scanned,
            "reminders_created": summary.created,
            "reminders_failed": summary.failed,
        },
    )
    return summary
