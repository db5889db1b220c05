"""
Reminder scanner for due-soon and overdue tasks.

Scans a user's open tasks that have a due date and creates at most one
reminder notification per task within the dedup window (default 24 hours).
Each new reminder is handed to the push dispatcher straight after insert.

Design:
- The reminder policy (decide_reminder) is a pure function of the task's due
  date/time and the current wall-clock time
- Due dates are wall-clock values in the configured reminder timezone
- Per-task failures are recorded in the ScanReport and never abort a scan
- Dedup is a read-then-write existence check; concurrent scans of the same
  user may both insert, which is accepted
"""

import enum
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from backend.src.config.settings import AppSettings, get_settings
from backend.src.models.notification import NotificationType, ReferenceType
from backend.src.models.task import Task
from backend.src.services.notification_service import NotificationService
from backend.src.services.push_dispatcher import PushDispatcher, build_notification_url
from backend.src.services.push_subscription_service import PushSubscriptionService
from backend.src.services.reminder_messages import format_reminder, reminder_title
from backend.src.services.task_service import TaskService
from backend.src.utils.logging_config import get_logger

if TYPE_CHECKING:
    from backend.src.services.push_dispatcher import DeliveryReport
    from backend.src.utils.notification_feed import NotificationFeed


logger = get_logger("scheduler")


DEFAULT_LEAD_HOURS = 24


class ReminderKind(enum.Enum):
    """Wording chosen for a reminder."""
    DUE_TODAY = "due_today"
    DUE_TOMORROW = "due_tomorrow"
    DUE_IN_HOURS = "due_in_hours"
    OVERDUE = "overdue"


class ScanOutcome(enum.Enum):
    """What the scanner did with one candidate task."""
    CREATED = "created"
    DUPLICATE = "duplicate"
    NOT_DUE = "not_due"
    FAILED = "failed"


@dataclass(frozen=True)
class ReminderDecision:
    kind: ReminderKind
    message: str
    hours_until_due: float


@dataclass
class TaskScanResult:
    """Result for one candidate task."""

    task_guid: str
    outcome: ScanOutcome
    kind: Optional[ReminderKind] = None
    message: Optional[str] = None
    notification_guid: Optional[str] = None
    error: Optional[str] = None
    delivery: Optional["DeliveryReport"] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_guid": self.task_guid,
            "outcome": self.outcome.value,
            "kind": self.kind.value if self.kind else None,
            "message": self.message,
            "notification_guid": self.notification_guid,
            "error": self.error,
            "delivery": self.delivery.to_dict() if self.delivery else None,
        }


@dataclass
class ScanReport:
    """
    Aggregate result of scanning one user.

    error is set when the candidate task list itself could not be loaded;
    results is empty in that case.
    """

    user_id: str
    scanned_at: datetime
    results: List[TaskScanResult] = field(default_factory=list)
    error: Optional[str] = None

    def _count(self, *outcomes: ScanOutcome) -> int:
        return sum(1 for r in self.results if r.outcome in outcomes)

    @property
    def created(self) -> int:
        return self._count(ScanOutcome.CREATED)

    @property
    def skipped(self) -> int:
        return self._count(ScanOutcome.DUPLICATE, ScanOutcome.NOT_DUE)

    @property
    def failed(self) -> int:
        return self._count(ScanOutcome.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "scanned_at": self.scanned_at,
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "error": self.error,
            "results": [r.to_dict() for r in self.results],
        }


def to_local_time(now: datetime, tz_name: str) -> datetime:
    """
    Convert a naive UTC timestamp to naive wall-clock time in tz_name.

    Args:
        now: Naive datetime in UTC
        tz_name: IANA timezone identifier

    Returns:
        Naive datetime in the target timezone
    """
    return now.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def decide_reminder(
    title: str,
    due_date: date,
    due_time: Optional[time],
    now: datetime,
    locale: str = "en",
    lead_hours: int = DEFAULT_LEAD_HOURS,
) -> Optional[ReminderDecision]:
    """
    Decide whether a task warrants a reminder and how to word it.

    Rules, first match wins:
    - 0 < hours until due <= lead_hours: due today if the due instant falls on
      now's calendar date, due tomorrow if on the next date, otherwise due in
      N hours with N rounded up
    - hours until due < 0: overdue
    - otherwise (further out, or due exactly now): no reminder

    Args:
        title: Task title used in the message
        due_date: Calendar due date
        due_time: Optional due time (midnight when None)
        now: Current wall-clock time, same timezone as the due date
        locale: Message catalog locale
        lead_hours: How far ahead a task counts as due soon

    Returns:
        ReminderDecision, or None when no reminder is warranted
    """
    due = Task.combine_due(due_date, due_time)
    hours = (due - now).total_seconds() / 3600

    if 0 < hours <= lead_hours:
        if due.date() == now.date():
            kind = ReminderKind.DUE_TODAY
            message = format_reminder(kind.value, title, locale)
        elif due.date() == now.date() + timedelta(days=1):
            kind = ReminderKind.DUE_TOMORROW
            message = format_reminder(kind.value, title, locale)
        else:
            kind = ReminderKind.DUE_IN_HOURS
            message = format_reminder(kind.value, title, locale, hours=math.ceil(hours))
        return ReminderDecision(kind=kind, message=message, hours_until_due=hours)

    if hours < 0:
        kind = ReminderKind.OVERDUE
        return ReminderDecision(
            kind=kind,
            message=format_reminder(kind.value, title, locale),
            hours_until_due=hours,
        )

    return None


class ReminderScanner:
    """
    Creates deduplicated reminder notifications for a user's due tasks.

    Usage:
        >>> scanner = ReminderScanner.for_session(db)
        >>> report = scanner.scan_user("user-123")
        >>> report.created
        2
    """

    def __init__(
        self,
        tasks: TaskService,
        notifications: NotificationService,
        settings: Optional[AppSettings] = None,
    ):
        """
        Initialize the scanner.

        Args:
            tasks: Task source
            notifications: Notification store; its dispatcher (if any)
                delivers each created reminder
            settings: Application settings (defaults to cached settings)
        """
        self.tasks = tasks
        self.notifications = notifications
        self.settings = settings or get_settings()

    @classmethod
    def for_session(
        cls,
        db: Session,
        settings: Optional[AppSettings] = None,
        feed: Optional["NotificationFeed"] = None,
    ) -> "ReminderScanner":
        """Wire a scanner, store and dispatcher onto one database session."""
        settings = settings or get_settings()
        dispatcher = PushDispatcher.from_settings(PushSubscriptionService(db), settings)
        return cls(
            tasks=TaskService(db),
            notifications=NotificationService(db, feed=feed, dispatcher=dispatcher),
            settings=settings,
        )

    def scan_user(self, user_id: str, now: Optional[datetime] = None) -> ScanReport:
        """
        Scan one user's open tasks and create due reminders.

        Args:
            user_id: Assignee to scan
            now: Current time as naive UTC (defaults to utcnow)

        Returns:
            ScanReport with one TaskScanResult per candidate task
        """
        now = now or datetime.utcnow()
        report = ScanReport(user_id=user_id, scanned_at=now)

        try:
            candidates = self.tasks.list_reminder_candidates(
                user_id, self.settings.open_statuses
            )
        except Exception as e:
            self.tasks.db.rollback()
            logger.error(
                f"Could not load reminder candidates: {e}",
                extra={"user_id": user_id},
            )
            report.error = str(e)
            return report

        local_now = to_local_time(now, self.settings.reminder_timezone)
        window_start = now - timedelta(hours=self.settings.reminder_dedup_hours)

        for task in candidates:
            report.results.append(
                self._scan_task(user_id, task, now, local_now, window_start)
            )

        try:
            self._log_summary(report, len(candidates))
        except Exception as e:
            logger.warning(f"Could not log reminder scan summary for {user_id}: {e}")

        return report

    def _log_summary(self, report: ScanReport, candidates: int) -> None:
        # LogRecord reserves "created"; counters use a reminders_ prefix
        if report.created or report.failed:
            logger.info(
                "Reminder scan complete",
                extra={
                    "user_id": report.user_id,
                    "candidates": candidates,
                    "reminders_created": report.created,
                    "reminders_skipped": report.skipped,
                    "reminders_failed": report.failed,
                },
            )
        else:
            logger.debug(f"Reminder scan for {report.user_id}: nothing to send")

    def scan_all(self, now: Optional[datetime] = None) -> List[ScanReport]:
        """
        Scan every user that has at least one reminder candidate.

        Users are scanned sequentially with the same reference time.

        Raises:
            SQLAlchemyError: If the assignee list cannot be loaded
        """
        now = now or datetime.utcnow()
        user_ids = self.tasks.list_assignees_with_candidates(self.settings.open_statuses)
        logger.info(f"Scanning reminders for {len(user_ids)} users")
        return [self.scan_user(user_id, now=now) for user_id in user_ids]

    def _scan_task(
        self,
        user_id: str,
        task: Task,
        now: datetime,
        local_now: datetime,
        window_start: datetime,
    ) -> TaskScanResult:
        task_guid = task.guid
        try:
            existing = self.notifications.find_recent(
                user_id=user_id,
                reference_id=task_guid,
                notification_type=NotificationType.REMINDER.value,
                created_after=window_start,
            )
            if existing is not None:
                return TaskScanResult(
                    task_guid=task_guid,
                    outcome=ScanOutcome.DUPLICATE,
                    notification_guid=existing.guid,
                )

            decision = decide_reminder(
                task.title,
                task.due_date,
                task.due_time,
                local_now,
                locale=self.settings.reminder_locale,
                lead_hours=self.settings.reminder_lead_hours,
            )
            if decision is None:
                return TaskScanResult(task_guid=task_guid, outcome=ScanOutcome.NOT_DUE)

            notification, delivery = self.notifications.send_notification(
                user_id=user_id,
                notification_type=NotificationType.REMINDER.value,
                title=reminder_title(self.settings.reminder_locale),
                message=decision.message,
                reference_id=task_guid,
                reference_type=ReferenceType.TASK.value,
                data={"url": build_notification_url(ReferenceType.TASK.value, task_guid)},
                created_at=now,
            )
            return TaskScanResult(
                task_guid=task_guid,
                outcome=ScanOutcome.CREATED,
                kind=decision.kind,
                message=decision.message,
                notification_guid=notification.guid,
                delivery=delivery,
            )
        except Exception as e:
            self.notifications.db.rollback()
            logger.error(
                f"Reminder failed for task {task_guid}: {e}",
                extra={"user_id": user_id, "task_guid": task_guid},
            )
            return TaskScanResult(
                task_guid=task_guid,
                outcome=ScanOutcome.FAILED,
                error=str(e),
            )
