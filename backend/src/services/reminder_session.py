"""
Per-user periodic reminder scanning tied to live UI sessions.

A ReminderSession scans immediately when started and then once per interval
until stopped. The scan itself is synchronous SQLAlchemy work, so each cycle
runs in a worker thread with its own database session.

ReminderSessionManager keeps one session per user and reference-counts the
connections sharing it: the first connection starts the timer, the last
disconnect stops it.

Usage:
    manager = get_reminder_session_manager()

    manager.acquire(user_id)          # on connect
    ...
    await manager.release(user_id)    # on disconnect
    await manager.stop_all()          # on application shutdown
"""

import asyncio
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from backend.src.config.settings import AppSettings, get_settings
from backend.src.db.database import SessionLocal
from backend.src.services.reminder_service import ReminderScanner, ScanReport
from backend.src.utils.logging_config import get_logger
from backend.src.utils.notification_feed import NotificationFeed


logger = get_logger("scheduler")


class ReminderSession:
    """
    Repeating reminder scan for one user.

    Cancelling the timer does not wait for a scan already running in a
    worker thread; that scan completes on its own session and is discarded.
    """

    def __init__(
        self,
        user_id: str,
        interval_seconds: float,
        session_factory: Callable[[], Session] = SessionLocal,
        settings: Optional[AppSettings] = None,
        feed: Optional[NotificationFeed] = None,
    ):
        self.user_id = user_id
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self.settings = settings
        self.feed = feed
        self.scan_count = 0
        self.last_report: Optional[ScanReport] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """
        Start the timer; the first scan runs right away.

        Must be called from within a running event loop. Starting an already
        running session is a no-op.
        """
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"reminders:{self.user_id}"
        )
        logger.debug(f"Reminder session started for user {self.user_id}")

    async def stop(self) -> None:
        """Cancel the timer and wait for the task to unwind."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Reminder session stopped for user {self.user_id}")

    async def run_once(self) -> Optional[ScanReport]:
        """
        Run one scan in a worker thread.

        Returns:
            The ScanReport, or None if the scan raised
        """
        try:
            report = await asyncio.to_thread(self._scan)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"Reminder scan crashed: {e}",
                extra={"user_id": self.user_id},
            )
            return None

        self.scan_count += 1
        self.last_report = report
        return report

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def _scan(self) -> ScanReport:
        db = self.session_factory()
        try:
            scanner = ReminderScanner.for_session(db, settings=self.settings, feed=self.feed)
            return scanner.scan_user(self.user_id)
        finally:
            db.close()


class ReminderSessionManager:
    """
    Owns the ReminderSession of every connected user.
    """

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        session_factory: Callable[[], Session] = SessionLocal,
        settings: Optional[AppSettings] = None,
        feed: Optional[NotificationFeed] = None,
    ):
        self.settings = settings
        if interval_seconds is None:
            interval_seconds = (settings or get_settings()).reminder_interval_seconds
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self.feed = feed
        self._sessions: Dict[str, ReminderSession] = {}
        self._refs: Dict[str, int] = {}

    def acquire(self, user_id: str) -> ReminderSession:
        """
        Register a connection for a user, starting their session if needed.

        Args:
            user_id: Connected user

        Returns:
            The user's (possibly shared) ReminderSession
        """
        session = self._sessions.get(user_id)
        if session is None:
            session = ReminderSession(
                user_id,
                self.interval_seconds,
                session_factory=self.session_factory,
                settings=self.settings,
                feed=self.feed,
            )
            self._sessions[user_id] = session
            self._refs[user_id] = 0
            session.start()
            logger.info(
                "Reminder session opened",
                extra={"user_id": user_id, "interval_seconds": self.interval_seconds},
            )

        self._refs[user_id] += 1
        return session

    async def release(self, user_id: str) -> None:
        """Drop one connection; the last one stops the user's session."""
        if user_id not in self._refs:
            return

        self._refs[user_id] -= 1
        if self._refs[user_id] > 0:
            return

        del self._refs[user_id]
        session = self._sessions.pop(user_id)
        await session.stop()
        logger.info("Reminder session closed", extra={"user_id": user_id})

    async def stop_all(self) -> None:
        """Stop every session (application shutdown)."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._refs.clear()
        for session in sessions:
            await session.stop()
        if sessions:
            logger.info(f"Stopped {len(sessions)} reminder sessions")

    def get(self, user_id: str) -> Optional[ReminderSession]:
        return self._sessions.get(user_id)

    def connection_count(self, user_id: str) -> int:
        return self._refs.get(user_id, 0)

    def active_users(self) -> List[str]:
        return list(self._sessions.keys())


# Singleton instance
_session_manager: Optional[ReminderSessionManager] = None


def get_reminder_session_manager() -> ReminderSessionManager:
    """
    Get the singleton ReminderSessionManager instance.

    Note:
        Creates the instance on first call using application settings.
    """
    global _session_manager
    if _session_manager is None:
        _session_manager = ReminderSessionManager()
    return _session_manager
