"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions
- Notification feed and service instances
- Sample data factories (tasks, notifications, subscriptions)
- FastAPI test client with dependency overrides
"""

import os
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ['REMINDERS_DB_URL'] = 'sqlite:///:memory:'
os.environ['REMINDERS_ENV'] = 'development'
for _var in ('VAPID_PUBLIC_KEY', 'VAPID_PRIVATE_KEY', 'VAPID_SUBJECT', 'CRON_SECRET'):
    os.environ.pop(_var, None)

from backend.src.config.settings import AppSettings, get_settings
from backend.src.models import Base, Task, Notification, PushSubscription
from backend.src.services.notification_service import NotificationService
from backend.src.services.push_subscription_service import PushSubscriptionService
from backend.src.utils.notification_feed import NotificationFeed


TEST_USER_ID = "user-1"
OTHER_USER_ID = "user-2"

TEST_VAPID = {
    'VAPID_PUBLIC_KEY': 'BEl62iUYgUivxIkv69yViEuiBIa-Ib9-SkvMeAtA3LFgDzkrxZJjSgSnfckjBJuBkr3qBUYIHBQFLXYp5Nksh8U',
    'VAPID_PRIVATE_KEY': 'UUxI4O8-FbRouAevSmBQ6o18hgE4nSG3qwvJTfKc-ls',
    'VAPID_SUBJECT': 'mailto:admin@example.com',
}


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_session_factory(test_db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )


@pytest.fixture(scope='function')
def test_db_session(test_session_factory):
    """Create a test database session."""
    session = test_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture
def test_settings():
    """Settings with push disabled and default reminder policy."""
    return AppSettings(_env_file=None)


@pytest.fixture
def vapid_env(monkeypatch):
    """Configure VAPID keys through the environment for code using get_settings()."""
    for key, value in TEST_VAPID.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()
    yield TEST_VAPID
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Keep cached settings from leaking between tests."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def feed():
    """Fresh live feed, isolated from the process-wide singleton."""
    return NotificationFeed()


@pytest.fixture
def notification_service(test_db_session, feed):
    """NotificationService without push delivery."""
    return NotificationService(db=test_db_session, feed=feed)


@pytest.fixture
def subscription_service(test_db_session):
    """PushSubscriptionService bound to the test session."""
    return PushSubscriptionService(db=test_db_session)


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def create_task(test_db_session):
    """Factory for creating Task rows."""
    def _create(
        title='Write report',
        due_date=None,
        due_time=None,
        status='todo',
        assignee_id=TEST_USER_ID,
    ):
        task = Task(
            title=title,
            due_date=due_date,
            due_time=due_time,
            status=status,
            assignee_id=assignee_id,
        )
        test_db_session.add(task)
        test_db_session.commit()
        test_db_session.refresh(task)
        return task
    return _create


@pytest.fixture
def create_notification(test_db_session):
    """Factory for creating Notification rows directly (no feed events)."""
    def _create(
        user_id=TEST_USER_ID,
        notification_type='reminder',
        title='Task Reminder',
        message='The task "Write report" is due today!',
        reference_id=None,
        reference_type='task',
        is_read=False,
        created_at=None,
        data=None,
    ):
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            reference_id=reference_id,
            reference_type=reference_type,
            is_read=is_read,
            data=data,
        )
        if created_at is not None:
            notification.created_at = created_at
        test_db_session.add(notification)
        test_db_session.commit()
        test_db_session.refresh(notification)
        return notification
    return _create


@pytest.fixture
def create_subscription(test_db_session):
    """Factory for creating PushSubscription rows."""
    _counter = [0]

    def _create(endpoint=None, user_id=TEST_USER_ID, is_active=True):
        _counter[0] += 1
        subscription = PushSubscription(
            user_id=user_id,
            endpoint=endpoint or f"https://push.example.com/sub/{_counter[0]}",
            p256dh_key=f"p256dh-{_counter[0]}",
            auth_key=f"auth-{_counter[0]}",
            is_active=is_active,
        )
        test_db_session.add(subscription)
        test_db_session.commit()
        test_db_session.refresh(subscription)
        return subscription
    return _create


@pytest.fixture
def sample_due():
    """Common (due_date, due_time) pair used by reminder tests."""
    return date(2026, 3, 10), time(17, 0)


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def auth_headers():
    """Headers identifying the default test user."""
    return {'X-User-Id': TEST_USER_ID}


@pytest.fixture
def test_session_manager(test_session_factory, feed):
    """ReminderSessionManager scanning against the test database."""
    from backend.src.services.reminder_session import ReminderSessionManager

    return ReminderSessionManager(
        interval_seconds=3600,
        session_factory=test_session_factory,
        settings=AppSettings(_env_file=None),
        feed=feed,
    )


@pytest.fixture
def test_client(test_db_session, feed, test_session_manager):
    """Create a FastAPI test client with database and feed overrides."""
    from fastapi.testclient import TestClient

    from backend.src.main import app
    from backend.src.db.database import get_db
    from backend.src.services.reminder_session import get_reminder_session_manager
    from backend.src.utils.notification_feed import get_notification_feed
    from backend.src.utils.rate_limit import limiter

    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_notification_feed] = lambda: feed
    app.dependency_overrides[get_reminder_session_manager] = lambda: test_session_manager
    limiter.enabled = False

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
    limiter.enabled = True
