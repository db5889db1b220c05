"""
SQLAlchemy models for the reminders backend.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# All models inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
# This is required for Alembic autogenerate to detect models
from backend.src.models.task import Task, TaskStatus
from backend.src.models.notification import Notification, NotificationType, ReferenceType
from backend.src.models.push_subscription import PushSubscription

__all__ = [
    "Base",
    "Task",
    "TaskStatus",
    "Notification",
    "NotificationType",
    "ReferenceType",
    "PushSubscription",
]
