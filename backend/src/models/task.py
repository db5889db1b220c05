"""
Task model for assignable work items with optional due dates.

Tasks are owned by the task board and are read-only from the reminder
pipeline's perspective: the scanner only selects open, assigned tasks with a
due date and never writes to this table.
"""

import enum
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import Column, Integer, String, Date, Time, DateTime, Index

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class TaskStatus(enum.Enum):
    """Task board columns."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    CANCELLED = "cancelled"


class Task(Base, GuidMixin):
    """
    Work item assigned to a user.

    Attributes:
        title: Short task title shown in reminders
        assignee_id: External identifier of the assigned user
        status: TaskStatus value
        due_date: Calendar date the task is due (null = no deadline)
        due_time: Optional wall-clock time on due_date (null = midnight)
    """

    __tablename__ = "tasks"
    GUID_PREFIX = "tsk"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String(255), nullable=False)
    assignee_id = Column(String(64), nullable=True, index=True)
    status = Column(String(30), default=TaskStatus.TODO.value, nullable=False)

    due_date = Column(Date, nullable=True)
    due_time = Column(Time, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_tasks_assignee_status", "assignee_id", "status"),
    )

    @staticmethod
    def combine_due(due_date: date, due_time: Optional[time]) -> datetime:
        """Due instant as naive wall-clock time; midnight when no time is set."""
        return datetime.combine(due_date, due_time or time.min)

    @property
    def due_datetime(self) -> Optional[datetime]:
        if self.due_date is None:
            return None
        return self.combine_due(self.due_date, self.due_time)

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title='{self.title}', status='{self.status}')>"
