"""
Read-only task queries used by the reminder pipeline.
"""

from typing import List, Sequence

from sqlalchemy.orm import Session

from backend.src.models.task import Task


class TaskService:
    """
    Task source for reminder scans.

    The reminder pipeline never writes tasks; it only needs the open,
    assigned tasks that have a due date.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_reminder_candidates(self, user_id: str, statuses: Sequence[str]) -> List[Task]:
        """
        Open tasks assigned to a user that have a due date.

        Args:
            user_id: Assignee identifier
            statuses: Task statuses considered open

        Returns:
            Tasks ordered by due date, then due time
        """
        if not statuses:
            return []

        return (
            self.db.query(Task)
            .filter(
                Task.assignee_id == user_id,
                Task.status.in_(list(statuses)),
                Task.due_date.isnot(None),
            )
            .order_by(Task.due_date.asc(), Task.due_time.asc(), Task.id.asc())
            .all()
        )

    def list_assignees_with_candidates(self, statuses: Sequence[str]) -> List[str]:
        """Distinct assignees that have at least one reminder candidate."""
        if not statuses:
            return []

        rows = (
            self.db.query(Task.assignee_id)
            .filter(
                Task.assignee_id.isnot(None),
                Task.status.in_(list(statuses)),
                Task.due_date.isnot(None),
            )
            .distinct()
            .order_by(Task.assignee_id)
            .all()
        )
        return [row[0] for row in rows]
