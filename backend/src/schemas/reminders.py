"""
Pydantic schemas for reminder scan responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from backend.src.schemas.notifications import DeliveryReportResponse


class TaskScanResultResponse(BaseModel):
    """What the scanner did with one candidate task."""

    task_guid: str = Field(..., description="Task GUID (tsk_xxx)")
    outcome: str = Field(..., description="created, duplicate, not_due or failed")
    kind: Optional[str] = Field(
        default=None, description="due_today, due_tomorrow, due_in_hours or overdue"
    )
    message: Optional[str] = None
    notification_guid: Optional[str] = None
    error: Optional[str] = None
    delivery: Optional[DeliveryReportResponse] = None


class ScanReportResponse(BaseModel):
    """Result of scanning one user's tasks."""

    user_id: str
    scanned_at: datetime
    created: int
    skipped: int
    failed: int
    error: Optional[str] = None
    results: List[TaskScanResultResponse] = Field(default_factory=list)

    @field_serializer("scanned_at")
    @classmethod
    def serialize_datetime_utc(cls, v: datetime) -> str:
        """Serialize datetime as ISO 8601 with explicit UTC timezone."""
        return v.isoformat() + "Z"


class ScanRunResponse(BaseModel):
    """Summary of a scheduled scan across all users."""

    users_scanned: int
    created: int
    skipped: int
    failed: int
    reports: List[ScanReportResponse] = Field(default_factory=list)
