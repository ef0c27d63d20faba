"""
Capture queue Pydantic schemas.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CaptureTaskResponse(BaseModel):
    """Schema for capture task API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payment_intent_id: UUID
    ride_id: UUID
    external_reference_id: str
    amount: int
    status: str
    attempts: int
    last_attempt_at: datetime | None = None
    error_code: str | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class CaptureTaskListResponse(BaseModel):
    """Schema for capture task list API response."""

    tasks: list[CaptureTaskResponse]
    total: int
    limit: int
    offset: int


class CaptureQueueStats(BaseModel):
    """Schema for capture queue statistics."""

    total_tasks: int
    by_status: dict[str, int]
    pending_amount: int
    queue_depth: int  # pending + processing
    stuck_count: int
    failed_by_error_code: dict[str, int] = Field(default_factory=dict)


class RideCompletedEvent(BaseModel):
    """Change notification for a ride that entered the completed status."""

    ride_id: UUID


class EnqueueResponse(BaseModel):
    """Schema for the enqueue step response."""

    ride_id: UUID
    staged: int
    task_ids: list[UUID]


class RequeueRequest(BaseModel):
    """Schema for batch requeue of failed capture tasks."""

    task_ids: list[UUID] = Field(..., description="Capture task IDs to requeue")


class RequeueResponse(BaseModel):
    """Schema for requeue action responses."""

    success_ids: list[UUID]
    failed_ids: list[UUID]
    errors: dict[str, str]  # task_id -> error message


class ReleaseStuckRequest(BaseModel):
    """Schema for releasing processing tasks back to pending."""

    older_than_s: int = Field(
        default=900, ge=60, description="Only tasks whose last attempt is older than this"
    )

