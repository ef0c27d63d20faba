"""
Job run Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class JobRunResponse(BaseModel):
    """Schema for job run API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_name: str
    status: str
    trigger: str
    result: dict[str, Any] | None = None
    error_message: str | None = None
    started_at: datetime
    finished_at: datetime | None = None
    duration_seconds: float | None = None


class JobRunListResponse(BaseModel):
    """Schema for job run list API response."""

    runs: list[JobRunResponse]
    total: int
    limit: int


class ScheduledTaskInfo(BaseModel):
    """Schema describing a registered task."""

    name: str
    interval_s: int


class JobRunRequest(BaseModel):
    """Schema for a manual run of a registered task."""

    params: dict[str, Any] = Field(
        default_factory=dict, description="Per-run overrides (batch_size, dry_run)"
    )
