"""
Job run records for scheduled tasks.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, CheckConstraint, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from rideops.infra.database import Base, UTCDateTime, utcnow


class JobRunStatus(str, Enum):
    """Job run status enumeration."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class JobTrigger(str, Enum):
    """What started a job run."""

    SCHEDULE = "schedule"
    MANUAL = "manual"


class JobRun(Base):
    """
    One execution of a scheduled task.

    Provides the outcome history for the runner:
    - Result payload of successful passes (counts, per-task outcomes)
    - Error message of failed passes, retried by the next scheduled run
    """

    __tablename__ = "job_runs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    job_name: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Registered task name"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobRunStatus.RUNNING.value,
        comment="Run status: running|succeeded|failed|canceled",
    )
    trigger: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JobTrigger.SCHEDULE.value
    )
    result: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Task result data"
    )
    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Error of a failed run"
    )
    started_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    finished_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'succeeded', 'failed', 'canceled')",
            name="job_runs_status_check",
        ),
        Index("ix_job_runs_job_name_started_at", "job_name", "started_at"),
    )

    def get_duration_seconds(self) -> float | None:
        """Wall time of a finished run."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
