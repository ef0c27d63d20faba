"""
Job run service for querying and pruning run history.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rideops.config.settings import Settings
from rideops.infra.database import utcnow
from rideops.v1.infra.jobs.models import JobRun, JobRunStatus

logger = logging.getLogger(__name__)


class JobRunService:
    """Service for job run history."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def list_runs(
        self, session: AsyncSession, job_name: str | None = None, limit: int = 50
    ) -> tuple[list[JobRun], int]:
        """List runs, newest first, with the total matching count."""
        base_query = select(JobRun)
        if job_name:
            base_query = base_query.where(JobRun.job_name == job_name)

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await session.execute(count_query)).scalar() or 0

        runs_result = await session.execute(
            base_query.order_by(desc(JobRun.started_at)).limit(limit)
        )
        return list(runs_result.scalars().all()), total

    async def last_run(self, session: AsyncSession, job_name: str) -> JobRun | None:
        """Most recent run of a task."""
        runs, _ = await self.list_runs(session, job_name=job_name, limit=1)
        return runs[0] if runs else None

    async def cleanup_old_runs(
        self, session: AsyncSession, now: datetime | None = None
    ) -> int:
        """Clean up finished runs based on retention policy."""
        retention_days = self.settings.job_run_retention_days
        cutoff = (now or utcnow()) - timedelta(days=retention_days)

        result = await session.execute(
            delete(JobRun)
            .where(
                JobRun.status != JobRunStatus.RUNNING.value,
                JobRun.started_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        deleted_count = result.rowcount
        await session.commit()

        if deleted_count > 0:
            logger.info(
                "Cleaned up old job runs",
                extra={
                    "deleted_count": deleted_count,
                    "retention_days": retention_days,
                },
            )

        return deleted_count
