"""
Scheduled task handlers.

This module contains the tasks that implement the ScheduledTask protocol
and are registered in the job registry for the runner.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rideops.config.settings import Settings
from rideops.v1.captures.gateway import PaymentGateway
from rideops.v1.captures.service import RETRYABLE_ERROR_CODES, CaptureQueueService
from rideops.v1.captures.worker import CaptureWorker
from rideops.v1.infra.jobs.service import JobRunService
from rideops.v1.retention.sweeper import RetentionSweeper

logger = logging.getLogger(__name__)


class RetentionSweepTask:
    """
    Deletes expired ride conversations (and their messages), then prunes
    job run history past its retention.

    Params:
    {
        "dry_run": false  # optional, count eligible conversations without deleting
    }
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.interval_s = settings.sweep_interval_s

    async def run(
        self, session_factory: async_sessionmaker[AsyncSession], **params: Any
    ) -> dict[str, Any]:
        sweeper = RetentionSweeper(self.settings)
        async with session_factory() as session:
            if params.get("dry_run", False):
                eligible = await sweeper.count_eligible(session)
                return {
                    "status": "dry_run",
                    "eligible_count": eligible,
                    "retention_window_hours": self.settings.retention_window_hours,
                }

            deleted_count = await sweeper.sweep(session)
            job_runs_deleted = await JobRunService(self.settings).cleanup_old_runs(
                session
            )

        return {
            "deleted_count": deleted_count,
            "retention_window_hours": self.settings.retention_window_hours,
            "job_runs_deleted": job_runs_deleted,
        }


class CaptureDrainTask:
    """
    Drains pending capture tasks against the payment gateway.

    Params:
    {
        "batch_size": 10  # optional, defaults to settings.capture_batch_size
    }
    """

    def __init__(self, settings: Settings, gateway: PaymentGateway):
        self.settings = settings
        self.gateway = gateway
        self.interval_s = settings.capture_drain_interval_s

    async def run(
        self, session_factory: async_sessionmaker[AsyncSession], **params: Any
    ) -> dict[str, Any]:
        batch_size = params.get("batch_size")
        if batch_size is None:
            batch_size = self.settings.capture_batch_size
        if batch_size < 1 or batch_size > 1000:
            raise ValueError(f"batch_size must be between 1 and 1000, got: {batch_size}")

        worker = CaptureWorker(self.settings, session_factory, self.gateway)
        result = await worker.process_pending(batch_size)
        return {"batch_size": batch_size, **result.as_dict()}


class CaptureRetryTask:
    """
    Bounded automatic retry: requeues captures that failed on gateway errors.

    Declined captures are never requeued here; they wait for an operator.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.interval_s = settings.capture_retry_interval_s

    async def run(
        self, session_factory: async_sessionmaker[AsyncSession], **params: Any
    ) -> dict[str, Any]:
        service = CaptureQueueService(self.settings)
        async with session_factory() as session:
            requeued = await service.requeue_failed(
                session,
                max_attempts=self.settings.capture_max_attempts,
                error_codes=RETRYABLE_ERROR_CODES,
            )

        return {
            "requeued_count": requeued,
            "max_attempts": self.settings.capture_max_attempts,
        }

