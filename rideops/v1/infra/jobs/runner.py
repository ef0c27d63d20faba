"""
In-process job runner for recurring tasks, with run history in the database.
"""

import asyncio
import logging
import os
import socket
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rideops.config.logging import bind_job_context
from rideops.config.settings import Settings
from rideops.infra.database import utcnow
from rideops.v1.core.registries import JobRegistry, job_registry
from rideops.v1.infra.jobs.models import JobRun, JobRunStatus, JobTrigger

logger = logging.getLogger(__name__)


class JobRunner:
    """
    Runs registered tasks on their intervals and records every run.

    Features:
    - One loop per registered task, each sleeping for its own interval
    - A JobRun row per pass (running -> succeeded|failed|canceled)
    - A failed pass is logged and recorded; the next scheduled pass retries
    - Graceful shutdown: sleeping loops wake up immediately on stop()
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        registry: JobRegistry = job_registry,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.registry = registry
        self.runner_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self._stop_event = asyncio.Event()

    async def run_once(
        self, name: str, trigger: str = JobTrigger.MANUAL.value, **params: Any
    ) -> JobRun:
        """
        Execute a single pass of the named task and record the outcome.

        Raises:
            KeyError: if no task is registered under that name
        """
        task = self.registry.get(name)

        async with self.session_factory() as session:
            job_run = JobRun(
                job_name=name,
                status=JobRunStatus.RUNNING.value,
                trigger=trigger,
                started_at=utcnow(),
            )
            session.add(job_run)
            await session.commit()

        bind_job_context(job_name=name, run_id=str(job_run.id), trigger=trigger)
        logger.info(
            "Job run started",
            extra={"job_name": name, "run_id": str(job_run.id), "trigger": trigger},
        )

        try:
            result = await task.run(self.session_factory, **params)
        except asyncio.CancelledError:
            logger.info("Job run cancelled", extra={"job_name": name})
            await self._finish(job_run, JobRunStatus.CANCELED)
            raise
        except Exception as e:
            logger.exception(
                "Job run failed", extra={"job_name": name, "error": str(e)}
            )
            return await self._finish(job_run, JobRunStatus.FAILED, error=str(e))

        finished = await self._finish(job_run, JobRunStatus.SUCCEEDED, result=result)
        logger.info(
            "Job run succeeded",
            extra={
                "job_name": name,
                "duration_seconds": finished.get_duration_seconds(),
            },
        )
        return finished

    async def _finish(
        self,
        job_run: JobRun,
        status: JobRunStatus,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> JobRun:
        """Mark a run as finished with the given status and result."""
        async with self.session_factory() as session:
            job_run = await session.merge(job_run)
            job_run.status = status.value
            job_run.finished_at = utcnow()
            if result is not None:
                job_run.result = result
            if error is not None:
                job_run.error_message = error
            await session.commit()
        return job_run

    async def start(self) -> None:
        """Start one loop per registered task and block until stop()."""
        if self.running:
            raise RuntimeError("Runner is already running")

        self.running = True
        self._stop_event.clear()
        names = self.registry.list()
        logger.info(
            "Starting job runner",
            extra={"runner_id": self.runner_id, "tasks": names},
        )

        try:
            await asyncio.gather(*(self._task_loop(name) for name in names))
        finally:
            self.running = False

    async def stop(self) -> None:
        """Stop the runner; loops exit after their current pass."""
        logger.info("Stopping job runner", extra={"runner_id": self.runner_id})
        self.running = False
        self._stop_event.set()

    async def _task_loop(self, name: str) -> None:
        """Run a task every interval_s seconds until the runner stops."""
        interval_s = self.registry.get(name).interval_s
        while self.running:
            try:
                await self.run_once(name, trigger=JobTrigger.SCHEDULE.value)
            except Exception:
                # Recording the run itself failed (e.g. database unavailable)
                logger.exception(
                    "Error in job loop",
                    extra={"runner_id": self.runner_id, "job_name": name},
                )

            if await self._sleep(interval_s):
                break

    async def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped; returns True when the runner was stopped."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except TimeoutError:
            return False
