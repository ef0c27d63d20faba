"""
Job management API endpoints.

Provides admin endpoints for listing scheduled tasks, inspecting run
history and triggering a single pass of a task by hand.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rideops.config.settings import Settings, SettingsDep
from rideops.infra.database import get_session, get_session_factory
from rideops.v1.core.exceptions import NotFoundError, create_success_response
from rideops.v1.core.registries import job_registry
from rideops.v1.infra.jobs.models import JobRun
from rideops.v1.infra.jobs.runner import JobRunner
from rideops.v1.infra.jobs.schemas import (
    JobRunListResponse,
    JobRunRequest,
    JobRunResponse,
    ScheduledTaskInfo,
)
from rideops.v1.infra.jobs.service import JobRunService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_job_runner(
    settings: Settings = SettingsDep,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> JobRunner:
    """Dependency injection for a runner bound to the request's database."""
    return JobRunner(settings, session_factory)


def _run_response(job_run: JobRun) -> JobRunResponse:
    run_data = JobRunResponse.model_validate(job_run)
    run_data.duration_seconds = job_run.get_duration_seconds()
    return run_data


@router.get("", response_model=dict)
async def list_tasks() -> dict[str, Any]:
    """List registered scheduled tasks and their intervals."""

    tasks = [
        ScheduledTaskInfo(name=name, interval_s=job_registry.get(name).interval_s)
        for name in job_registry.list()
    ]
    return create_success_response(data=[task.model_dump() for task in tasks])


@router.get("/runs", response_model=dict)
async def list_runs(
    job_name: str | None = Query(default=None, description="Filter by task name"),
    limit: int = Query(default=50, ge=1, le=1000, description="Maximum results"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """List job runs, newest first."""

    runs, total = await JobRunService(settings).list_runs(
        session, job_name=job_name, limit=limit
    )

    response_data = JobRunListResponse(
        runs=[_run_response(run) for run in runs], total=total, limit=limit
    )
    return create_success_response(data=response_data.model_dump(mode="json"))


@router.post("/{name}/run", response_model=dict)
async def run_task(
    name: str,
    request: JobRunRequest | None = None,
    runner: JobRunner = Depends(get_job_runner),
) -> dict[str, Any]:
    """Run a single pass of a registered task and return the recorded run."""

    if name not in job_registry.list():
        raise NotFoundError(
            f"No scheduled task registered with name: {name}",
            details={"registered": job_registry.list()},
        )

    params = request.params if request else {}
    job_run = await runner.run_once(name, **params)

    logger.info(
        "Job run triggered via API",
        extra={"job_name": name, "run_id": str(job_run.id), "status": job_run.status},
    )
    return create_success_response(data=_run_response(job_run).model_dump(mode="json"))
