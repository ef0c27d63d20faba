"""
Capture queue API endpoints.

Provides admin endpoints for monitoring the queue and for the operator
actions: requeueing failed captures and releasing stuck ones.
"""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rideops.config.settings import Settings, SettingsDep
from rideops.infra.database import get_session
from rideops.v1.captures.models import CaptureTaskStatus
from rideops.v1.captures.schemas import (
    CaptureTaskListResponse,
    CaptureTaskResponse,
    ReleaseStuckRequest,
    RequeueRequest,
    RequeueResponse,
)
from rideops.v1.captures.service import CaptureQueueService
from rideops.v1.core.exceptions import NotFoundError, create_success_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/captures", tags=["captures"])


@router.get("", response_model=dict)
async def list_captures(
    status: list[CaptureTaskStatus] | None = Query(
        default=None, description="Filter by status"
    ),
    limit: int = Query(default=50, ge=1, le=1000, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Results offset"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """List capture tasks with filtering and pagination, oldest first."""

    service = CaptureQueueService(settings)
    statuses = [s.value for s in status] if status else None
    tasks, total = await service.list_tasks(
        session, statuses=statuses, limit=limit, offset=offset
    )

    response_data = CaptureTaskListResponse(
        tasks=[CaptureTaskResponse.model_validate(task) for task in tasks],
        total=total,
        limit=limit,
        offset=offset,
    )
    return create_success_response(data=response_data.model_dump(mode="json"))


@router.get("/stats", response_model=dict)
async def get_capture_stats(
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Get capture queue statistics."""

    stats = await CaptureQueueService(settings).get_stats(session)
    return create_success_response(data=stats.model_dump())


@router.get("/{task_id}", response_model=dict)
async def get_capture(
    task_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Get a specific capture task by ID."""

    task = await CaptureQueueService(settings).get_task(session, task_id)
    if not task:
        raise NotFoundError("Capture task not found", details={"task_id": str(task_id)})

    return create_success_response(
        data=CaptureTaskResponse.model_validate(task).model_dump(mode="json")
    )


@router.post("/batch/requeue", response_model=dict)
async def requeue_captures_batch(
    request: RequeueRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Requeue multiple failed capture tasks in batch."""

    service = CaptureQueueService(settings)
    success_ids = []
    failed_ids = []
    errors = {}

    for task_id in request.task_ids:
        try:
            if await service.requeue_task(session, task_id):
                success_ids.append(task_id)
            else:
                failed_ids.append(task_id)
                errors[str(task_id)] = "Capture task not found or not eligible for requeue"
        except Exception as e:
            await session.rollback()
            failed_ids.append(task_id)
            errors[str(task_id)] = str(e)

    logger.info(
        "Batch capture requeue via API",
        extra={"success_count": len(success_ids), "failed_count": len(failed_ids)},
    )

    response = RequeueResponse(
        success_ids=success_ids, failed_ids=failed_ids, errors=errors
    )
    return create_success_response(data=response.model_dump(mode="json"))


@router.post("/{task_id}/requeue", response_model=dict)
async def requeue_capture(
    task_id: UUID,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Move a failed capture task back to pending."""

    success = await CaptureQueueService(settings).requeue_task(session, task_id)
    if not success:
        raise NotFoundError(
            "Capture task not found or not eligible for requeue",
            details={"task_id": str(task_id)},
        )

    logger.info("Capture task requeued via API", extra={"task_id": str(task_id)})
    return create_success_response(data={"success": True, "task_id": str(task_id)})


@router.post("/release-stuck", response_model=dict)
async def release_stuck_captures(
    request: ReleaseStuckRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Return processing tasks with an old last attempt to pending."""

    released = await CaptureQueueService(settings).release_stuck(
        session, older_than=timedelta(seconds=request.older_than_s)
    )

    return create_success_response(
        data={"released_count": released, "older_than_s": request.older_than_s}
    )
