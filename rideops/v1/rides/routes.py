"""
Ride lifecycle API endpoints.

Status writes run through the transition detector; hosts that observe ride
transitions themselves can post the completion event directly instead.
"""

import logging
from dataclasses import asdict
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rideops.config.settings import Settings, SettingsDep
from rideops.infra.database import get_session
from rideops.v1.captures.schemas import EnqueueResponse, RideCompletedEvent
from rideops.v1.captures.service import CaptureQueueService
from rideops.v1.core.exceptions import (
    ConflictError,
    NotFoundError,
    create_success_response,
)
from rideops.v1.rides.models import Ride, RideStatus
from rideops.v1.rides.schemas import RideStatusChangeResponse, RideStatusUpdate
from rideops.v1.rides.service import RideLifecycleService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["rides"])


@router.post("/rides/{ride_id}/status", response_model=dict)
async def update_ride_status(
    ride_id: UUID,
    update: RideStatusUpdate,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Move a ride to a new status; entering completed stages its captures."""

    lifecycle = RideLifecycleService(settings)
    change = await lifecycle.update_status(session, ride_id, update.status)

    response = RideStatusChangeResponse(**asdict(change))
    return create_success_response(data=response.model_dump(mode="json"))


@router.post("/events/ride-completed", response_model=dict)
async def ride_completed(
    event: RideCompletedEvent,
    session: AsyncSession = Depends(get_session),
    settings: Settings = SettingsDep,
) -> dict[str, Any]:
    """Change notification for a ride that entered the completed status."""

    ride = await session.get(Ride, event.ride_id)
    if ride is None:
        raise NotFoundError("Ride not found", details={"ride_id": str(event.ride_id)})
    if ride.status != RideStatus.COMPLETED.value:
        raise ConflictError(
            "Ride is not completed; captures are only staged for completed rides",
            details={"ride_id": str(event.ride_id), "current_status": ride.status},
        )

    capture_queue = CaptureQueueService(settings)
    tasks = await capture_queue.on_parent_completed(session, event.ride_id)
    await session.commit()

    logger.info(
        "Ride completion event handled",
        extra={"ride_id": str(event.ride_id), "staged": len(tasks)},
    )

    response = EnqueueResponse(
        ride_id=event.ride_id,
        staged=len(tasks),
        task_ids=[task.id for task in tasks],
    )
    return create_success_response(data=response.model_dump(mode="json"))
