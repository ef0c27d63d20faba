"""
Ride lifecycle service.

Applies ride status changes and wires the completion edge trigger to the
capture queue, so the status write and the staged capture tasks commit in
the same transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rideops.config.settings import Settings
from rideops.infra.database import utcnow
from rideops.v1.captures.service import CaptureQueueService
from rideops.v1.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from rideops.v1.rides.models import Ride, RideStatus
from rideops.v1.rides.transitions import TransitionDetector

logger = logging.getLogger(__name__)

RIDE_STATUS_VALUES = frozenset(status.value for status in RideStatus)


@dataclass
class StatusChange:
    """What a status write did."""

    ride_id: UUID
    previous_status: str | None
    new_status: str
    completion_fired: bool = False
    staged_task_ids: list[UUID] = field(default_factory=list)


class RideLifecycleService:
    """Service for ride status transitions."""

    def __init__(
        self, settings: Settings, capture_queue: CaptureQueueService | None = None
    ):
        self.settings = settings
        self.capture_queue = capture_queue or CaptureQueueService(settings)
        self.completion_detector = TransitionDetector(RideStatus.COMPLETED.value)

    async def create_ride(
        self,
        session: AsyncSession,
        status: str = RideStatus.SCHEDULED.value,
        now: datetime | None = None,
    ) -> tuple[Ride, StatusChange]:
        """Insert a ride; an insert directly in completed still fires."""
        self._validate_status(status)
        now = now or utcnow()

        ride = Ride(status=status, created_at=now, updated_at=now)
        if status == RideStatus.COMPLETED.value:
            ride.completed_at = now
        session.add(ride)
        await session.flush()

        change = await self._after_write(session, ride, None, now)
        await session.commit()
        return ride, change

    async def update_status(
        self,
        session: AsyncSession,
        ride_id: UUID,
        new_status: str,
        now: datetime | None = None,
    ) -> StatusChange:
        """
        Move a ride to ``new_status``.

        Raises:
            ValidationError: unknown status value
            NotFoundError: no ride with that id
            InvalidTransitionError: the ride is terminal and the status differs
        """
        self._validate_status(new_status)
        now = now or utcnow()

        result = await session.execute(
            select(Ride).where(Ride.id == ride_id).with_for_update()
        )
        ride = result.scalar_one_or_none()
        if ride is None:
            raise NotFoundError("Ride not found", details={"ride_id": str(ride_id)})

        previous_status = ride.status
        if previous_status == new_status:
            # Same-status writes leave timestamps alone and never fire
            await session.commit()
            return StatusChange(
                ride_id=ride.id, previous_status=previous_status, new_status=new_status
            )

        if ride.is_terminal():
            raise InvalidTransitionError(previous_status, new_status)

        ride.status = new_status
        ride.updated_at = now
        if new_status == RideStatus.COMPLETED.value and ride.completed_at is None:
            ride.completed_at = now
        await session.flush()

        change = await self._after_write(session, ride, previous_status, now)
        await session.commit()

        logger.info(
            "Ride status changed",
            extra={
                "ride_id": str(ride.id),
                "previous_status": previous_status,
                "new_status": new_status,
                "completion_fired": change.completion_fired,
            },
        )
        return change

    async def _after_write(
        self,
        session: AsyncSession,
        ride: Ride,
        previous_status: str | None,
        now: datetime,
    ) -> StatusChange:
        change = StatusChange(
            ride_id=ride.id, previous_status=previous_status, new_status=ride.status
        )
        if self.completion_detector.should_fire(previous_status, ride.status):
            tasks = await self.capture_queue.on_parent_completed(session, ride.id, now=now)
            change.completion_fired = True
            change.staged_task_ids = [task.id for task in tasks]
        return change

    @staticmethod
    def _validate_status(status: str) -> None:
        if status not in RIDE_STATUS_VALUES:
            raise ValidationError(
                f"Unknown ride status: {status}",
                details={"allowed": sorted(RIDE_STATUS_VALUES)},
            )
