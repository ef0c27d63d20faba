"""Tests for ride status transitions and the completion hook"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from rideops.v1.captures.models import CaptureTask
from rideops.v1.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from rideops.v1.rides.models import Ride, RideStatus
from rideops.v1.rides.service import RideLifecycleService

from conftest import T0


async def _task_count(session) -> int:
    return (await session.execute(select(func.count(CaptureTask.id)))).scalar()


class TestUpdateStatus:
    async def test_completion_stages_captures(
        self, test_settings, db_session, create_ride, create_intent
    ):
        ride = await create_ride(status=RideStatus.IN_PROGRESS.value)
        await create_intent(ride, amount=5000)

        change = await RideLifecycleService(test_settings).update_status(
            db_session, ride.id, RideStatus.COMPLETED.value, now=T0
        )

        assert change.previous_status == RideStatus.IN_PROGRESS.value
        assert change.completion_fired is True
        assert len(change.staged_task_ids) == 1
        await db_session.refresh(ride)
        assert ride.status == RideStatus.COMPLETED.value
        assert ride.completed_at == T0
        assert ride.updated_at == T0

    async def test_same_status_write_is_a_no_op(
        self, test_settings, db_session, create_ride, create_intent
    ):
        ride = await create_ride(
            status=RideStatus.COMPLETED.value, completed_at=T0 - timedelta(hours=1)
        )
        await create_intent(ride)

        change = await RideLifecycleService(test_settings).update_status(
            db_session, ride.id, RideStatus.COMPLETED.value, now=T0
        )

        assert change.completion_fired is False
        assert await _task_count(db_session) == 0
        await db_session.refresh(ride)
        assert ride.updated_at == T0 - timedelta(hours=1)

    async def test_non_completion_transition_does_not_fire(
        self, test_settings, db_session, create_ride, create_intent
    ):
        ride = await create_ride(status=RideStatus.SCHEDULED.value)
        await create_intent(ride)

        change = await RideLifecycleService(test_settings).update_status(
            db_session, ride.id, RideStatus.ACTIVE.value
        )

        assert change.completion_fired is False
        assert await _task_count(db_session) == 0

    async def test_cancellation_keeps_completed_at_empty(
        self, test_settings, db_session, create_ride
    ):
        ride = await create_ride(status=RideStatus.ACTIVE.value)

        await RideLifecycleService(test_settings).update_status(
            db_session, ride.id, RideStatus.CANCELLED.value, now=T0
        )

        await db_session.refresh(ride)
        assert ride.completed_at is None
        assert ride.terminal_since() == T0

    async def test_terminal_ride_cannot_change_status(
        self, test_settings, db_session, create_ride
    ):
        ride = await create_ride(status=RideStatus.COMPLETED.value, completed_at=T0)

        with pytest.raises(InvalidTransitionError):
            await RideLifecycleService(test_settings).update_status(
                db_session, ride.id, RideStatus.ACTIVE.value
            )

    async def test_unknown_ride(self, test_settings, db_session):
        with pytest.raises(NotFoundError):
            await RideLifecycleService(test_settings).update_status(
                db_session, uuid4(), RideStatus.ACTIVE.value
            )

    async def test_unknown_status(self, test_settings, db_session, create_ride):
        ride = await create_ride()

        with pytest.raises(ValidationError, match="Unknown ride status"):
            await RideLifecycleService(test_settings).update_status(
                db_session, ride.id, "teleported"
            )


class TestCreateRide:
    async def test_insert_directly_in_completed_fires(self, test_settings, db_session):
        ride, change = await RideLifecycleService(test_settings).create_ride(
            db_session, status=RideStatus.COMPLETED.value, now=T0
        )

        assert change.previous_status is None
        assert change.completion_fired is True
        assert ride.completed_at == T0

    async def test_insert_scheduled_does_not_fire(self, test_settings, db_session):
        ride, change = await RideLifecycleService(test_settings).create_ride(db_session)

        assert change.completion_fired is False
        stored = await db_session.get(Ride, ride.id)
        assert stored.status == RideStatus.SCHEDULED.value
