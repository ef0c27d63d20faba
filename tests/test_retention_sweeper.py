"""Tests for the conversation retention sweep"""

from datetime import timedelta

from sqlalchemy import func, select

from rideops.v1.retention.sweeper import RetentionSweeper
from rideops.v1.rides.models import Conversation, Message, RideStatus

from conftest import T0

COMPLETED = RideStatus.COMPLETED.value
CANCELLED = RideStatus.CANCELLED.value


async def _count(session, model) -> int:
    return (await session.execute(select(func.count(model.id)))).scalar()


class TestRetentionSweep:
    """Eligibility and deletion behaviour of the sweep"""

    async def test_deletes_conversations_of_ride_completed_nine_hours_ago(
        self, test_settings, db_session, create_ride
    ):
        await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=9), conversations=1
        )

        deleted = await RetentionSweeper(test_settings).sweep(db_session, now=T0)

        assert deleted >= 1
        assert await _count(db_session, Conversation) == 0

    async def test_keeps_conversations_inside_window(
        self, test_settings, db_session, create_ride
    ):
        await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=7), conversations=2
        )

        deleted = await RetentionSweeper(test_settings).sweep(db_session, now=T0)

        assert deleted == 0
        assert await _count(db_session, Conversation) == 2

    async def test_elapsed_time_equal_to_window_is_eligible(
        self, test_settings, db_session, create_ride
    ):
        await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=8), conversations=1
        )

        deleted = await RetentionSweeper(test_settings).sweep(db_session, now=T0)

        assert deleted == 1
        assert await _count(db_session, Conversation) == 0

    async def test_one_second_inside_window_is_kept(
        self, test_settings, db_session, create_ride
    ):
        await create_ride(
            status=COMPLETED,
            completed_at=T0 - timedelta(hours=8) + timedelta(seconds=1),
            conversations=1,
        )

        deleted = await RetentionSweeper(test_settings).sweep(db_session, now=T0)

        assert deleted == 0
        assert await _count(db_session, Conversation) == 1

    async def test_ignores_non_terminal_rides(self, test_settings, db_session, create_ride):
        """An active ride keeps its conversations however old they are."""
        for status in (RideStatus.SCHEDULED.value, RideStatus.ACTIVE.value, RideStatus.IN_PROGRESS.value):
            await create_ride(
                status=status, updated_at=T0 - timedelta(days=30), conversations=1
            )

        deleted = await RetentionSweeper(test_settings).sweep(db_session, now=T0)

        assert deleted == 0
        assert await _count(db_session, Conversation) == 3

    async def test_cancelled_ride_falls_back_to_updated_at(
        self, test_settings, db_session, create_ride
    ):
        await create_ride(
            status=CANCELLED, updated_at=T0 - timedelta(hours=10), conversations=1
        )
        await create_ride(
            status=CANCELLED, updated_at=T0 - timedelta(hours=2), conversations=1
        )

        deleted = await RetentionSweeper(test_settings).sweep(db_session, now=T0)

        assert deleted == 1
        assert await _count(db_session, Conversation) == 1

    async def test_messages_are_removed_with_their_conversation(
        self, test_settings, db_session, create_ride
    ):
        await create_ride(
            status=COMPLETED,
            completed_at=T0 - timedelta(hours=9),
            conversations=2,
            messages_per_conversation=3,
        )
        await create_ride(
            status=COMPLETED,
            completed_at=T0 - timedelta(hours=1),
            conversations=1,
            messages_per_conversation=2,
        )

        deleted = await RetentionSweeper(test_settings).sweep(db_session, now=T0)

        assert deleted == 2
        assert await _count(db_session, Conversation) == 1
        assert await _count(db_session, Message) == 2

    async def test_sweep_is_idempotent(self, test_settings, db_session, create_ride):
        await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=9), conversations=1
        )
        sweeper = RetentionSweeper(test_settings)

        assert await sweeper.sweep(db_session, now=T0) == 1
        assert await sweeper.sweep(db_session, now=T0) == 0

    async def test_rides_are_kept(self, test_settings, db_session, create_ride):
        """The sweep removes conversations only; the ride row stays."""
        ride = await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=9), conversations=1
        )

        await RetentionSweeper(test_settings).sweep(db_session, now=T0)
        await db_session.refresh(ride)

        assert ride.status == COMPLETED

    async def test_count_eligible_matches_sweep(self, test_settings, db_session, create_ride):
        await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=9), conversations=3
        )
        await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=1), conversations=1
        )
        sweeper = RetentionSweeper(test_settings)

        eligible = await sweeper.count_eligible(db_session, now=T0)

        assert eligible == 3
        assert await sweeper.sweep(db_session, now=T0) == eligible

    async def test_retention_window_is_configurable(self, db_session, create_ride):
        from rideops.config.settings import Settings

        await create_ride(
            status=COMPLETED, completed_at=T0 - timedelta(hours=3), conversations=1
        )
        sweeper = RetentionSweeper(
            Settings(database_url="sqlite+aiosqlite://", retention_window_hours=2)
        )

        assert sweeper.retention_window == timedelta(hours=2)
        assert await sweeper.sweep(db_session, now=T0) == 1
