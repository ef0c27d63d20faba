"""
Retention sweeper for ride conversations.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import Select, and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rideops.config.settings import Settings
from rideops.infra.database import utcnow
from rideops.v1.rides.models import TERMINAL_RIDE_STATUSES, Conversation, Ride

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """
    Deletes conversations of rides that have been terminal for longer than
    the retention window.

    A ride counts as terminal since ``completed_at``, or ``updated_at`` when
    the ride was cancelled without a completion timestamp. Messages are
    removed by the ON DELETE CASCADE foreign key, never by this class.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def retention_window(self) -> timedelta:
        return timedelta(hours=self.settings.retention_window_hours)

    def _eligible_ride_ids(self, cutoff: datetime) -> Select:
        terminal_since = func.coalesce(Ride.completed_at, Ride.updated_at)
        return select(Ride.id).where(
            and_(
                Ride.status.in_(sorted(TERMINAL_RIDE_STATUSES)),
                terminal_since <= cutoff,
            )
        )

    async def sweep(self, session: AsyncSession, now: datetime | None = None) -> int:
        """
        Delete every eligible conversation in one transaction.

        Returns:
            Number of conversations deleted
        """
        cutoff = (now or utcnow()) - self.retention_window

        result = await session.execute(
            delete(Conversation)
            .where(Conversation.ride_id.in_(self._eligible_ride_ids(cutoff)))
            .execution_options(synchronize_session=False)
        )
        deleted_count = result.rowcount
        await session.commit()

        logger.info("Retention sweep finished", extra={"deleted_count": deleted_count})
        return deleted_count

    async def count_eligible(
        self, session: AsyncSession, now: datetime | None = None
    ) -> int:
        """Count conversations the next sweep would delete."""
        cutoff = (now or utcnow()) - self.retention_window
        result = await session.execute(
            select(func.count(Conversation.id)).where(
                Conversation.ride_id.in_(self._eligible_ride_ids(cutoff))
            )
        )
        return result.scalar() or 0
