"""
Capture queue service: staging capture tasks and operator actions.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from rideops.config.settings import Settings
from rideops.infra.database import utcnow
from rideops.v1.captures.models import (
    CaptureErrorCode,
    CaptureTask,
    CaptureTaskStatus,
    PaymentIntent,
    PaymentIntentStatus,
)
from rideops.v1.captures.schemas import CaptureQueueStats

logger = logging.getLogger(__name__)

# Error codes that the bounded automatic retry may requeue
RETRYABLE_ERROR_CODES = [CaptureErrorCode.GATEWAY_ERROR.value]


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Capture task upsert is not supported on dialect: {dialect_name}")


class CaptureQueueService:
    """Service for staging capture tasks and managing the capture queue."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def on_parent_completed(
        self, session: AsyncSession, ride_id: UUID, now: datetime | None = None
    ) -> list[CaptureTask]:
        """
        Stage one capture task per authorized, uncaptured intent of a ride.

        Upserts by payment_intent_id: a missing task is inserted as pending, an
        existing completed or failed task is reset to pending. A task that is
        currently processing is left alone so an in-flight capture is never
        submitted twice. Never calls the gateway and never commits; the caller
        owns the transaction.

        Args:
            session: Database session
            ride_id: Ride that just entered the completed status
            now: Timestamp to stamp on staged rows

        Returns:
            The capture tasks for the ride's capturable intents
        """
        now = now or utcnow()

        result = await session.execute(
            select(PaymentIntent).where(
                and_(
                    PaymentIntent.ride_id == ride_id,
                    PaymentIntent.status == PaymentIntentStatus.AUTHORIZED.value,
                    PaymentIntent.captured_at.is_(None),
                )
            )
        )
        intents = result.scalars().all()
        if not intents:
            return []

        insert = _insert_for(session.get_bind().dialect.name)
        for intent in intents:
            stmt = insert(CaptureTask).values(
                id=uuid4(),
                payment_intent_id=intent.id,
                ride_id=intent.ride_id,
                external_reference_id=intent.external_reference_id,
                amount=intent.amount,
                status=CaptureTaskStatus.PENDING.value,
                attempts=0,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[CaptureTask.payment_intent_id],
                set_={
                    "status": CaptureTaskStatus.PENDING.value,
                    "external_reference_id": stmt.excluded.external_reference_id,
                    "amount": stmt.excluded.amount,
                    "error_code": None,
                    "error_message": None,
                    "updated_at": now,
                },
                where=CaptureTask.status != CaptureTaskStatus.PROCESSING.value,
            )
            await session.execute(stmt)

        tasks_result = await session.execute(
            select(CaptureTask)
            .where(CaptureTask.payment_intent_id.in_([intent.id for intent in intents]))
            .order_by(CaptureTask.created_at, CaptureTask.id)
            .execution_options(populate_existing=True)
        )
        tasks = list(tasks_result.scalars().all())

        logger.info(
            "Capture tasks staged",
            extra={"ride_id": str(ride_id), "task_count": len(tasks)},
        )
        return tasks

    async def get_task(self, session: AsyncSession, task_id: UUID) -> CaptureTask | None:
        """Get capture task by ID."""
        result = await session.execute(
            select(CaptureTask)
            .where(CaptureTask.id == task_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_tasks(
        self,
        session: AsyncSession,
        statuses: list[str] | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[CaptureTask], int]:
        """List capture tasks, oldest first, with the total matching count."""
        base_query = select(CaptureTask)
        if statuses:
            base_query = base_query.where(CaptureTask.status.in_(statuses))

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await session.execute(count_query)).scalar() or 0

        tasks_result = await session.execute(
            base_query.order_by(CaptureTask.created_at, CaptureTask.id)
            .offset(offset)
            .limit(limit)
        )
        return list(tasks_result.scalars().all()), total

    async def requeue_task(self, session: AsyncSession, task_id: UUID) -> bool:
        """Move a failed capture task back to pending."""
        result = await session.execute(
            update(CaptureTask)
            .where(
                and_(
                    CaptureTask.id == task_id,
                    CaptureTask.status == CaptureTaskStatus.FAILED.value,
                )
            )
            .values(status=CaptureTaskStatus.PENDING.value, updated_at=utcnow())
        )
        await session.commit()

        success = result.rowcount > 0
        if success:
            logger.info("Capture task requeued", extra={"task_id": str(task_id)})

        return success

    async def requeue_failed(
        self,
        session: AsyncSession,
        max_attempts: int | None = None,
        error_codes: list[str] | None = None,
        now: datetime | None = None,
    ) -> int:
        """
        Requeue failed tasks that are still under the attempt limit.

        A task only becomes eligible once its backoff has elapsed:
        ``capture_retry_backoff_s * 2 ** (attempts - 1)``, capped at
        ``capture_max_backoff_s``.
        """
        now = now or utcnow()
        max_attempts = max_attempts or self.settings.capture_max_attempts

        query = select(CaptureTask).where(
            and_(
                CaptureTask.status == CaptureTaskStatus.FAILED.value,
                CaptureTask.attempts < max_attempts,
            )
        )
        if error_codes:
            query = query.where(CaptureTask.error_code.in_(error_codes))

        candidates = (await session.execute(query)).scalars().all()
        due_ids = [
            task.id
            for task in candidates
            if task.last_attempt_at is None
            or task.last_attempt_at <= now - self.backoff_for(task.attempts)
        ]
        if not due_ids:
            return 0

        result = await session.execute(
            update(CaptureTask)
            .where(
                and_(
                    CaptureTask.id.in_(due_ids),
                    CaptureTask.status == CaptureTaskStatus.FAILED.value,
                )
            )
            .values(status=CaptureTaskStatus.PENDING.value, updated_at=now)
        )
        await session.commit()

        requeued = result.rowcount
        logger.info(
            "Failed capture tasks requeued",
            extra={"requeued_count": requeued, "max_attempts": max_attempts},
        )
        return requeued

    def backoff_for(self, attempts: int) -> timedelta:
        """Minimum age of a failed attempt before it may be requeued."""
        delay = self.settings.capture_retry_backoff_s * (2 ** max(0, attempts - 1))
        return timedelta(seconds=min(delay, self.settings.capture_max_backoff_s))

    async def release_stuck(
        self, session: AsyncSession, older_than: timedelta, now: datetime | None = None
    ) -> int:
        """
        Operator action: return processing tasks whose last attempt is older
        than ``older_than`` to pending.

        The gateway may still land the original request; the stable
        idempotency key of the task is what makes the re-submission safe.
        """
        now = now or utcnow()
        cutoff = now - older_than

        result = await session.execute(
            update(CaptureTask)
            .where(
                and_(
                    CaptureTask.status == CaptureTaskStatus.PROCESSING.value,
                    or_(
                        CaptureTask.last_attempt_at < cutoff,
                        and_(
                            CaptureTask.last_attempt_at.is_(None),
                            CaptureTask.updated_at < cutoff,
                        ),
                    ),
                )
            )
            .values(status=CaptureTaskStatus.PENDING.value, updated_at=now)
        )
        await session.commit()

        released = result.rowcount
        if released > 0:
            logger.warning(
                "Released stuck capture tasks",
                extra={
                    "released_count": released,
                    "older_than_s": int(older_than.total_seconds()),
                },
            )
        return released

    async def get_stats(
        self, session: AsyncSession, now: datetime | None = None
    ) -> CaptureQueueStats:
        """Get capture queue statistics."""
        now = now or utcnow()

        total_tasks = (
            await session.execute(select(func.count(CaptureTask.id)))
        ).scalar() or 0

        status_result = await session.execute(
            select(CaptureTask.status, func.count(CaptureTask.id)).group_by(
                CaptureTask.status
            )
        )
        by_status = dict(status_result.all())

        pending_amount = (
            await session.execute(
                select(func.coalesce(func.sum(CaptureTask.amount), 0)).where(
                    CaptureTask.status == CaptureTaskStatus.PENDING.value
                )
            )
        ).scalar() or 0

        stuck_cutoff = now - timedelta(seconds=self.settings.capture_stuck_after_s)
        stuck_count = (
            await session.execute(
                select(func.count(CaptureTask.id)).where(
                    and_(
                        CaptureTask.status == CaptureTaskStatus.PROCESSING.value,
                        CaptureTask.last_attempt_at < stuck_cutoff,
                    )
                )
            )
        ).scalar() or 0

        error_result = await session.execute(
            select(CaptureTask.error_code, func.count(CaptureTask.id))
            .where(
                and_(
                    CaptureTask.status == CaptureTaskStatus.FAILED.value,
                    CaptureTask.error_code.is_not(None),
                )
            )
            .group_by(CaptureTask.error_code)
        )

        queue_depth = by_status.get(CaptureTaskStatus.PENDING.value, 0) + by_status.get(
            CaptureTaskStatus.PROCESSING.value, 0
        )

        return CaptureQueueStats(
            total_tasks=total_tasks,
            by_status=by_status,
            pending_amount=int(pending_amount),
            queue_depth=queue_depth,
            stuck_count=stuck_count,
            failed_by_error_code=dict(error_result.all()),
        )
