"""
Capture queue worker: drains pending capture tasks against the gateway.
"""

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rideops.config.settings import Settings
from rideops.infra.database import utcnow
from rideops.v1.captures.gateway import (
    CaptureResult,
    GatewayTimeoutError,
    PaymentGateway,
)
from rideops.v1.captures.models import (
    CaptureErrorCode,
    CaptureLog,
    CaptureTask,
    CaptureTaskStatus,
    PaymentIntent,
    PaymentIntentStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class TaskOutcome:
    """Result of one capture attempt within a drain pass."""

    task_id: UUID
    payment_intent_id: UUID
    status: str
    error_code: str | None = None
    error_message: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["task_id"] = str(self.task_id)
        data["payment_intent_id"] = str(self.payment_intent_id)
        return data


@dataclass
class DrainResult:
    """Counts and per-task outcomes of one drain pass."""

    completed: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0
    outcomes: list[TaskOutcome] = field(default_factory=list)

    def record(self, outcome: TaskOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status == CaptureTaskStatus.COMPLETED.value:
            self.completed += 1
        elif outcome.status == CaptureTaskStatus.FAILED.value:
            self.failed += 1
        else:
            self.timed_out += 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "skipped": self.skipped,
            "outcomes": [outcome.as_dict() for outcome in self.outcomes],
        }


class CaptureWorker:
    """
    Drains the capture queue in FIFO order.

    Each task is claimed with a single conditional update
    (pending -> processing) committed before the gateway is called, so
    overlapping drain passes never submit the same task twice. A timed out
    call leaves the task in processing; it is not picked up again until an
    operator releases it.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: PaymentGateway,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.gateway = gateway
        self.clock = clock

    async def process_pending(self, batch_size: int | None = None) -> DrainResult:
        """
        Process up to ``batch_size`` pending capture tasks, oldest first.

        Raises:
            ValueError: batch_size is below 1
        """
        if batch_size is None:
            batch_size = self.settings.capture_batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got: {batch_size}")
        result = DrainResult()

        candidate_ids = await self._select_candidates(batch_size)
        for task_id in candidate_ids:
            task = await self._claim(task_id)
            if task is None:
                # Claimed by an overlapping pass
                result.skipped += 1
                continue
            outcome = await self._process(task)
            if outcome is None:
                # Finished by another pass or released while in flight
                result.skipped += 1
                continue
            result.record(outcome)

        logger.info(
            "Capture drain finished",
            extra={
                "completed": result.completed,
                "failed": result.failed,
                "timed_out": result.timed_out,
                "skipped": result.skipped,
            },
        )
        return result

    async def _select_candidates(self, batch_size: int) -> list[UUID]:
        async with self.session_factory() as session:
            query = (
                select(CaptureTask.id)
                .where(CaptureTask.status == CaptureTaskStatus.PENDING.value)
                .order_by(CaptureTask.created_at, CaptureTask.id)
                .limit(batch_size)
            )
            if session.get_bind().dialect.name == "postgresql":
                query = query.with_for_update(skip_locked=True)
            rows = await session.execute(query)
            return list(rows.scalars().all())

    async def _claim(self, task_id: UUID) -> CaptureTask | None:
        """Reserve a task: pending -> processing, or None if already taken."""
        now = self.clock()
        async with self.session_factory() as session:
            claimed = await session.execute(
                update(CaptureTask)
                .where(
                    and_(
                        CaptureTask.id == task_id,
                        CaptureTask.status == CaptureTaskStatus.PENDING.value,
                    )
                )
                .values(
                    status=CaptureTaskStatus.PROCESSING.value,
                    attempts=CaptureTask.attempts + 1,
                    last_attempt_at=now,
                    error_code=None,
                    error_message=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                await session.rollback()
                return None
            await session.commit()

            task = await session.get(CaptureTask, task_id, populate_existing=True)
            session.expunge(task)
            return task

    async def _process(self, task: CaptureTask) -> TaskOutcome | None:
        async with self.session_factory() as session:
            intent = await session.get(PaymentIntent, task.payment_intent_id)

        if intent is None or not intent.is_capturable():
            status = intent.status if intent else "missing"
            return await self._fail(
                task,
                CaptureErrorCode.INVALID_INTENT_STATE,
                f"Invalid payment status: {status}",
            )

        try:
            capture = await self.gateway.capture(
                task.external_reference_id, task.amount, task.idempotency_key
            )
        except GatewayTimeoutError as e:
            return await self._mark_timed_out(task, str(e))
        except Exception as e:
            logger.exception(
                "Capture call failed",
                extra={"task_id": str(task.id), "error": str(e)},
            )
            return await self._fail(task, CaptureErrorCode.GATEWAY_ERROR, str(e))

        if not capture.succeeded:
            return await self._fail(
                task,
                CaptureErrorCode.GATEWAY_DECLINED,
                capture.reason or "Capture declined",
            )

        return await self._complete(task, capture)

    async def _complete(
        self, task: CaptureTask, capture: CaptureResult
    ) -> TaskOutcome | None:
        """
        Mark task and intent captured together in one transaction.

        The gateway accepted the capture, so the task is completed from any
        state but completed; an operator may have released it to pending, or
        an overlapping pass may have failed it, while this call was in
        flight. Returns None when another pass already completed the task.
        """
        now = self.clock()
        async with self.session_factory() as session:
            finished = await session.execute(
                update(CaptureTask)
                .where(
                    and_(
                        CaptureTask.id == task.id,
                        CaptureTask.status != CaptureTaskStatus.COMPLETED.value,
                    )
                )
                .values(
                    status=CaptureTaskStatus.COMPLETED.value,
                    error_code=None,
                    error_message=None,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if finished.rowcount != 1:
                await session.rollback()
                logger.info(
                    "Capture task already completed by another pass",
                    extra={"task_id": str(task.id)},
                )
                return None

            await session.execute(
                update(PaymentIntent)
                .where(PaymentIntent.id == task.payment_intent_id)
                .values(
                    status=PaymentIntentStatus.SUCCEEDED.value,
                    captured_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            session.add(
                CaptureLog(
                    capture_task_id=task.id,
                    payment_intent_id=task.payment_intent_id,
                    external_reference_id=task.external_reference_id,
                    gateway_reference_id=capture.gateway_reference_id,
                    amount_captured=task.amount,
                    captured_at=now,
                )
            )
            await session.commit()

        logger.info(
            "Payment captured",
            extra={
                "task_id": str(task.id),
                "payment_intent_id": str(task.payment_intent_id),
                "amount": task.amount,
                "gateway_reference_id": capture.gateway_reference_id,
            },
        )
        return TaskOutcome(
            task_id=task.id,
            payment_intent_id=task.payment_intent_id,
            status=CaptureTaskStatus.COMPLETED.value,
        )

    async def _fail(
        self, task: CaptureTask, error_code: CaptureErrorCode, message: str
    ) -> TaskOutcome | None:
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                failed = await session.execute(
                    update(CaptureTask)
                    .where(
                        and_(
                            CaptureTask.id == task.id,
                            CaptureTask.status == CaptureTaskStatus.PROCESSING.value,
                        )
                    )
                    .values(
                        status=CaptureTaskStatus.FAILED.value,
                        error_code=error_code.value,
                        error_message=message,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )

        if failed.rowcount != 1:
            # Released or completed elsewhere while this attempt was in flight
            logger.info(
                "Capture task no longer processing, failure not recorded",
                extra={"task_id": str(task.id), "error_code": error_code.value},
            )
            return None

        logger.warning(
            "Payment capture failed",
            extra={
                "task_id": str(task.id),
                "payment_intent_id": str(task.payment_intent_id),
                "error_code": error_code.value,
                "error": message,
            },
        )
        return TaskOutcome(
            task_id=task.id,
            payment_intent_id=task.payment_intent_id,
            status=CaptureTaskStatus.FAILED.value,
            error_code=error_code.value,
            error_message=message,
        )

    async def _mark_timed_out(self, task: CaptureTask, message: str) -> TaskOutcome:
        """Record the timeout but keep the reservation; no reversion to pending."""
        now = self.clock()
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(CaptureTask)
                    .where(CaptureTask.id == task.id)
                    .values(
                        error_code=CaptureErrorCode.GATEWAY_TIMEOUT.value,
                        error_message=message,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )

        logger.warning(
            "Payment capture timed out, task left in processing",
            extra={"task_id": str(task.id), "error": message},
        )
        return TaskOutcome(
            task_id=task.id,
            payment_intent_id=task.payment_intent_id,
            status=CaptureTaskStatus.PROCESSING.value,
            error_code=CaptureErrorCode.GATEWAY_TIMEOUT.value,
            error_message=message,
        )
