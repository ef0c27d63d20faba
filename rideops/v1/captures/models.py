"""
Payment intent and capture queue models.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from rideops.infra.database import Base, UTCDateTime, utcnow


class PaymentIntentStatus(str, Enum):
    """Payment intent status enumeration."""

    AUTHORIZED = "authorized"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CaptureTaskStatus(str, Enum):
    """Capture task status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class CaptureErrorCode(str, Enum):
    """Structured reasons recorded on a capture task."""

    GATEWAY_DECLINED = "GATEWAY_DECLINED"
    GATEWAY_ERROR = "GATEWAY_ERROR"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"
    INVALID_INTENT_STATE = "INVALID_INTENT_STATE"


CAPTURABLE_INTENT_STATUSES = frozenset(
    {PaymentIntentStatus.AUTHORIZED.value, PaymentIntentStatus.PROCESSING.value}
)


class PaymentIntent(Base):
    """Authorized financial hold on a rider's payment method for a ride."""

    __tablename__ = "payment_intents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ride_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("rides.id"), nullable=False, index=True
    )
    external_reference_id: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Gateway-assigned payment intent id"
    )
    amount: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Amount in minor currency units"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="cad")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentIntentStatus.AUTHORIZED.value
    )
    captured_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('authorized', 'processing', 'succeeded', 'failed')",
            name="payment_intents_status_check",
        ),
    )

    def is_capturable(self) -> bool:
        """Check if the hold can still be captured."""
        return self.status in CAPTURABLE_INTENT_STATUSES and self.captured_at is None


class CaptureTask(Base):
    """
    Queued capture of one payment intent.

    One row per payment intent (unique), kept forever as an audit trail:
    pending -> processing -> completed | failed, and failed -> pending only
    through an explicit requeue.
    """

    __tablename__ = "capture_tasks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    payment_intent_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("payment_intents.id"), nullable=False
    )
    ride_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("rides.id"), nullable=False)
    external_reference_id: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CaptureTaskStatus.PENDING.value
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    error_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )

    payment_intent: Mapped["PaymentIntent"] = relationship()

    __table_args__ = (
        UniqueConstraint("payment_intent_id", name="uq_capture_tasks_payment_intent"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="capture_tasks_status_check",
        ),
        Index("ix_capture_tasks_status_created_at", "status", "created_at"),
    )

    @property
    def idempotency_key(self) -> str:
        """Stable key so a re-submitted capture is deduplicated by the gateway."""
        return f"capture-{self.id}"


class CaptureLog(Base):
    """Record of a successful capture as reported by the gateway."""

    __tablename__ = "capture_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    capture_task_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("capture_tasks.id"), nullable=False, index=True
    )
    payment_intent_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("payment_intents.id"), nullable=False
    )
    external_reference_id: Mapped[str] = mapped_column(Text, nullable=False)
    gateway_reference_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount_captured: Mapped[int] = mapped_column(Integer, nullable=False)
    captured_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
