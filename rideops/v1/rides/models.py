"""
Ride, conversation and message models.

Rides are owned by the surrounding application; this service only reads
them and reacts to their status transitions. Conversations hang off a ride
and own their messages through an ON DELETE CASCADE foreign key.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from rideops.infra.database import Base, UTCDateTime, utcnow


class RideStatus(str, Enum):
    """Ride status enumeration."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_RIDE_STATUSES = frozenset({RideStatus.COMPLETED.value, RideStatus.CANCELLED.value})


class Ride(Base):
    """Ride entity - the parent whose terminal transitions drive the jobs."""

    __tablename__ = "rides"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RideStatus.SCHEDULED.value
    )
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )

    # Relationships
    conversations: Mapped[list["Conversation"]] = relationship(
        back_populates="ride", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'active', 'in_progress', 'completed', 'cancelled')",
            name="rides_status_check",
        ),
        Index("ix_rides_status_completed_at", "status", "completed_at"),
    )

    def is_terminal(self) -> bool:
        """Check if the ride reached a status it never leaves."""
        return self.status in TERMINAL_RIDE_STATUSES

    def terminal_since(self) -> datetime | None:
        """When the ride entered its terminal status, falling back to updated_at."""
        if not self.is_terminal():
            return None
        return self.completed_at or self.updated_at


class Conversation(Base):
    """Conversation between rider and driver about a ride."""

    __tablename__ = "conversations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ride_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("rides.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )

    # Relationships
    ride: Mapped["Ride"] = relationship(back_populates="conversations")
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation", passive_deletes=True
    )


class Message(Base):
    """Chat message, owned exclusively by its conversation."""

    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    conversation_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, server_default=func.now(), default=utcnow
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(back_populates="messages")
