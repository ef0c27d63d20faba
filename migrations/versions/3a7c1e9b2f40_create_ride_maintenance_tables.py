"""Create rides, conversations, capture queue and job run tables

Revision ID: 3a7c1e9b2f40
Revises:
Create Date: 2026-10-17 09:12:41.508312

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a7c1e9b2f40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "rides",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'active', 'in_progress', 'completed', 'cancelled')",
            name="rides_status_check",
        ),
    )
    op.create_index("ix_rides_status_completed_at", "rides", ["status", "completed_at"])

    # Conversations and messages are removed by the retention sweep through cascades
    op.create_table(
        "conversations",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "ride_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("rides.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_conversations_ride_id", "conversations", ["ride_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "conversation_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sender_id", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_messages_conversation_id", "messages", ["conversation_id"])

    op.create_table(
        "payment_intents",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "ride_id", sa.UUID(as_uuid=True), sa.ForeignKey("rides.id"), nullable=False
        ),
        sa.Column(
            "external_reference_id",
            sa.Text,
            nullable=False,
            comment="Gateway-assigned payment intent id",
        ),
        sa.Column(
            "amount", sa.Integer, nullable=False, comment="Amount in minor currency units"
        ),
        sa.Column("currency", sa.String(3), nullable=False, server_default="cad"),
        sa.Column("status", sa.String(20), nullable=False, server_default="authorized"),
        sa.Column("captured_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('authorized', 'processing', 'succeeded', 'failed')",
            name="payment_intents_status_check",
        ),
    )
    op.create_index("ix_payment_intents_ride_id", "payment_intents", ["ride_id"])

    op.create_table(
        "capture_tasks",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "payment_intent_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("payment_intents.id"),
            nullable=False,
        ),
        sa.Column(
            "ride_id", sa.UUID(as_uuid=True), sa.ForeignKey("rides.id"), nullable=False
        ),
        sa.Column("external_reference_id", sa.Text, nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("error_code", sa.Text, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        # One capture task per payment intent; the enqueue upsert targets it
        sa.UniqueConstraint("payment_intent_id", name="uq_capture_tasks_payment_intent"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="capture_tasks_status_check",
        ),
    )
    op.create_index(
        "ix_capture_tasks_status_created_at", "capture_tasks", ["status", "created_at"]
    )

    op.create_table(
        "capture_logs",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "capture_task_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("capture_tasks.id"),
            nullable=False,
        ),
        sa.Column(
            "payment_intent_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("payment_intents.id"),
            nullable=False,
        ),
        sa.Column("external_reference_id", sa.Text, nullable=False),
        sa.Column("gateway_reference_id", sa.Text, nullable=True),
        sa.Column("amount_captured", sa.Integer, nullable=False),
        sa.Column("captured_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_capture_logs_capture_task_id", "capture_logs", ["capture_task_id"]
    )

    op.create_table(
        "job_runs",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "job_name", sa.String(100), nullable=False, comment="Registered task name"
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default="running",
            comment="Run status: running|succeeded|failed|canceled",
        ),
        sa.Column("trigger", sa.String(20), nullable=False, server_default="schedule"),
        sa.Column("result", sa.JSON, nullable=True, comment="Task result data"),
        sa.Column(
            "error_message", sa.Text, nullable=True, comment="Error of a failed run"
        ),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("finished_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('running', 'succeeded', 'failed', 'canceled')",
            name="job_runs_status_check",
        ),
    )
    op.create_index(
        "ix_job_runs_job_name_started_at", "job_runs", ["job_name", "started_at"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("job_runs")
    op.drop_table("capture_logs")
    op.drop_table("capture_tasks")
    op.drop_table("payment_intents")
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("rides")
