"""Create appointments and notifications tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = True, now_default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()") if now_default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "appointments",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("appointment_number", sa.String(length=32), nullable=False),
        sa.Column("requester_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("assigned_staff_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("appointment_type", sa.String(length=32), nullable=False),
        _timestamp("scheduled_date", nullable=False),
        sa.Column("duration", sa.Integer(), server_default="30", nullable=False),
        sa.Column("status", sa.String(length=20), server_default="scheduled", nullable=False),
        sa.Column("priority", sa.String(length=10), server_default="normal", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("special_requirements", sa.Text(), nullable=True),
        sa.Column("documents_required", sa.Text(), nullable=True),
        sa.Column(
            "interpreter_required", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("interpreter_language", sa.String(length=64), nullable=True),
        sa.Column("accessibility_needs", sa.Text(), nullable=True),
        sa.Column("reminder_sent", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("reminder_date"),
        sa.Column("confirmed_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("confirmed_at"),
        _timestamp("started_at"),
        _timestamp("completed_at"),
        sa.Column("outcome", sa.Text(), nullable=True),
        sa.Column(
            "follow_up_required", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        _timestamp("follow_up_date"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("cancelled_at"),
        _timestamp("created_at", nullable=False, now_default=True),
        _timestamp("updated_at", nullable=False, now_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("appointment_number", name="appointments_number_key"),
        sa.CheckConstraint(
            "appointment_type IN ('visa_interview', 'document_submission', "
            "'passport_collection', 'consultation', 'emergency', 'other')",
            name="appointments_type_check",
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', "
            "'cancelled', 'no_show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "priority IN ('low', 'normal', 'high', 'urgent')",
            name="appointments_priority_check",
        ),
        sa.CheckConstraint("duration > 0", name="appointments_duration_check"),
    )
    op.create_index("idx_appointments_scheduled_date", "appointments", ["scheduled_date"])
    op.create_index("idx_appointments_requester", "appointments", ["requester_id"])
    op.create_index("idx_appointments_status_date", "appointments", ["status", "scheduled_date"])

    op.create_table(
        "notifications",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("recipient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "notification_type", sa.String(length=20), server_default="info", nullable=False
        ),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("priority", sa.String(length=10), server_default="normal", nullable=False),
        sa.Column(
            "delivery_method", sa.String(length=10), server_default="in_app", nullable=False
        ),
        sa.Column("related_entity_type", sa.String(length=50), nullable=True),
        sa.Column("related_entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at", nullable=False, now_default=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "notification_type IN ('info', 'success', 'warning', 'error', 'urgent')",
            name="notifications_type_check",
        ),
        sa.CheckConstraint(
            "category IN ('visa', 'appointment', 'document', 'system', 'security', 'general')",
            name="notifications_category_check",
        ),
        sa.CheckConstraint(
            "priority IN ('low', 'normal', 'high', 'urgent')",
            name="notifications_priority_check",
        ),
        sa.CheckConstraint(
            "delivery_method IN ('email', 'sms', 'push', 'in_app')",
            name="notifications_delivery_method_check",
        ),
    )
    op.create_index("idx_notifications_recipient", "notifications", ["recipient_id"])
    op.create_index(
        "idx_notifications_related",
        "notifications",
        ["related_entity_type", "related_entity_id"],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("idx_notifications_related", table_name="notifications")
    op.drop_index("idx_notifications_recipient", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_appointments_status_date", table_name="appointments")
    op.drop_index("idx_appointments_requester", table_name="appointments")
    op.drop_index("idx_appointments_scheduled_date", table_name="appointments")
    op.drop_table("appointments")
