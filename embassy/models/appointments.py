"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

# Metadata for all tables
metadata = MetaData()

appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column("appointment_number", String(32), nullable=False),
    # Participants
    Column("requester_id", UUID(as_uuid=True), nullable=False),
    Column("assigned_staff_id", UUID(as_uuid=True), nullable=True),
    # Scheduling
    Column("appointment_type", String(32), nullable=False),
    Column("scheduled_date", TIMESTAMP(timezone=True), nullable=False),
    Column("duration", Integer, nullable=False, server_default="30"),
    Column("status", String(20), nullable=False, server_default="scheduled"),
    Column("priority", String(10), nullable=False, server_default="normal"),
    # Details
    Column("notes", Text, nullable=True),
    Column("special_requirements", Text, nullable=True),
    Column("documents_required", Text, nullable=True),
    # Accommodation
    Column("interpreter_required", Boolean, nullable=False, server_default=text("false")),
    Column("interpreter_language", String(64), nullable=True),
    Column("accessibility_needs", Text, nullable=True),
    # Reminders
    Column("reminder_sent", Boolean, nullable=False, server_default=text("false")),
    Column("reminder_date", TIMESTAMP(timezone=True), nullable=True),
    # Lifecycle stamps
    Column("confirmed_by", UUID(as_uuid=True), nullable=True),
    Column("confirmed_at", TIMESTAMP(timezone=True), nullable=True),
    Column("started_at", TIMESTAMP(timezone=True), nullable=True),
    Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
    Column("outcome", Text, nullable=True),
    Column("follow_up_required", Boolean, nullable=False, server_default=text("false")),
    Column("follow_up_date", TIMESTAMP(timezone=True), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    Column("cancelled_by", UUID(as_uuid=True), nullable=True),
    Column("cancelled_at", TIMESTAMP(timezone=True), nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    UniqueConstraint("appointment_number", name="appointments_number_key"),
    CheckConstraint(
        "appointment_type IN ('visa_interview', 'document_submission', 'passport_collection', "
        "'consultation', 'emergency', 'other')",
        name="appointments_type_check",
    ),
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "priority IN ('low', 'normal', 'high', 'urgent')",
        name="appointments_priority_check",
    ),
    CheckConstraint("duration > 0", name="appointments_duration_check"),
    Index("idx_appointments_scheduled_date", "scheduled_date"),
    Index("idx_appointments_requester", "requester_id"),
    Index("idx_appointments_status_date", "status", "scheduled_date"),
)

APPOINTMENT_NUMBER_CONSTRAINT = "appointments_number_key"
