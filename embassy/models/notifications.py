"""Notification intents recorded when an appointment changes state."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    MetaData,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

metadata = MetaData()

notifications = Table(
    "notifications",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column("recipient_id", UUID(as_uuid=True), nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("notification_type", String(20), nullable=False, server_default="info"),
    Column("category", String(20), nullable=False),
    Column("priority", String(10), nullable=False, server_default="normal"),
    Column("delivery_method", String(10), nullable=False, server_default="in_app"),
    Column("related_entity_type", String(50), nullable=True),
    Column("related_entity_id", UUID(as_uuid=True), nullable=True),
    Column("is_read", Boolean, nullable=False, server_default=text("false")),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "notification_type IN ('info', 'success', 'warning', 'error', 'urgent')",
        name="notifications_type_check",
    ),
    CheckConstraint(
        "category IN ('visa', 'appointment', 'document', 'system', 'security', 'general')",
        name="notifications_category_check",
    ),
    CheckConstraint(
        "priority IN ('low', 'normal', 'high', 'urgent')",
        name="notifications_priority_check",
    ),
    CheckConstraint(
        "delivery_method IN ('email', 'sms', 'push', 'in_app')",
        name="notifications_delivery_method_check",
    ),
    Index("idx_notifications_recipient", "recipient_id"),
    Index("idx_notifications_related", "related_entity_type", "related_entity_id"),
)
