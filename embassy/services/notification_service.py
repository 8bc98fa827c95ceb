"""Notification intents for appointment lifecycle events.

Nothing here delivers messages. Each event becomes a row in
``notifications`` written in the same transaction as the appointment change,
for a delivery worker to pick up.
"""

from collections.abc import Mapping
from datetime import UTC, datetime, tzinfo
from enum import Enum
from typing import Any, Protocol

import structlog
from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from embassy.core.exceptions import PersistenceFailureException
from embassy.models.notifications import notifications

logger = structlog.get_logger(__name__)


class AppointmentEvent(str, Enum):
    """Lifecycle events that produce a notification intent."""

    SCHEDULED = "scheduled"
    RESCHEDULED = "rescheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# event -> (title, message template, notification type)
EVENT_MESSAGES: dict[AppointmentEvent, tuple[str, str, str]] = {
    AppointmentEvent.SCHEDULED: (
        "Appointment scheduled",
        "Your appointment {number} is scheduled for {when}.",
        "success",
    ),
    AppointmentEvent.RESCHEDULED: (
        "Appointment rescheduled",
        "Your appointment {number} has moved to {when}.",
        "info",
    ),
    AppointmentEvent.CONFIRMED: (
        "Appointment confirmed",
        "Your appointment {number} on {when} has been confirmed.",
        "success",
    ),
    AppointmentEvent.COMPLETED: (
        "Appointment completed",
        "Your appointment {number} has been completed.",
        "info",
    ),
    AppointmentEvent.CANCELLED: (
        "Appointment cancelled",
        "Your appointment {number} on {when} has been cancelled.",
        "warning",
    ),
    AppointmentEvent.NO_SHOW: (
        "Missed appointment",
        "You did not attend appointment {number} on {when}. Please book a new one.",
        "warning",
    ),
}


def build_notification(
    record: Mapping[str, Any], event: AppointmentEvent, tz: tzinfo = UTC
) -> dict[str, Any]:
    """Render the notification row for an appointment event.

    The appointment time is shown in ``tz``, the office timezone.
    """
    title, template, notification_type = EVENT_MESSAGES[event]
    when: datetime = record["scheduled_date"].astimezone(tz)
    return {
        "recipient_id": record["requester_id"],
        "title": title,
        "message": template.format(
            number=record["appointment_number"],
            when=when.strftime("%Y-%m-%d %H:%M %Z").strip(),
        ),
        "notification_type": notification_type,
        "category": "appointment",
        "priority": record.get("priority", "normal"),
        "delivery_method": "in_app",
        "related_entity_type": "appointment",
        "related_entity_id": record["id"],
    }


class AppointmentNotifier(Protocol):
    """Receives appointment lifecycle events."""

    async def appointment_event(
        self, record: Mapping[str, Any], event: AppointmentEvent
    ) -> None: ...


class NotificationService:
    """Records notification intents in the caller's transaction."""

    def __init__(self, db: AsyncSession, tz: tzinfo = UTC):
        """Initialize service with database session and display timezone."""
        self.db = db
        self.tz = tz

    async def appointment_event(
        self,
        record: Mapping[str, Any],
        event: AppointmentEvent,
    ) -> None:
        """
        Queue a notification for the appointment's requester.

        Args:
            record: Appointment row after the change
            event: What happened to it

        Raises:
            PersistenceFailureException: If the intent cannot be stored
        """
        values = build_notification(record, event, self.tz)
        try:
            await self.db.execute(insert(notifications).values(**values))
        except SQLAlchemyError as e:
            logger.error(
                "notification_intent_failed",
                appointment_id=str(record["id"]),
                appointment_event=event.value,
                error=str(e),
            )
            raise PersistenceFailureException("Failed to record notification") from e

        logger.info(
            "notification_intent_recorded",
            appointment_id=str(record["id"]),
            appointment_event=event.value,
        )
