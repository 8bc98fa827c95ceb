"""Appointment booking and lifecycle orchestration."""

from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Any
from uuid import UUID

import structlog

from embassy.config import Settings, get_settings
from embassy.core.exceptions import (
    NotFoundException,
    PersistenceFailureException,
    SlotUnavailableException,
    ValidationException,
)
from embassy.core.permissions import Action, Actor, authorize
from embassy.repositories.appointments import AppointmentRepository, DuplicateReferenceError
from embassy.schemas.appointments import (
    INACTIVE_STATUSES,
    AppointmentComplete,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    AvailableSlot,
    AvailableSlotsResponse,
)
from embassy.services import lifecycle
from embassy.services.identifiers import IdentifierGenerator, RandomReferenceGenerator
from embassy.services.notification_service import AppointmentEvent, AppointmentNotifier
from embassy.services.scheduling import (
    BookedInterval,
    TimeInterval,
    booked_interval_from_record,
    compute_slots,
    find_conflicts,
    interval_for,
    office_timezone,
    office_window,
)

logger = structlog.get_logger(__name__)

EVENT_FOR_ACTION: dict[Action, AppointmentEvent] = {
    Action.CONFIRM: AppointmentEvent.CONFIRMED,
    Action.COMPLETE: AppointmentEvent.COMPLETED,
    Action.CANCEL: AppointmentEvent.CANCELLED,
    Action.MARK_NO_SHOW: AppointmentEvent.NO_SHOW,
}


def utcnow() -> datetime:
    return datetime.now(UTC)


class AppointmentService:
    """Service for booking appointments and driving their lifecycle.

    The office keeps one shared calendar: an active appointment blocks its
    interval for every other booking regardless of who is assigned to it.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        notifier: AppointmentNotifier,
        *,
        settings: Settings | None = None,
        id_generator: IdentifierGenerator | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize service with its collaborators."""
        self.repository = repository
        self.notifier = notifier
        self.settings = settings or get_settings()
        self.id_generator = id_generator or RandomReferenceGenerator()
        self.clock = clock
        self.tz = office_timezone(self.settings.office_timezone)

    # ------------------------------------------------------------------
    # Helpers

    def _to_utc(self, value: datetime) -> datetime:
        """Interpret naive datetimes as office local time."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=self.tz)
        return value.astimezone(UTC)

    def _local_day(self, value: datetime) -> date:
        return value.astimezone(self.tz).date()

    def _window(self, day: date) -> TimeInterval:
        return office_window(
            day,
            self.settings.office_open_hour,
            self.settings.office_close_hour,
            self.tz,
        )

    def _duration_errors(self, duration: int) -> list[dict[str, Any]]:
        low = self.settings.min_slot_duration_minutes
        high = self.settings.max_slot_duration_minutes
        if low <= duration <= high:
            return []
        return [
            {
                "field": "duration",
                "message": f"Duration must be between {low} and {high} minutes",
            }
        ]

    def _validate_slot(self, start: datetime, duration: int, now: datetime) -> None:
        """
        Check a requested interval against office rules.

        Raises:
            ValidationException: With one entry per violated rule
        """
        errors = self._duration_errors(duration)

        candidate = interval_for(start, duration)
        window = self._window(self._local_day(start))
        if candidate.start < window.start or candidate.end > window.end:
            errors.append(
                {
                    "field": "scheduled_date",
                    "message": (
                        "Appointment must fall within office hours "
                        f"{self.settings.office_open_hour:02d}:00-"
                        f"{self.settings.office_close_hour:02d}:00"
                    ),
                }
            )

        if candidate.start < now:
            errors.append({"field": "scheduled_date", "message": "Appointment cannot be in the past"})

        if errors:
            raise ValidationException("Invalid appointment request", errors=errors)

    async def _blocking_intervals(
        self,
        candidate: TimeInterval,
        exclude_id: UUID | None = None,
    ) -> list[BookedInterval]:
        """Load active appointments that could overlap ``candidate``."""
        lookback = timedelta(minutes=self.settings.max_slot_duration_minutes)
        records = await self.repository.find_by_date_range(
            candidate.start - lookback,
            candidate.end,
            exclude_statuses=INACTIVE_STATUSES,
        )
        return [
            booked_interval_from_record(record)
            for record in records
            if exclude_id is None or record["id"] != exclude_id
        ]

    async def _ensure_available(
        self,
        candidate: TimeInterval,
        exclude_id: UUID | None = None,
    ) -> None:
        await self.repository.lock_calendar_day(self._local_day(candidate.start))
        clashes = find_conflicts(candidate, await self._blocking_intervals(candidate, exclude_id))
        if clashes:
            logger.info(
                "booking_rejected",
                reason="slot_unavailable",
                start=candidate.start.isoformat(),
                end=candidate.end.isoformat(),
                conflicts=len(clashes),
            )
            raise SlotUnavailableException(
                f"Time slot {candidate.start.isoformat()} - {candidate.end.isoformat()} "
                "is not available"
            )

    async def _insert_with_reference(
        self,
        actor: Actor,
        data: AppointmentCreate,
        start: datetime,
        duration: int,
        now: datetime,
    ) -> dict[str, Any]:
        attempts = self.settings.appointment_reference_attempts
        for attempt in range(1, attempts + 1):
            reference = self.id_generator.generate(data.appointment_type, now)
            values = lifecycle.schedule(
                actor,
                data,
                scheduled_date=start,
                duration=duration,
                appointment_number=reference,
                now=now,
            )
            try:
                return await self.repository.insert(values)
            except DuplicateReferenceError:
                logger.warning(
                    "appointment_reference_collision",
                    appointment_number=reference,
                    attempt=attempt,
                )

        raise PersistenceFailureException(
            f"Could not allocate a unique appointment number after {attempts} attempts"
        )

    async def _get_record(self, appointment_id: UUID, for_update: bool = False) -> dict[str, Any]:
        record = await self.repository.find_by_id(appointment_id, for_update=for_update)
        if record is None:
            raise NotFoundException("Appointment not found")
        return record

    # ------------------------------------------------------------------
    # Booking

    async def book(self, actor: Actor, data: AppointmentCreate) -> AppointmentResponse:
        """
        Book a new appointment on the shared office calendar.

        The day is locked, checked and written in one transaction: either the
        appointment and its notification intent are stored, or nothing is.

        Args:
            actor: Requesting party
            data: Booking request

        Returns:
            Created appointment

        Raises:
            ValidationException: If the request breaks office rules
            SlotUnavailableException: If the interval overlaps an active appointment
            PersistenceFailureException: If storage fails
        """
        now = self.clock()
        start = self._to_utc(data.scheduled_date)
        duration = data.duration or self.settings.default_slot_duration_minutes
        self._validate_slot(start, duration, now)

        candidate = interval_for(start, duration)
        try:
            await self._ensure_available(candidate)
            record = await self._insert_with_reference(actor, data, start, duration, now)
            await self.notifier.appointment_event(record, AppointmentEvent.SCHEDULED)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise

        logger.info(
            "appointment_booked",
            appointment_id=str(record["id"]),
            appointment_number=record["appointment_number"],
            requester_id=str(actor.actor_id),
            start=start.isoformat(),
            duration=duration,
        )
        return AppointmentResponse.model_validate(record)

    async def list_available_slots(
        self,
        day: date,
        duration: int | None = None,
    ) -> AvailableSlotsResponse:
        """
        List the free slots of a day.

        Slots that already started are left out. Nothing is cached, so two
        calls with no booking in between return the same slots.

        Raises:
            ValidationException: If ``duration`` is out of range
        """
        duration = duration or self.settings.default_slot_duration_minutes
        errors = self._duration_errors(duration)
        if errors:
            raise ValidationException("Invalid slot duration", errors=errors)

        window = self._window(day)
        lookback = timedelta(minutes=self.settings.max_slot_duration_minutes)
        records = await self.repository.find_by_date_range(
            window.start - lookback,
            window.end,
            exclude_statuses=INACTIVE_STATUSES,
        )
        booked = [
            interval
            for interval in map(booked_interval_from_record, records)
            if interval.is_active
        ]

        now = self.clock()
        slots = [slot for slot in compute_slots(window, duration, booked) if slot.start >= now]

        return AvailableSlotsResponse(
            day=day,
            duration=duration,
            available_slots=[
                AvailableSlot(start_time=slot.start, end_time=slot.end, duration=duration)
                for slot in slots
            ],
        )

    # ------------------------------------------------------------------
    # Reads

    async def get_appointment(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor neither owns it nor works at the office
        """
        record = await self._get_record(appointment_id)
        authorize(actor, Action.VIEW, record["requester_id"])
        return AppointmentResponse.model_validate(record)

    def _resolve_filters(self, filters: AppointmentFilters) -> AppointmentFilters:
        if filters.on_date is None:
            return filters
        start = datetime.combine(filters.on_date, time(), tzinfo=self.tz)
        return filters.model_copy(
            update={
                "on_date": None,
                "from_date": start,
                "to_date": start + timedelta(days=1),
            }
        )

    async def _list(
        self,
        filters: AppointmentFilters,
        requester_id: UUID | None,
    ) -> AppointmentListResponse:
        total, rows = await self.repository.list_appointments(
            self._resolve_filters(filters),
            requester_id=requester_id,
        )
        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(row) for row in rows],
        )

    async def list_my_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """List the actor's own appointments."""
        return await self._list(filters, actor.actor_id)

    async def list_all_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """List every appointment; office staff only."""
        authorize(actor, Action.LIST_ALL)
        return await self._list(filters, None)

    # ------------------------------------------------------------------
    # Changes

    async def update_appointment(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Edit a scheduled appointment.

        Moving it re-runs the office-hours and conflict checks against every
        other active appointment.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor may not edit it
            InvalidTransitionException: If it is no longer scheduled
            ValidationException: If the new time breaks office rules
            SlotUnavailableException: If the new time is taken
        """
        now = self.clock()
        changes = data.model_dump(exclude_unset=True)
        rescheduled = False

        try:
            record = await self._get_record(appointment_id, for_update=True)
            values = lifecycle.plan_update(record, actor, changes, now)

            if "scheduled_date" in values:
                if values["scheduled_date"] is None:
                    raise ValidationException(
                        "Invalid appointment update",
                        errors=[{"field": "scheduled_date", "message": "Cannot be null"}],
                    )
                start = self._to_utc(values["scheduled_date"])
                values["scheduled_date"] = start
                if start != record["scheduled_date"]:
                    self._validate_slot(start, record["duration"], now)
                    await self._ensure_available(
                        interval_for(start, record["duration"]),
                        exclude_id=appointment_id,
                    )
                    rescheduled = True

            if not values:
                await self.repository.rollback()
                return AppointmentResponse.model_validate(record)

            updated = await self.repository.update(appointment_id, values)
            if rescheduled:
                await self.notifier.appointment_event(updated, AppointmentEvent.RESCHEDULED)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment_id),
            fields=sorted(values),
            rescheduled=rescheduled,
        )
        return AppointmentResponse.model_validate(updated)

    async def _transition(
        self,
        actor: Actor,
        appointment_id: UUID,
        action: Action,
        **details: Any,
    ) -> AppointmentResponse:
        now = self.clock()
        try:
            record = await self._get_record(appointment_id, for_update=True)
            values = lifecycle.plan_transition(record, action, actor, now, **details)
            updated = await self.repository.update(appointment_id, values)
            event = EVENT_FOR_ACTION.get(action)
            if event is not None:
                await self.notifier.appointment_event(updated, event)
            await self.repository.commit()
        except Exception:
            await self.repository.rollback()
            raise

        logger.info(
            "appointment_transitioned",
            appointment_id=str(appointment_id),
            action=action.value,
            from_status=record["status"],
            to_status=values["status"],
            actor_id=str(actor.actor_id),
        )
        return AppointmentResponse.model_validate(updated)

    async def confirm(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Confirm a scheduled appointment; office staff only."""
        return await self._transition(actor, appointment_id, Action.CONFIRM)

    async def start(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Mark a confirmed appointment as in progress; office staff only."""
        return await self._transition(actor, appointment_id, Action.START)

    async def complete(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentComplete,
    ) -> AppointmentResponse:
        """Complete a confirmed or in-progress appointment; office staff only."""
        return await self._transition(
            actor,
            appointment_id,
            Action.COMPLETE,
            outcome=data.outcome,
            follow_up_required=data.follow_up_required,
            follow_up_date=self._to_utc(data.follow_up_date) if data.follow_up_date else None,
        )

    async def cancel(
        self,
        actor: Actor,
        appointment_id: UUID,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """Cancel an appointment that has not reached a terminal state."""
        return await self._transition(actor, appointment_id, Action.CANCEL, reason=reason)

    async def mark_no_show(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Record that the requester missed a confirmed appointment; office staff only."""
        return await self._transition(actor, appointment_id, Action.MARK_NO_SHOW)

    async def change_status(
        self,
        actor: Actor,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """
        Move an appointment to ``data.status`` through the matching action.

        Raises:
            InvalidTransitionException: If no action leads to the status or it is
                not legal from the current one
        """
        action = lifecycle.action_for_status(data.status)
        details: dict[str, Any] = {"notes": data.notes}
        if action is Action.CANCEL:
            details["reason"] = data.reason
        return await self._transition(actor, appointment_id, action, **details)
