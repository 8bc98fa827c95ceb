"""Appointment state machine.

The functions here never touch storage. They validate a requested change
against the transition table and the authorization policy and return the
column values the caller should write. A rejected change raises before any
values are produced, so the stored record stays as it was.

    scheduled -> confirmed -> in_progress -> completed
    scheduled | confirmed | in_progress -> cancelled
    confirmed -> no_show
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from embassy.core.exceptions import InvalidTransitionException
from embassy.core.permissions import Action, Actor, authorize
from embassy.schemas.appointments import (
    TERMINAL_STATUSES,
    AppointmentCreate,
    AppointmentStatus,
)

S = AppointmentStatus

# action -> (allowed source states, target state)
TRANSITIONS: dict[Action, tuple[frozenset[AppointmentStatus], AppointmentStatus]] = {
    Action.CONFIRM: (frozenset({S.SCHEDULED}), S.CONFIRMED),
    Action.START: (frozenset({S.CONFIRMED}), S.IN_PROGRESS),
    Action.COMPLETE: (frozenset({S.CONFIRMED, S.IN_PROGRESS}), S.COMPLETED),
    Action.CANCEL: (frozenset({S.SCHEDULED, S.CONFIRMED, S.IN_PROGRESS}), S.CANCELLED),
    Action.MARK_NO_SHOW: (frozenset({S.CONFIRMED}), S.NO_SHOW),
}

# Fields a requester may change while the appointment is still scheduled
UPDATABLE_FIELDS = ("scheduled_date", "notes", "special_requirements")

DEFAULT_CANCELLATION_REASON = "Cancelled by user"


def action_for_status(status: AppointmentStatus) -> Action:
    """Map a target status to the action that reaches it."""
    for action, (_, target) in TRANSITIONS.items():
        if target == status:
            return action
    raise InvalidTransitionException(f"No transition leads to status '{status.value}'")


def _check_source(current: AppointmentStatus, action: Action) -> AppointmentStatus:
    sources, target = TRANSITIONS[action]
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionException(
            f"Appointment is {current.value}; no further changes are allowed"
        )
    if current not in sources:
        raise InvalidTransitionException(
            f"Cannot {action.value.replace('_', ' ')} an appointment that is {current.value}"
        )
    return target


def schedule(
    actor: Actor,
    data: AppointmentCreate,
    *,
    scheduled_date: datetime,
    duration: int,
    appointment_number: str,
    now: datetime,
) -> dict[str, Any]:
    """
    Build the initial record for a new booking.

    Args:
        actor: Requesting party, who becomes the owner
        data: Validated booking request
        scheduled_date: Normalized (UTC) start instant
        duration: Resolved duration in minutes
        appointment_number: Human-readable reference
        now: Current instant

    Returns:
        Column values for the new appointment in state ``scheduled``
    """
    authorize(actor, Action.BOOK, actor.actor_id)
    return {
        "id": uuid4(),
        "appointment_number": appointment_number,
        "requester_id": actor.actor_id,
        "assigned_staff_id": None,
        "appointment_type": data.appointment_type.value,
        "scheduled_date": scheduled_date,
        "duration": duration,
        "status": S.SCHEDULED.value,
        "priority": data.priority.value,
        "notes": data.notes,
        "special_requirements": data.special_requirements,
        "documents_required": data.documents_required,
        "interpreter_required": data.interpreter_required,
        "interpreter_language": data.interpreter_language,
        "accessibility_needs": data.accessibility_needs,
        "reminder_sent": False,
        "reminder_date": None,
        "confirmed_by": None,
        "confirmed_at": None,
        "started_at": None,
        "completed_at": None,
        "outcome": None,
        "follow_up_required": False,
        "follow_up_date": None,
        "cancellation_reason": None,
        "cancelled_by": None,
        "cancelled_at": None,
        "created_at": now,
        "updated_at": now,
    }


def plan_transition(
    record: Mapping[str, Any],
    action: Action,
    actor: Actor,
    now: datetime,
    *,
    reason: str | None = None,
    outcome: str | None = None,
    follow_up_required: bool = False,
    follow_up_date: datetime | None = None,
    notes: str | None = None,
) -> dict[str, Any]:
    """
    Validate a status change and return the fields it stamps.

    Raises:
        ForbiddenException: If the actor may not perform ``action``
        InvalidTransitionException: If ``action`` is not legal from the current status
    """
    if action not in TRANSITIONS:
        raise InvalidTransitionException(f"'{action.value}' is not a status transition")

    owner_id: UUID = record["requester_id"]
    authorize(actor, action, owner_id)
    target = _check_source(AppointmentStatus(record["status"]), action)

    values: dict[str, Any] = {"status": target.value, "updated_at": now}

    if action is Action.CONFIRM:
        values["confirmed_by"] = actor.actor_id
        values["confirmed_at"] = now
    elif action is Action.START:
        values["started_at"] = now
    elif action is Action.COMPLETE:
        values["completed_at"] = now
        values["outcome"] = outcome
        values["follow_up_required"] = follow_up_required
        values["follow_up_date"] = follow_up_date if follow_up_required else None
    elif action is Action.CANCEL:
        values["cancellation_reason"] = reason or DEFAULT_CANCELLATION_REASON
        values["cancelled_by"] = actor.actor_id
        values["cancelled_at"] = now

    if notes is not None:
        values["notes"] = notes

    return values


def plan_update(
    record: Mapping[str, Any],
    actor: Actor,
    changes: Mapping[str, Any],
    now: datetime,
) -> dict[str, Any]:
    """
    Validate an edit of a scheduled appointment.

    Only ``UPDATABLE_FIELDS`` are kept; anything else in ``changes`` is ignored.

    Raises:
        ForbiddenException: If the actor may not edit the appointment
        InvalidTransitionException: If the appointment is no longer scheduled
    """
    authorize(actor, Action.UPDATE, record["requester_id"])

    current = AppointmentStatus(record["status"])
    if current is not S.SCHEDULED:
        raise InvalidTransitionException(
            f"Cannot update an appointment that is {current.value}"
        )

    values = {field: changes[field] for field in UPDATABLE_FIELDS if field in changes}
    if values:
        values["updated_at"] = now
    return values
