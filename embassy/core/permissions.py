"""Authorization policy for appointment actions.

Every role check in the service goes through :func:`is_allowed` so the rules
live in one table instead of being repeated at each call site.
"""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from embassy.core.exceptions import ForbiddenException


class Role(str, Enum):
    """Actor role enumeration."""

    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"


class Action(str, Enum):
    """Actions an actor can take on appointments."""

    BOOK = "book"
    VIEW = "view"
    LIST_ALL = "list_all"
    UPDATE = "update"
    CONFIRM = "confirm"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    MARK_NO_SHOW = "mark_no_show"


class Actor(BaseModel):
    """Authenticated identity performing an operation."""

    model_config = ConfigDict(frozen=True)

    actor_id: UUID
    role: Role

    @property
    def is_staff(self) -> bool:
        """Staff and admins share the office-side permissions."""
        return self.role in (Role.STAFF, Role.ADMIN)


OFFICE_ROLES = frozenset({Role.STAFF, Role.ADMIN})
ALL_ROLES = frozenset(Role)

# action -> (roles allowed on any appointment, whether the owner is also allowed)
POLICY: dict[Action, tuple[frozenset[Role], bool]] = {
    Action.BOOK: (ALL_ROLES, True),
    Action.VIEW: (OFFICE_ROLES, True),
    Action.LIST_ALL: (OFFICE_ROLES, False),
    Action.UPDATE: (OFFICE_ROLES, True),
    Action.CONFIRM: (OFFICE_ROLES, False),
    Action.START: (OFFICE_ROLES, False),
    Action.COMPLETE: (OFFICE_ROLES, False),
    Action.CANCEL: (OFFICE_ROLES, True),
    Action.MARK_NO_SHOW: (OFFICE_ROLES, False),
}


def is_allowed(actor: Actor, action: Action, owner_id: UUID | None = None) -> bool:
    """
    Decide whether an actor may perform an action.

    Args:
        actor: Authenticated actor
        action: Requested action
        owner_id: Requester of the target appointment, if there is one

    Returns:
        True if the action is permitted
    """
    roles, owner_allowed = POLICY[action]
    if actor.role in roles:
        return True
    return owner_allowed and owner_id is not None and owner_id == actor.actor_id


def authorize(actor: Actor, action: Action, owner_id: UUID | None = None) -> None:
    """Raise ForbiddenException unless ``is_allowed`` grants the action."""
    if not is_allowed(actor, action, owner_id):
        raise ForbiddenException(f"Role '{actor.role.value}' may not {action.value} this appointment")
