"""Tests for the authorization policy."""

from uuid import uuid4

import pytest

from embassy.core.exceptions import ForbiddenException
from embassy.core.permissions import POLICY, Action, Actor, Role, authorize, is_allowed

OFFICE_ONLY = [
    Action.LIST_ALL,
    Action.CONFIRM,
    Action.START,
    Action.COMPLETE,
    Action.MARK_NO_SHOW,
]
OWNER_OR_OFFICE = [Action.VIEW, Action.UPDATE, Action.CANCEL]


def actor(role: Role) -> Actor:
    return Actor(actor_id=uuid4(), role=role)


def test_every_action_has_a_rule():
    assert set(POLICY) == set(Action)


@pytest.mark.parametrize("role", list(Role))
def test_anyone_can_book(role):
    assert is_allowed(actor(role), Action.BOOK)


@pytest.mark.parametrize("action", OFFICE_ONLY + OWNER_OR_OFFICE)
@pytest.mark.parametrize("role", [Role.STAFF, Role.ADMIN])
def test_office_roles_allowed_everywhere(action, role):
    assert is_allowed(actor(role), action, owner_id=uuid4())


@pytest.mark.parametrize("action", OFFICE_ONLY)
def test_owner_denied_office_actions(action):
    citizen = actor(Role.CITIZEN)
    assert not is_allowed(citizen, action, owner_id=citizen.actor_id)


@pytest.mark.parametrize("action", OWNER_OR_OFFICE)
def test_owner_allowed_on_own_appointment(action):
    citizen = actor(Role.CITIZEN)
    assert is_allowed(citizen, action, owner_id=citizen.actor_id)


@pytest.mark.parametrize("action", OWNER_OR_OFFICE)
def test_citizen_denied_on_someone_elses_appointment(action):
    assert not is_allowed(actor(Role.CITIZEN), action, owner_id=uuid4())


def test_missing_owner_denies_owner_rule():
    assert not is_allowed(actor(Role.CITIZEN), Action.VIEW)


def test_authorize_raises_forbidden():
    with pytest.raises(ForbiddenException) as exc_info:
        authorize(actor(Role.CITIZEN), Action.CONFIRM)

    assert exc_info.value.status_code == 403
    assert exc_info.value.kind == "forbidden"


def test_is_staff_property():
    assert actor(Role.STAFF).is_staff
    assert actor(Role.ADMIN).is_staff
    assert not actor(Role.CITIZEN).is_staff
