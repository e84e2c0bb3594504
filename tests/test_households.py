from __future__ import annotations

import pytest

from chorecoins.core.errors import ForbiddenError, NotFoundError, PreconditionError, ValidationError
from chorecoins.models.user import MemberRole
from chorecoins.services import household_service
from chorecoins.services.activity_service import recent_activities
from chorecoins.services.user_service import create_user


def test_create_and_join_household(db, notifier) -> None:
    parent = create_user(db, email="Parent@Example.com", display_name="Mum")
    child = create_user(db, email="child@example.com")
    assert parent.email == "parent@example.com"

    home = household_service.create_household(db, creator_id=parent.id, name=" Home ")
    db.refresh(parent)
    assert home.name == "Home"
    assert len(home.invite_code) == 8
    assert parent.role == MemberRole.ADMIN
    assert parent.household_id == home.id

    household_service.join_household(db, user_id=child.id, invite_code=home.invite_code.lower())
    db.refresh(child)
    assert child.household_id == home.id
    assert child.role == MemberRole.MEMBER
    assert {m.id for m in household_service.list_members(db, household_id=home.id)} == {parent.id, child.id}
    assert [a.message for a in recent_activities(db, household_id=home.id)] == ["child@example.com joined the household"]
    assert notifier.names() == ["household.member_joined"]

    with pytest.raises(PreconditionError):
        household_service.join_household(db, user_id=child.id, invite_code=home.invite_code)
    with pytest.raises(NotFoundError):
        household_service.join_household(db, user_id=child.id, invite_code="NOPE")


def test_duplicate_email_is_refused(db) -> None:
    create_user(db, email="a@example.com")
    with pytest.raises(PreconditionError):
        create_user(db, email="A@example.com ")


def test_deduction_policy_validation(db, household) -> None:
    with pytest.raises(ValidationError):
        household_service.update_deduction_policy(db, household_id=household.id, deduction=-1)
    with pytest.raises(ValidationError):
        household_service.update_deduction_policy(db, household_id=household.id, grace_period_hours=-2)

    updated = household_service.update_deduction_policy(db, household_id=household.id, enabled=True, deduction=3)
    policy = updated.deduction_policy
    assert (policy.enabled, policy.deduction, policy.grace_period_hours) == (True, 3, 24)


def test_role_guards(db, household, admin, kid) -> None:
    assert household_service.ensure_admin(db, user_id=admin.id, household_id=household.id) is admin
    with pytest.raises(ForbiddenError):
        household_service.ensure_admin(db, user_id=kid.id, household_id=household.id)
    with pytest.raises(ForbiddenError):
        household_service.ensure_member(db, user_id=kid.id, household_id="elsewhere")
