# src/aegis/tests/test_policies.py
from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from aegis.auth import policies
from aegis.db.models.enums import UserRole


def _actor(role: UserRole):
    return SimpleNamespace(id=uuid.uuid4(), role=role)


def _grievance(submitted_by=None, assigned_to=None, is_anonymous=False):
    return SimpleNamespace(submitted_by=submitted_by, assigned_to=assigned_to, is_anonymous=is_anonymous)


@pytest.mark.parametrize(
    "role, expected",
    [
        (UserRole.STUDENT, True),
        (UserRole.FACULTY, True),
        (UserRole.AUTHORITY, False),
        (UserRole.ADMIN, False),
    ],
)
def test_who_can_submit_grievances(role, expected):
    assert policies.can_submit_grievance(_actor(role)) is expected


def test_students_see_public_and_their_own_grievances():
    me = _actor(UserRole.STUDENT)
    assert policies.can_view_grievance(me, _grievance(submitted_by=uuid.uuid4()))
    assert policies.can_view_grievance(me, _grievance(submitted_by=me.id, is_anonymous=True))
    assert not policies.can_view_grievance(me, _grievance(is_anonymous=True))


def test_faculty_only_see_grievances_assigned_to_them():
    prof = _actor(UserRole.FACULTY)
    assert policies.can_view_grievance(prof, _grievance(assigned_to=prof.id))
    assert not policies.can_view_grievance(prof, _grievance(assigned_to=uuid.uuid4()))
    assert not policies.can_view_grievance(prof, _grievance())


def test_authority_modifies_unassigned_or_own():
    desk = _actor(UserRole.AUTHORITY)
    assert policies.can_modify_grievance(desk, _grievance())
    assert policies.can_modify_grievance(desk, _grievance(assigned_to=desk.id))
    assert not policies.can_modify_grievance(desk, _grievance(assigned_to=uuid.uuid4()))
    assert policies.can_modify_grievance(_actor(UserRole.ADMIN), _grievance(assigned_to=uuid.uuid4()))


def test_delete_is_admin_or_submitting_student():
    student = _actor(UserRole.STUDENT)
    assert policies.can_delete_grievance(student, _grievance(submitted_by=student.id))
    assert not policies.can_delete_grievance(student, _grievance(submitted_by=uuid.uuid4()))
    assert not policies.can_delete_grievance(_actor(UserRole.AUTHORITY), _grievance())
    assert policies.can_delete_grievance(_actor(UserRole.ADMIN), _grievance())


def test_internal_comments_are_staff_only():
    for role in UserRole:
        staff = role in (UserRole.AUTHORITY, UserRole.ADMIN)
        assert policies.can_post_internal_comment(_actor(role)) is staff
        assert policies.can_see_internal_comments(_actor(role)) is staff


def test_students_are_not_valid_assignees():
    assert not policies.is_valid_assignee(_actor(UserRole.STUDENT))
    assert policies.is_valid_assignee(_actor(UserRole.FACULTY))


def test_opportunity_management():
    prof = _actor(UserRole.FACULTY)
    assert policies.can_manage_opportunity(prof, SimpleNamespace(posted_by=prof.id))
    assert not policies.can_manage_opportunity(prof, SimpleNamespace(posted_by=uuid.uuid4()))
    assert policies.can_manage_opportunity(_actor(UserRole.ADMIN), SimpleNamespace(posted_by=uuid.uuid4()))


@pytest.mark.parametrize(
    "role, admin, student, staff, faculty_or_admin",
    [
        (UserRole.STUDENT, False, True, False, False),
        (UserRole.FACULTY, False, False, False, True),
        (UserRole.AUTHORITY, False, False, True, False),
        (UserRole.ADMIN, True, False, True, True),
    ],
)
def test_role_gates(role, admin, student, staff, faculty_or_admin):
    actor = _actor(role)
    assert policies.is_admin(actor) is admin
    assert policies.is_student(actor) is student
    assert policies.is_staff(actor) is staff
    assert policies.is_faculty_or_admin(actor) is faculty_or_admin


@pytest.mark.parametrize(
    "role, expected",
    [
        (UserRole.STUDENT, False),
        (UserRole.FACULTY, False),
        (UserRole.AUTHORITY, True),
        (UserRole.ADMIN, True),
    ],
)
def test_who_can_change_grievance_status(role, expected):
    assert policies.can_change_grievance_status(_actor(role)) is expected


@pytest.mark.parametrize("role", list(UserRole))
def test_tasks_are_managed_only_by_their_owner(role):
    actor = _actor(role)
    assert policies.can_manage_task(actor, SimpleNamespace(user_id=actor.id))
    assert not policies.can_manage_task(actor, SimpleNamespace(user_id=uuid.uuid4()))
