"""
Authorization predicates.

Each function answers one question about an actor (anything with ``id`` and
``role``) and, where relevant, a resource row. They are pure: no I/O, no
exceptions. Handlers call them and raise ``Forbidden`` on ``False``.
"""
from __future__ import annotations

from typing import Any

from aegis.db.models.enums import UserRole

STAFF_ROLES = frozenset({UserRole.AUTHORITY, UserRole.ADMIN})
FACULTY_OR_ADMIN_ROLES = frozenset({UserRole.FACULTY, UserRole.ADMIN})
GRIEVANCE_SUBMITTER_ROLES = frozenset({UserRole.STUDENT, UserRole.FACULTY})
ASSIGNABLE_ROLES = frozenset({UserRole.AUTHORITY, UserRole.ADMIN, UserRole.FACULTY})


# -------------------- Role gates --------------------
def is_admin(user: Any) -> bool:
    return user.role == UserRole.ADMIN


def is_student(user: Any) -> bool:
    return user.role == UserRole.STUDENT


def is_staff(user: Any) -> bool:
    """Authority or Admin: the roles that run the grievance desk."""
    return user.role in STAFF_ROLES


def is_faculty_or_admin(user: Any) -> bool:
    return user.role in FACULTY_OR_ADMIN_ROLES


# -------------------- Grievances --------------------
def can_submit_grievance(user: Any) -> bool:
    return user.role in GRIEVANCE_SUBMITTER_ROLES


def can_view_grievance(user: Any, grievance: Any) -> bool:
    if is_staff(user):
        return True
    if user.role == UserRole.FACULTY:
        return grievance.assigned_to == user.id
    if user.role == UserRole.STUDENT:
        return grievance.submitted_by == user.id or not grievance.is_anonymous
    return False


def can_modify_grievance(user: Any, grievance: Any) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.AUTHORITY:
        return grievance.assigned_to is None or grievance.assigned_to == user.id
    if user.role == UserRole.STUDENT:
        return grievance.submitted_by == user.id
    return False


def can_delete_grievance(user: Any, grievance: Any) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    return user.role == UserRole.STUDENT and grievance.submitted_by == user.id


def can_change_grievance_status(user: Any) -> bool:
    return is_staff(user)


def can_post_internal_comment(user: Any) -> bool:
    return is_staff(user)


def can_see_internal_comments(user: Any) -> bool:
    return is_staff(user)


def is_valid_assignee(user: Any) -> bool:
    return user.role in ASSIGNABLE_ROLES


# -------------------- Opportunities / tasks --------------------
def can_manage_opportunity(user: Any, opportunity: Any) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    return user.role == UserRole.FACULTY and opportunity.posted_by == user.id


def can_manage_task(user: Any, task: Any) -> bool:
    return task.user_id == user.id
