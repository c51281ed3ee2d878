"""Capability checks.

Plain functions over (role, resource owner, acting subject).  Services
call them once at the top of each mutating operation and raise
PermissionDeniedError on a False result.
"""

from __future__ import annotations

from uuid import UUID

from coursehub.models.principal import Role

AUTHOR_ROLES = frozenset({Role.TEACHER, Role.ADMIN})


def can_author_courses(role: Role) -> bool:
    """Teachers and admins create courses and lessons."""
    return role in AUTHOR_ROLES


def can_manage(role: Role, owner_id: UUID, subject_id: UUID) -> bool:
    """Owner of the resource, or any admin."""
    return role == Role.ADMIN or owner_id == subject_id


def can_edit(owner_id: UUID, subject_id: UUID) -> bool:
    """Owner only, no admin override."""
    return owner_id == subject_id


def can_manage_course_content(role: Role, author_id: UUID, subject_id: UUID) -> bool:
    return can_author_courses(role) and can_manage(role, author_id, subject_id)
