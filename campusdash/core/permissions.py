"""
Role → permission table and the two admission checks built on it.

Each role's set is spelled out in full; there is no inheritance between
roles.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

ROLES: tuple[str, ...] = ("student", "teacher", "admin")
DEFAULT_ROLE = "student"

ROLE_PERMISSIONS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "student": frozenset(
            {
                "view:dashboard",
                "view:own-courses",
                "submit:assignments",
                "view:own-grades",
                "update:own-profile",
            }
        ),
        "teacher": frozenset(
            {
                "view:dashboard",
                "view:own-courses",
                "create:courses",
                "edit:own-courses",
                "grade:assignments",
                "view:students",
                "manage:own-students",
                "update:own-profile",
            }
        ),
        "admin": frozenset(
            {
                "view:dashboard",
                "view:all-courses",
                "create:courses",
                "edit:all-courses",
                "delete:courses",
                "view:all-users",
                "manage:users",
                "manage:roles",
                "view:analytics",
                "manage:system",
                "update:own-profile",
            }
        ),
    }
)


def permissions_for(role: str | None) -> frozenset[str]:
    """Permission set of *role*; unknown roles get the empty set."""
    if role is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())


def can_role(user_role: str | None, required_roles: str | Iterable[str]) -> bool:
    if isinstance(required_roles, str):
        required_roles = (required_roles,)
    return user_role is not None and user_role in set(required_roles)


def has_permission(user_role: str | None, permission: str) -> bool:
    return permission in permissions_for(user_role)
