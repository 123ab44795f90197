"""
Residential Admin - Permission Resolver

Flattens a person's role assignments into role identifiers and permission
codes. Grants are purely additive: no hierarchy, no deny rules.

A link only counts when every hop is live: the person_role assignment,
the role, the role_permission grant and the permission must all be active
and not soft-deleted, and the assignment's from_date must have passed.
"""

from datetime import datetime
from typing import Iterable, Optional, Set

from residential_admin.auth.models import Person, PersonRole, Role
from residential_admin.time_utils import utcnow


def _assignment_is_live(link: PersonRole, now: datetime) -> bool:
    return (
        link.is_active
        and link.deleted_at is None
        and (link.from_date is None or link.from_date <= now)
    )


def _role_is_live(role: Optional[Role]) -> bool:
    return role is not None and role.is_active and role.deleted_at is None


def live_roles(person: Person, now: Optional[datetime] = None):
    """Roles currently granted to a person through live assignments."""
    now = now or utcnow()
    for link in person.person_roles:
        if _assignment_is_live(link, now) and _role_is_live(link.role):
            yield link.role


def role_identifier(role: Role) -> str:
    """alias when set, else name."""
    return role.alias or role.name


def resolve_roles(person: Person, now: Optional[datetime] = None) -> Set[str]:
    """Set of role identifiers held by a person."""
    return {role_identifier(role) for role in live_roles(person, now)}


def resolve_permissions(person: Person, now: Optional[datetime] = None) -> Set[str]:
    """
    Deduplicated permission codes granted to a person through their roles.

    Args:
        person: Person with person_roles loaded (lazy loading is fine while
            its database session is open)
        now: Reference time for from_date checks

    Returns:
        Set of permission codes, e.g. {"person:read", "audit:read"}
    """
    codes = set()
    for role in live_roles(person, now):
        for grant in role.role_permissions:
            permission = grant.permission
            if (
                grant.is_active
                and permission is not None
                and permission.is_active
                and permission.deleted_at is None
            ):
                codes.add(permission.code)
    return codes


def has_any_role(granted: Iterable[str], allowed: Iterable[str]) -> bool:
    """True iff at least one allowed role is granted."""
    return not set(granted).isdisjoint(allowed)


def has_any_permission(granted: Iterable[str], allowed: Iterable[str]) -> bool:
    """True iff at least one allowed permission is granted."""
    return not set(granted).isdisjoint(allowed)
