"""
Residential Admin - Roles and Permissions

Role/permission catalog, the permission resolver and the default policy.
"""

from residential_admin.rbac.resolver import (
    has_any_permission,
    has_any_role,
    resolve_permissions,
    resolve_roles,
)

__all__ = [
    "has_any_permission",
    "has_any_role",
    "resolve_permissions",
    "resolve_roles",
]
