"""
Residential Admin - Role and Permission Routes

Roles (/roles), codes role:*:
- POST /roles, GET /roles, GET /roles/{id}, PUT /roles/{id}
- DELETE /roles/{id}, POST /roles/{id}/restore
- GET /roles/{id}/permissions, PUT /roles/{id}/permissions

Permissions (/permissions), codes permission:*:
- POST /permissions, GET /permissions, GET /permissions/{id}
- PUT /permissions/{id}, DELETE /permissions/{id}, POST /permissions/{id}/restore
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from residential_admin.auth.dependencies import (
    AuthenticatedUser,
    audit_context,
    get_current_user,
    get_db,
    get_recorder,
    require_any_permission,
)
from residential_admin.gateway.responses import ok, paginated
from residential_admin.rbac.schemas import (
    PermissionCreate,
    PermissionUpdate,
    RoleCreate,
    RolePermissionsUpdate,
    RoleUpdate,
)
from residential_admin.rbac.service import PermissionService, RoleService


roles_router = APIRouter(prefix="/roles", tags=["roles"])
permissions_router = APIRouter(prefix="/permissions", tags=["permissions"])


def _roles(request: Request, db, user: AuthenticatedUser) -> RoleService:
    return RoleService(db, get_recorder(request), audit_context(request, user))


def _permissions(request: Request, db, user: AuthenticatedUser) -> PermissionService:
    return PermissionService(db, get_recorder(request), audit_context(request, user))


# =============================================================================
# Roles
# =============================================================================

@roles_router.post("", status_code=status.HTTP_201_CREATED, summary="Create role")
@require_any_permission("role:create")
async def create_role(request: Request, body: RoleCreate, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _roles(request, db, user).create(body)
        return ok(request, data, "Role created successfully")
    finally:
        db.close()


@roles_router.get("", summary="List roles")
@require_any_permission("role:read")
async def list_roles(
    request: Request,
    search: Optional[str] = Query(None),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        items, total = await _roles(request, db, user).list(search, include_deleted, page, limit)
        return ok(request, paginated(items, total, page, limit), "Roles retrieved successfully")
    finally:
        db.close()


@roles_router.get("/{role_id}", summary="Get role")
@require_any_permission("role:read")
async def get_role(request: Request, role_id: int, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _roles(request, db, user).get(role_id)
        return ok(request, data, "Role retrieved successfully")
    finally:
        db.close()


@roles_router.put("/{role_id}", summary="Update role")
@require_any_permission("role:update")
async def update_role(
    request: Request,
    role_id: int,
    body: RoleUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _roles(request, db, user).update(role_id, body)
        return ok(request, data, "Role updated successfully")
    finally:
        db.close()


@roles_router.delete("/{role_id}", summary="Delete role")
@require_any_permission("role:delete")
async def delete_role(request: Request, role_id: int, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _roles(request, db, user).delete(role_id)
        return ok(request, data, "Role deleted successfully")
    finally:
        db.close()


@roles_router.post("/{role_id}/restore", summary="Restore deleted role")
@require_any_permission("role:delete")
async def restore_role(request: Request, role_id: int, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _roles(request, db, user).restore(role_id)
        return ok(request, data, "Role restored successfully")
    finally:
        db.close()


@roles_router.get("/{role_id}/permissions", summary="Get role permissions")
@require_any_permission("role:read")
async def get_role_permissions(request: Request, role_id: int, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _roles(request, db, user).get_permissions(role_id)
        return ok(request, data, "Role permissions retrieved successfully")
    finally:
        db.close()


@roles_router.put("/{role_id}/permissions", summary="Replace role permissions")
@require_any_permission("role:update")
async def set_role_permissions(
    request: Request,
    role_id: int,
    body: RolePermissionsUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _roles(request, db, user).set_permissions(role_id, body.permission_ids)
        return ok(request, data, "Role permissions updated successfully")
    finally:
        db.close()


# =============================================================================
# Permissions
# =============================================================================

@permissions_router.post("", status_code=status.HTTP_201_CREATED, summary="Create permission")
@require_any_permission("permission:create")
async def create_permission(
    request: Request,
    body: PermissionCreate,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _permissions(request, db, user).create(body)
        return ok(request, data, "Permission created successfully")
    finally:
        db.close()


@permissions_router.get("", summary="List permissions")
@require_any_permission("permission:read")
async def list_permissions(
    request: Request,
    search: Optional[str] = Query(None),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        items, total = await _permissions(request, db, user).list(search, include_deleted, page, limit)
        return ok(request, paginated(items, total, page, limit), "Permissions retrieved successfully")
    finally:
        db.close()


@permissions_router.get("/{permission_id}", summary="Get permission")
@require_any_permission("permission:read")
async def get_permission(request: Request, permission_id: int, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _permissions(request, db, user).get(permission_id)
        return ok(request, data, "Permission retrieved successfully")
    finally:
        db.close()


@permissions_router.put("/{permission_id}", summary="Update permission")
@require_any_permission("permission:update")
async def update_permission(
    request: Request,
    permission_id: int,
    body: PermissionUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _permissions(request, db, user).update(permission_id, body)
        return ok(request, data, "Permission updated successfully")
    finally:
        db.close()


@permissions_router.delete("/{permission_id}", summary="Delete permission")
@require_any_permission("permission:delete")
async def delete_permission(request: Request, permission_id: int, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _permissions(request, db, user).delete(permission_id)
        return ok(request, data, "Permission deleted successfully")
    finally:
        db.close()


@permissions_router.post("/{permission_id}/restore", summary="Restore deleted permission")
@require_any_permission("permission:delete")
async def restore_permission(request: Request, permission_id: int, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _permissions(request, db, user).restore(permission_id)
        return ok(request, data, "Permission restored successfully")
    finally:
        db.close()
