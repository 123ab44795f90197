"""
Residential Admin - Person Routes

- POST   /persons                       person:create
- GET    /persons                       person:read
- POST   /persons/bulk                  person:create
- PUT    /persons/bulk                  person:update
- DELETE /persons/bulk                  person:delete
- POST   /persons/bulk-validate         person:create
- GET    /persons/{id}                  person:read
- PUT    /persons/{id}                  person:update
- DELETE /persons/{id}                  person:delete
- POST   /persons/{id}/restore          person:delete
- GET    /persons/{id}/roles            person:read
- POST   /persons/{id}/roles            person:update
- DELETE /persons/{id}/roles/{role_id}  person:update
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
from residential_admin.auth.models import PersonStatus
from residential_admin.gateway.responses import ok, paginated
from residential_admin.persons.schemas import (
    BulkCreateRequest,
    BulkDeleteRequest,
    BulkUpdateRequest,
    BulkValidateRequest,
    PersonCreate,
    PersonFilters,
    PersonUpdate,
    RoleAssignment,
)
from residential_admin.persons.service import PersonService


router = APIRouter(prefix="/persons", tags=["persons"])


def _service(request: Request, db, user: AuthenticatedUser) -> PersonService:
    return PersonService(db, get_recorder(request), audit_context(request, user))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create person")
@require_any_permission("person:create")
async def create_person(
    request: Request,
    body: PersonCreate,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).create(body)
        return ok(request, data, "Person created successfully")
    finally:
        db.close()


@router.get("", summary="List persons")
@require_any_permission("person:read")
async def list_persons(
    request: Request,
    search: Optional[str] = Query(None, description="Name, username, document or alias"),
    status_filter: Optional[PersonStatus] = Query(None, alias="status"),
    role_id: Optional[int] = Query(None),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
):
    filters = PersonFilters(
        search=search,
        status=status_filter,
        role_id=role_id,
        include_deleted=include_deleted,
        page=page,
        limit=limit,
    )
    db = get_db(request)
    try:
        items, total = await _service(request, db, user).list(filters)
        return ok(request, paginated(items, total, page, limit), "Persons retrieved successfully")
    finally:
        db.close()


@router.post("/bulk", summary="Create persons in bulk")
@require_any_permission("person:create")
async def bulk_create_persons(
    request: Request,
    body: BulkCreateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).bulk_create(body.persons)
        return ok(request, data, "Bulk create completed")
    finally:
        db.close()


@router.put("/bulk", summary="Update persons in bulk")
@require_any_permission("person:update")
async def bulk_update_persons(
    request: Request,
    body: BulkUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).bulk_update(body.updates)
        return ok(request, data, "Bulk update completed")
    finally:
        db.close()


@router.delete("/bulk", summary="Delete persons in bulk")
@require_any_permission("person:delete")
async def bulk_delete_persons(
    request: Request,
    body: BulkDeleteRequest,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).bulk_delete(body.ids)
        return ok(request, data, "Bulk delete completed")
    finally:
        db.close()


@router.post("/bulk-validate", summary="Validate persons without creating them")
@require_any_permission("person:create")
async def bulk_validate(
    request: Request,
    body: BulkValidateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).bulk_validate(body.persons)
        return ok(request, data, "Bulk validation completed")
    finally:
        db.close()


@router.get("/{person_id}", summary="Get person")
@require_any_permission("person:read")
async def get_person(
    request: Request,
    person_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).get(person_id)
        return ok(request, data, "Person retrieved successfully")
    finally:
        db.close()


@router.put("/{person_id}", summary="Update person")
@require_any_permission("person:update")
async def update_person(
    request: Request,
    person_id: int,
    body: PersonUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).update(person_id, body)
        return ok(request, data, "Person updated successfully")
    finally:
        db.close()


@router.delete("/{person_id}", summary="Delete person")
@require_any_permission("person:delete")
async def delete_person(
    request: Request,
    person_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).delete(person_id)
        return ok(request, data, "Person deleted successfully")
    finally:
        db.close()


@router.post("/{person_id}/restore", summary="Restore deleted person")
@require_any_permission("person:delete")
async def restore_person(
    request: Request,
    person_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).restore(person_id)
        return ok(request, data, "Person restored successfully")
    finally:
        db.close()


@router.get("/{person_id}/roles", summary="List person roles")
@require_any_permission("person:read")
async def list_person_roles(
    request: Request,
    person_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).list_roles(person_id)
        return ok(request, data, "Person roles retrieved successfully")
    finally:
        db.close()


@router.post("/{person_id}/roles", status_code=status.HTTP_201_CREATED, summary="Assign role")
@require_any_permission("person:update")
async def assign_role(
    request: Request,
    person_id: int,
    body: RoleAssignment,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).assign_role(person_id, body)
        return ok(request, data, "Role assigned successfully")
    finally:
        db.close()


@router.delete("/{person_id}/roles/{role_id}", summary="Remove role")
@require_any_permission("person:update")
async def remove_role(
    request: Request,
    person_id: int,
    role_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await _service(request, db, user).remove_role(person_id, role_id)
        return ok(request, data, "Role removed successfully")
    finally:
        db.close()
