"""
Residential Admin - Audit Routes

- GET    /audit/logs                            - Filtered, paginated audit rows
- GET    /audit/history/{table_name}/{record_id} - History of one record
- GET    /audit/stats                           - Aggregate counts
- DELETE /audit/clean?days=N&dry_run=false      - Retention purge

Reading requires audit:read; purging requires audit:clean.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from residential_admin.audit.models import AuditLogFilter, AuditOperation
from residential_admin.audit.service import AuditService
from residential_admin.auth.dependencies import (
    AuthenticatedUser,
    get_current_user,
    get_db,
    require_any_permission,
)
from residential_admin.config import settings
from residential_admin.gateway.responses import ok, paginated


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs", summary="Get audit logs")
@require_any_permission("audit:read")
async def get_logs(
    request: Request,
    table_name: Optional[str] = Query(None, description="Filter by table"),
    operation: Optional[AuditOperation] = Query(None, description="Filter by operation"),
    user_id: Optional[int] = Query(None, description="Filter by acting person"),
    created_after: Optional[datetime] = Query(None),
    created_before: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
):
    filters = AuditLogFilter(
        table_name=table_name,
        operation=operation,
        user_id=user_id,
        created_after=created_after,
        created_before=created_before,
        page=page,
        limit=limit,
    )
    db = get_db(request)
    try:
        items, total = await AuditService(db).list_logs(filters)
        return ok(request, paginated(items, total, page, limit), "Audit logs retrieved successfully")
    finally:
        db.close()


@router.get("/history/{table_name}/{record_id}", summary="Get record history")
@require_any_permission("audit:read")
async def get_history(
    request: Request,
    table_name: str,
    record_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        items, total = await AuditService(db).history(table_name, record_id, page, limit)
        return ok(request, paginated(items, total, page, limit), "Record history retrieved successfully")
    finally:
        db.close()


@router.get("/stats", summary="Get audit statistics")
@require_any_permission("audit:read")
async def get_stats(
    request: Request,
    created_after: Optional[datetime] = Query(None),
    created_before: Optional[datetime] = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        data = await AuditService(db).stats(created_after, created_before)
        return ok(request, data, "Audit statistics retrieved successfully")
    finally:
        db.close()


@router.delete("/clean", summary="Purge old audit logs")
@require_any_permission("audit:clean")
async def clean_logs(
    request: Request,
    days: int = Query(settings.AUDIT_RETENTION_DAYS, ge=1, description="Delete rows older than this many days"),
    dry_run: bool = Query(False, description="Only count matching rows"),
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        result = await AuditService(db).clean(days, dry_run)
        message = (
            f"{result.deleted} audit logs would be deleted"
            if dry_run
            else f"{result.deleted} audit logs deleted"
        )
        return ok(request, result, message)
    finally:
        db.close()
