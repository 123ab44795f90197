"""
Residential Admin - Audit Query Service

Read access to the audit trail plus the retention purge. The purge is
the only code path that deletes audit rows.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func
from sqlmodel import Session as DBSession, select

from residential_admin.audit.models import (
    AuditCleanResult,
    AuditLog,
    AuditLogEntry,
    AuditLogFilter,
    AuditStats,
)
from residential_admin.config import settings
from residential_admin.logger import get_logger
from residential_admin.time_utils import to_naive_utc, utcnow


logger = get_logger("audit")


class AuditService:
    """Queries over audit_log for one request-scoped database session."""

    def __init__(self, db: DBSession):
        self.db = db

    def _conditions(self, filters: AuditLogFilter) -> list:
        conditions = []
        if filters.table_name:
            conditions.append(AuditLog.table_name == filters.table_name)
        if filters.operation:
            conditions.append(AuditLog.operation == filters.operation.value)
        if filters.user_id is not None:
            conditions.append(AuditLog.user_id == filters.user_id)
        if filters.created_after:
            conditions.append(AuditLog.created_at >= to_naive_utc(filters.created_after))
        if filters.created_before:
            conditions.append(AuditLog.created_at <= to_naive_utc(filters.created_before))
        return conditions

    def _page(self, conditions: list, page: int, limit: int) -> Tuple[List[AuditLogEntry], int]:
        total = self.db.exec(
            select(func.count()).select_from(AuditLog).where(*conditions)
        ).one()

        statement = (
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = self.db.exec(statement).all()
        return [AuditLogEntry.model_validate(row) for row in rows], total

    async def list_logs(self, filters: AuditLogFilter) -> Tuple[List[AuditLogEntry], int]:
        """
        Filtered, newest-first page of audit rows.

        Returns:
            (entries on this page, total matching rows)
        """
        return self._page(self._conditions(filters), filters.page, filters.limit)

    async def history(
        self,
        table_name: str,
        record_id: str,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[AuditLogEntry], int]:
        """Every audit row of one record, newest first."""
        conditions = [
            AuditLog.table_name == table_name,
            AuditLog.record_id == str(record_id),
        ]
        return self._page(conditions, page, limit)

    async def stats(
        self,
        created_after: Optional[datetime] = None,
        created_before: Optional[datetime] = None,
    ) -> AuditStats:
        """
        Aggregate counts over the optional date range.

        today, this_week and this_month count from the start of the current
        UTC day, ISO week (Monday) and month respectively.
        """
        conditions = self._conditions(
            AuditLogFilter(created_after=created_after, created_before=created_before)
        )

        def count_since(start: Optional[datetime] = None) -> int:
            extra = [AuditLog.created_at >= start] if start else []
            return self.db.exec(
                select(func.count()).select_from(AuditLog).where(*conditions, *extra)
            ).one()

        def grouped(column) -> Dict[str, int]:
            rows = self.db.exec(
                select(column, func.count()).where(*conditions).group_by(column)
            ).all()
            return {
                (str(key) if key is not None else "anonymous"): count
                for key, count in rows
            }

        now = utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_week = start_of_day - timedelta(days=start_of_day.weekday())
        start_of_month = start_of_day.replace(day=1)

        return AuditStats(
            total=count_since(),
            today=count_since(start_of_day),
            this_week=count_since(start_of_week),
            this_month=count_since(start_of_month),
            by_operation=grouped(AuditLog.operation),
            by_table=grouped(AuditLog.table_name),
            by_user=grouped(AuditLog.user_id),
        )

    async def clean(self, days: Optional[int] = None, dry_run: bool = False) -> AuditCleanResult:
        """
        Delete audit rows created more than `days` days ago.

        Args:
            days: Age cutoff (defaults to AUDIT_RETENTION_DAYS)
            dry_run: Only count the rows that would be deleted

        Returns:
            AuditCleanResult with the cutoff and the number of rows affected
        """
        days = days if days is not None else settings.AUDIT_RETENTION_DAYS
        cutoff = utcnow() - timedelta(days=days)
        old_rows = AuditLog.created_at < cutoff

        if dry_run:
            deleted = self.db.exec(
                select(func.count()).select_from(AuditLog).where(old_rows)
            ).one()
        else:
            result = self.db.execute(
                delete(AuditLog).where(old_rows).execution_options(synchronize_session=False)
            )
            self.db.commit()
            deleted = result.rowcount
            logger.warning("Purged %d audit rows older than %s (%d days)", deleted, cutoff, days)

        return AuditCleanResult(days=days, cutoff=cutoff, deleted=deleted, dry_run=dry_run)
