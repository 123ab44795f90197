"""
Residential Admin - Audit Log Models

The audit_log table plus the query/response models of the audit API.

Rows are append-only: the application never updates them and only the
retention purge deletes them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field as PydanticField
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON, String, Text

from residential_admin.time_utils import utcnow


class AuditOperation(str, Enum):
    """Kinds of mutation recorded in the audit trail."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"


class AuditLog(SQLModel, table=True):
    """
    One mutation of one record.

    Attributes:
        table_name: Table of the mutated record (e.g. "person")
        record_id: Primary key of the mutated record, as text
        operation: CREATE, UPDATE, DELETE or RESTORE
        old_values: Snapshot before the change (None on CREATE)
        new_values: Snapshot after the change (None on DELETE)
        changed_fields: Sorted keys that differ between the snapshots
        user_id: Acting person, None when no one is authenticated
    """
    __tablename__ = "audit_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    table_name: str = Field(sa_column=Column(String(100), index=True, nullable=False))
    record_id: str = Field(sa_column=Column(String(100), index=True, nullable=False))
    operation: str = Field(sa_column=Column(String(20), index=True, nullable=False))
    old_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    new_values: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    changed_fields: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    user_id: Optional[int] = Field(default=None, index=True)
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(45), nullable=True))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, index=True, nullable=False, default=utcnow))


# =============================================================================
# API models
# =============================================================================

class AuditLogEntry(BaseModel):
    """Single audit log entry as returned by the API."""
    id: int
    table_name: str
    record_id: str
    operation: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    changed_fields: List[str] = []
    user_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogFilter(BaseModel):
    """Filters accepted by GET /audit/logs."""
    table_name: Optional[str] = None
    operation: Optional[AuditOperation] = None
    user_id: Optional[int] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    page: int = PydanticField(default=1, ge=1)
    limit: int = PydanticField(default=20, ge=1, le=100)


class AuditStats(BaseModel):
    """Aggregate counts returned by GET /audit/stats."""
    total: int
    today: int
    this_week: int
    this_month: int
    by_operation: Dict[str, int]
    by_table: Dict[str, int]
    by_user: Dict[str, int]


class AuditCleanResult(BaseModel):
    """Outcome of the retention purge."""
    days: int
    cutoff: datetime
    deleted: int
    dry_run: bool
