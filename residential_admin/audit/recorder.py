"""
Residential Admin - Audit Recorder

Appends one audit_log row per mutating operation.

Audit writes are best-effort: the row is written in its own database
session after the business write has committed, and any failure is logged
on the "residential_admin.audit" logger and swallowed. Callers receive an
AuditWriteResult they may inspect but never have to act on.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi.encoders import jsonable_encoder
from sqlmodel import Session as DBSession

from residential_admin.audit.models import AuditLog, AuditOperation
from residential_admin.logger import get_logger
from residential_admin.time_utils import utcnow


logger = get_logger("audit")

# Never copied into old_values/new_values
SENSITIVE_FIELDS = frozenset({"password_hash", "password", "token", "refresh_token"})


@dataclass
class AuditWriteResult:
    """Outcome of a single audit write."""
    recorded: bool
    audit_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class AuditContext:
    """Who is acting and from where; built once per request."""
    actor_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def snapshot(record: Any, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """
    JSON-safe dict of a model's column values, minus sensitive fields.

    Args:
        record: SQLModel instance or plain dict
        exclude: Extra field names to drop
    """
    if record is None:
        return {}
    data = record if isinstance(record, dict) else record.model_dump()
    skip = SENSITIVE_FIELDS.union(exclude)
    return jsonable_encoder({k: v for k, v in data.items() if k not in skip})


def compute_changed_fields(
    old_values: Optional[Dict[str, Any]],
    new_values: Optional[Dict[str, Any]],
) -> List[str]:
    """
    Sorted keys that differ between two snapshots.

    A key counts as changed when it is present in only one snapshot or its
    values differ. Returns [] unless both snapshots are given.
    """
    if old_values is None or new_values is None:
        return []

    changed = {
        key
        for key in set(old_values) | set(new_values)
        if key not in old_values
        or key not in new_values
        or old_values[key] != new_values[key]
    }
    return sorted(changed)


class AuditRecorder:
    """
    Best-effort writer for the audit trail.

    Holds a session factory rather than a session so each audit row is
    committed independently of the caller's transaction.
    """

    def __init__(self, session_factory: Callable[[], DBSession]):
        self.session_factory = session_factory

    async def record(
        self,
        table_name: str,
        record_id: Any,
        operation: AuditOperation,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        actor_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditWriteResult:
        """
        Append an audit row.

        Args:
            table_name: Table of the mutated record
            record_id: Primary key of the mutated record
            operation: CREATE, UPDATE, DELETE or RESTORE
            old_values: Snapshot before the change
            new_values: Snapshot after the change
            actor_id: Person performing the change, if authenticated
            ip_address: Client IP
            user_agent: Client user-agent

        Returns:
            AuditWriteResult; recorded is False when the write failed
        """
        op = operation.value if isinstance(operation, AuditOperation) else str(operation)
        db = None
        try:
            entry = AuditLog(
                table_name=table_name,
                record_id=str(record_id),
                operation=op,
                old_values=jsonable_encoder(old_values) if old_values is not None else None,
                new_values=jsonable_encoder(new_values) if new_values is not None else None,
                changed_fields=compute_changed_fields(old_values, new_values),
                user_id=actor_id,
                ip_address=ip_address,
                user_agent=user_agent,
                created_at=utcnow(),
            )

            db = self.session_factory()
            db.add(entry)
            db.commit()
            db.refresh(entry)

            return AuditWriteResult(recorded=True, audit_id=entry.id)

        except Exception as e:
            logger.error(
                "Audit write failed for %s %s/%s: %s",
                op, table_name, record_id, e,
                exc_info=True,
            )
            if db is not None:
                db.rollback()
            return AuditWriteResult(recorded=False, error=str(e))

        finally:
            if db is not None:
                db.close()

    async def record_change(
        self,
        context: AuditContext,
        table_name: str,
        record_id: Any,
        operation: AuditOperation,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> AuditWriteResult:
        """record() with actor and client details taken from a request context."""
        return await self.record(
            table_name,
            record_id,
            operation,
            old_values=old_values,
            new_values=new_values,
            actor_id=context.actor_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
        )
