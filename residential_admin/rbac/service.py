"""
Residential Admin - Role and Permission Service

Administrative CRUD over the role/permission catalog. Mutations are
audited on the "role" and "permission" tables; replacing a role's
permission set is recorded as an UPDATE of the role with the sorted
permission codes before and after.
"""

from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session as DBSession, select

from residential_admin.audit.models import AuditOperation
from residential_admin.audit.recorder import AuditContext, AuditRecorder, snapshot
from residential_admin.auth.models import Permission, PersonRole, Role, RolePermission
from residential_admin.exceptions import DuplicateFieldError, NotFoundError, ValidationError
from residential_admin.logger import get_logger
from residential_admin.rbac.schemas import (
    PermissionCreate,
    PermissionRead,
    PermissionUpdate,
    RoleCreate,
    RoleRead,
    RoleUpdate,
)
from residential_admin.time_utils import utcnow
from residential_admin.validation import raise_if_invalid, validate_ids_exist, violation


logger = get_logger("rbac")


def granted_codes(role: Role) -> List[str]:
    """Sorted codes of the role's active grants on live permissions."""
    return sorted(
        grant.permission.code
        for grant in role.role_permissions
        if grant.is_active
        and grant.permission is not None
        and grant.permission.deleted_at is None
    )


class _CatalogService:
    def __init__(self, db: DBSession, recorder: AuditRecorder, context: AuditContext):
        self.db = db
        self.recorder = recorder
        self.context = context

    def _load(self, model, record_id: int, deleted: Optional[bool] = False):
        record = self.db.get(model, record_id)
        if record is None:
            raise NotFoundError(model.__name__, record_id)
        if deleted is False and record.deleted_at is not None:
            raise NotFoundError(model.__name__, record_id)
        if deleted is True and record.deleted_at is None:
            raise NotFoundError(f"Deleted {model.__name__.lower()}", record_id)
        return record

    def _taken(self, column, value, exclude_id: Optional[int] = None) -> bool:
        model = column.class_
        statement = select(model.id).where(column == value)
        if exclude_id is not None:
            statement = statement.where(model.id != exclude_id)
        return self.db.exec(statement).first() is not None

    def _page(self, model, conditions, page: int, limit: int):
        total = self.db.exec(select(func.count()).select_from(model).where(*conditions)).one()
        rows = self.db.exec(
            select(model).where(*conditions).order_by(model.id).offset((page - 1) * limit).limit(limit)
        ).all()
        return rows, total


class RoleService(_CatalogService):
    """Role use cases over one request-scoped database session."""

    def _person_count(self, role_id: int) -> int:
        return self.db.exec(
            select(func.count()).select_from(PersonRole).where(
                PersonRole.role_id == role_id,
                PersonRole.is_active == True,  # noqa: E712
                PersonRole.deleted_at.is_(None),
            )
        ).one()

    def _to_read(self, role: Role) -> RoleRead:
        return RoleRead(
            id=role.id,
            name=role.name,
            alias=role.alias,
            description=role.description,
            is_active=role.is_active,
            permissions=granted_codes(role),
            person_count=self._person_count(role.id),
            created_at=role.created_at,
            updated_at=role.updated_at,
            deleted_at=role.deleted_at,
        )

    def _check_unique(self, name: Optional[str], alias: Optional[str], exclude_id: Optional[int] = None):
        if name and self._taken(Role.name, name, exclude_id):
            raise DuplicateFieldError("name", name)
        if alias and self._taken(Role.alias, alias, exclude_id):
            raise DuplicateFieldError("alias", alias)

    async def list(
        self,
        search: Optional[str] = None,
        include_deleted: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[RoleRead], int]:
        conditions = []
        if not include_deleted:
            conditions.append(Role.deleted_at.is_(None))
        if search:
            conditions.append(func.lower(Role.name).like(f"%{search.strip().lower()}%"))
        roles, total = self._page(Role, conditions, page, limit)
        return [self._to_read(r) for r in roles], total

    async def get(self, role_id: int) -> RoleRead:
        return self._to_read(self._load(Role, role_id))

    async def create(self, data: RoleCreate) -> RoleRead:
        """
        Raises:
            DuplicateFieldError: name or alias taken
            ValidationError: unknown permission ids
        """
        raise_if_invalid(validate_ids_exist(self.db, Permission, data.permission_ids, "permission_ids"))
        self._check_unique(data.name, data.alias)

        now = utcnow()
        role = Role(
            name=data.name,
            alias=data.alias,
            description=data.description,
            created_at=now,
            updated_at=now,
        )
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)

        for permission_id in dict.fromkeys(data.permission_ids):
            self.db.add(RolePermission(
                role_id=role.id, permission_id=permission_id, created_by=self.context.actor_id,
            ))
        self.db.commit()
        self.db.refresh(role)

        new_values = snapshot(role)
        new_values["permissions"] = granted_codes(role)
        await self.recorder.record_change(
            self.context, "role", role.id, AuditOperation.CREATE, new_values=new_values,
        )
        logger.info("Role %s (%s) created", role.id, role.name)

        return self._to_read(role)

    async def update(self, role_id: int, data: RoleUpdate) -> RoleRead:
        role = self._load(Role, role_id)
        changes = data.model_dump(exclude_unset=True)
        self._check_unique(changes.get("name"), changes.get("alias"), exclude_id=role.id)

        old_values = snapshot(role)
        for field, value in changes.items():
            setattr(role, field, value)
        role.updated_at = utcnow()
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)

        await self.recorder.record_change(
            self.context, "role", role.id, AuditOperation.UPDATE,
            old_values=old_values, new_values=snapshot(role),
        )
        return self._to_read(role)

    async def delete(self, role_id: int) -> dict:
        """
        Soft-delete a role.

        Raises:
            ValidationError (code IN_USE): persons still hold the role
        """
        role = self._load(Role, role_id)
        assigned = self._person_count(role.id)
        if assigned:
            raise ValidationError(
                [violation("role_id", f"Role is assigned to {assigned} person(s)", "IN_USE", role_id)],
                message="Role is assigned to persons and cannot be deleted",
                code="IN_USE",
            )

        old_values = snapshot(role)
        now = utcnow()
        role.deleted_at = now
        role.updated_at = now
        self.db.add(role)
        self.db.commit()

        await self.recorder.record_change(
            self.context, "role", role_id, AuditOperation.DELETE, old_values=old_values,
        )
        return {"id": role_id}

    async def restore(self, role_id: int) -> RoleRead:
        role = self._load(Role, role_id, deleted=True)
        old_values = snapshot(role)

        role.deleted_at = None
        role.updated_at = utcnow()
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)

        await self.recorder.record_change(
            self.context, "role", role.id, AuditOperation.RESTORE,
            old_values=old_values, new_values=snapshot(role),
        )
        return self._to_read(role)

    async def get_permissions(self, role_id: int) -> List[PermissionRead]:
        role = self._load(Role, role_id)
        return [
            PermissionRead.model_validate(grant.permission)
            for grant in role.role_permissions
            if grant.is_active and grant.permission is not None and grant.permission.deleted_at is None
        ]

    async def set_permissions(self, role_id: int, permission_ids: List[int]) -> RoleRead:
        """
        Replace the role's permission set.

        Grants not in permission_ids are deactivated, inactive grants in it
        are reactivated and missing ones are created.
        """
        role = self._load(Role, role_id)
        raise_if_invalid(validate_ids_exist(self.db, Permission, permission_ids, "permission_ids"))

        wanted = set(permission_ids)
        before = granted_codes(role)

        existing = {grant.permission_id: grant for grant in role.role_permissions}
        for permission_id, grant in existing.items():
            grant.is_active = permission_id in wanted
            self.db.add(grant)
        for permission_id in wanted - set(existing):
            self.db.add(RolePermission(
                role_id=role.id, permission_id=permission_id, created_by=self.context.actor_id,
            ))

        role.updated_at = utcnow()
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)

        after = granted_codes(role)
        await self.recorder.record_change(
            self.context, "role", role.id, AuditOperation.UPDATE,
            old_values={"permissions": before},
            new_values={"permissions": after},
        )
        logger.info("Role %s permissions set to %s", role.id, after)

        return self._to_read(role)


class PermissionService(_CatalogService):
    """Permission use cases over one request-scoped database session."""

    async def list(
        self,
        search: Optional[str] = None,
        include_deleted: bool = False,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[PermissionRead], int]:
        conditions = []
        if not include_deleted:
            conditions.append(Permission.deleted_at.is_(None))
        if search:
            conditions.append(func.lower(Permission.code).like(f"%{search.strip().lower()}%"))
        permissions, total = self._page(Permission, conditions, page, limit)
        return [PermissionRead.model_validate(p) for p in permissions], total

    async def get(self, permission_id: int) -> PermissionRead:
        return PermissionRead.model_validate(self._load(Permission, permission_id))

    async def create(self, data: PermissionCreate) -> PermissionRead:
        if self._taken(Permission.code, data.code):
            raise DuplicateFieldError("code", data.code)

        now = utcnow()
        permission = Permission(code=data.code, description=data.description, created_at=now, updated_at=now)
        self.db.add(permission)
        self.db.commit()
        self.db.refresh(permission)

        await self.recorder.record_change(
            self.context, "permission", permission.id, AuditOperation.CREATE,
            new_values=snapshot(permission),
        )
        return PermissionRead.model_validate(permission)

    async def update(self, permission_id: int, data: PermissionUpdate) -> PermissionRead:
        permission = self._load(Permission, permission_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("code") and self._taken(Permission.code, changes["code"], exclude_id=permission.id):
            raise DuplicateFieldError("code", changes["code"])

        old_values = snapshot(permission)
        for field, value in changes.items():
            setattr(permission, field, value)
        permission.updated_at = utcnow()
        self.db.add(permission)
        self.db.commit()
        self.db.refresh(permission)

        await self.recorder.record_change(
            self.context, "permission", permission.id, AuditOperation.UPDATE,
            old_values=old_values, new_values=snapshot(permission),
        )
        return PermissionRead.model_validate(permission)

    async def delete(self, permission_id: int) -> dict:
        """Soft-delete a permission; roles granting it stop conferring it."""
        permission = self._load(Permission, permission_id)
        old_values = snapshot(permission)

        now = utcnow()
        permission.deleted_at = now
        permission.updated_at = now
        self.db.add(permission)
        self.db.commit()

        await self.recorder.record_change(
            self.context, "permission", permission_id, AuditOperation.DELETE, old_values=old_values,
        )
        return {"id": permission_id}

    async def restore(self, permission_id: int) -> PermissionRead:
        permission = self._load(Permission, permission_id, deleted=True)
        old_values = snapshot(permission)

        permission.deleted_at = None
        permission.updated_at = utcnow()
        self.db.add(permission)
        self.db.commit()
        self.db.refresh(permission)

        await self.recorder.record_change(
            self.context, "permission", permission.id, AuditOperation.RESTORE,
            old_values=old_values, new_values=snapshot(permission),
        )
        return PermissionRead.model_validate(permission)
