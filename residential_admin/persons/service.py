"""
Residential Admin - Person Service

Administrative CRUD over persons and their role assignments.
Every mutation is followed by an audit row; audit failures never undo
or fail the mutation.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import func, or_
from sqlmodel import Session as DBSession, select

from residential_admin.audit.models import AuditOperation
from residential_admin.audit.recorder import AuditContext, AuditRecorder, snapshot
from residential_admin.auth.models import Person, PersonEmail, PersonRole, Role
from residential_admin.auth.password import hash_password
from residential_admin.auth.sessions import SessionStore
from residential_admin.exceptions import AppError, DuplicateFieldError, NotFoundError
from residential_admin.gateway.errors import request_violations
from residential_admin.logger import get_logger
from residential_admin.persons.schemas import (
    BulkFailure,
    BulkResult,
    BulkResults,
    BulkSuccess,
    BulkUpdateItem,
    BulkValidationResult,
    BulkValidationResults,
    PersonCreate,
    PersonFilters,
    PersonRead,
    PersonRoleRead,
    PersonUpdate,
    RoleAssignment,
)
from residential_admin.rbac.resolver import resolve_roles
from residential_admin.time_utils import utcnow
from residential_admin.validation import (
    raise_if_invalid,
    validate_ids_exist,
    validate_password_strength,
    violation,
)


logger = get_logger("persons")


def to_read(person: Person) -> PersonRead:
    return PersonRead(
        id=person.id,
        document_type=person.document_type,
        document_number=person.document_number,
        full_name=person.full_name,
        username=person.username,
        emails=[e.email for e in person.emails],
        status=person.status,
        is_active=person.is_active,
        has_password=bool(person.password_hash),
        gender=person.gender,
        alias=person.alias,
        notes=person.notes,
        language=person.language,
        timezone=person.timezone,
        roles=sorted(resolve_roles(person)),
        last_login=person.last_login,
        locked_until=person.locked_until,
        created_at=person.created_at,
        updated_at=person.updated_at,
        deleted_at=person.deleted_at,
    )


def to_role_read(link: PersonRole) -> PersonRoleRead:
    return PersonRoleRead(
        id=link.id,
        role_id=link.role_id,
        role_name=link.role.name,
        role_alias=link.role.alias,
        from_date=link.from_date,
        residential_unit_id=link.residential_unit_id,
        apartment_id=link.apartment_id,
        is_active=link.is_active,
        created_at=link.created_at,
    )


def public_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Item payload echoed back in bulk results, without passwords."""
    return {k: v for k, v in data.items() if "password" not in str(k)}


def bulk_result(total: int, successful: List[BulkSuccess], failed: List[BulkFailure]) -> BulkResult:
    return BulkResult(
        total=total,
        successful=len(successful),
        failed=len(failed),
        results=BulkResults(successful=successful, failed=failed),
    )


class PersonService:
    """Person use cases over one request-scoped database session."""

    def __init__(self, db: DBSession, recorder: AuditRecorder, context: AuditContext):
        self.db = db
        self.recorder = recorder
        self.context = context

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def _get(self, person_id: int, deleted: Optional[bool] = False) -> Person:
        """
        Load a person or raise NotFoundError.

        Args:
            deleted: False for live persons only, True for soft-deleted
                only, None for either
        """
        person = self.db.get(Person, person_id)
        if person is None:
            raise NotFoundError("Person", person_id)
        if deleted is False and person.deleted_at is not None:
            raise NotFoundError("Person", person_id)
        if deleted is True and person.deleted_at is None:
            raise NotFoundError("Deleted person", person_id)
        return person

    def _check_unique(
        self,
        document_number: Optional[str] = None,
        username: Optional[str] = None,
        email: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Raise DuplicateFieldError if a unique value is taken, soft-deleted rows included."""
        def taken(statement) -> bool:
            if exclude_id is not None:
                statement = statement.where(Person.id != exclude_id)
            return self.db.exec(statement).first() is not None

        if document_number and taken(select(Person.id).where(Person.document_number == document_number)):
            raise DuplicateFieldError("document_number", document_number)
        if username and taken(select(Person.id).where(Person.username == username)):
            raise DuplicateFieldError("username", username)
        if email and self.db.exec(
            select(PersonEmail.id).where(func.lower(PersonEmail.email) == email.lower())
        ).first():
            raise DuplicateFieldError("email", email)

    def _creation_violations(self, data: PersonCreate) -> List[dict]:
        violations = []
        if data.password is not None:
            violations += validate_password_strength(data.password)
        violations += validate_ids_exist(self.db, Role, data.role_ids, "role_ids")
        return violations

    async def get(self, person_id: int) -> PersonRead:
        return to_read(self._get(person_id))

    async def list(self, filters: PersonFilters) -> Tuple[List[PersonRead], int]:
        """
        Filtered page of persons, newest first.

        search matches full name, username, document number or alias.
        """
        conditions = []
        if not filters.include_deleted:
            conditions.append(Person.deleted_at.is_(None))
        if filters.search:
            term = f"%{filters.search.strip().lower()}%"
            conditions.append(or_(
                func.lower(Person.full_name).like(term),
                func.lower(Person.username).like(term),
                func.lower(Person.document_number).like(term),
                func.lower(Person.alias).like(term),
            ))
        if filters.status:
            conditions.append(Person.status == filters.status)
        if filters.role_id is not None:
            conditions.append(Person.id.in_(
                select(PersonRole.person_id).where(
                    PersonRole.role_id == filters.role_id,
                    PersonRole.is_active == True,  # noqa: E712
                    PersonRole.deleted_at.is_(None),
                )
            ))

        total = self.db.exec(select(func.count()).select_from(Person).where(*conditions)).one()
        persons = self.db.exec(
            select(Person)
            .where(*conditions)
            .order_by(Person.created_at.desc(), Person.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        ).all()

        return [to_read(p) for p in persons], total

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create(self, data: PersonCreate) -> PersonRead:
        """
        Create a person, optionally with credentials, an email and roles.

        Raises:
            DuplicateFieldError: document_number, username or email taken
            ValidationError: weak password or unknown role ids
        """
        raise_if_invalid(self._creation_violations(data))

        self._check_unique(data.document_number, data.username, data.email)

        now = utcnow()
        person = Person(
            **data.model_dump(exclude={"password", "email", "role_ids"}),
            password_hash=hash_password(data.password) if data.password else None,
            created_at=now,
            updated_at=now,
            created_by=self.context.actor_id,
            updated_by=self.context.actor_id,
        )
        self.db.add(person)
        self.db.commit()
        self.db.refresh(person)

        if data.email:
            self.db.add(PersonEmail(person_id=person.id, email=data.email, is_primary=True))
        for role_id in dict.fromkeys(data.role_ids):
            self.db.add(PersonRole(person_id=person.id, role_id=role_id))
        self.db.commit()
        self.db.refresh(person)

        await self.recorder.record_change(
            self.context, "person", person.id, AuditOperation.CREATE,
            new_values=snapshot(person),
        )
        logger.info("Person %s created by %s", person.id, self.context.actor_id)

        return to_read(person)

    async def update(self, person_id: int, data: PersonUpdate) -> PersonRead:
        """
        Apply the fields present in data.

        Raises:
            NotFoundError: Unknown or deleted person
            DuplicateFieldError: New document_number or username taken
        """
        person = self._get(person_id)
        changes = data.model_dump(exclude_unset=True)

        self._check_unique(
            document_number=changes.get("document_number"),
            username=changes.get("username"),
            exclude_id=person.id,
        )

        old_values = snapshot(person)
        for field, value in changes.items():
            setattr(person, field, value)
        person.updated_at = utcnow()
        person.updated_by = self.context.actor_id

        self.db.add(person)
        self.db.commit()
        self.db.refresh(person)

        await self.recorder.record_change(
            self.context, "person", person.id, AuditOperation.UPDATE,
            old_values=old_values,
            new_values=snapshot(person),
        )

        return to_read(person)

    async def delete(self, person_id: int) -> dict:
        """Soft-delete a person and close all of their sessions."""
        person = self._get(person_id)
        old_values = snapshot(person)

        now = utcnow()
        person.deleted_at = now
        person.updated_at = now
        person.updated_by = self.context.actor_id
        self.db.add(person)
        self.db.commit()

        closed = await SessionStore(self.db).deactivate_all_for_person(person_id)

        await self.recorder.record_change(
            self.context, "person", person_id, AuditOperation.DELETE,
            old_values=old_values,
        )
        logger.info("Person %s deleted (%d sessions closed)", person_id, closed)

        return {"id": person_id}

    async def restore(self, person_id: int) -> PersonRead:
        """Undo a soft delete."""
        person = self._get(person_id, deleted=True)
        old_values = snapshot(person)

        person.deleted_at = None
        person.updated_at = utcnow()
        person.updated_by = self.context.actor_id
        self.db.add(person)
        self.db.commit()
        self.db.refresh(person)

        await self.recorder.record_change(
            self.context, "person", person.id, AuditOperation.RESTORE,
            old_values=old_values,
            new_values=snapshot(person),
        )

        return to_read(person)

    # -------------------------------------------------------------------------
    # Role assignments
    # -------------------------------------------------------------------------

    async def list_roles(self, person_id: int) -> List[PersonRoleRead]:
        person = self._get(person_id)
        return [
            to_role_read(link)
            for link in person.person_roles
            if link.deleted_at is None
        ]

    async def assign_role(self, person_id: int, data: RoleAssignment) -> PersonRoleRead:
        """
        Assign a role to a person.

        Raises:
            NotFoundError: Unknown person
            ValidationError: Unknown role
            DuplicateFieldError: The role is already assigned with the same scope
        """
        self._get(person_id)
        raise_if_invalid(validate_ids_exist(self.db, Role, [data.role_id], "role_id"))

        existing = self.db.exec(
            select(PersonRole).where(
                PersonRole.person_id == person_id,
                PersonRole.role_id == data.role_id,
                PersonRole.residential_unit_id == data.residential_unit_id,
                PersonRole.apartment_id == data.apartment_id,
                PersonRole.deleted_at.is_(None),
            )
        ).first()
        if existing:
            raise DuplicateFieldError("role_id", data.role_id, "Role already assigned to this person")

        link = PersonRole(
            person_id=person_id,
            role_id=data.role_id,
            from_date=data.from_date or utcnow(),
            residential_unit_id=data.residential_unit_id,
            apartment_id=data.apartment_id,
        )
        self.db.add(link)
        self.db.commit()
        self.db.refresh(link)

        await self.recorder.record_change(
            self.context, "person_role", link.id, AuditOperation.CREATE,
            new_values=snapshot(link),
        )

        return to_role_read(link)

    async def remove_role(self, person_id: int, role_id: int) -> dict:
        """Soft-delete every live assignment of role_id to the person."""
        self._get(person_id)
        links = self.db.exec(
            select(PersonRole).where(
                PersonRole.person_id == person_id,
                PersonRole.role_id == role_id,
                PersonRole.deleted_at.is_(None),
            )
        ).all()
        if not links:
            raise NotFoundError("Role assignment", role_id)

        now = utcnow()
        removed = []
        for link in links:
            old_values = snapshot(link)
            link.deleted_at = now
            link.is_active = False
            self.db.add(link)
            removed.append((link, old_values))
        self.db.commit()

        for link, old_values in removed:
            await self.recorder.record_change(
                self.context, "person_role", link.id, AuditOperation.DELETE,
                old_values=old_values,
            )

        return {"person_id": person_id, "role_id": role_id, "removed": len(removed)}

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    async def bulk_create(self, items: List[PersonCreate]) -> BulkResult:
        """
        Create each item independently.

        An item that fails lands in results.failed with its errors and
        never stops the remaining items. Each created person is audited.
        """
        successful, failed = [], []
        for item in items:
            try:
                person = await self.create(item)
            except AppError as exc:
                failed.append(BulkFailure(data=public_fields(item.model_dump(mode="json")), errors=exc.error_list()))
                continue
            successful.append(BulkSuccess(id=person.id, data=person))

        logger.info("Bulk create by %s: %d created, %d failed", self.context.actor_id, len(successful), len(failed))
        return bulk_result(len(items), successful, failed)

    async def bulk_update(self, items: List[BulkUpdateItem]) -> BulkResult:
        successful, failed = [], []
        for item in items:
            try:
                person = await self.update(item.id, item.data)
            except AppError as exc:
                failed.append(BulkFailure(data=item.model_dump(mode="json", exclude_unset=True), errors=exc.error_list()))
                continue
            successful.append(BulkSuccess(id=person.id, data=person))

        logger.info("Bulk update by %s: %d updated, %d failed", self.context.actor_id, len(successful), len(failed))
        return bulk_result(len(items), successful, failed)

    async def bulk_delete(self, ids: List[int]) -> BulkResult:
        """Soft-delete each id; unknown or already deleted ids are reported as failed."""
        successful, failed = [], []
        for person_id in ids:
            try:
                data = await self.delete(person_id)
            except AppError as exc:
                failed.append(BulkFailure(data={"id": person_id}, errors=exc.error_list()))
                continue
            successful.append(BulkSuccess(id=person_id, data=data))

        logger.info("Bulk delete by %s: %d deleted, %d failed", self.context.actor_id, len(successful), len(failed))
        return bulk_result(len(ids), successful, failed)

    async def bulk_validate(self, items: List[Dict[str, Any]]) -> BulkValidationResult:
        """
        Check items as bulk_create would, without writing anything.

        Besides the per-item rules, a document number, username or email
        repeated within the batch makes the later items invalid.
        """
        valid, invalid = [], []
        seen = {"document_number": set(), "username": set(), "email": set()}

        for raw in items:
            try:
                data = PersonCreate.model_validate(raw)
            except SchemaValidationError as exc:
                invalid.append(BulkFailure(data=public_fields(raw), errors=request_violations(exc)))
                continue

            violations = self._creation_violations(data)
            try:
                self._check_unique(data.document_number, data.username, data.email)
            except DuplicateFieldError as exc:
                violations += exc.error_list()

            for field, values in seen.items():
                value = getattr(data, field)
                if value is None:
                    continue
                key = value.lower() if field == "email" else value
                if key in values:
                    violations.append(violation(field, f"{field} repeated in this batch", "DUPLICATE", value))
                values.add(key)

            payload = public_fields(data.model_dump(mode="json"))
            if violations:
                invalid.append(BulkFailure(data=payload, errors=violations))
            else:
                valid.append(payload)

        return BulkValidationResult(
            total=len(items),
            valid=len(valid),
            invalid=len(invalid),
            results=BulkValidationResults(valid=valid, invalid=invalid),
        )
