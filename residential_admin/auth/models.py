"""
Residential Admin - Identity and Access Database Models

SQLModel models for persons, their login emails, server-side sessions
and the role/permission catalog linking them.

Security:
- Passwords stored as bcrypt hashes only
- Sessions are server-controlled for immediate revocation
- Persons, roles and permissions are soft-deleted via deleted_at
- All timestamps are naive UTC
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, Enum as SQLEnum

from residential_admin.time_utils import utcnow


class DocumentType(str, Enum):
    """Identity document kinds accepted for a person."""
    CC = "CC"
    CE = "CE"
    TI = "TI"
    PP = "PP"
    NIT = "NIT"


class PersonStatus(str, Enum):
    """Lifecycle status of a person record."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    BLOCKED = "BLOCKED"


class Person(SQLModel, table=True):
    """
    Resident, staff member or administrator.

    A person may exist without credentials (no username/password_hash);
    such records are managed by administrators but cannot log in.

    Attributes:
        document_type: Identity document kind
        document_number: Identity document number (unique)
        username: Login identifier (unique, optional)
        password_hash: bcrypt hash (never store plaintext)
        login_attempts: Consecutive failed logins since the last success
        locked_until: Login is rejected while this is in the future
        deleted_at: Soft-delete timestamp
    """
    __tablename__ = "person"

    id: Optional[int] = Field(default=None, primary_key=True)
    document_type: DocumentType = Field(
        sa_column=Column(SQLEnum(DocumentType), nullable=False, default=DocumentType.CC),
    )
    document_number: str = Field(
        sa_column=Column(String(30), unique=True, index=True, nullable=False),
    )
    full_name: str = Field(sa_column=Column(String(200), nullable=False))
    username: Optional[str] = Field(
        default=None,
        sa_column=Column(String(50), unique=True, index=True, nullable=True),
    )
    password_hash: Optional[str] = Field(
        default=None,
        sa_column=Column(String(255), nullable=True),
    )
    status: PersonStatus = Field(
        default=PersonStatus.ACTIVE,
        sa_column=Column(SQLEnum(PersonStatus), nullable=False, default=PersonStatus.ACTIVE),
    )
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    login_attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    locked_until: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    last_login: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    gender: Optional[str] = Field(default=None, max_length=20)
    alias: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    language: str = Field(default="es", max_length=10)
    timezone: str = Field(default="America/Bogota", max_length=50)

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    created_by: Optional[int] = Field(default=None)
    updated_by: Optional[int] = Field(default=None)

    # Relationships
    emails: List["PersonEmail"] = Relationship(back_populates="person")
    sessions: List["UserSession"] = Relationship(back_populates="person")
    person_roles: List["PersonRole"] = Relationship(back_populates="person")


class PersonEmail(SQLModel, table=True):
    """Email address of a person. Any of them is accepted as a login identifier."""
    __tablename__ = "person_email"

    id: Optional[int] = Field(default=None, primary_key=True)
    person_id: int = Field(foreign_key="person.id", nullable=False, index=True)
    email: str = Field(sa_column=Column(String(255), unique=True, index=True, nullable=False))
    is_primary: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))

    person: Optional[Person] = Relationship(back_populates="emails")


class UserSession(SQLModel, table=True):
    """
    Server-side session backing an access/refresh token pair.

    An access token is only honoured while its session row is active and
    unexpired, so flipping is_active revokes it immediately.

    Attributes:
        token: Current access token (unique)
        refresh_token: Current opaque refresh token (unique, single use)
        expires_at: Session expiration (7 days, 30 with remember me)
        last_activity: Stamped on every authenticated request and refresh
        is_active: False after logout or revocation
    """
    __tablename__ = "user_session"

    id: Optional[int] = Field(default=None, primary_key=True)
    person_id: int = Field(foreign_key="person.id", nullable=False, index=True)
    token: str = Field(sa_column=Column(String(512), unique=True, index=True, nullable=False))
    refresh_token: str = Field(sa_column=Column(String(255), unique=True, index=True, nullable=False))
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(45), nullable=True))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    expires_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    last_activity: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))

    person: Optional[Person] = Relationship(back_populates="sessions")


class Role(SQLModel, table=True):
    """
    Named bundle of permissions.

    alias is the short identifier used in authorization checks
    (e.g. "admin"); name is the display name.
    """
    __tablename__ = "role"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(100), unique=True, index=True, nullable=False))
    alias: Optional[str] = Field(default=None, sa_column=Column(String(50), unique=True, nullable=True))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    role_permissions: List["RolePermission"] = Relationship(back_populates="role")
    person_roles: List["PersonRole"] = Relationship(back_populates="role")


class Permission(SQLModel, table=True):
    """Permission code in resource:action form, e.g. "person:create"."""
    __tablename__ = "permission"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(sa_column=Column(String(100), unique=True, index=True, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    role_permissions: List["RolePermission"] = Relationship(back_populates="permission")


class RolePermission(SQLModel, table=True):
    """Grant of a permission to a role. Inactive grants are ignored."""
    __tablename__ = "role_permission"

    role_id: int = Field(foreign_key="role.id", primary_key=True)
    permission_id: int = Field(foreign_key="permission.id", primary_key=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    created_by: Optional[int] = Field(default=None)

    role: Optional[Role] = Relationship(back_populates="role_permissions")
    permission: Optional[Permission] = Relationship(back_populates="role_permissions")


class PersonRole(SQLModel, table=True):
    """
    Assignment of a role to a person.

    The assignment takes effect at from_date and may be scoped to a
    residential unit or apartment.
    """
    __tablename__ = "person_role"

    id: Optional[int] = Field(default=None, primary_key=True)
    person_id: int = Field(foreign_key="person.id", nullable=False, index=True)
    role_id: int = Field(foreign_key="role.id", nullable=False, index=True)
    from_date: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    residential_unit_id: Optional[int] = Field(default=None)
    apartment_id: Optional[int] = Field(default=None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, default=utcnow))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    person: Optional[Person] = Relationship(back_populates="person_roles")
    role: Optional[Role] = Relationship(back_populates="person_roles")
