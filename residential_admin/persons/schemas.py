"""
Residential Admin - Person Schemas

Request and response models for /persons.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from residential_admin.auth.models import DocumentType, PersonStatus
from residential_admin.auth.schemas import normalize_email, normalize_username, reject_null


class PersonCreate(BaseModel):
    """Request body for POST /persons."""
    document_type: DocumentType = DocumentType.CC
    document_number: str = Field(..., min_length=3, max_length=30)
    full_name: str = Field(..., min_length=2, max_length=200)
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    password: Optional[str] = Field(default=None, max_length=72)
    email: Optional[str] = Field(default=None, max_length=255)
    status: PersonStatus = PersonStatus.ACTIVE
    gender: Optional[str] = Field(default=None, max_length=20)
    alias: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None
    language: str = Field(default="es", max_length=10)
    timezone: str = Field(default="America/Bogota", max_length=50)
    role_ids: List[int] = Field(default_factory=list, description="Roles assigned on creation")

    @validator("username")
    def username_format(cls, v):
        return normalize_username(v) if v is not None else v

    @validator("email")
    def email_format(cls, v):
        return normalize_email(v) if v is not None else v

    @validator("full_name", "document_number")
    def strip_text(cls, v):
        return v.strip()


class PersonUpdate(BaseModel):
    """
    Request body for PUT /persons/{id}.

    Only fields present in the body are changed. Passwords are changed
    through /auth/change-password.
    """
    document_type: Optional[DocumentType] = None
    document_number: Optional[str] = Field(default=None, min_length=3, max_length=30)
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    status: Optional[PersonStatus] = None
    is_active: Optional[bool] = None
    gender: Optional[str] = Field(default=None, max_length=20)
    alias: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None
    language: Optional[str] = Field(default=None, max_length=10)
    timezone: Optional[str] = Field(default=None, max_length=50)

    @validator("username")
    def username_format(cls, v):
        return normalize_username(v) if v is not None else v

    @validator("document_type", "document_number", "full_name", "status", "is_active", "language", "timezone")
    def not_null(cls, v):
        return reject_null(v)


class PersonFilters(BaseModel):
    """Query parameters for GET /persons."""
    search: Optional[str] = None
    status: Optional[PersonStatus] = None
    role_id: Optional[int] = None
    include_deleted: bool = False
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)


class PersonRead(BaseModel):
    """Person as returned by the API. Never includes the password hash."""
    id: int
    document_type: DocumentType
    document_number: str
    full_name: str
    username: Optional[str] = None
    emails: List[str] = []
    status: PersonStatus
    is_active: bool
    has_password: bool = False
    gender: Optional[str] = None
    alias: Optional[str] = None
    notes: Optional[str] = None
    language: str
    timezone: str
    roles: List[str] = []
    last_login: Optional[datetime] = None
    locked_until: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None


class RoleAssignment(BaseModel):
    """Request body for POST /persons/{id}/roles."""
    role_id: int
    from_date: Optional[datetime] = None
    residential_unit_id: Optional[int] = None
    apartment_id: Optional[int] = None


class PersonRoleRead(BaseModel):
    """One role assignment of a person."""
    id: int
    role_id: int
    role_name: str
    role_alias: Optional[str] = None
    from_date: datetime
    residential_unit_id: Optional[int] = None
    apartment_id: Optional[int] = None
    is_active: bool
    created_at: datetime


# =============================================================================
# Bulk operations
# =============================================================================

BULK_MAX_ITEMS = 100


class BulkCreateRequest(BaseModel):
    """Request body for POST /persons/bulk."""
    persons: List[PersonCreate] = Field(..., min_length=1, max_length=BULK_MAX_ITEMS)


class BulkUpdateItem(BaseModel):
    id: int
    data: PersonUpdate


class BulkUpdateRequest(BaseModel):
    """Request body for PUT /persons/bulk."""
    updates: List[BulkUpdateItem] = Field(..., min_length=1, max_length=BULK_MAX_ITEMS)


class BulkDeleteRequest(BaseModel):
    """Request body for DELETE /persons/bulk."""
    ids: List[int] = Field(..., min_length=1, max_length=BULK_MAX_ITEMS)


class BulkValidateRequest(BaseModel):
    """
    Request body for POST /persons/bulk-validate.

    Items are raw objects so that each one is checked and reported
    on its own instead of failing the whole request.
    """
    persons: List[Dict[str, Any]] = Field(..., min_length=1, max_length=BULK_MAX_ITEMS)


class BulkFailure(BaseModel):
    data: Dict[str, Any]
    errors: List[Dict[str, Any]]


class BulkSuccess(BaseModel):
    id: int
    data: Any = None


class BulkResults(BaseModel):
    successful: List[BulkSuccess] = []
    failed: List[BulkFailure] = []


class BulkResult(BaseModel):
    """Outcome of a bulk create, update or delete."""
    total: int
    successful: int
    failed: int
    results: BulkResults


class BulkValidationResults(BaseModel):
    valid: List[Dict[str, Any]] = []
    invalid: List[BulkFailure] = []


class BulkValidationResult(BaseModel):
    total: int
    valid: int
    invalid: int
    results: BulkValidationResults
