"""
Residential Admin - Role and Permission Schemas
"""

from datetime import datetime
from typing import List, Optional
import re

from pydantic import BaseModel, Field, validator

from residential_admin.auth.schemas import reject_null


PERMISSION_CODE_PATTERN = re.compile(r"^[a-z][a-z0-9_]*:[a-z][a-z0-9_]*$")


def permission_code_format(v: str) -> str:
    v = v.strip().lower()
    if not PERMISSION_CODE_PATTERN.match(v):
        raise ValueError("Permission code must look like resource:action")
    return v


class RoleCreate(BaseModel):
    """Request body for POST /roles."""
    name: str = Field(..., min_length=2, max_length=100)
    alias: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = None
    permission_ids: List[int] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """Request body for PUT /roles/{id}. Only present fields are changed."""
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    alias: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @validator("name", "is_active")
    def not_null(cls, v):
        return reject_null(v)


class RolePermissionsUpdate(BaseModel):
    """Request body for PUT /roles/{id}/permissions: the complete new set."""
    permission_ids: List[int]


class RoleRead(BaseModel):
    id: int
    name: str
    alias: Optional[str] = None
    description: Optional[str] = None
    is_active: bool
    permissions: List[str] = []
    person_count: int = 0
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None


class PermissionCreate(BaseModel):
    """Request body for POST /permissions."""
    code: str = Field(..., max_length=100)
    description: Optional[str] = None

    @validator("code")
    def code_format(cls, v):
        return permission_code_format(v)


class PermissionUpdate(BaseModel):
    """Request body for PUT /permissions/{id}. Only present fields are changed."""
    code: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @validator("is_active")
    def not_null(cls, v):
        return reject_null(v)

    @validator("code")
    def code_format(cls, v):
        return permission_code_format(reject_null(v))


class PermissionRead(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
