"""
Residential Admin - Authentication Request/Response Schemas

Pydantic models for API request validation and response serialization.
Separates API contracts from database models.
"""

from datetime import datetime
from typing import List, Optional
import re

from pydantic import BaseModel, Field, validator

from residential_admin.auth.models import DocumentType, PersonStatus


EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+$")


def normalize_email(v: str) -> str:
    """Basic email format validation (allows .local for development)."""
    v = v.strip()
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email format")
    return v.lower()


def normalize_username(v: str) -> str:
    v = v.strip()
    if not USERNAME_PATTERN.match(v):
        raise ValueError("Username may only contain letters, digits, '.', '_' and '-'")
    return v


def reject_null(v):
    """Partial updates may omit a non-nullable field but not clear it."""
    if v is None:
        raise ValueError("may not be null")
    return v


# =============================================================================
# Requests
# =============================================================================

class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    username: str = Field(..., min_length=1, max_length=255, description="Username or email")
    password: str = Field(..., min_length=1, max_length=128, description="User password")
    remember_me: bool = Field(default=False, description="Keep the session for 30 days instead of 7")

    @validator("username")
    def strip_username(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    full_name: str = Field(..., min_length=2, max_length=200)
    username: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=72)
    confirm_password: str = Field(..., max_length=72)
    document_type: DocumentType = DocumentType.CC
    document_number: str = Field(..., min_length=3, max_length=30)

    @validator("username")
    def username_format(cls, v):
        return normalize_username(v)

    @validator("email")
    def email_format(cls, v):
        return normalize_email(v)

    @validator("full_name", "document_number")
    def strip_text(cls, v):
        return v.strip()


class RefreshTokenRequest(BaseModel):
    """Request body for POST /auth/refresh-token."""
    refresh_token: str = Field(..., min_length=1, description="Refresh token")


class LogoutRequest(BaseModel):
    """
    Request body for POST /auth/logout (optional).

    all_sessions wins over refresh_token; with neither, the calling
    session is closed.
    """
    refresh_token: Optional[str] = Field(default=None, description="Close the session holding this refresh token")
    all_sessions: bool = Field(default=False, description="Invalidate all sessions (logout everywhere)")


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password."""
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., max_length=72)
    confirm_new_password: str = Field(..., max_length=72)


# =============================================================================
# Responses
# =============================================================================

class UserSummary(BaseModel):
    """Authenticated person as returned by login and GET /auth/me."""
    id: int
    username: Optional[str] = None
    full_name: str
    email: Optional[str] = None
    document_type: DocumentType
    document_number: str
    status: PersonStatus
    roles: List[str] = []
    permissions: List[str] = []
    last_login: Optional[datetime] = None


class TokenPair(BaseModel):
    """Access/refresh token pair."""
    access_token: str
    refresh_token: str
    expires_in: int = Field(..., description="Seconds until the access token expires")
    token_type: str = "Bearer"


class LoginData(TokenPair):
    """Response data for successful login."""
    user: UserSummary


class RegisteredUser(BaseModel):
    """Response data for registration."""
    id: int
    full_name: str
    username: str
    email: str
    status: PersonStatus


class SessionInfo(BaseModel):
    """Session information for user display."""
    id: int
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    is_current: bool = False

    class Config:
        from_attributes = True


class LogoutResult(BaseModel):
    """Response data for logout and session revocation."""
    sessions_invalidated: int
