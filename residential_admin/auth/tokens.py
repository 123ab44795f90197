"""
Residential Admin - Token Management

Access tokens are HS256 JWTs carrying:
- Person ID (sub)
- Token type discriminator (type="access")
- Unique token ID (jti)

Refresh tokens are opaque random strings with no structure; they are
only meaningful as a lookup key into the user_session table.

Security:
- Access tokens expire after ACCESS_TOKEN_EXPIRE_MINUTES (60 by default)
- A valid signature is not enough: the token must also belong to an
  active, unexpired session
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from pydantic import BaseModel, Field

from residential_admin.config import settings


ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_BYTES = 64


class TokenPayload(BaseModel):
    """
    Decoded access token claims.

    Attributes:
        sub: Subject (person ID, as a string)
        type: Token type discriminator, always "access"
        jti: Unique token ID
        exp: Expiration timestamp
        iat: Issued-at timestamp
    """
    sub: str = Field(..., description="Person ID")
    type: str = Field(..., description="Token type")
    jti: str = Field(..., description="Token ID")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(..., description="Issued at time")

    @property
    def person_id(self) -> int:
        return int(self.sub)


class InvalidTokenError(Exception):
    """Raised when JWT validation fails."""
    pass


def create_access_token(person_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a new JWT access token.

    Args:
        person_id: Person the token is issued to
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string

    Security:
        - jti makes every token unique, even two issued in the same second
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    payload = {
        "sub": str(person_id),
        "type": ACCESS_TOKEN_TYPE,
        "jti": secrets.token_hex(16),
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token() -> str:
    """Create an opaque high-entropy refresh token (128 hex chars)."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def verify_access_token(token: str) -> TokenPayload:
    """
    Verify and decode a JWT access token.

    Raises:
        InvalidTokenError: If the token is malformed, tampered, expired
            or not an access token
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        claims = TokenPayload(**payload)
    except (JWTError, ValueError) as e:
        raise InvalidTokenError(f"Token validation failed: {str(e)}")

    if claims.type != ACCESS_TOKEN_TYPE:
        raise InvalidTokenError("Token is not an access token")

    return claims


def get_token_expiry_seconds() -> int:
    """Access token lifetime in seconds, as reported in expires_in."""
    return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
