"""
Residential Admin - Security Dependencies

FastAPI dependencies for authentication and authorization.
Every protected request validates both the JWT AND its server-side session.

Usage:
    @router.get("/protected")
    async def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

    @router.get("/audit-only")
    @require_any_permission("audit:read")
    async def audit_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

Security:
- The session is looked up by the access token itself; a token whose
  session was logged out or expired is rejected even if its signature is valid
- Authorization is deny-by-default: permissions come only from live role grants
"""

from functools import wraps
from typing import Optional, Set

from fastapi import HTTPException, status, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from sqlmodel import Session as DBSession

from residential_admin.audit.recorder import AuditContext, AuditRecorder
from residential_admin.auth.sessions import SessionStore
from residential_admin.auth.tokens import InvalidTokenError, verify_access_token
from residential_admin.logger import get_logger
from residential_admin.rbac.resolver import (
    has_any_permission,
    has_any_role,
    resolve_permissions,
    resolve_roles,
)


logger = get_logger("auth.dependencies")

# HTTP Bearer scheme for JWT extraction
security = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """
    Represents a validated, authenticated person.

    Available in route handlers via Depends(get_current_user).
    """
    person_id: int
    username: Optional[str] = None
    full_name: str
    session_id: int
    token_id: str
    roles: Set[str] = set()
    permissions: Set[str] = set()


def get_db(request: Request) -> DBSession:
    """Get database session from app state."""
    return request.app.state.db_session_factory()


def get_recorder(request: Request) -> AuditRecorder:
    """Get the audit recorder from app state."""
    return request.app.state.audit_recorder


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()[:45]
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request."""
    return request.headers.get("User-Agent", "unknown")[:512]


def audit_context(request: Request, user: Optional[AuthenticatedUser] = None) -> AuditContext:
    """Actor and client details for audit rows written during this request."""
    return AuditContext(
        actor_id=user.person_id if user else None,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Validate request authentication and return current user.

    This dependency performs:
    1. Extract JWT from Authorization header
    2. Validate JWT signature, expiry and type
    3. Find the active, unexpired session holding this exact token
    4. Stamp the session's last_activity
    5. Resolve the person's roles and permissions

    Raises:
        HTTPException 401: Missing, invalid or revoked credentials
    """
    if not credentials:
        raise _unauthorized("Missing authentication token")

    try:
        token_payload = verify_access_token(credentials.credentials)
    except InvalidTokenError:
        raise _unauthorized("Invalid or expired token")

    db = get_db(request)
    try:
        store = SessionStore(db)
        session = await store.find_by_access_token(credentials.credentials)

        if not session or str(session.person_id) != token_payload.sub:
            raise _unauthorized("Session expired or invalid")

        person = session.person
        if not person or not person.is_active or person.deleted_at is not None:
            raise _unauthorized("User account is inactive")

        await store.touch(session)

        return AuthenticatedUser(
            person_id=person.id,
            username=person.username,
            full_name=person.full_name,
            session_id=session.id,
            token_id=token_payload.jti,
            roles=resolve_roles(person),
            permissions=resolve_permissions(person),
        )
    finally:
        db.close()


def _require_user(kwargs) -> AuthenticatedUser:
    # Extract user from kwargs (injected by Depends)
    user: Optional[AuthenticatedUser] = kwargs.get("user")
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user


def require_any_permission(*permissions: str):
    """
    Decorator requiring at least one of the specified permission codes.

    Usage:
        @require_any_permission("person:read", "person:update")
        async def view_person(user: AuthenticatedUser = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 403: If the user holds none of the permissions
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            user = _require_user(kwargs)

            if not has_any_permission(user.permissions, permissions):
                logger.warning(
                    "Person %s denied %s: requires one of %s",
                    user.person_id, func.__name__, list(permissions),
                )
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Requires one of: {list(permissions)}",
                )

            return await func(*args, **kwargs)
        return wrapper
    return decorator


def require_permission(permission: str):
    """Decorator requiring a single permission code."""
    return require_any_permission(permission)


def require_any_role(*roles: str):
    """
    Decorator requiring at least one of the specified roles.

    Usage:
        @require_any_role("admin")
        async def admin_only(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            user = _require_user(kwargs)

            if not has_any_role(user.roles, roles):
                logger.warning(
                    "Person %s denied %s: requires role %s",
                    user.person_id, func.__name__, list(roles),
                )
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Requires role: {list(roles)}",
                )

            return await func(*args, **kwargs)
        return wrapper
    return decorator
