"""
Residential Admin - Authentication Routes

API endpoints for authentication:
- POST   /auth/login              - Authenticate and create session
- POST   /auth/register           - Self-registration
- POST   /auth/refresh-token      - Exchange refresh token for a new pair
- POST   /auth/logout             - Close current, one, or all sessions
- POST   /auth/change-password    - Change own password
- GET    /auth/me                 - Current person with roles and permissions
- GET    /auth/sessions           - List own active sessions
- DELETE /auth/sessions/expired   - Deactivate expired sessions (admin)
- DELETE /auth/sessions/{id}      - Revoke one of own sessions

Responses use the standard envelope; failures are raised as domain
exceptions and mapped by the gateway handlers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status

from residential_admin.auth.dependencies import (
    AuthenticatedUser,
    audit_context,
    get_current_user,
    get_db,
    get_recorder,
    require_any_role,
)
from residential_admin.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    LogoutResult,
    RefreshTokenRequest,
    RegisterRequest,
    SessionInfo,
)
from residential_admin.auth.service import AuthService
from residential_admin.gateway.responses import ok


router = APIRouter(prefix="/auth", tags=["authentication"])


def _service(request: Request, db, user: Optional[AuthenticatedUser] = None) -> AuthService:
    return AuthService(db, get_recorder(request), audit_context(request, user))


@router.post("/login", summary="Authenticate user and create session")
async def login(request: Request, credentials: LoginRequest):
    """
    Authenticate with username (or email) and password.

    Returns:
        user, access_token, refresh_token, expires_in, token_type

    Raises:
        404 unknown user, 423 locked account, 401 wrong password,
        400 no password configured
    """
    db = get_db(request)
    try:
        data = await _service(request, db).login(
            credentials.username, credentials.password, credentials.remember_me
        )
        return ok(request, data, "Login successful")
    finally:
        db.close()


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register a new account")
async def register(request: Request, body: RegisterRequest):
    """Create a person in PENDING_VERIFICATION with a login email."""
    db = get_db(request)
    try:
        data = await _service(request, db).register(body)
        return ok(request, data, "User registered successfully")
    finally:
        db.close()


@router.post("/refresh-token", summary="Refresh access token")
async def refresh_token(request: Request, body: RefreshTokenRequest):
    """Exchange a refresh token for a new pair. Each refresh token works once."""
    db = get_db(request)
    try:
        data = await _service(request, db).refresh(body.refresh_token)
        return ok(request, data, "Token refreshed successfully")
    finally:
        db.close()


@router.post("/logout", summary="Invalidate sessions")
async def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    user: AuthenticatedUser = Depends(get_current_user),
):
    """
    Close sessions.

    all_sessions=true closes every session of the person; refresh_token
    closes that session; with neither, the calling session is closed.
    """
    body = body or LogoutRequest()
    db = get_db(request)
    try:
        count = await _service(request, db, user).logout(
            user.person_id,
            user.session_id,
            refresh_token=body.refresh_token,
            all_sessions=body.all_sessions,
        )
        return ok(request, LogoutResult(sessions_invalidated=count), "Logout successful")
    finally:
        db.close()


@router.post("/change-password", summary="Change own password")
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: AuthenticatedUser = Depends(get_current_user),
):
    db = get_db(request)
    try:
        await _service(request, db, user).change_password(user.person_id, body)
        return ok(request, message="Password changed successfully")
    finally:
        db.close()


@router.get("/me", summary="Get current user information")
async def get_me(request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        data = await _service(request, db, user).current_user(user.person_id)
        return ok(request, data, "User retrieved successfully")
    finally:
        db.close()


@router.get("/sessions", summary="List active sessions")
async def list_sessions(request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    """List all active sessions for the current user; is_current marks this one."""
    db = get_db(request)
    try:
        active_sessions = await _service(request, db, user).list_sessions(user.person_id)
        data = [
            SessionInfo(
                id=s.id,
                ip_address=s.ip_address,
                user_agent=s.user_agent,
                created_at=s.created_at,
                last_activity=s.last_activity,
                expires_at=s.expires_at,
                is_current=(s.id == user.session_id),
            )
            for s in active_sessions
        ]
        return ok(request, data, "Sessions retrieved successfully")
    finally:
        db.close()


@router.delete("/sessions/expired", summary="Deactivate expired sessions")
@require_any_role("admin")
async def cleanup_sessions(request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    db = get_db(request)
    try:
        count = await _service(request, db, user).sessions.cleanup_expired()
        return ok(request, LogoutResult(sessions_invalidated=count), "Expired sessions cleaned")
    finally:
        db.close()


@router.delete("/sessions/{session_id}", summary="Revoke a specific session")
async def revoke_session(
    request: Request,
    session_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Revoke one of the current user's own sessions."""
    db = get_db(request)
    try:
        count = await _service(request, db, user).revoke_session(user.person_id, session_id)
        return ok(request, LogoutResult(sessions_invalidated=count), "Session revoked")
    finally:
        db.close()
