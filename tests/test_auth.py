"""
Residential Admin - Authentication Test Suite

Comprehensive tests for:
- Password hashing and access tokens
- Login success/failure scenarios and lockout
- Refresh token rotation
- Logout, password change, registration and session management

Run with: pytest tests/test_auth.py -v
"""

from datetime import timedelta

import bcrypt
import pytest
from jose import jwt
from sqlmodel import select

from residential_admin.audit.models import AuditLog
from residential_admin.auth.models import Person, UserSession
from residential_admin.auth.password import hash_password, needs_rehash, verify_password
from residential_admin.auth.tokens import (
    InvalidTokenError,
    create_access_token,
    create_refresh_token,
    verify_access_token,
)
from residential_admin.config import settings
from residential_admin.time_utils import utcnow
from tests.conftest import auth_headers, login_user, make_person


# =============================================================================
# PASSWORD HASHING TESTS
# =============================================================================

class TestPasswordHashing:
    """Unit tests for bcrypt password utilities."""

    def test_hash_password_creates_bcrypt_hash(self):
        """Password hashing creates valid bcrypt hash."""
        hashed = hash_password("admin123")

        assert hashed.startswith("$2b$")
        assert len(hashed) == 60

    def test_verify_password_correct(self):
        hashed = hash_password("admin123")

        assert verify_password("admin123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = hash_password("admin123")

        assert verify_password("admin124", hashed) is False
        assert verify_password("", hashed) is False

    def test_verify_password_malformed_hash(self):
        """A broken or missing hash never verifies."""
        assert verify_password("admin123", "not-a-hash") is False
        assert verify_password("admin123", None) is False

    def test_different_passwords_different_hashes(self):
        """Same password generates different hashes (salted)."""
        hash1 = hash_password("admin123")
        hash2 = hash_password("admin123")

        assert hash1 != hash2
        assert verify_password("admin123", hash1) is True
        assert verify_password("admin123", hash2) is True

    def test_password_over_72_bytes_rejected(self):
        with pytest.raises(ValueError):
            hash_password("a" * 73)

    def test_needs_rehash_old_work_factor(self):
        """Detects when password needs rehashing."""
        old_hash = bcrypt.hashpw(b"password", bcrypt.gensalt(rounds=4)).decode()

        assert needs_rehash(old_hash, target_work_factor=12) is True

    def test_needs_rehash_current_factor(self):
        """Current work factor doesn't need rehash."""
        assert needs_rehash(hash_password("password")) is False

    def test_needs_rehash_non_bcrypt(self):
        assert needs_rehash("plaintext") is True


# =============================================================================
# TOKEN TESTS
# =============================================================================

class TestTokens:
    """Unit tests for access and refresh token creation."""

    def test_access_token_roundtrip(self):
        token = create_access_token(42)
        payload = verify_access_token(token)

        assert payload.sub == "42"
        assert payload.person_id == 42
        assert payload.type == "access"
        assert len(payload.jti) == 32

    def test_access_tokens_are_unique(self):
        """Two tokens for the same person in the same second still differ."""
        assert create_access_token(1) != create_access_token(1)

    def test_access_token_lifetime(self):
        payload = verify_access_token(create_access_token(1))

        lifetime = payload.exp - payload.iat
        assert lifetime == timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def test_verify_access_token_invalid(self):
        with pytest.raises(InvalidTokenError):
            verify_access_token("invalid.token.here")

    def test_verify_access_token_tampered(self):
        parts = create_access_token(1).split(".")
        parts[1] = parts[1] + "tampered"

        with pytest.raises(InvalidTokenError):
            verify_access_token(".".join(parts))

    def test_verify_access_token_expired(self):
        token = create_access_token(1, expires_delta=timedelta(seconds=-10))

        with pytest.raises(InvalidTokenError):
            verify_access_token(token)

    def test_verify_rejects_other_token_types(self):
        """A correctly signed token with another type is not an access token."""
        now = utcnow()
        token = jwt.encode(
            {"sub": "1", "type": "refresh", "jti": "x" * 32, "iat": now, "exp": now + timedelta(minutes=5)},
            settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
        )

        with pytest.raises(InvalidTokenError):
            verify_access_token(token)

    def test_refresh_token_is_opaque_hex(self):
        token = create_refresh_token()

        assert len(token) == 128
        int(token, 16)
        assert token != create_refresh_token()


# =============================================================================
# LOGIN ENDPOINT TESTS
# =============================================================================

class TestLoginEndpoint:
    """Integration tests for POST /auth/login."""

    def test_login_seeded_admin(self, client, admin_user):
        """admin/admin123 logs in and gets a token pair."""
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "admin", "password": "admin123"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True

        data = body["data"]
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == 3600
        assert data["user"]["username"] == "admin"
        assert "admin" in data["user"]["roles"]
        assert "audit:clean" in data["user"]["permissions"]
        assert "password_hash" not in data["user"]

    def test_login_with_email(self, client, admin_user):
        """Any associated email works as the login identifier, case-insensitively."""
        assert login_user(client, "admin@residential.com", "admin123") is not None
        assert login_user(client, "ADMIN@Residential.com", "admin123") is not None

    def test_login_user_not_found(self, client, admin_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "nobody", "password": "whatever1"},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["code"] == "USER_NOT_FOUND"

    def test_login_invalid_password(self, client, db_session, admin_user):
        response = client.post(
            "/api/v1/auth/login",
            json={"username": "admin", "password": "wrong-password"},
        )

        assert response.status_code == 401
        assert response.json()["errors"][0]["code"] == "INVALID_PASSWORD"

        db_session.refresh(admin_user)
        assert admin_user.login_attempts == 1
        assert admin_user.locked_until is None

    def test_login_no_password_configured(self, client, db_session):
        make_person(db_session, "nopass", password=None)

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "nopass", "password": "anything1"},
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "NO_PASSWORD_CONFIGURED"

    def test_login_deleted_person_not_found(self, client, db_session):
        make_person(db_session, "gone", deleted_at=utcnow())

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "gone", "password": "Password123"},
        )

        assert response.status_code == 404

    def test_login_inactive_person_not_found(self, client, db_session):
        make_person(db_session, "inactive", is_active=False)

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "inactive", "password": "Password123"},
        )

        assert response.status_code == 404

    def test_login_missing_password_is_validation_error(self, client):
        response = client.post("/api/v1/auth/login", json={"username": "admin"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["field"] == "password"
        assert body["errors"][0]["code"] == "MISSING"

    def test_success_resets_attempts_and_stamps_last_login(self, client, db_session, admin_user):
        admin_user.login_attempts = 3
        db_session.add(admin_user)
        db_session.commit()

        assert login_user(client, "admin", "admin123") is not None

        db_session.refresh(admin_user)
        assert admin_user.login_attempts == 0
        assert admin_user.locked_until is None
        assert admin_user.last_login is not None

    def test_expired_lock_allows_login(self, client, db_session, admin_user):
        admin_user.login_attempts = 5
        admin_user.locked_until = utcnow() - timedelta(minutes=1)
        db_session.add(admin_user)
        db_session.commit()

        assert login_user(client, "admin", "admin123") is not None

        db_session.refresh(admin_user)
        assert admin_user.login_attempts == 0
        assert admin_user.locked_until is None

    def test_remember_me_extends_session(self, client, db_session, admin_user):
        short = login_user(client, "admin", "admin123")
        long = login_user(client, "admin", "admin123", remember_me=True)

        db_session.expire_all()
        short_session = db_session.exec(
            select(UserSession).where(UserSession.token == short["access_token"])
        ).one()
        long_session = db_session.exec(
            select(UserSession).where(UserSession.token == long["access_token"])
        ).one()

        now = utcnow()
        assert timedelta(days=6) < short_session.expires_at - now <= timedelta(days=7)
        assert timedelta(days=29) < long_session.expires_at - now <= timedelta(days=30)

    def test_login_upgrades_outdated_hash(self, client, db_session, admin_user, monkeypatch):
        """Raising the work factor rehashes the password on the next login."""
        monkeypatch.setattr(settings, "BCRYPT_WORK_FACTOR", 5)

        assert login_user(client, "admin", "admin123") is not None

        db_session.refresh(admin_user)
        assert admin_user.password_hash.startswith("$2b$05$")
        assert verify_password("admin123", admin_user.password_hash)


# =============================================================================
# LOCKOUT TESTS
# =============================================================================

class TestLockout:
    """Failed-login counting and account lock."""

    def test_fifth_failure_locks_sixth_attempt_rejected(self, client, db_session, admin_user):
        """
        5 wrong passwords: all answer 401, the 5th sets the lock.
        The 6th attempt answers 423 even with the correct password.
        """
        for attempt in range(1, 6):
            response = client.post(
                "/api/v1/auth/login",
                json={"username": "admin", "password": "wrong-password"},
            )
            assert response.status_code == 401, f"attempt {attempt}"
            assert response.json()["errors"][0]["code"] == "INVALID_PASSWORD"

        db_session.refresh(admin_user)
        assert admin_user.login_attempts == 5
        assert admin_user.locked_until >= utcnow() + timedelta(minutes=14)

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "admin", "password": "admin123"},
        )
        assert response.status_code == 423
        assert response.json()["errors"][0]["code"] == "ACCOUNT_LOCKED"

    def test_four_failures_do_not_lock(self, client, db_session, admin_user):
        for _ in range(4):
            client.post("/api/v1/auth/login", json={"username": "admin", "password": "wrong-password"})

        db_session.refresh(admin_user)
        assert admin_user.login_attempts == 4
        assert admin_user.locked_until is None

        assert login_user(client, "admin", "admin123") is not None

    def test_locked_account_skips_password_check(self, client, db_session, admin_user):
        """Attempts during the lock are not counted."""
        admin_user.login_attempts = 5
        admin_user.locked_until = utcnow() + timedelta(minutes=15)
        db_session.add(admin_user)
        db_session.commit()

        response = client.post(
            "/api/v1/auth/login",
            json={"username": "admin", "password": "wrong-password"},
        )

        assert response.status_code == 423
        db_session.refresh(admin_user)
        assert admin_user.login_attempts == 5

    def test_lockout_is_per_person(self, client, db_session, admin_user, regular_user):
        for _ in range(5):
            client.post("/api/v1/auth/login", json={"username": "admin", "password": "wrong-password"})

        assert login_user(client, "usuario", "password123") is not None


# =============================================================================
# REFRESH TOKEN TESTS
# =============================================================================

class TestRefreshToken:
    """Integration tests for POST /auth/refresh-token."""

    def test_refresh_rotates_both_tokens(self, client, admin_user):
        tokens = login_user(client, "admin", "admin123")

        response = client.post(
            "/api/v1/auth/refresh-token",
            json={"refresh_token": tokens["refresh_token"]},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["access_token"] != tokens["access_token"]
        assert data["refresh_token"] != tokens["refresh_token"]
        assert data["expires_in"] == 3600

        # New access token works, old one belongs to no session anymore
        assert client.get("/api/v1/auth/me", headers=auth_headers(data["access_token"])).status_code == 200
        assert client.get("/api/v1/auth/me", headers=auth_headers(tokens["access_token"])).status_code == 401

    def test_refresh_token_is_single_use(self, client, admin_user):
        tokens = login_user(client, "admin", "admin123")

        first = client.post("/api/v1/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]})
        second = client.post("/api/v1/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]})

        assert first.status_code == 200
        assert second.status_code == 401
        assert second.json()["errors"][0]["code"] == "INVALID_REFRESH_TOKEN"

        # The rotated token still works once
        rotated = first.json()["data"]["refresh_token"]
        third = client.post("/api/v1/auth/refresh-token", json={"refresh_token": rotated})
        assert third.status_code == 200

    def test_refresh_unknown_token(self, client):
        response = client.post("/api/v1/auth/refresh-token", json={"refresh_token": "deadbeef"})

        assert response.status_code == 401

    def test_refresh_after_logout_rejected(self, client, admin_user):
        tokens = login_user(client, "admin", "admin123")
        client.post("/api/v1/auth/logout", headers=auth_headers(tokens["access_token"]))

        response = client.post("/api/v1/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 401

    def test_expired_session_rejected_everywhere(self, client, db_session, admin_user):
        """Expired and logged-out sessions are rejected the same way."""
        tokens = login_user(client, "admin", "admin123")

        db_session.expire_all()
        session = db_session.exec(
            select(UserSession).where(UserSession.token == tokens["access_token"])
        ).one()
        session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.add(session)
        db_session.commit()

        assert client.get("/api/v1/auth/me", headers=auth_headers(tokens["access_token"])).status_code == 401
        response = client.post("/api/v1/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401


# =============================================================================
# LOGOUT TESTS
# =============================================================================

class TestLogoutEndpoint:
    """Integration tests for POST /auth/logout."""

    def test_logout_closes_current_session(self, client, admin_user):
        tokens = login_user(client, "admin", "admin123")
        headers = auth_headers(tokens["access_token"])

        assert client.get("/api/v1/auth/me", headers=headers).status_code == 200

        response = client.post("/api/v1/auth/logout", headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["sessions_invalidated"] == 1

        # Token replay after logout is blocked
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401

    def test_logout_all_sessions(self, client, admin_user):
        """all_sessions deactivates every session; all old access tokens are rejected."""
        tokens1 = login_user(client, "admin", "admin123")
        tokens2 = login_user(client, "admin", "admin123")

        response = client.post(
            "/api/v1/auth/logout",
            headers=auth_headers(tokens1["access_token"]),
            json={"all_sessions": True},
        )

        assert response.status_code == 200
        assert response.json()["data"]["sessions_invalidated"] == 2
        assert client.get("/api/v1/auth/me", headers=auth_headers(tokens1["access_token"])).status_code == 401
        assert client.get("/api/v1/auth/me", headers=auth_headers(tokens2["access_token"])).status_code == 401

    def test_logout_by_refresh_token(self, client, admin_user):
        """Closing another device's session leaves the calling one open."""
        tokens1 = login_user(client, "admin", "admin123")
        tokens2 = login_user(client, "admin", "admin123")

        response = client.post(
            "/api/v1/auth/logout",
            headers=auth_headers(tokens1["access_token"]),
            json={"refresh_token": tokens2["refresh_token"]},
        )

        assert response.status_code == 200
        assert client.get("/api/v1/auth/me", headers=auth_headers(tokens1["access_token"])).status_code == 200
        assert client.get("/api/v1/auth/me", headers=auth_headers(tokens2["access_token"])).status_code == 401

    def test_logout_cannot_close_other_persons_session(self, client, admin_user, regular_user):
        admin_tokens = login_user(client, "admin", "admin123")
        user_tokens = login_user(client, "usuario", "password123")

        response = client.post(
            "/api/v1/auth/logout",
            headers=auth_headers(user_tokens["access_token"]),
            json={"refresh_token": admin_tokens["refresh_token"]},
        )

        assert response.json()["data"]["sessions_invalidated"] == 0
        assert client.get("/api/v1/auth/me", headers=auth_headers(admin_tokens["access_token"])).status_code == 200

    def test_logout_requires_authentication(self, client):
        response = client.post("/api/v1/auth/logout")

        assert response.status_code == 401
        assert response.json()["success"] is False


# =============================================================================
# AUTHENTICATION DEPENDENCY TESTS
# =============================================================================

class TestAuthenticationDependency:
    """Bearer token plus server-side session validation."""

    def test_missing_authorization_header(self, client):
        response = client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_jwt_rejected(self, client):
        response = client.get("/api/v1/auth/me", headers=auth_headers("totally.invalid.token"))

        assert response.status_code == 401

    def test_valid_signature_without_session_rejected(self, client, admin_user):
        """A correctly signed token that was never issued for a session is refused."""
        forged = create_access_token(admin_user.id)

        response = client.get("/api/v1/auth/me", headers=auth_headers(forged))

        assert response.status_code == 401

    def test_request_stamps_last_activity(self, client, db_session, admin_user):
        tokens = login_user(client, "admin", "admin123")

        db_session.expire_all()
        session = db_session.exec(
            select(UserSession).where(UserSession.token == tokens["access_token"])
        ).one()
        session.last_activity = utcnow() - timedelta(hours=1)
        db_session.add(session)
        db_session.commit()

        client.get("/api/v1/auth/me", headers=auth_headers(tokens["access_token"]))

        db_session.refresh(session)
        assert session.last_activity > utcnow() - timedelta(minutes=1)

    def test_me_returns_roles_and_permissions(self, client, security_user):
        tokens = login_user(client, "seguridad", "password123")

        response = client.get("/api/v1/auth/me", headers=auth_headers(tokens["access_token"]))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["username"] == "seguridad"
        assert data["email"] == "seguridad@residential.com"
        assert data["roles"] == ["security"]
        assert data["permissions"] == ["audit:read", "person:read"]


# =============================================================================
# CHANGE PASSWORD TESTS
# =============================================================================

class TestChangePassword:
    """Integration tests for POST /auth/change-password."""

    def test_change_password(self, client, db_session, admin_user, admin_headers):
        response = client.post(
            "/api/v1/auth/change-password",
            headers=admin_headers,
            json={
                "current_password": "admin123",
                "new_password": "NewSecret456",
                "confirm_new_password": "NewSecret456",
            },
        )

        assert response.status_code == 200
        assert login_user(client, "admin", "NewSecret456") is not None

        wrong = client.post("/api/v1/auth/login", json={"username": "admin", "password": "admin123"})
        assert wrong.status_code == 401

    def test_change_password_audit_never_contains_hash(self, client, db_session, admin_user, admin_headers):
        client.post(
            "/api/v1/auth/change-password",
            headers=admin_headers,
            json={
                "current_password": "admin123",
                "new_password": "NewSecret456",
                "confirm_new_password": "NewSecret456",
            },
        )

        rows = db_session.exec(select(AuditLog).where(AuditLog.table_name == "person")).all()
        assert len(rows) == 1
        assert rows[0].operation == "UPDATE"
        assert rows[0].changed_fields == ["updated_at"]
        assert rows[0].user_id == admin_user.id
        assert "password_hash" not in (rows[0].old_values or {})
        assert "password_hash" not in (rows[0].new_values or {})

    def test_wrong_current_password(self, client, admin_headers):
        response = client.post(
            "/api/v1/auth/change-password",
            headers=admin_headers,
            json={
                "current_password": "not-my-password",
                "new_password": "NewSecret456",
                "confirm_new_password": "NewSecret456",
            },
        )

        assert response.status_code == 401

    def test_person_without_password(self, client, db_session, admin_user, admin_headers):
        admin_user.password_hash = None
        db_session.add(admin_user)
        db_session.commit()

        response = client.post(
            "/api/v1/auth/change-password",
            headers=admin_headers,
            json={
                "current_password": "admin123",
                "new_password": "NewSecret456",
                "confirm_new_password": "NewSecret456",
            },
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "NO_PASSWORD_CONFIGURED"

    def test_confirmation_mismatch(self, client, admin_headers):
        response = client.post(
            "/api/v1/auth/change-password",
            headers=admin_headers,
            json={
                "current_password": "admin123",
                "new_password": "NewSecret456",
                "confirm_new_password": "Different789",
            },
        )

        assert response.status_code == 400
        fields = [e["field"] for e in response.json()["errors"]]
        assert "confirm_new_password" in fields


# =============================================================================
# REGISTRATION TESTS
# =============================================================================

class TestRegister:
    """Integration tests for POST /auth/register."""

    def registration(self, **overrides):
        body = {
            "full_name": "Nueva Residente",
            "username": "nueva",
            "email": "nueva@residential.com",
            "password": "Welcome123",
            "confirm_password": "Welcome123",
            "document_type": "CC",
            "document_number": "55555555",
        }
        body.update(overrides)
        return body

    def test_register_creates_pending_person(self, client, db_session, roles):
        response = client.post("/api/v1/auth/register", json=self.registration())

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "PENDING_VERIFICATION"
        assert data["email"] == "nueva@residential.com"

        person = db_session.exec(select(Person).where(Person.username == "nueva")).one()
        assert person.password_hash != "Welcome123"

        audit = db_session.exec(select(AuditLog).where(AuditLog.table_name == "person")).one()
        assert audit.operation == "CREATE"
        assert audit.record_id == str(person.id)
        assert audit.changed_fields == []
        assert "password_hash" not in audit.new_values

    def test_registered_person_can_login(self, client, roles):
        client.post("/api/v1/auth/register", json=self.registration())

        assert login_user(client, "nueva@residential.com", "Welcome123") is not None

    def test_duplicate_username(self, client, admin_user):
        response = client.post("/api/v1/auth/register", json=self.registration(username="admin"))

        assert response.status_code == 409
        assert response.json()["errors"][0]["field"] == "username"

    def test_duplicate_email(self, client, admin_user):
        response = client.post(
            "/api/v1/auth/register", json=self.registration(email="ADMIN@residential.com")
        )

        assert response.status_code == 409
        assert response.json()["errors"][0]["field"] == "email"

    def test_duplicate_document(self, client, admin_user):
        response = client.post(
            "/api/v1/auth/register", json=self.registration(document_number="12345678")
        )

        assert response.status_code == 409
        assert response.json()["errors"][0]["field"] == "document_number"

    def test_password_mismatch(self, client):
        response = client.post(
            "/api/v1/auth/register", json=self.registration(confirm_password="Other1234")
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "MISMATCH"

    def test_weak_password(self, client):
        response = client.post(
            "/api/v1/auth/register",
            json=self.registration(password="short", confirm_password="short"),
        )

        assert response.status_code == 400
        codes = {e["code"] for e in response.json()["errors"]}
        assert {"TOO_SHORT", "NO_DIGIT"} <= codes


# =============================================================================
# SESSION MANAGEMENT TESTS
# =============================================================================

class TestSessionEndpoints:
    """GET/DELETE /auth/sessions."""

    def test_list_sessions_marks_current(self, client, admin_user):
        first = login_user(client, "admin", "admin123")
        login_user(client, "admin", "admin123")

        response = client.get("/api/v1/auth/sessions", headers=auth_headers(first["access_token"]))

        assert response.status_code == 200
        sessions = response.json()["data"]
        assert len(sessions) == 2
        assert sum(1 for s in sessions if s["is_current"]) == 1

    def test_revoke_own_session(self, client, admin_user):
        first = login_user(client, "admin", "admin123")
        second = login_user(client, "admin", "admin123")

        sessions = client.get("/api/v1/auth/sessions", headers=auth_headers(first["access_token"])).json()["data"]
        other = next(s for s in sessions if not s["is_current"])

        response = client.delete(
            f"/api/v1/auth/sessions/{other['id']}",
            headers=auth_headers(first["access_token"]),
        )

        assert response.status_code == 200
        assert client.get("/api/v1/auth/me", headers=auth_headers(second["access_token"])).status_code == 401

    def test_cannot_revoke_other_persons_session(self, client, admin_user, regular_user):
        admin_tokens = login_user(client, "admin", "admin123")
        user_tokens = login_user(client, "usuario", "password123")

        admin_sessions = client.get(
            "/api/v1/auth/sessions", headers=auth_headers(admin_tokens["access_token"])
        ).json()["data"]

        response = client.delete(
            f"/api/v1/auth/sessions/{admin_sessions[0]['id']}",
            headers=auth_headers(user_tokens["access_token"]),
        )

        assert response.status_code == 404

    def test_cleanup_expired_sessions_admin_only(self, client, db_session, admin_user, regular_user):
        user_tokens = login_user(client, "usuario", "password123")
        stale = login_user(client, "usuario", "password123")

        db_session.expire_all()
        session = db_session.exec(
            select(UserSession).where(UserSession.token == stale["access_token"])
        ).one()
        session.expires_at = utcnow() - timedelta(days=1)
        db_session.add(session)
        db_session.commit()

        denied = client.delete(
            "/api/v1/auth/sessions/expired", headers=auth_headers(user_tokens["access_token"])
        )
        assert denied.status_code == 403

        admin_tokens = login_user(client, "admin", "admin123")
        response = client.delete(
            "/api/v1/auth/sessions/expired", headers=auth_headers(admin_tokens["access_token"])
        )
        assert response.status_code == 200
        assert response.json()["data"]["sessions_invalidated"] == 1

        db_session.refresh(session)
        assert session.is_active is False
