"""
Residential Admin - Authentication Service

Login, registration, token refresh, logout and password change.

Flow on login:
    CredentialVerifier -> token issue -> SessionStore.create

Registration and password changes are audited; login/refresh/logout only
touch the session table and are logged.
"""

from typing import Optional

from sqlalchemy import func
from sqlmodel import Session as DBSession, select

from residential_admin.audit.models import AuditOperation
from residential_admin.audit.recorder import AuditContext, AuditRecorder, snapshot
from residential_admin.auth.credentials import CredentialVerifier
from residential_admin.auth.models import Person, PersonEmail, PersonStatus, UserSession
from residential_admin.auth.password import hash_password, verify_password
from residential_admin.auth.schemas import (
    ChangePasswordRequest,
    LoginData,
    RegisteredUser,
    RegisterRequest,
    TokenPair,
    UserSummary,
)
from residential_admin.auth.sessions import SessionStore
from residential_admin.auth.tokens import (
    create_access_token,
    create_refresh_token,
    get_token_expiry_seconds,
)
from residential_admin.exceptions import (
    DuplicateFieldError,
    InvalidOrExpiredRefreshTokenError,
    InvalidPasswordError,
    NoPasswordConfiguredError,
    NotFoundError,
    UserNotFoundError,
)
from residential_admin.logger import get_logger
from residential_admin.rbac.resolver import resolve_permissions, resolve_roles
from residential_admin.time_utils import utcnow
from residential_admin.validation import (
    raise_if_invalid,
    validate_password_change,
    validate_registration,
)


logger = get_logger("auth.service")


def primary_email(person: Person) -> Optional[str]:
    """Primary email of a person, else the first one on record."""
    if not person.emails:
        return None
    for email in person.emails:
        if email.is_primary:
            return email.email
    return person.emails[0].email


def person_summary(person: Person) -> UserSummary:
    """Build the user payload; person's relationships must be loadable."""
    return UserSummary(
        id=person.id,
        username=person.username,
        full_name=person.full_name,
        email=primary_email(person),
        document_type=person.document_type,
        document_number=person.document_number,
        status=person.status,
        roles=sorted(resolve_roles(person)),
        permissions=sorted(resolve_permissions(person)),
        last_login=person.last_login,
    )


class AuthService:
    """
    Authentication use cases over one request-scoped database session.

    Args:
        db: Database session
        recorder: Audit recorder for registration and password changes
        context: Actor, IP and user-agent of the current request
    """

    def __init__(self, db: DBSession, recorder: AuditRecorder, context: Optional[AuditContext] = None):
        self.db = db
        self.recorder = recorder
        self.context = context or AuditContext()
        self.sessions = SessionStore(db)

    async def login(self, username: str, password: str, remember_me: bool = False) -> LoginData:
        """
        Authenticate and open a new session.

        Raises:
            UserNotFoundError, AccountLockedError, NoPasswordConfiguredError,
            InvalidPasswordError
        """
        person = await CredentialVerifier(self.db).verify(username, password)
        tokens = await self.issue_session(person.id, remember_me)

        logger.info("Person %s logged in (remember_me=%s)", person.id, remember_me)

        return LoginData(user=person_summary(person), **tokens.model_dump())

    async def issue_session(self, person_id: int, remember_me: bool = False) -> TokenPair:
        """Mint an access/refresh pair and persist it as a new session."""
        access_token = create_access_token(person_id)
        refresh_token = create_refresh_token()

        await self.sessions.create(
            person_id=person_id,
            token=access_token,
            refresh_token=refresh_token,
            remember_me=remember_me,
            ip_address=self.context.ip_address,
            user_agent=self.context.user_agent,
        )

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=get_token_expiry_seconds(),
        )

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair.

        The old refresh token stops working as soon as this returns.

        Raises:
            InvalidOrExpiredRefreshTokenError: Unknown, expired, logged out
                or already used refresh token
        """
        session = await self.sessions.find_by_refresh_token(refresh_token)
        if session is None:
            raise InvalidOrExpiredRefreshTokenError()

        access_token = create_access_token(session.person_id)
        new_refresh_token = create_refresh_token()

        rotated = await self.sessions.rotate(refresh_token, access_token, new_refresh_token)
        if rotated is None:
            # Another request rotated the same token first
            raise InvalidOrExpiredRefreshTokenError()

        logger.info("Session %s refreshed", rotated.id)

        return TokenPair(
            access_token=access_token,
            refresh_token=new_refresh_token,
            expires_in=get_token_expiry_seconds(),
        )

    async def logout(
        self,
        person_id: int,
        current_session_id: int,
        refresh_token: Optional[str] = None,
        all_sessions: bool = False,
    ) -> int:
        """
        Close sessions.

        Args:
            person_id: Person logging out
            current_session_id: Session the request was authenticated with
            refresh_token: Close only the session holding this token
            all_sessions: Close every session of the person

        Returns:
            Number of sessions deactivated
        """
        if all_sessions:
            count = await self.sessions.deactivate_all_for_person(person_id)
            logger.info("Person %s logged out of %d sessions", person_id, count)
        elif refresh_token:
            count = await self.sessions.deactivate_by_refresh_token(refresh_token, person_id=person_id)
            logger.info("Person %s closed a session by refresh token", person_id)
        else:
            count = 1 if await self.sessions.deactivate(current_session_id) else 0
            logger.info("Person %s logged out", person_id)
        return count

    async def register(self, data: RegisterRequest) -> RegisteredUser:
        """
        Self-registration. The new person starts in PENDING_VERIFICATION.

        Raises:
            ValidationError: Weak password or confirmation mismatch
            DuplicateFieldError: username, email or document_number taken
        """
        raise_if_invalid(validate_registration(data))

        if self.db.exec(select(Person.id).where(Person.username == data.username)).first():
            raise DuplicateFieldError("username", data.username)
        if self.db.exec(
            select(PersonEmail.id).where(func.lower(PersonEmail.email) == data.email.lower())
        ).first():
            raise DuplicateFieldError("email", data.email)
        if self.db.exec(select(Person.id).where(Person.document_number == data.document_number)).first():
            raise DuplicateFieldError("document_number", data.document_number)

        now = utcnow()
        person = Person(
            full_name=data.full_name,
            username=data.username,
            password_hash=hash_password(data.password),
            document_type=data.document_type,
            document_number=data.document_number,
            status=PersonStatus.PENDING_VERIFICATION,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(person)
        self.db.commit()
        self.db.refresh(person)

        self.db.add(PersonEmail(person_id=person.id, email=data.email, is_primary=True))
        self.db.commit()
        self.db.refresh(person)

        new_values = snapshot(person)
        new_values["email"] = data.email
        await self.recorder.record(
            "person",
            person.id,
            AuditOperation.CREATE,
            new_values=new_values,
            actor_id=person.id,
            ip_address=self.context.ip_address,
            user_agent=self.context.user_agent,
        )

        logger.info("Registered person %s", person.id)

        return RegisteredUser(
            id=person.id,
            full_name=person.full_name,
            username=person.username,
            email=data.email,
            status=person.status,
        )

    async def change_password(self, person_id: int, data: ChangePasswordRequest) -> None:
        """
        Replace the password after checking the current one.

        The audit row records only the updated_at change, never a hash.

        Raises:
            NoPasswordConfiguredError: the person has no password to change
            InvalidPasswordError: current_password is wrong
            ValidationError: weak password, mismatch or unchanged password
        """
        person = self.db.get(Person, person_id)
        if person is None or person.deleted_at is not None:
            raise UserNotFoundError()

        if not person.password_hash:
            raise NoPasswordConfiguredError()

        if not verify_password(data.current_password, person.password_hash):
            raise InvalidPasswordError("Current password is incorrect")

        raise_if_invalid(validate_password_change(data))

        old_updated_at = person.updated_at
        person.password_hash = hash_password(data.new_password)
        person.updated_at = utcnow()
        person.updated_by = person_id
        self.db.add(person)
        self.db.commit()
        self.db.refresh(person)

        await self.recorder.record_change(
            self.context,
            "person",
            person.id,
            AuditOperation.UPDATE,
            old_values=snapshot({"updated_at": old_updated_at}),
            new_values=snapshot({"updated_at": person.updated_at}),
        )

        logger.info("Person %s changed their password", person_id)

    async def current_user(self, person_id: int) -> UserSummary:
        person = self.db.get(Person, person_id)
        if person is None:
            raise UserNotFoundError()
        return person_summary(person)

    async def list_sessions(self, person_id: int):
        return await self.sessions.list_active(person_id)

    async def revoke_session(self, person_id: int, session_id: int) -> int:
        """
        Revoke one of the person's own sessions.

        Raises:
            NotFoundError: No active session with that id belongs to the person
        """
        session = self.db.get(UserSession, session_id)
        if session is None or session.person_id != person_id or not session.is_active:
            raise NotFoundError("Session", session_id)

        await self.sessions.deactivate(session_id)
        logger.info("Person %s revoked session %s", person_id, session_id)
        return 1
