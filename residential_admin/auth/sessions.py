"""
Residential Admin - Session Store

Server-side session persistence for authentication.
A SessionStore wraps one request-scoped database session; nothing is
cached in memory, so every check reflects the current table state.

Session lifecycle:
    created -> active -> (expired | logged out)

Both terminal states are rejected the same way: lookups only return rows
that are active AND unexpired.
"""

from datetime import timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlmodel import Session as DBSession, select

from residential_admin.auth.models import UserSession
from residential_admin.config import settings
from residential_admin.logger import get_logger
from residential_admin.time_utils import utcnow


logger = get_logger("auth.sessions")


def session_lifetime(remember_me: bool = False) -> timedelta:
    """Session lifetime: REMEMBER_ME_EXPIRE_DAYS with remember me, else SESSION_EXPIRE_DAYS."""
    days = settings.REMEMBER_ME_EXPIRE_DAYS if remember_me else settings.SESSION_EXPIRE_DAYS
    return timedelta(days=days)


class SessionStore:
    """
    Persistence interface for user sessions.

    Usage:
        store = SessionStore(db)
        session = await store.create(person_id, token, refresh_token)
        current = await store.find_by_access_token(token)
    """

    def __init__(self, db: DBSession):
        self.db = db

    async def create(
        self,
        person_id: int,
        token: str,
        refresh_token: str,
        remember_me: bool = False,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UserSession:
        """
        Persist a new active session.

        Args:
            person_id: Owner of the session
            token: Access token issued for it
            refresh_token: Opaque refresh token issued for it
            remember_me: Selects the 30 day lifetime instead of 7 days
            ip_address: Client IP for audit
            user_agent: Client user-agent for audit

        Returns:
            Created UserSession
        """
        now = utcnow()
        session = UserSession(
            person_id=person_id,
            token=token,
            refresh_token=refresh_token,
            ip_address=ip_address,
            user_agent=user_agent,
            expires_at=now + session_lifetime(remember_me),
            last_activity=now,
            is_active=True,
            created_at=now,
        )

        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        return session

    async def find_by_access_token(self, token: str) -> Optional[UserSession]:
        """Return the session for an access token if it is active and unexpired."""
        statement = select(UserSession).where(
            UserSession.token == token,
            UserSession.is_active == True,  # noqa: E712
            UserSession.expires_at > utcnow(),
        )
        return self.db.exec(statement).first()

    async def find_by_refresh_token(self, refresh_token: str) -> Optional[UserSession]:
        """Return the session for a refresh token if it is active and unexpired."""
        statement = select(UserSession).where(
            UserSession.refresh_token == refresh_token,
            UserSession.is_active == True,  # noqa: E712
            UserSession.expires_at > utcnow(),
        )
        return self.db.exec(statement).first()

    async def touch(self, session: UserSession) -> UserSession:
        """Stamp last_activity on a session."""
        session.last_activity = utcnow()
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    async def rotate(
        self,
        old_refresh_token: str,
        new_token: str,
        new_refresh_token: str,
    ) -> Optional[UserSession]:
        """
        Swap a session's token pair for a new one.

        The swap is a single conditional UPDATE keyed on the old refresh
        token, so of two concurrent rotations with the same token only one
        matches a row.

        Returns:
            The rotated session, or None if the old refresh token no longer
            belongs to an active, unexpired session
        """
        now = utcnow()
        statement = (
            update(UserSession)
            .where(
                UserSession.refresh_token == old_refresh_token,
                UserSession.is_active == True,  # noqa: E712
                UserSession.expires_at > now,
            )
            .values(token=new_token, refresh_token=new_refresh_token, last_activity=now)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(statement)
        self.db.commit()

        if result.rowcount != 1:
            return None

        return self.db.exec(
            select(UserSession).where(UserSession.refresh_token == new_refresh_token)
        ).first()

    async def deactivate(self, session_id: int) -> bool:
        """
        Deactivate one session by id.

        Returns:
            True if an active session was deactivated
        """
        return self._deactivate_where(UserSession.id == session_id) > 0

    async def deactivate_by_refresh_token(self, refresh_token: str, person_id: Optional[int] = None) -> int:
        """Deactivate the session holding refresh_token (logout one device)."""
        conditions = [UserSession.refresh_token == refresh_token]
        if person_id is not None:
            conditions.append(UserSession.person_id == person_id)
        return self._deactivate_where(*conditions)

    async def deactivate_all_for_person(self, person_id: int) -> int:
        """
        Deactivate every active session of a person (logout everywhere).

        Returns:
            Number of sessions deactivated
        """
        return self._deactivate_where(UserSession.person_id == person_id)

    async def list_active(self, person_id: int) -> List[UserSession]:
        """Active, unexpired sessions of a person, newest first."""
        statement = (
            select(UserSession)
            .where(
                UserSession.person_id == person_id,
                UserSession.is_active == True,  # noqa: E712
                UserSession.expires_at > utcnow(),
            )
            .order_by(UserSession.created_at.desc())
        )
        return list(self.db.exec(statement).all())

    async def cleanup_expired(self) -> int:
        """
        Mark all expired sessions as inactive.

        Returns:
            Number of sessions cleaned up
        """
        count = self._deactivate_where(UserSession.expires_at <= utcnow())
        if count:
            logger.info("Deactivated %d expired sessions", count)
        return count

    def _deactivate_where(self, *conditions) -> int:
        statement = (
            update(UserSession)
            .where(UserSession.is_active == True, *conditions)  # noqa: E712
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(statement)
        self.db.commit()
        return result.rowcount
