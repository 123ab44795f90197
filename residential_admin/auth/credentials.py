"""
Residential Admin - Credential Verifier

Checks a username-or-email and password pair and enforces the
failed-login lockout.

Check order:
    1. No active, non-deleted person matches      -> UserNotFoundError
    2. locked_until is in the future              -> AccountLockedError
    3. No password configured                     -> NoPasswordConfiguredError
    4. Password mismatch                          -> InvalidPasswordError
       (login_attempts is incremented in SQL; reaching MAX_LOGIN_ATTEMPTS
        sets locked_until in the same transaction)
    5. Success: attempts reset, lock cleared, last_login stamped

Security:
- A locked account is rejected before the password is checked
- The counter is incremented by the database, so concurrent failures
  are never lost
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy import func, or_, update
from sqlmodel import Session as DBSession, select

from residential_admin.auth.models import Person, PersonEmail
from residential_admin.auth.password import hash_password, needs_rehash, verify_password
from residential_admin.config import settings
from residential_admin.exceptions import (
    AccountLockedError,
    InvalidPasswordError,
    NoPasswordConfiguredError,
    UserNotFoundError,
)
from residential_admin.logger import get_logger
from residential_admin.time_utils import utcnow


logger = get_logger("auth.credentials")


class CredentialVerifier:
    """
    Username-or-email and password check with lockout.

    Usage:
        person = await CredentialVerifier(db).verify("admin", "admin123")
    """

    def __init__(self, db: DBSession):
        self.db = db

    async def find_login_candidate(self, identifier: str) -> Optional[Person]:
        """
        Find the active, non-deleted person whose username or any email matches.

        Emails are compared case-insensitively; usernames exactly.
        """
        identifier = identifier.strip()
        email_owner = select(PersonEmail.person_id).where(
            func.lower(PersonEmail.email) == identifier.lower()
        )
        statement = select(Person).where(
            or_(Person.username == identifier, Person.id.in_(email_owner)),
            Person.is_active == True,  # noqa: E712
            Person.deleted_at.is_(None),
        )
        return self.db.exec(statement).first()

    async def verify(self, identifier: str, password: str) -> Person:
        """
        Authenticate a person.

        Args:
            identifier: Username or any associated email
            password: Plaintext password

        Returns:
            The authenticated Person, with lockout fields reset

        Raises:
            UserNotFoundError, AccountLockedError, NoPasswordConfiguredError,
            InvalidPasswordError
        """
        person = await self.find_login_candidate(identifier)
        if person is None:
            logger.info("Login failed: no user matches the given identifier")
            raise UserNotFoundError()

        now = utcnow()
        if person.locked_until and person.locked_until > now:
            logger.warning("Login rejected for locked person %s", person.id)
            raise AccountLockedError(locked_until=person.locked_until)

        if not person.password_hash:
            raise NoPasswordConfiguredError()

        if not verify_password(password, person.password_hash):
            attempts = await self.register_failure(person.id)
            logger.warning("Invalid password for person %s (attempt %d)", person.id, attempts)
            raise InvalidPasswordError()

        await self.register_success(person, password)
        return person

    async def register_failure(self, person_id: int) -> int:
        """
        Count a failed attempt and lock the account once the threshold is hit.

        Returns:
            The stored attempt count after the increment
        """
        now = utcnow()

        self.db.execute(
            update(Person)
            .where(Person.id == person_id)
            .values(login_attempts=Person.login_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        locked = self.db.execute(
            update(Person)
            .where(
                Person.id == person_id,
                Person.login_attempts >= settings.MAX_LOGIN_ATTEMPTS,
            )
            .values(locked_until=now + timedelta(minutes=settings.LOCKOUT_MINUTES))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        if locked.rowcount:
            logger.warning(
                "Person %s locked for %d minutes after %d failed logins",
                person_id, settings.LOCKOUT_MINUTES, settings.MAX_LOGIN_ATTEMPTS,
            )

        return self.db.exec(select(Person.login_attempts).where(Person.id == person_id)).one()

    async def register_success(self, person: Person, password: str) -> None:
        """Reset the lockout state, stamp last_login and upgrade an outdated hash."""
        person.login_attempts = 0
        person.locked_until = None
        person.last_login = utcnow()

        if needs_rehash(person.password_hash):
            person.password_hash = hash_password(password)
            logger.info("Upgraded password hash work factor for person %s", person.id)

        self.db.add(person)
        self.db.commit()
        self.db.refresh(person)
