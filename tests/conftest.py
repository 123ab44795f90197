"""
Residential Admin - Test Configuration

Pytest fixtures for API and service testing.
Provides a fresh in-memory database per test, the app/client bound to it,
the default policy and seeded person fixtures.
"""

import os

# Must be set before residential_admin.config is imported
os.environ.setdefault("BCRYPT_WORK_FACTOR", "4")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Dict, Generator, Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine, select
from sqlalchemy.pool import StaticPool

from residential_admin.app import create_app
from residential_admin.auth.models import (
    DocumentType,
    Person,
    PersonEmail,
    PersonRole,
    PersonStatus,
    Role,
)
from residential_admin.auth.password import hash_password
from residential_admin.database import get_session_factory
from residential_admin.rbac.policy import apply_policy, load_policy


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh test database engine for each test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Import models to register them
    from residential_admin.auth import models  # noqa: F401
    from residential_admin.audit import models as audit_models  # noqa: F401

    SQLModel.metadata.create_all(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return get_session_factory(test_engine)


@pytest.fixture(scope="function")
def app(test_engine):
    """Application bound to the test database."""
    application = create_app()
    application.state.db_engine = test_engine
    return application


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client with fresh database."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def roles(db_session) -> Dict[str, Role]:
    """Apply the default policy (permissions, roles, grants) without users."""
    apply_policy(db_session, load_policy(), include_users=False)
    return {role.alias: role for role in db_session.exec(select(Role)).all()}


@pytest.fixture(scope="function")
def seeded(db_session) -> Dict[str, Person]:
    """Apply the full default policy, seeded accounts included."""
    apply_policy(db_session, load_policy(), include_users=True)
    people = db_session.exec(select(Person)).all()
    return {p.username: p for p in people}


@pytest.fixture(scope="function")
def admin_user(seeded) -> Person:
    """Seeded admin (admin / admin123)."""
    return seeded["admin"]


@pytest.fixture(scope="function")
def regular_user(seeded) -> Person:
    """Seeded resident with role user (usuario / password123)."""
    return seeded["usuario"]


@pytest.fixture(scope="function")
def security_user(seeded) -> Person:
    """Seeded security guard (seguridad / password123)."""
    return seeded["seguridad"]


def make_person(
    db: Session,
    username: Optional[str],
    password: Optional[str] = "Password123",
    document_number: str = "90000001",
    email: Optional[str] = None,
    role_aliases: Iterable[str] = (),
    **fields,
) -> Person:
    """Insert a person directly, bypassing the API and the audit trail."""
    person = Person(
        username=username,
        password_hash=hash_password(password) if password else None,
        full_name=fields.pop("full_name", f"Test {username or document_number}"),
        document_type=fields.pop("document_type", DocumentType.CC),
        document_number=document_number,
        status=fields.pop("status", PersonStatus.ACTIVE),
        **fields,
    )
    db.add(person)
    db.commit()
    db.refresh(person)

    if email:
        db.add(PersonEmail(person_id=person.id, email=email, is_primary=True))
    for alias in role_aliases:
        role = db.exec(select(Role).where(Role.alias == alias)).one()
        db.add(PersonRole(person_id=person.id, role_id=role.id))
    db.commit()
    db.refresh(person)
    return person


def login_user(client: TestClient, username: str, password: str, remember_me: bool = False) -> Optional[dict]:
    """Helper function to login and return the response data."""
    response = client.post(
        "/api/v1/auth/login",
        json={"username": username, "password": password, "remember_me": remember_me},
    )
    return response.json()["data"] if response.status_code == 200 else None


def auth_headers(access_token: str) -> dict:
    """Create authorization headers for authenticated requests."""
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture(scope="function")
def admin_headers(client, admin_user) -> dict:
    """Bearer headers of a logged-in admin."""
    data = login_user(client, "admin", "admin123")
    return auth_headers(data["access_token"])
