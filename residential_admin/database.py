"""
Residential Admin - Database Configuration

SQLModel database setup with connection pooling.
Supports PostgreSQL (production) and SQLite (development).

Usage:
    from residential_admin.database import get_engine, init_db

    engine = get_engine()
    init_db(engine)  # Creates tables
"""

from typing import Optional

from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.pool import StaticPool

from residential_admin.config import settings


def get_engine(database_url: Optional[str] = None, echo: Optional[bool] = None):
    """
    Create SQLAlchemy engine with appropriate configuration.

    Args:
        database_url: Override database URL (defaults to settings.DATABASE_URL)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    url = database_url or settings.DATABASE_URL
    if echo is None:
        echo = settings.DATABASE_ECHO

    if url.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )

    return engine


def init_db(engine) -> None:
    """
    Initialize database tables.

    Creates all tables defined in SQLModel models.
    Safe to call multiple times (uses CREATE IF NOT EXISTS).
    """
    # Import models to register them with SQLModel
    from residential_admin.auth import models  # noqa: F401
    from residential_admin.audit import models as audit_models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session_factory(engine):
    """
    Create a session factory bound to engine.

    Returns:
        Callable that creates new database sessions
    """
    def session_factory() -> Session:
        return Session(engine)

    return session_factory
