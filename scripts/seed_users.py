"""
Residential Admin - Database Seed Script

Applies residential_admin/rbac/policies.yaml: permissions, the admin,
user and security roles, and the development accounts
(admin/admin123, usuario/password123, seguridad/password123).

Usage:
    python -m scripts.seed_users
"""

from sqlmodel import Session

from residential_admin.config import settings
from residential_admin.database import get_engine, init_db
from residential_admin.logger import configure_logging
from residential_admin.rbac.policy import apply_policy, load_policy


def seed(database_url: str = None) -> dict:
    """Create tables if needed and apply the default policy."""
    engine = get_engine(database_url or settings.DATABASE_URL)
    init_db(engine)

    try:
        with Session(engine) as session:
            return apply_policy(session, load_policy(), include_users=True)
    finally:
        engine.dispose()


if __name__ == "__main__":
    configure_logging()

    print("=" * 50)
    print("Residential Admin - User Seed Script")
    print("=" * 50)

    created = seed()

    for kind, count in created.items():
        print(f"  {kind}: {count} created")

    print()
    print("Default login: admin / admin123")
    print("Done!")
