"""
Residential Admin - Authentication Package

- Hybrid JWT + server-side sessions
- bcrypt password hashing with work-factor upgrades
- Failed-login lockout
"""

from residential_admin.auth.models import Person, PersonEmail, UserSession
from residential_admin.auth.password import hash_password, verify_password
from residential_admin.auth.tokens import create_access_token, verify_access_token

__all__ = [
    "Person",
    "PersonEmail",
    "UserSession",
    "hash_password",
    "verify_password",
    "create_access_token",
    "verify_access_token",
]
