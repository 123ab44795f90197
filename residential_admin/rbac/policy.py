"""
Residential Admin - Default Access Policy

Loads rbac/policies.yaml and applies it to the database: permissions,
roles, role grants and the seeded user accounts. Applying the policy is
idempotent; existing rows are matched by code, alias or username and
left in place.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from sqlmodel import Session as DBSession, select

from residential_admin.auth.models import (
    DocumentType,
    Person,
    PersonEmail,
    PersonRole,
    PersonStatus,
    Permission,
    Role,
    RolePermission,
)
from residential_admin.auth.password import hash_password
from residential_admin.logger import get_logger


logger = get_logger("rbac.policy")

POLICY_PATH = Path(__file__).parent / "policies.yaml"


def load_policy(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Read the policy file.

    Returns:
        Dict with "permissions" (code -> description), "roles"
        (alias -> {name, description, permissions}) and "users" (list)
    """
    policy_path = Path(path) if path else POLICY_PATH

    if not policy_path.exists():
        logger.warning("Policy file %s not found, nothing to seed", policy_path)
        return {"permissions": {}, "roles": {}, "users": []}

    with open(policy_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return {
        "permissions": config.get("permissions") or {},
        "roles": config.get("roles") or {},
        "users": config.get("users") or [],
    }


def role_permission_codes(role_config: Dict[str, Any], all_codes: List[str]) -> List[str]:
    """Expand a role's permission list; "*" grants every permission."""
    grants = role_config.get("permissions") or []
    if grants == "*":
        return list(all_codes)
    return list(grants)


def apply_policy(
    db: DBSession,
    policy: Optional[Dict[str, Any]] = None,
    include_users: bool = True,
) -> Dict[str, int]:
    """
    Upsert the policy's permissions, roles, grants and (optionally) users.

    Args:
        db: Database session
        policy: Parsed policy (defaults to load_policy())
        include_users: Also create the seeded user accounts

    Returns:
        Counts of created rows per kind
    """
    policy = policy or load_policy()
    created = {"permissions": 0, "roles": 0, "grants": 0, "users": 0}

    # Permissions
    permissions: Dict[str, Permission] = {}
    for code, description in policy["permissions"].items():
        permission = db.exec(select(Permission).where(Permission.code == code)).first()
        if not permission:
            permission = Permission(code=code, description=description)
            db.add(permission)
            created["permissions"] += 1
        permissions[code] = permission
    db.commit()

    # Roles and their grants
    roles: Dict[str, Role] = {}
    for alias, role_config in policy["roles"].items():
        role = db.exec(select(Role).where(Role.alias == alias)).first()
        if not role:
            role = Role(
                name=role_config.get("name", alias),
                alias=alias,
                description=role_config.get("description"),
            )
            db.add(role)
            db.commit()
            db.refresh(role)
            created["roles"] += 1
        roles[alias] = role

        for code in role_permission_codes(role_config, list(permissions)):
            permission = permissions.get(code)
            if permission is None:
                logger.warning("Role %s references unknown permission %s", alias, code)
                continue
            db.refresh(permission)
            existing = db.get(RolePermission, (role.id, permission.id))
            if not existing:
                db.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created["grants"] += 1
    db.commit()

    if include_users:
        for user_config in policy["users"]:
            if _seed_user(db, user_config, roles):
                created["users"] += 1

    logger.info(
        "Policy applied: %d permissions, %d roles, %d grants, %d users created",
        created["permissions"], created["roles"], created["grants"], created["users"],
    )
    return created


def _seed_user(db: DBSession, user_config: Dict[str, Any], roles: Dict[str, Role]) -> bool:
    """Create one seeded account unless its username already exists."""
    username = user_config["username"]
    existing = db.exec(select(Person).where(Person.username == username)).first()
    if existing:
        return False

    person = Person(
        username=username,
        password_hash=hash_password(user_config["password"]),
        full_name=user_config.get("full_name", username),
        document_type=DocumentType(user_config.get("document_type", "CC")),
        document_number=str(user_config["document_number"]),
        status=PersonStatus.ACTIVE,
        is_active=True,
    )
    db.add(person)
    db.commit()
    db.refresh(person)

    if user_config.get("email"):
        db.add(PersonEmail(person_id=person.id, email=user_config["email"], is_primary=True))

    for alias in user_config.get("roles", []):
        role = roles.get(alias)
        if role is None:
            logger.warning("User %s references unknown role %s", username, alias)
            continue
        db.add(PersonRole(person_id=person.id, role_id=role.id))

    db.commit()
    return True
