"""
Residential Admin - Cross-Field Validation

Pydantic schemas handle per-field constraints. Rules that span several
fields or need the database live here as plain functions returning a list
of violations; an empty list means the input is acceptable.

A violation is a dict: {"field", "message", "code", "value"}.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import Session as DBSession, select

from residential_admin.exceptions import ValidationError


Violation = Dict[str, Any]

PASSWORD_MIN_LENGTH = 8
# bcrypt only looks at the first 72 bytes
PASSWORD_MAX_BYTES = 72


def violation(field: str, message: str, code: str, value: Any = None) -> Violation:
    return {"field": field, "message": message, "code": code, "value": value}


def validate_password_strength(password: str, field: str = "password") -> List[Violation]:
    """
    Check password length and character classes.

    Rules:
        - At least 8 characters, at most 72 bytes once UTF-8 encoded
        - At least one letter and one digit
    """
    violations = []

    if len(password) < PASSWORD_MIN_LENGTH:
        violations.append(violation(
            field, f"Password must be at least {PASSWORD_MIN_LENGTH} characters", "TOO_SHORT",
        ))
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        violations.append(violation(
            field, f"Password must be at most {PASSWORD_MAX_BYTES} bytes", "TOO_LONG",
        ))
    if not re.search(r"[A-Za-z]", password):
        violations.append(violation(field, "Password must contain at least one letter", "NO_LETTER"))
    if not re.search(r"\d", password):
        violations.append(violation(field, "Password must contain at least one digit", "NO_DIGIT"))

    return violations


def validate_password_confirmation(
    password: str,
    confirmation: str,
    field: str = "confirm_password",
) -> List[Violation]:
    if password != confirmation:
        return [violation(field, "Passwords do not match", "MISMATCH")]
    return []


def validate_registration(data) -> List[Violation]:
    """Cross-field rules for POST /auth/register."""
    return (
        validate_password_strength(data.password)
        + validate_password_confirmation(data.password, data.confirm_password)
    )


def validate_password_change(data) -> List[Violation]:
    """Cross-field rules for POST /auth/change-password."""
    violations = validate_password_strength(data.new_password, field="new_password")
    violations += validate_password_confirmation(
        data.new_password, data.confirm_new_password, field="confirm_new_password"
    )
    if data.current_password == data.new_password:
        violations.append(violation(
            "new_password", "New password must differ from the current one", "UNCHANGED",
        ))
    return violations


def validate_ids_exist(
    db: DBSession,
    model,
    ids: Iterable[int],
    field: str,
) -> List[Violation]:
    """
    Check that every id refers to an existing, non-deleted row of model.

    Used for role ids on person assignment and permission ids on role updates.
    """
    wanted = set(ids)
    if not wanted:
        return []

    statement = select(model.id).where(
        model.id.in_(wanted),
        model.deleted_at.is_(None),
    )
    found = set(db.exec(statement).all())

    return [
        violation(field, f"{model.__name__} {missing} does not exist", "NOT_FOUND", missing)
        for missing in sorted(wanted - found)
    ]


def raise_if_invalid(violations: List[Violation], message: Optional[str] = None) -> None:
    """Raise ValidationError when any violation was collected."""
    if violations:
        raise ValidationError(violations, message=message)
