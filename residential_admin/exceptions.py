"""
Residential Admin - Domain Exceptions

Every failure a client can trigger is an AppError subclass carrying its
HTTP status and a machine-readable code. The gateway error handlers turn
them into the standard response envelope.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for errors mapped to an HTTP response."""

    status_code: int = 400
    code: str = "APP_ERROR"
    default_message: str = "Request could not be processed"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message or self.default_message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.errors = errors
        super().__init__(self.message)

    def error_list(self) -> List[Dict[str, Any]]:
        """Field violations, or a single entry with the code and message."""
        return self.errors or [{"code": self.code, "message": self.message}]


# =============================================================================
# Authentication
# =============================================================================

class UserNotFoundError(AppError):
    status_code = 404
    code = "USER_NOT_FOUND"
    default_message = "User not found"


class AccountLockedError(AppError):
    """Raised while locked_until is in the future, before any password check."""

    status_code = 423
    code = "ACCOUNT_LOCKED"
    default_message = "Account temporarily locked due to repeated failed login attempts"

    def __init__(self, locked_until=None, message: Optional[str] = None):
        self.locked_until = locked_until
        super().__init__(message)


class InvalidPasswordError(AppError):
    status_code = 401
    code = "INVALID_PASSWORD"
    default_message = "Invalid password"


class NoPasswordConfiguredError(AppError):
    status_code = 400
    code = "NO_PASSWORD_CONFIGURED"
    default_message = "User has no password configured"


class InvalidOrExpiredRefreshTokenError(AppError):
    status_code = 401
    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid or expired refresh token"


# =============================================================================
# Resources
# =============================================================================

class DuplicateFieldError(AppError):
    """A unique field (username, document, email, name, code) is taken."""

    status_code = 409
    code = "DUPLICATE"

    def __init__(self, field: str, value: Any = None, message: Optional[str] = None):
        self.field = field
        self.value = value
        super().__init__(
            message or f"A record with this {field} already exists",
            errors=[{
                "field": field,
                "message": f"{field} already in use",
                "code": "DUPLICATE",
                "value": value,
            }],
        )


class ValidationError(AppError):
    """Field-level violations, as returned by the validation functions."""

    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, errors: List[Dict[str, Any]], message: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message, code=code, errors=errors)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")
