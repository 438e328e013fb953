"""
auth/errors.py -- Typed business-rule failures raised by the session service.

Each class carries the HTTP status and the stable machine-readable code the API
layer puts into the error envelope. The service never maps to HTTP itself; the
exception handler in api/main.py reads these attributes.

Infrastructure failures (database, bcrypt, signing backend) are NOT AuthError.
They propagate as ordinary exceptions and surface as a generic 500.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for authentication and session failures."""

    status_code: int = 400
    code: str = "auth_error"
    default_message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidEmail(AuthError):
    status_code = 400
    code = "invalid_email"
    default_message = "Invalid email format."


class WeakPassword(AuthError):
    status_code = 400
    code = "weak_password"
    default_message = "Password must be at least 8 characters."


class UserExists(AuthError):
    status_code = 409
    code = "user_exists"
    default_message = "Email already registered."


class InvalidCredentials(AuthError):
    """Unknown email or wrong password. Deliberately indistinguishable."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class AccountLocked(AuthError):
    status_code = 423
    code = "account_locked"
    default_message = "Account temporarily locked. Try again later."


class AccountDisabled(AuthError):
    status_code = 403
    code = "account_disabled"
    default_message = "Account has been disabled."


class InvalidToken(AuthError):
    """Bad signature or structure, or a missing/revoked refresh record."""

    status_code = 401
    code = "invalid_token"
    default_message = "Invalid token."


class TokenExpired(AuthError):
    status_code = 401
    code = "token_expired"
    default_message = "Token expired."


class InvalidPassword(AuthError):
    """Current password did not match during a password change."""

    status_code = 401
    code = "invalid_password"
    default_message = "Current password is incorrect."


class UserNotFound(AuthError):
    status_code = 404
    code = "user_not_found"
    default_message = "User not found."
