"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the session
service do the work; these only own domain shape.

All datetimes are timezone-aware UTC.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """An account that can authenticate with email and password.

    email is stored normalized (stripped, lower-cased) so uniqueness is
    case-insensitive. failed_login_attempts and locked_until together form the
    login attempt state interpreted by auth.policy.LoginPolicy.
    """

    id: str
    email: str
    password_hash: str
    full_name: str | None = None
    is_active: bool = True
    failed_login_attempts: int = 0
    locked_until: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_login: datetime | None = None


@dataclass
class RefreshTokenRecord:
    """Persisted backing record of a refresh token.

    id is embedded in the signed token as token_id. The signed value itself is
    kept in token for audit only; lookups always go through id.
    """

    id: str
    user_id: str
    token: str
    expires_at: datetime
    device_info: str | None = None
    ip_address: str | None = None
    is_revoked: bool = False
    created_at: datetime | None = None
    last_used_at: datetime | None = None


@dataclass(frozen=True)
class AuthTokens:
    """Token pair handed back by register, login, and refresh."""

    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds


@dataclass(frozen=True)
class AccessClaims:
    user_id: str
    email: str


@dataclass(frozen=True)
class RefreshClaims:
    user_id: str
    email: str
    token_id: str
