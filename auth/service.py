"""
auth/service.py -- Session lifecycle orchestration.

SessionService is the only entry point the API layer calls. It owns the order
of checks for every operation and delegates the parts:
  PasswordHasher   -- bcrypt hash / verify
  TokenIssuer      -- sign / verify access and refresh JWTs
  LoginPolicy      -- pure lockout transitions
  CredentialStore  -- row-level persistence

No state is kept on the service between calls. Lockout counters and refresh
records live in the store and are re-read on every request, so revocation
takes effect immediately and several instances can run side by side.

Failure policy:
  Business-rule failures raise AuthError subclasses (auth/errors.py).
  Store, hash, and signing backend errors propagate unchanged; a login whose
  store write fails therefore fails, it never succeeds by default.

Known weak spots kept on purpose (see DESIGN.md):
  - refresh does not revoke the token it was given; it only issues a new pair.
  - AccountLocked / AccountDisabled are distinguishable from
    InvalidCredentials once the email is known to exist.
  - change_password writes the hash and revokes tokens in two store calls.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth.errors import (
    AccountDisabled,
    AccountLocked,
    AuthError,
    InvalidCredentials,
    InvalidEmail,
    InvalidPassword,
    InvalidToken,
    TokenExpired,
    UserExists,
    UserNotFound,
    WeakPassword,
)
from auth.models import AccessClaims, AuthTokens, User
from auth.passwords import PasswordHasher
from auth.policy import LoginAttemptState, LoginPolicy
from auth.store import CredentialStore, DuplicateEmailError
from auth.tokens import TokenIssuer
from core.config import Settings

logger = logging.getLogger("sessiongate.auth")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionService:
    """Register, log in, refresh, log out, change password, read profile.

    Usage:
        service = SessionService.from_settings(settings, SqlCredentialStore(settings.database_url))
        tokens = service.login("alice@example.com", "Password1")
        tokens = service.refresh_access_token(tokens.refresh_token)
        service.logout(tokens.refresh_token)
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        policy: LoginPolicy,
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.policy = policy
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, store: CredentialStore) -> SessionService:
        return cls(
            store=store,
            hasher=PasswordHasher(rounds=settings.password_hash_rounds),
            issuer=TokenIssuer(
                settings.access_token_secret,
                settings.refresh_token_secret,
                access_ttl=settings.access_token_ttl,
            ),
            policy=LoginPolicy(
                max_attempts=settings.lockout_threshold,
                lockout=settings.lockout_duration,
            ),
            refresh_ttl=settings.refresh_token_ttl,
        )

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, full_name: str | None = None) -> AuthTokens:
        email = normalize_email(email)
        if not EMAIL_PATTERN.match(email):
            raise InvalidEmail()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise WeakPassword()
        if self.store.find_user_by_email(email) is not None:
            raise UserExists()

        try:
            user = self.store.insert_user(email, self.hasher.hash(password), full_name)
        except DuplicateEmailError as exc:
            raise UserExists() from exc

        tokens = self._issue_tokens(user.id, user.email)
        logger.info("User registered: %s (%s)", user.email, user.id)
        return tokens

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(
        self,
        email: str,
        password: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> AuthTokens:
        """Authenticate with email and password and open a new session.

        Check order: existence -> lock -> active -> password. A locked
        account is rejected before bcrypt runs and its counter is left as is.
        The failure that triggers a lock still reports InvalidCredentials;
        only later attempts see AccountLocked.
        """
        user = self.store.find_user_by_email(normalize_email(email))
        if user is None:
            self.hasher.burn(password)
            raise InvalidCredentials()

        now = self._clock()
        state = LoginAttemptState.of(user)
        if self.policy.is_locked(state, now):
            raise AccountLocked()
        if not user.is_active:
            raise AccountDisabled()

        if not self.hasher.verify(password, user.password_hash):
            self._record_failure(user, state, now)
            raise InvalidCredentials()

        state = self.policy.record_success(state)
        self.store.update_login_state(user.id, state.failed_attempts, state.locked_until, last_login=now)

        tokens = self._issue_tokens(user.id, user.email, device_info, ip_address)
        logger.info("User logged in: %s", user.id)
        return tokens

    def _record_failure(self, user: User, state: LoginAttemptState, now: datetime) -> None:
        next_state = self.policy.record_failure(state, now)
        self.store.update_login_state(user.id, next_state.failed_attempts, next_state.locked_until)
        if self.policy.is_locked(next_state, now):
            logger.warning(
                "Account locked after %d failed login attempts: %s (until %s)",
                next_state.failed_attempts,
                user.id,
                next_state.locked_until.isoformat(),
            )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh_access_token(self, refresh_token: str) -> AuthTokens:
        """Exchange a refresh token for a brand-new token pair.

        The backing record is re-read from the store on every call. The token
        presented stays valid until its own expiry; it is superseded, not
        revoked.
        """
        claims = self.issuer.verify_refresh(refresh_token)
        record = self.store.find_refresh_token(claims.token_id)
        if record is None or record.is_revoked or record.user_id != claims.user_id:
            raise InvalidToken("Invalid refresh token.")
        if record.expires_at <= self._clock():
            raise TokenExpired("Refresh token expired.")

        self.store.touch_refresh_token(record.id)
        return self._issue_tokens(claims.user_id, claims.email, record.device_info, record.ip_address)

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self, refresh_token: str) -> None:
        """Revoke the record behind refresh_token.

        Never raises for a bad, expired, or already-revoked token: logging out
        of a session that is already gone is a success from the caller's
        point of view. Store failures still propagate.
        """
        try:
            claims = self.issuer.verify_refresh(refresh_token)
        except AuthError:
            logger.debug("Logout with an unverifiable refresh token ignored")
            return
        if self.store.revoke_refresh_token(claims.token_id):
            logger.info("User logged out: %s", claims.user_id)

    # ------------------------------------------------------------------
    # Password change
    # ------------------------------------------------------------------

    def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        """Replace the password and revoke every refresh token of the user.

        Two store calls: hash first, then revocation. A crash in between
        leaves old sessions alive until their own expiry.
        """
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise UserNotFound()
        if not self.hasher.verify(old_password, user.password_hash):
            raise InvalidPassword()
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise WeakPassword("New password must be at least 8 characters.")

        self.store.update_password_hash(user.id, self.hasher.hash(new_password))
        revoked = self.store.revoke_all_refresh_tokens(user.id)
        logger.info("Password changed for user %s; %d refresh tokens revoked", user.id, revoked)

    # ------------------------------------------------------------------
    # Profile / access tokens
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> User:
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def authenticate(self, access_token: str) -> AccessClaims:
        return self.issuer.verify_access(access_token)

    # ------------------------------------------------------------------
    # Token pair
    # ------------------------------------------------------------------

    def _issue_tokens(
        self,
        user_id: str,
        email: str,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> AuthTokens:
        now = self._clock()
        token_id = str(uuid.uuid4())
        access_token = self.issuer.issue_access_token(user_id, email, now=now)
        refresh_token = self.issuer.issue_refresh_token(user_id, email, token_id, now=now)
        self.store.insert_refresh_token(
            token_id,
            user_id,
            refresh_token,
            expires_at=now + self.refresh_ttl,
            device_info=device_info,
            ip_address=ip_address,
        )
        return AuthTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.issuer.access_ttl_seconds,
        )
