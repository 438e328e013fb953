"""
auth/memory_store.py -- Dict-backed CredentialStore.

Same contract and semantics as SqlCredentialStore, no database. Used as the
substitutable fake in service tests and for throwaway local runs. Records are
copied on the way in and out so callers never share mutable state with the
store, matching what a real database round-trip gives them.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from auth.models import RefreshTokenRecord, User
from auth.store import DuplicateEmailError


class InMemoryCredentialStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._tokens: dict[str, RefreshTokenRecord] = {}

    def ping(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return replace(user)
        return None

    def find_user_by_id(self, user_id: str) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user is not None else None

    def insert_user(self, email: str, password_hash: str, full_name: str | None = None) -> User:
        now = datetime.now(timezone.utc)
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise DuplicateEmailError(email)
            user = User(
                id=str(uuid.uuid4()),
                email=email,
                password_hash=password_hash,
                full_name=full_name,
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
            return replace(user)

    def update_login_state(
        self,
        user_id: str,
        failed_attempts: int,
        locked_until: datetime | None = None,
        last_login: datetime | None = None,
    ) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return
            user.failed_login_attempts = failed_attempts
            user.locked_until = locked_until
            if last_login is not None:
                user.last_login = last_login

    def update_password_hash(self, user_id: str, password_hash: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                user.password_hash = password_hash
                user.updated_at = datetime.now(timezone.utc)

    def set_active(self, user_id: str, is_active: bool) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is not None:
                user.is_active = is_active

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def insert_refresh_token(
        self,
        token_id: str,
        user_id: str,
        token: str,
        expires_at: datetime,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> None:
        with self._lock:
            self._tokens[token_id] = RefreshTokenRecord(
                id=token_id,
                user_id=user_id,
                token=token,
                expires_at=expires_at,
                device_info=device_info,
                ip_address=ip_address,
                created_at=datetime.now(timezone.utc),
            )

    def find_refresh_token(self, token_id: str) -> RefreshTokenRecord | None:
        with self._lock:
            record = self._tokens.get(token_id)
            return replace(record) if record is not None else None

    def revoke_refresh_token(self, token_id: str) -> bool:
        with self._lock:
            record = self._tokens.get(token_id)
            if record is None:
                return False
            record.is_revoked = True
            return True

    def revoke_all_refresh_tokens(self, user_id: str) -> int:
        count = 0
        with self._lock:
            for record in self._tokens.values():
                if record.user_id == user_id and not record.is_revoked:
                    record.is_revoked = True
                    count += 1
        return count

    def touch_refresh_token(self, token_id: str) -> None:
        with self._lock:
            record = self._tokens.get(token_id)
            if record is not None:
                record.last_used_at = datetime.now(timezone.utc)

    def tokens_for(self, user_id: str) -> list[RefreshTokenRecord]:
        """Every record owned by user_id, revoked or not. Test inspection helper."""
        with self._lock:
            return [replace(r) for r in self._tokens.values() if r.user_id == user_id]

    def close(self) -> None:
        pass
