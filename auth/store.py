"""
auth/store.py -- Credential persistence: the CredentialStore contract and its
SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper. SqlCredentialStore is the repository;
_row_to_user / _row_to_refresh_token are the mappers. The session service only
sees the CredentialStore protocol, so tests can hand it InMemoryCredentialStore
(auth/memory_store.py) instead.

Consistency:
  Every method is a single-row (or single-statement) write or read. Nothing
  here spans a transaction; update_login_state writes absolute values, so the
  last writer wins and a retried call is harmless.

Security:
  All queries use bound parameters. No f-strings in SQL.

Timestamps are stored as ISO 8601 UTC strings and parsed back into aware
datetimes by the mappers.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import RefreshTokenRecord, User


class DuplicateEmailError(Exception):
    """insert_user() hit the UNIQUE(email) constraint."""


class CredentialStore(Protocol):
    """Row-level operations the session service relies on."""

    def find_user_by_email(self, email: str) -> User | None: ...

    def find_user_by_id(self, user_id: str) -> User | None: ...

    def insert_user(self, email: str, password_hash: str, full_name: str | None = None) -> User: ...

    def update_login_state(
        self,
        user_id: str,
        failed_attempts: int,
        locked_until: datetime | None = None,
        last_login: datetime | None = None,
    ) -> None: ...

    def update_password_hash(self, user_id: str, password_hash: str) -> None: ...

    def insert_refresh_token(
        self,
        token_id: str,
        user_id: str,
        token: str,
        expires_at: datetime,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> None: ...

    def find_refresh_token(self, token_id: str) -> RefreshTokenRecord | None: ...

    def revoke_refresh_token(self, token_id: str) -> bool: ...

    def revoke_all_refresh_tokens(self, user_id: str) -> int: ...

    def touch_refresh_token(self, token_id: str) -> None: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # normalized, lower-case
    Column("password_hash", Text, nullable=False),
    Column("full_name", String(255)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("failed_login_attempts", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", String(36), primary_key=True),  # token_id claim
    Column("user_id", String(36), nullable=False, index=True),
    Column("token", Text, nullable=False),
    Column("device_info", Text),  # User-Agent at issue time, display only
    Column("ip_address", String(45)),
    Column("expires_at", String(32), nullable=False),
    Column("is_revoked", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("last_used_at", String(32)),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlCredentialStore:
    """SQLAlchemy Core repository for users and refresh tokens.

    Usage:
        store = SqlCredentialStore("sqlite:///:memory:")
        user = store.insert_user("alice@example.com", hasher.hash("Password1"))
        store.find_user_by_email("alice@example.com")
        store.close()

    timeout bounds how long a call waits for a connection (pool checkout, or
    the SQLite busy lock). A call that times out raises; callers treat that
    as a failure, never as success.
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout
        else:
            engine_kwargs["pool_timeout"] = timeout
            engine_kwargs["pool_pre_ping"] = True
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if a trivial query succeeds. Used by the health endpoint."""
        try:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user_by_email(self, email: str) -> User | None:
        """Exact match on the normalized email. Callers normalize first."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def insert_user(self, email: str, password_hash: str, full_name: str | None = None) -> User:
        """Insert a new active user and return it.

        Raises DuplicateEmailError if the email is already registered. The
        service checks first; this covers two registrations racing each other.
        """
        now = _iso(_now())
        user_id = str(uuid.uuid4())
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        email=email,
                        password_hash=password_hash,
                        full_name=full_name,
                        is_active=1,
                        failed_login_attempts=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmailError(email) from exc
        user = self.find_user_by_id(user_id)
        if user is None:
            raise RuntimeError("user row missing after insert")
        return user

    def update_login_state(
        self,
        user_id: str,
        failed_attempts: int,
        locked_until: datetime | None = None,
        last_login: datetime | None = None,
    ) -> None:
        """Overwrite the lockout pair. last_login is only written when given."""
        values: dict = {
            "failed_login_attempts": failed_attempts,
            "locked_until": _iso(locked_until),
        }
        if last_login is not None:
            values["last_login"] = _iso(last_login)
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()

    def update_password_hash(self, user_id: str, password_hash: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password_hash=password_hash, updated_at=_iso(_now()))
            )
            conn.commit()

    def set_active(self, user_id: str, is_active: bool) -> None:
        """Enable or disable an account. Administrative; not used by login."""
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(is_active=1 if is_active else 0, updated_at=_iso(_now()))
            )
            conn.commit()

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
        with self.engine.connect() as conn:
            conn.execute(
                _refresh_tokens.insert().values(
                    id=token_id,
                    user_id=user_id,
                    token=token,
                    device_info=device_info,
                    ip_address=ip_address,
                    expires_at=_iso(expires_at),
                    is_revoked=0,
                    created_at=_iso(_now()),
                )
            )
            conn.commit()

    def find_refresh_token(self, token_id: str) -> RefreshTokenRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.id == token_id)).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def revoke_refresh_token(self, token_id: str) -> bool:
        """Mark one record revoked. Returns False if no such record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(_refresh_tokens.update().where(_refresh_tokens.c.id == token_id).values(is_revoked=1))
            conn.commit()
        return result.rowcount > 0

    def revoke_all_refresh_tokens(self, user_id: str) -> int:
        """Revoke every still-active record owned by user_id. Returns how many changed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where((_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.is_revoked == 0))
                .values(is_revoked=1)
            )
            conn.commit()
        return result.rowcount

    def touch_refresh_token(self, token_id: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _refresh_tokens.update().where(_refresh_tokens.c.id == token_id).values(last_used_at=_iso(_now()))
            )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        full_name=row.full_name,
        is_active=bool(row.is_active),
        failed_login_attempts=row.failed_login_attempts,
        locked_until=_parse(row.locked_until),
        created_at=_parse(row.created_at),
        updated_at=_parse(row.updated_at),
        last_login=_parse(row.last_login),
    )


def _row_to_refresh_token(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        token=row.token,
        device_info=row.device_info,
        ip_address=row.ip_address,
        expires_at=_parse(row.expires_at),
        is_revoked=bool(row.is_revoked),
        created_at=_parse(row.created_at),
        last_used_at=_parse(row.last_used_at),
    )
