"""
tests/conftest.py -- Shared test fixtures for SessionGate.

This module provides:
  - FakeClock / clock: controllable "now" for lockout and expiry tests
  - hasher, issuer, policy: real components, bcrypt at the minimum cost (4)
  - memory_store, service: SessionService over the in-memory fake store
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) back the API
client because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG must be set before any api/core import so get_settings() generates the
signing secrets instead of raising ValueError. LOGIN_RATE_LIMIT is raised so
the many logins in this suite never hit the per-client limit.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before any core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.memory_store import InMemoryCredentialStore
from auth.passwords import PasswordHasher
from auth.policy import LoginPolicy
from auth.service import SessionService
from auth.store import SqlCredentialStore
from auth.tokens import TokenIssuer

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


class FakeClock:
    """Callable clock that only moves when told to. Starts at real UTC now."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def access_secret() -> str:
    return ACCESS_SECRET


@pytest.fixture
def refresh_secret() -> str:
    return REFRESH_SECRET


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, access_ttl=timedelta(minutes=15))


@pytest.fixture
def policy() -> LoginPolicy:
    return LoginPolicy(max_attempts=5, lockout=timedelta(minutes=30))


@pytest.fixture
def memory_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def service(memory_store, hasher, issuer, policy, clock) -> SessionService:
    return SessionService(
        store=memory_store,
        hasher=hasher,
        issuer=issuer,
        policy=policy,
        refresh_ttl=timedelta(days=7),
        clock=clock,
    )


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(store: SqlCredentialStore):
    """Return a lifespan that wires a test store and a fast-hashing service into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.credential_store = store
        app.state.session_service = SessionService(
            store=store,
            hasher=PasswordHasher(rounds=4),
            issuer=TokenIssuer(ACCESS_SECRET, REFRESH_SECRET),
            policy=LoginPolicy(),
        )
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by an isolated shared-memory SQLite store.

    One client per test module; tests use distinct emails so they do not
    interfere with each other.
    """
    db_name = request.module.__name__.replace(".", "_")
    store = SqlCredentialStore(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    store.close()
