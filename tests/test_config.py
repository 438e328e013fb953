"""Unit tests for core/config.py -- Settings validation.

Covers:
- Documented defaults (15 min access, 7 day refresh, cost 12, 5 attempts / 30 min)
- DEBUG generates distinct secrets; production without secrets refuses to start
- Short or identical secrets are rejected
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_ACCESS = "a" * 40
GOOD_REFRESH = "r" * 40


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_defaults() -> None:
    s = _settings(access_token_secret=GOOD_ACCESS, refresh_token_secret=GOOD_REFRESH, debug=False)
    assert s.access_token_ttl == timedelta(minutes=15)
    assert s.refresh_token_ttl == timedelta(days=7)
    assert s.password_hash_rounds == 12
    assert s.lockout_threshold == 5
    assert s.lockout_duration == timedelta(minutes=30)


def test_debug_generates_distinct_secrets() -> None:
    s = _settings(debug=True, access_token_secret="", refresh_token_secret="")
    assert len(s.access_token_secret) >= 32
    assert len(s.refresh_token_secret) >= 32
    assert s.access_token_secret != s.refresh_token_secret


def test_production_requires_secrets() -> None:
    with pytest.raises(ValidationError):
        _settings(debug=False, access_token_secret="", refresh_token_secret=GOOD_REFRESH)


def test_short_secret_rejected() -> None:
    with pytest.raises(ValidationError):
        _settings(access_token_secret="too-short", refresh_token_secret=GOOD_REFRESH)


def test_identical_secrets_rejected() -> None:
    with pytest.raises(ValidationError):
        _settings(access_token_secret=GOOD_ACCESS, refresh_token_secret=GOOD_ACCESS)


def test_bcrypt_rounds_bounds() -> None:
    with pytest.raises(ValidationError):
        _settings(access_token_secret=GOOD_ACCESS, refresh_token_secret=GOOD_REFRESH, password_hash_rounds=3)
