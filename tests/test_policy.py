"""Unit tests for auth/policy.py -- the lockout state machine.

Covers:
- Failures below the threshold only increment the counter
- The threshold-reaching failure locks for the configured duration
- is_locked() boundaries (strictly before locked_until)
- Success resets to Unlocked(0)
- An elapsed lock keeps the count, so the next failure re-locks
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import User
from auth.policy import LoginAttemptState, LoginPolicy

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> LoginPolicy:
    return LoginPolicy(max_attempts=5, lockout=timedelta(minutes=30))


class TestFailures:
    def test_failure_increments_counter(self, policy: LoginPolicy) -> None:
        state = policy.record_failure(LoginAttemptState(), NOW)
        assert state == LoginAttemptState(failed_attempts=1, locked_until=None)

    def test_fourth_failure_does_not_lock(self, policy: LoginPolicy) -> None:
        state = policy.record_failure(LoginAttemptState(failed_attempts=3), NOW)
        assert state.failed_attempts == 4
        assert not policy.is_locked(state, NOW)

    def test_fifth_failure_locks_for_thirty_minutes(self, policy: LoginPolicy) -> None:
        state = policy.record_failure(LoginAttemptState(failed_attempts=4), NOW)
        assert state.failed_attempts == 5
        assert state.locked_until == NOW + timedelta(minutes=30)
        assert policy.is_locked(state, NOW)

    def test_five_consecutive_failures_from_zero(self, policy: LoginPolicy) -> None:
        state = LoginAttemptState()
        for i in range(4):
            state = policy.record_failure(state, NOW)
            assert not policy.is_locked(state, NOW), f"locked early after failure {i + 1}"
        state = policy.record_failure(state, NOW)
        assert policy.is_locked(state, NOW)

    def test_custom_threshold(self) -> None:
        policy = LoginPolicy(max_attempts=2, lockout=timedelta(minutes=1))
        state = policy.record_failure(LoginAttemptState(failed_attempts=1), NOW)
        assert state.locked_until == NOW + timedelta(minutes=1)

    def test_zero_threshold_rejected(self) -> None:
        with pytest.raises(ValueError):
            LoginPolicy(max_attempts=0)


class TestLockWindow:
    def test_locked_until_just_before_expiry(self, policy: LoginPolicy) -> None:
        state = LoginAttemptState(failed_attempts=5, locked_until=NOW + timedelta(minutes=30))
        assert policy.is_locked(state, NOW + timedelta(minutes=29, seconds=59))

    def test_unlocked_at_expiry(self, policy: LoginPolicy) -> None:
        """now >= locked_until means the lock no longer blocks."""
        state = LoginAttemptState(failed_attempts=5, locked_until=NOW)
        assert not policy.is_locked(state, NOW)

    def test_never_locked(self, policy: LoginPolicy) -> None:
        assert not policy.is_locked(LoginAttemptState(failed_attempts=2), NOW)

    def test_expired_lock_keeps_history_and_relocks(self, policy: LoginPolicy) -> None:
        """A failure after the lock elapses re-locks immediately (count is not reset)."""
        expired = LoginAttemptState(failed_attempts=5, locked_until=NOW - timedelta(seconds=1))
        state = policy.record_failure(expired, NOW)
        assert state.failed_attempts == 6
        assert policy.is_locked(state, NOW)
        assert state.locked_until == NOW + timedelta(minutes=30)


class TestSuccess:
    def test_success_resets_everything(self, policy: LoginPolicy) -> None:
        state = LoginAttemptState(failed_attempts=4, locked_until=NOW - timedelta(hours=1))
        assert policy.record_success(state) == LoginAttemptState(failed_attempts=0, locked_until=None)


def test_state_from_user() -> None:
    user = User(id="u1", email="a@b.co", password_hash="x", failed_login_attempts=3, locked_until=NOW)
    assert LoginAttemptState.of(user) == LoginAttemptState(failed_attempts=3, locked_until=NOW)
