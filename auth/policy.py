"""
auth/policy.py -- Brute-force lockout state machine.

The state of an account is the pair (failed_attempts, locked_until) stored on
its User row. LoginPolicy interprets that pair and computes the next one; it
never touches storage, so every transition is a pure function of
(state, now) and can be tested without I/O.

States:
  Unlocked(n)    -- locked_until is None or already in the past
  Locked(until)  -- now < locked_until; password is not even checked

Transitions:
  success while Unlocked(n)            -> Unlocked(0)
  failure while Unlocked(n), n+1 < max -> Unlocked(n+1)
  failure while Unlocked(n), n+1 >= max-> Locked(now + lockout), count n+1

An elapsed lock only unblocks attempts. The count is kept until the next
success, so the first failure after a lock expires re-locks immediately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from auth.models import User


@dataclass(frozen=True)
class LoginAttemptState:
    failed_attempts: int = 0
    locked_until: datetime | None = None

    @classmethod
    def of(cls, user: User) -> LoginAttemptState:
        return cls(failed_attempts=user.failed_login_attempts, locked_until=user.locked_until)


class LoginPolicy:
    """Lockout rules: max_attempts consecutive failures lock for `lockout`."""

    def __init__(self, max_attempts: int = 5, lockout: timedelta = timedelta(minutes=30)) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.lockout = lockout

    def is_locked(self, state: LoginAttemptState, now: datetime) -> bool:
        return state.locked_until is not None and now < state.locked_until

    def record_failure(self, state: LoginAttemptState, now: datetime) -> LoginAttemptState:
        attempts = state.failed_attempts + 1
        if attempts >= self.max_attempts:
            return LoginAttemptState(failed_attempts=attempts, locked_until=now + self.lockout)
        return LoginAttemptState(failed_attempts=attempts, locked_until=state.locked_until)

    def record_success(self, state: LoginAttemptState) -> LoginAttemptState:
        return LoginAttemptState()
