"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug detection
feeds bcrypt 4.x a password longer than 72 bytes, which it now rejects.

bcrypt only looks at the first 72 bytes of its input, and bcrypt 5 raises on
anything longer. Passwords are cut to 72 UTF-8 bytes before hashing and before
verification so both sides agree on every bcrypt release.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    # surrogatepass: lone surrogates hash as their raw code units instead of raising
    return password.encode("utf-8", errors="surrogatepass")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted adaptive hashing with a fixed work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("correct horse")
        hasher.verify("correct horse", stored)  # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash: bytes | None = None

    def hash(self, password: str) -> str:
        return bcrypt.hashpw(_encode(password), bcrypt.gensalt(self.rounds)).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Return True only on a confirmed match. Any error counts as a mismatch."""
        try:
            return bcrypt.checkpw(_encode(password), hashed.encode("utf-8"))
        except Exception:
            return False

    def burn(self, password: str) -> None:
        """Spend one verification's worth of CPU against a dummy hash.

        Called when the email is unknown so the response takes as long as a
        wrong-password attempt and does not reveal whether the account exists.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"sessiongate_timing_dummy", bcrypt.gensalt(self.rounds))
        self.verify(password, self._dummy_hash.decode("utf-8"))
