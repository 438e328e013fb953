"""Unit tests for auth/passwords.py -- bcrypt hashing.

Covers:
- hash() is salted (two hashes of one password differ) and carries the cost factor
- verify() accepts the right password and rejects the wrong one
- verify() fails closed on garbage hashes instead of raising
- passwords past bcrypt's 72-byte window hash and verify without error
"""

from auth.passwords import DEFAULT_ROUNDS, PasswordHasher


def test_default_cost_factor_is_twelve() -> None:
    assert DEFAULT_ROUNDS == 12
    assert PasswordHasher().rounds == 12


def test_hash_is_salted(hasher: PasswordHasher) -> None:
    first = hasher.hash("Password1")
    second = hasher.hash("Password1")
    assert first != second
    assert hasher.verify("Password1", first)
    assert hasher.verify("Password1", second)


def test_hash_encodes_cost(hasher: PasswordHasher) -> None:
    assert hasher.hash("Password1").startswith("$2b$04$")


def test_wrong_password_rejected(hasher: PasswordHasher) -> None:
    stored = hasher.hash("Password1")
    assert not hasher.verify("Password2", stored)


def test_verify_fails_closed_on_malformed_hash(hasher: PasswordHasher) -> None:
    assert hasher.verify("Password1", "not-a-bcrypt-hash") is False
    assert hasher.verify("Password1", "") is False


def test_long_password_round_trip(hasher: PasswordHasher) -> None:
    password = "x" * 100
    stored = hasher.hash(password)
    assert hasher.verify(password, stored)


def test_burn_does_not_raise(hasher: PasswordHasher) -> None:
    hasher.burn("anything")
    hasher.burn("y" * 200)
