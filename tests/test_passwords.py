"""Unit tests for auth/passwords.py -- bcrypt hashing and verification.

Covers:
- hash() then verify() round-trips; a different password is rejected
- salts are random (same password, different hashes)
- cost factor is encoded in the hash; default is 10
- malformed, empty and None hashes return False instead of raising
- the 72-byte bcrypt limit is applied the same way on hash and verify
"""

from __future__ import annotations

import pytest

from auth.passwords import DEFAULT_ROUNDS, PasswordHasher


@pytest.mark.parametrize("password", ["Password123", "correct horse battery staple", "pässwörd-ünïcode", "x" * 8])
def test_round_trip(hasher: PasswordHasher, password: str) -> None:
    hashed = hasher.hash(password)
    assert hasher.verify(password, hashed) is True
    assert hasher.verify(password + "!", hashed) is False


def test_hash_is_salted(hasher: PasswordHasher) -> None:
    """Two hashes of the same password differ but both verify."""
    a = hasher.hash("Password123")
    b = hasher.hash("Password123")
    assert a != b
    assert hasher.verify("Password123", a)
    assert hasher.verify("Password123", b)


def test_hash_is_self_describing(hasher: PasswordHasher) -> None:
    assert hasher.hash("Password123").startswith("$2b$04$")


def test_default_cost_factor_is_ten() -> None:
    h = PasswordHasher()
    assert h.rounds == DEFAULT_ROUNDS == 10
    assert h.hash("Password123").startswith("$2b$10$")


@pytest.mark.parametrize("bad_hash", ["", "not-a-bcrypt-hash", "$2b$04$tooshort", None])
def test_malformed_hash_returns_false(hasher: PasswordHasher, bad_hash) -> None:
    """A corrupt stored hash degrades to deny, never to an exception."""
    assert hasher.verify("Password123", bad_hash) is False


def test_long_passwords_truncate_consistently(hasher: PasswordHasher) -> None:
    """Bytes past 72 are ignored by bcrypt; hash and verify must agree on that."""
    base = "a" * 72
    hashed = hasher.hash(base + "tail-one")
    assert hasher.verify(base + "tail-two", hashed) is True


def test_truncation_counts_bytes_not_characters(hasher: PasswordHasher) -> None:
    """36 two-byte characters fill the 72-byte window; a differing 37th is ignored."""
    base = "é" * 36
    hashed = hasher.hash(base + "a")
    assert hasher.verify(base + "b", hashed) is True
    assert hasher.verify("é" * 35 + "ab", hashed) is False
