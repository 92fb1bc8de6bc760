"""Unit tests for auth/tokens.py -- access token signing and verification.

Covers:
- sign_access() -> verify_access() returns the same principal
- expiry is fixed at 15 minutes; a token at exactly exp is rejected
- tampered, foreign-secret, malformed and empty tokens return None
- tokens with missing claims or an unknown role return None
- a codec without a secret cannot be constructed
"""

from __future__ import annotations

import base64
import json
from datetime import timedelta

import pytest
from jose import jwt

from auth.models import Principal, Role
from auth.tokens import TokenCodec
from tests.conftest import TEST_SECRET, FakeClock

ALICE = Principal(user_id="u-alice", email="alice@example.com", role=Role.author)


def test_round_trip(codec: TokenCodec) -> None:
    token = codec.sign_access(ALICE)
    assert codec.verify_access(token) == ALICE


def test_claims_layout(codec: TokenCodec, clock: FakeClock) -> None:
    token = codec.sign_access(ALICE)
    claims = jwt.get_unverified_claims(token)
    assert claims["sub"] == "u-alice"
    assert claims["email"] == "alice@example.com"
    assert claims["role"] == "author"
    assert claims["exp"] - claims["iat"] == 15 * 60
    assert claims["iat"] == int(clock.now.timestamp())


def test_expires_in_reports_ttl(codec: TokenCodec) -> None:
    assert codec.expires_in == 900


def test_valid_until_just_before_expiry(codec: TokenCodec, clock: FakeClock) -> None:
    token = codec.sign_access(ALICE)
    clock.advance(minutes=14, seconds=59)
    assert codec.verify_access(token) == ALICE


def test_rejected_at_and_after_expiry(codec: TokenCodec, clock: FakeClock) -> None:
    token = codec.sign_access(ALICE)
    clock.advance(minutes=15)
    assert codec.verify_access(token) is None
    clock.advance(days=1)
    assert codec.verify_access(token) is None


def test_tampered_signature_rejected(codec: TokenCodec) -> None:
    token = codec.sign_access(ALICE)
    header, payload, signature = token.split(".")
    flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
    assert codec.verify_access(f"{header}.{payload}.{flipped}") is None


def test_escalated_payload_rejected(codec: TokenCodec, clock: FakeClock) -> None:
    """Re-signing with another key to claim admin must fail verification."""
    forged = jwt.encode(
        {"sub": "u-alice", "email": "alice@example.com", "role": "admin", "exp": clock.now + timedelta(minutes=5)},
        "attacker-controlled-secret-" + "y" * 20,
        algorithm="HS256",
    )
    assert codec.verify_access(forged) is None


def test_other_secret_rejected(clock: FakeClock) -> None:
    signer = TokenCodec(secret="another-secret-" + "z" * 30, clock=clock)
    verifier = TokenCodec(secret=TEST_SECRET, clock=clock)
    assert verifier.verify_access(signer.sign_access(ALICE)) is None


@pytest.mark.parametrize("garbage", ["", "not.a.jwt", "abc", "a.b", "....", None])
def test_malformed_tokens_return_none(codec: TokenCodec, garbage) -> None:
    assert codec.verify_access(garbage) is None


def test_alg_none_rejected(codec: TokenCodec, clock: FakeClock) -> None:
    def b64(obj: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()

    exp = int(clock.now.timestamp()) + 300
    unsigned = b64({"alg": "none", "typ": "JWT"}) + "." + b64(
        {"sub": "u-alice", "email": "alice@example.com", "role": "admin", "exp": exp}
    ) + "."
    assert codec.verify_access(unsigned) is None


@pytest.mark.parametrize(
    "claims",
    [
        {"email": "alice@example.com", "role": "author"},
        {"sub": "u-alice", "role": "author"},
        {"sub": "u-alice", "email": "alice@example.com", "role": "superuser"},
        {"sub": "u-alice", "email": "alice@example.com"},
    ],
)
def test_incomplete_claims_rejected(codec: TokenCodec, clock: FakeClock, claims: dict) -> None:
    payload = dict(claims, exp=clock.now + timedelta(minutes=5))
    token = jwt.encode(payload, TEST_SECRET, algorithm="HS256")
    assert codec.verify_access(token) is None


def test_missing_exp_rejected(codec: TokenCodec) -> None:
    token = jwt.encode({"sub": "u-alice", "email": "alice@example.com", "role": "author"}, TEST_SECRET)
    assert codec.verify_access(token) is None


def test_empty_secret_refused() -> None:
    with pytest.raises(ValueError):
        TokenCodec(secret="")
