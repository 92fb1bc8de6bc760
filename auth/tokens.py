"""
auth/tokens.py -- Access token signing and verification.

Security design decisions:
  JWT: python-jose with HS256 (configurable to HS384/HS512). Tokens are
       signed with Settings.jwt_secret and carry sub (user id), email, role,
       iat and exp. Verification returns None on any failure -- the route
       layer turns that into a 401 without saying why.

  Expiry: fixed by configuration (15 minutes by default). sign_access() has
       no per-call TTL argument, so no caller can mint a long-lived token.

  Revocation: access tokens are self-contained and are NOT checked against
       the database. A stolen access token stays valid until exp; the short
       TTL bounds that window. Refresh tokens are the revocable half.

  Clock: expiry is compared against the injected clock rather than jose's
       internal datetime.now(), so tests can move time without sleeping.

Layer rule: no imports from api/. Settings are passed in, not imported.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import Principal, Role

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("quill.auth")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Signs and verifies short-lived access tokens.

    Usage:
        codec = TokenCodec.from_settings(get_settings())
        token = codec.sign_access(Principal(user_id="u1", email="a@b.com", role=Role.author))
        principal = codec.verify_access(token)   # Principal or None
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expire_seconds: int = 15 * 60,
        clock: Clock = utc_now,
    ) -> None:
        if not secret:
            raise ValueError("TokenCodec requires a non-empty signing secret")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(seconds=expire_seconds)
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = utc_now) -> TokenCodec:
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expire_seconds=settings.access_token_expire_seconds,
            clock=clock,
        )

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds (for the expires_in response field)."""
        return int(self._ttl.total_seconds())

    def sign_access(self, claims: Principal) -> str:
        now = self._clock()
        payload = {
            "sub": claims.user_id,
            "email": claims.email,
            "role": claims.role.value,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify_access(self, token: str) -> Principal | None:
        """Return the Principal for a valid token, None on any failure.

        Bad signature, malformed structure, expired, missing claims and an
        unknown role all look the same to the caller.
        """
        if not isinstance(token, str) or not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except (JWTError, ValueError, TypeError):
            return None

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or self._clock().timestamp() >= exp:
            return None

        user_id = payload.get("sub")
        email = payload.get("email")
        role = payload.get("role")
        if not isinstance(user_id, str) or not user_id or not isinstance(email, str):
            return None
        try:
            return Principal(user_id=user_id, email=email, role=Role(role))
        except ValueError:
            logger.warning("Access token for sub=%s carried unknown role %r", user_id, role)
            return None
