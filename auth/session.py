"""
auth/session.py -- Login, registration, refresh-token rotation and bearer auth.

AuthSessionManager is the only place that combines the hasher, the codec and
the two stores. Route handlers call one method per endpoint and map AuthError
to an HTTP status; they never touch tokens or hashes themselves.

Rotation ordering:
  refresh() consumes the old refresh token BEFORE minting the new pair. If the
  order were reversed, a window would exist where both the old and the new
  refresh token are valid, and a stolen old token could be replayed.

Rate limiting is not done here. The HTTP layer applies it as a pre-check
before login() and register() are reached (see api/limiter.py).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from auth.errors import InvalidCredentialsError, InvalidRefreshTokenError, UserAlreadyExistsError
from auth.models import DEFAULT_REGISTRATION_ROLE, Principal, TokenPair, User
from auth.passwords import PasswordHasher
from auth.store import RefreshTokenStore, UserStore
from auth.tokens import TokenCodec

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from core.config import Settings

logger = logging.getLogger("quill.auth")

BEARER_PREFIX = "Bearer "


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" value.

    The prefix is case-sensitive and exactly one space; everything after it is
    returned verbatim (so "Bearer   x" yields "  x"). Returns None for a
    missing header, another scheme, or an empty token.
    """
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :]
    return token or None


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthSessionManager:
    def __init__(
        self,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
    ) -> None:
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher
        self.codec = codec

    @classmethod
    def from_settings(cls, settings: Settings, engine: Engine) -> AuthSessionManager:
        """Wire the default collaborators from one Settings instance and one engine."""
        return cls(
            users=UserStore(engine),
            refresh_tokens=RefreshTokenStore(engine, ttl_days=settings.refresh_token_expire_days),
            hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
            codec=TokenCodec.from_settings(settings),
        )

    # ------------------------------------------------------------------
    # Token pair issuance
    # ------------------------------------------------------------------

    def _issue_pair(self, user: User) -> TokenPair:
        principal = Principal(user_id=user.id, email=user.email, role=user.role)
        access = self.codec.sign_access(principal)
        refresh = self.refresh_tokens.issue(user.id)
        return TokenPair(access_token=access, refresh_token=refresh, user=user)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> TokenPair:
        """Exchange email + password for a token pair.

        Raises InvalidCredentialsError for an unknown email, an account with no
        password, or a wrong password -- the same error in all three cases.
        """
        user = self.users.find_by_email(normalize_email(email))
        if user is None or user.hashed_password is None:
            logger.info("Login rejected: no password credential for the supplied email")
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.hashed_password):
            logger.info("Login rejected: bad password for user_id=%s", user.id)
            raise InvalidCredentialsError()
        logger.info("Login succeeded for user_id=%s", user.id)
        return self._issue_pair(user)

    def register(self, email: str, password: str, name: str) -> TokenPair:
        """Create an account with the default role and return a token pair.

        The role is never taken from the caller. Raises UserAlreadyExistsError
        if the email is taken, including when a concurrent registration wins
        the unique-constraint race between our lookup and our insert.
        """
        email = normalize_email(email)
        if self.users.find_by_email(email) is not None:
            raise UserAlreadyExistsError()
        candidate = User(
            email=email,
            name=name,
            role=DEFAULT_REGISTRATION_ROLE,
            hashed_password=self.hasher.hash(password),
        )
        try:
            user = self.users.create(candidate)
        except IntegrityError as exc:
            logger.info("Registration lost a unique-email race")
            raise UserAlreadyExistsError() from exc
        logger.info("Registered user_id=%s role=%s", user.id, user.role.value)
        return self._issue_pair(user)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate a refresh token: consume the old one, then issue a new pair.

        Raises InvalidRefreshTokenError if the token is unknown, expired,
        revoked, or was consumed by a concurrent refresh first.
        """
        user = self.refresh_tokens.verify(refresh_token)
        if user is None:
            raise InvalidRefreshTokenError()
        if not self.refresh_tokens.consume(refresh_token):
            logger.warning("Refresh token for user_id=%s consumed concurrently; rejecting", user.id)
            raise InvalidRefreshTokenError()
        return self._issue_pair(user)

    def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token. Idempotent; never raises for unknown tokens."""
        self.refresh_tokens.revoke(refresh_token)

    def logout_everywhere(self, user_id: str) -> int:
        """Revoke every refresh token of user_id. Outstanding access tokens still live out their TTL."""
        removed = self.refresh_tokens.revoke_all_for_user(user_id)
        logger.info("Revoked %d refresh token(s) for user_id=%s", removed, user_id)
        return removed

    def authenticate(self, authorization: str | None) -> Principal | None:
        """Return the Principal for a valid "Bearer <access token>" header, else None."""
        token = extract_bearer_token(authorization)
        if token is None:
            return None
        return self.codec.verify_access(token)
