"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore and RefreshTokenStore are the
repositories; _row_to_user / _row_to_refresh_token are the mappers. Session
and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  refresh_tokens.token is UNIQUE. A generator collision therefore surfaces as
  IntegrityError from issue() and the caller may retry; it can never silently
  overwrite another user's token.

  consume() is a single conditional DELETE. When two requests rotate the same
  refresh token concurrently, the database serializes the deletes and only one
  of them sees rowcount == 1. The loser must treat the token as invalid.

Timestamps:
  Stored as naive UTC DATETIME (SQLite has no timezone type) and converted
  back to aware UTC datetimes by the mappers. Every expiry comparison takes
  "now" from the injected clock at call time; nothing is cached.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import RefreshToken, Role, User

logger = logging.getLogger("quill.auth")

Clock = Callable[[], datetime]

# 48 random bytes -> 64 URL-safe base64 characters (384 bits of entropy).
REFRESH_TOKEN_BYTES = 48
DEFAULT_REFRESH_TTL_DAYS = 7

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("hashed_password", Text),  # NULL = no password set (external login)
    Column("role", String(16), nullable=False, server_default=Role.author.value),
    Column("created_at", DateTime, nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", String(128), nullable=False, unique=True),
    Column("user_id", String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("expires_at", DateTime, nullable=False, index=True),  # sweep scans this
    Column("created_at", DateTime, nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign keys on every new SQLite connection.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_auth_engine(db_url: str) -> Engine:
    """Create an engine for db_url and make sure the auth tables exist.

    Both stores must share one engine -- with sqlite:///:memory: each engine
    gets its own private database.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_db(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def generate_refresh_token() -> str:
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for credential records.

    Usage:
        engine = create_auth_engine("sqlite:///:memory:")
        users = UserStore(engine)
        user = users.create(User(email="a@b.com", name="A", role=Role.author, hashed_password=h))
        users.find_by_email("a@b.com")
    """

    def __init__(self, engine: Engine, clock: Clock = utc_now) -> None:
        self.engine = engine
        self._clock = clock

    def create(self, user: User) -> User:
        """Insert a new user and return it with id and created_at filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers treat that as a lost race with a concurrent registration.
        """
        user_id = user.id or uuid.uuid4().hex
        created_at = self._clock()
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    name=user.name,
                    hashed_password=user.hashed_password,
                    role=Role(user.role).value,
                    created_at=_to_db(created_at),
                )
            )
        return User(
            id=user_id,
            email=user.email,
            name=user.name,
            role=Role(user.role),
            hashed_password=user.hashed_password,
            created_at=created_at,
        )

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_role(self, user_id: str, role: Role) -> bool:
        """Change a user's role. Returns False if user_id was not found.

        Only the operator CLI calls this; no HTTP route can change a role.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(role=Role(role).value))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


class RefreshTokenStore:
    """Repository for opaque, long-lived, single-use refresh tokens.

    Lifecycle of one token:
        issued -> consumed   (rotated by refresh)
        issued -> revoked    (logout)
        issued -> expired    (observed lazily by verify, removed by sweep)
    There is no path back from consumed, revoked or expired.
    """

    def __init__(
        self,
        engine: Engine,
        ttl_days: int = DEFAULT_REFRESH_TTL_DAYS,
        clock: Clock = utc_now,
        token_factory: Callable[[], str] = generate_refresh_token,
    ) -> None:
        self.engine = engine
        self._ttl = timedelta(days=ttl_days)
        self._clock = clock
        self._token_factory = token_factory

    def issue(self, user_id: str) -> str:
        """Create and persist a new refresh token for user_id; return its value.

        Raises sqlalchemy.exc.IntegrityError on a token collision or an
        unknown user_id.
        """
        token = self._token_factory()
        now = self._clock()
        with self.engine.begin() as conn:
            conn.execute(
                _refresh_tokens.insert().values(
                    token=token,
                    user_id=user_id,
                    expires_at=_to_db(now + self._ttl),
                    created_at=_to_db(now),
                )
            )
        return token

    def get(self, token: str) -> RefreshToken | None:
        """Return the raw record regardless of expiry (None if absent)."""
        with self.engine.connect() as conn:
            row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.token == token)).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def verify(self, token: str) -> User | None:
        """Return the owning user if token exists and expires_at > now.

        A token whose expires_at equals now is already expired.
        """
        if not token:
            return None
        now = _to_db(self._clock())
        query = (
            _users.select()
            .select_from(_users.join(_refresh_tokens, _refresh_tokens.c.user_id == _users.c.id))
            .where((_refresh_tokens.c.token == token) & (_refresh_tokens.c.expires_at > now))
        )
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def consume(self, token: str) -> bool:
        """Atomically delete a still-valid token. True only for the caller that deleted it."""
        now = _to_db(self._clock())
        with self.engine.begin() as conn:
            result = conn.execute(
                _refresh_tokens.delete().where(
                    (_refresh_tokens.c.token == token) & (_refresh_tokens.c.expires_at > now)
                )
            )
        return result.rowcount == 1

    def revoke(self, token: str) -> None:
        """Delete token. Unknown or already-revoked tokens are not an error.

        Storage failures are logged and swallowed: a duplicate logout or a
        retried refresh must never turn into a 500.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token == token))
        except SQLAlchemyError:
            logger.warning("Refresh token revoke failed; ignoring", exc_info=True)
            return
        if result.rowcount == 0:
            logger.debug("Revoke of unknown or already-revoked refresh token ignored")

    def revoke_all_for_user(self, user_id: str) -> int:
        """Delete every refresh token owned by user_id. Returns rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.user_id == user_id))
        return result.rowcount

    def sweep_expired(self) -> int:
        """Delete all tokens with expires_at < now. Returns rows removed."""
        now = _to_db(self._clock())
        with self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at < now))
        return result.rowcount

    def count_for_user(self, user_id: str) -> int:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _refresh_tokens.select().where(_refresh_tokens.c.user_id == user_id)
            ).fetchall()
        return len(rows)


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        hashed_password=row.hashed_password,
        created_at=_from_db(row.created_at),
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        token=row.token,
        user_id=row.user_id,
        expires_at=_from_db(row.expires_at),
        created_at=_from_db(row.created_at),
    )
