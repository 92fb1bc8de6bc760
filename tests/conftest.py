"""
tests/conftest.py -- Shared test fixtures for the Quill auth core.

This module provides:
  - FakeClock: a settable UTC clock injected into the codec and stores
  - engine / users / refresh_store / hasher / codec / manager: unit fixtures
    over a private in-memory SQLite database per test
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: the unit fixtures use plain sqlite:///:memory: because every call
happens on the test thread. The api_client fixture uses a named shared-memory
URI instead: TestClient runs sync route handlers in a thread pool, and a
plain :memory: database is per-connection, so worker threads would see a
blank schema.

APP_ENV must be set before any core/auth/api import so get_settings()
auto-generates JWT_SECRET instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set before any core/auth/api import.
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.session import AuthSessionManager
from auth.store import RefreshTokenStore, UserStore, create_auth_engine
from auth.tokens import TokenCodec

TEST_SECRET = "test-secret-" + "x" * 40
TEST_ROUNDS = 4


class FakeClock:
    """Callable clock returning a fixed aware UTC datetime until moved."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine():
    eng = create_auth_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def users(engine, clock) -> UserStore:
    return UserStore(engine, clock=clock)


@pytest.fixture
def refresh_store(engine, clock) -> RefreshTokenStore:
    return RefreshTokenStore(engine, ttl_days=7, clock=clock)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(secret=TEST_SECRET, expire_seconds=15 * 60, clock=clock)


@pytest.fixture
def manager(users, refresh_store, hasher, codec) -> AuthSessionManager:
    return AuthSessionManager(users=users, refresh_tokens=refresh_store, hasher=hasher, codec=codec)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(engine, manager: AuthSessionManager):
    """Return an async context manager that replaces the real lifespan.

    Wires a pre-built session manager into app.state so routes use the
    isolated test database. The sweep task is a long-sleeping coroutine that
    keeps asyncio happy (a real asyncio.Task is required for .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.auth = manager
        app.state.sweep_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.sweep_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AuthSessionManager], None, None]:
    """Yield (client, manager) for API integration tests.

    The database name includes the test module name so modules never share
    state. Tests must use unique emails within a module.
    """
    db_name = request.module.__name__.replace(".", "_")
    engine = create_auth_engine(f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    manager = AuthSessionManager(
        users=UserStore(engine),
        refresh_tokens=RefreshTokenStore(engine, ttl_days=7),
        hasher=PasswordHasher(rounds=TEST_ROUNDS),
        codec=TokenCodec(secret=TEST_SECRET),
    )

    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(engine, manager)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, manager

    app.router.lifespan_context = original_lifespan
    engine.dispose()
