"""
tests/test_cli.py -- Operator CLI in main.py.

Each test points DATABASE_URL at a fresh SQLite file under tmp_path and
clears the get_settings() cache so the CLI picks it up.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from auth.models import Role
from auth.passwords import PasswordHasher
from auth.store import RefreshTokenStore, UserStore, create_auth_engine, utc_now
from core.config import get_settings
from main import main


@pytest.fixture
def db_url(tmp_path, monkeypatch: pytest.MonkeyPatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


@pytest.fixture
def users(db_url: str):
    engine = create_auth_engine(db_url)
    yield UserStore(engine)
    engine.dispose()


def test_create_user_with_role(db_url: str, users: UserStore, capsys) -> None:
    code = main(["create-user", "--email", "Boss@Example.com", "--name", "Boss", "--role", "admin", "--password", "Password123"])
    assert code == 0
    assert "role 'admin'" in capsys.readouterr().out
    user = users.find_by_email("boss@example.com")
    assert user.role is Role.admin
    assert PasswordHasher().verify("Password123", user.hashed_password)


def test_create_user_without_password(db_url: str, users: UserStore) -> None:
    assert main(["create-user", "--email", "sso@example.com", "--name", "SSO", "--no-password"]) == 0
    user = users.find_by_email("sso@example.com")
    assert user.hashed_password is None
    assert user.role is Role.author


def test_create_user_rejects_short_password(db_url: str, users: UserStore, capsys) -> None:
    assert main(["create-user", "--email", "x@example.com", "--name", "X", "--password", "short"]) == 1
    assert "8-128" in capsys.readouterr().err
    assert users.find_by_email("x@example.com") is None


def test_create_user_prompts_for_password(db_url: str, users: UserStore, monkeypatch: pytest.MonkeyPatch) -> None:
    answers = iter(["Password123", "Password123"])
    monkeypatch.setattr("getpass.getpass", lambda prompt="": next(answers))
    assert main(["create-user", "--email", "prompt@example.com", "--name", "P"]) == 0
    assert users.find_by_email("prompt@example.com").hashed_password


def test_create_user_prompt_mismatch(db_url: str, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    answers = iter(["Password123", "Password456"])
    monkeypatch.setattr("getpass.getpass", lambda prompt="": next(answers))
    assert main(["create-user", "--email", "oops@example.com", "--name", "O"]) == 1
    assert "do not match" in capsys.readouterr().err


def test_create_duplicate_user(db_url: str, capsys) -> None:
    args = ["create-user", "--email", "dup@example.com", "--name", "D", "--password", "Password123"]
    assert main(args) == 0
    assert main(args) == 1
    assert "already exists" in capsys.readouterr().err


def test_set_role(db_url: str, users: UserStore) -> None:
    main(["create-user", "--email", "jo@example.com", "--name", "Jo", "--password", "Password123"])
    assert main(["set-role", "--email", "jo@example.com", "--role", "editor"]) == 0
    assert users.find_by_email("jo@example.com").role is Role.editor


def test_set_role_unknown_user(db_url: str, capsys) -> None:
    assert main(["set-role", "--email", "ghost@example.com", "--role", "editor"]) == 1
    assert "No user" in capsys.readouterr().err


def test_set_role_rejects_unknown_role(db_url: str) -> None:
    with pytest.raises(SystemExit):
        main(["set-role", "--email", "jo@example.com", "--role", "owner"])


def test_sweep_tokens(db_url: str, users: UserStore, capsys) -> None:
    main(["create-user", "--email", "sweep@example.com", "--name", "S", "--password", "Password123"])
    user_id = users.find_by_email("sweep@example.com").id
    long_ago = utc_now() - timedelta(days=30)
    old = RefreshTokenStore(users.engine, clock=lambda: long_ago)
    old.issue(user_id)
    RefreshTokenStore(users.engine).issue(user_id)

    assert main(["sweep-tokens"]) == 0
    assert "Removed 1 expired" in capsys.readouterr().out
    assert RefreshTokenStore(users.engine).count_for_user(user_id) == 1
