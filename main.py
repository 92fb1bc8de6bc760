#!/usr/bin/env python3
"""
Quill operator CLI -- account seeding and refresh-token housekeeping.

Self-registration over HTTP always creates author accounts. This CLI is the
only way to create admin/editor/viewer accounts or change a role.

Usage:
  python main.py create-user --email admin@example.com --name Admin --role admin
  python main.py set-role --email jo@example.com --role editor
  python main.py sweep-tokens

Environment variables:
  JWT_SECRET     Required unless APP_ENV=test (see core/config.py).
  DATABASE_URL   SQLAlchemy URL of the auth database.
"""

import argparse
import getpass
import logging
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.passwords import PasswordHasher
from auth.session import normalize_email
from auth.store import RefreshTokenStore, UserStore, create_auth_engine
from core.config import Settings, get_settings

logger = logging.getLogger("quill.cli")

PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


def _read_password(supplied: str | None) -> str | None:
    """Return supplied, or prompt twice on a TTY. None means mismatch."""
    if supplied is not None:
        return supplied
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    return first if first == second else None


def cmd_create_user(args: argparse.Namespace, settings: Settings) -> int:
    if args.no_password:
        hashed = None
    else:
        password = _read_password(args.password)
        if password is None:
            print("Passwords do not match.", file=sys.stderr)
            return 1
        if not (PASSWORD_MIN_LEN <= len(password) <= PASSWORD_MAX_LEN):
            print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
            return 1
        hashed = PasswordHasher(rounds=settings.bcrypt_rounds).hash(password)

    engine = create_auth_engine(settings.database_url)
    users = UserStore(engine)
    try:
        user = users.create(
            User(email=normalize_email(args.email), name=args.name, role=Role(args.role), hashed_password=hashed)
        )
    except IntegrityError:
        print(f"User '{args.email}' already exists.", file=sys.stderr)
        return 1
    finally:
        users.close()
    print(f"Created user '{user.email}' (id={user.id}) with role '{user.role.value}'.")
    return 0


def cmd_set_role(args: argparse.Namespace, settings: Settings) -> int:
    engine = create_auth_engine(settings.database_url)
    users = UserStore(engine)
    try:
        user = users.find_by_email(normalize_email(args.email))
        if user is None:
            print(f"No user with email '{args.email}'.", file=sys.stderr)
            return 1
        users.update_role(user.id, Role(args.role))
    finally:
        users.close()
    # Outstanding access tokens keep the old role until they expire.
    print(f"Role of '{user.email}' set to '{args.role}'.")
    return 0


def cmd_sweep_tokens(args: argparse.Namespace, settings: Settings) -> int:
    engine = create_auth_engine(settings.database_url)
    store = RefreshTokenStore(engine, ttl_days=settings.refresh_token_expire_days)
    try:
        removed = store.sweep_expired()
    finally:
        engine.dispose()
    logger.info("Swept %d expired refresh token(s)", removed)
    print(f"Removed {removed} expired refresh token(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quill",
        description="Quill auth administration.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    roles = [r.value for r in Role]

    create = sub.add_parser("create-user", help="Create an account with any role")
    create.add_argument("--email", required=True)
    create.add_argument("--name", required=True)
    create.add_argument("--role", choices=roles, default=Role.author.value)
    create.add_argument("--password", default=None, help="Prompted for when omitted")
    create.add_argument(
        "--no-password",
        action="store_true",
        help="Create an externally authenticated account that cannot use password login",
    )
    create.set_defaults(func=cmd_create_user)

    set_role = sub.add_parser("set-role", help="Change the role of an existing account")
    set_role.add_argument("--email", required=True)
    set_role.add_argument("--role", choices=roles, required=True)
    set_role.set_defaults(func=cmd_set_role)

    sweep = sub.add_parser("sweep-tokens", help="Delete expired refresh tokens (run from cron)")
    sweep.set_defaults(func=cmd_sweep_tokens)

    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = build_parser().parse_args(argv)
    settings = get_settings()
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
