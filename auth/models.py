"""
auth/models.py -- Domain types for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the session
manager do the work; these only own shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Closed set of account roles.

    Permissions are set based (see auth/permissions.py), not ordered. Adding a
    member here means adding a case to permissions_for().
    """

    admin = "admin"
    editor = "editor"
    author = "author"
    viewer = "viewer"


# Self-registration always lands here; escalation happens via the CLI only.
DEFAULT_REGISTRATION_ROLE = Role.author


@dataclass
class User:
    """Credential record as stored in the users table.

    hashed_password is None for externally authenticated accounts. Such a
    record has "no password set" and can never pass password login.
    """

    email: str
    name: str
    role: Role
    id: str | None = None
    hashed_password: str | None = None
    created_at: datetime | None = None


@dataclass
class RefreshToken:
    """One row of the refresh_tokens table. expires_at is fixed at creation."""

    token: str
    user_id: str
    expires_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class Principal:
    """Identity carried by a verified access token. Lives for one request."""

    user_id: str
    email: str
    role: Role


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh token issued together.

    user is the account the pair was issued to, as loaded at issue time. It
    lets the HTTP layer describe the account without another lookup and is
    left out of equality and repr.
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: User | None = field(default=None, compare=False, repr=False)
