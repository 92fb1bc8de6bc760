"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt only looks at the first 72 bytes of its input. Passwords are UTF-8
encoded and truncated to 72 bytes here so hash() and verify() always see the
same bytes. Consequence: two passwords that share their first 72 bytes are
the same password. The API accepts up to 128 characters, so anything past
byte 72 (fewer characters for non-ASCII input) adds no strength.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import bcrypt

_BCRYPT_MAX_BYTES = 72
DEFAULT_ROUNDS = 10


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Slow salted one-way hash with a fixed cost factor.

    The cost factor comes from Settings.bcrypt_rounds; tests pass 4 to keep
    the suite fast.
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, plain: str) -> str:
        """Return a self-describing bcrypt hash ($2b$<rounds>$<salt><digest>)."""
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str | None) -> bool:
        """Return True if plain matches hashed.

        Malformed or missing hashes return False instead of raising, so a
        corrupt row degrades to "deny" rather than a 500 on the login route.
        """
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False
