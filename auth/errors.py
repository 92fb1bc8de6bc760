"""
auth/errors.py -- Exceptions raised by the auth session manager.

Every subclass carries a fixed code and a pre-composed message. Route handlers
return exactly that message; the underlying cause (if any) is logged at the
point where it was caught and never echoed to the client.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for authentication failures surfaced to callers."""

    code = "auth_error"
    message = "Authentication failed."
    status_code = 401

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    """Unknown email, account without a password, or wrong password.

    One class and one message for all three so login cannot be used to probe
    which emails have accounts.
    """

    code = "bad_credentials"
    message = "Invalid credentials"


class UserAlreadyExistsError(AuthError):
    code = "conflict"
    message = "User with this email already exists"
    status_code = 409


class InvalidRefreshTokenError(AuthError):
    """Refresh token unknown, expired, revoked, or already rotated."""

    code = "invalid_refresh_token"
    message = "Invalid or expired refresh token"
