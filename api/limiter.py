"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Rate limiting is a pre-check in front of the auth core, not part of it:
AuthSessionManager.login()/register() behave the same with or without it.
RATE_LIMIT_ENABLED=false turns it off (the test suite does this).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=_settings.rate_limit_enabled,
)


def login_limit() -> str:
    return _settings.login_rate_limit


def register_limit() -> str:
    return _settings.register_rate_limit
