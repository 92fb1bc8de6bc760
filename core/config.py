"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Quill happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      instance is then handed to TokenCodec, PasswordHasher and the stores
      explicitly; nothing in auth/ reads it as an ambient global.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used to enforce the JWT_SECRET policy:
      test mode generates a key with a warning, every other environment
      refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key weakens every access token.

  There is no hard-coded fallback secret. A missing JWT_SECRET outside
  APP_ENV=test is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("quill.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'quill_auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `jwt_secret` reads from JWT_SECRET, `app_env` reads from APP_ENV.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    app_env: Literal["production", "development", "test"] = "production"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a test key or raises, so callers never see "".
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_days: int = 7
    token_sweep_interval_seconds: int = 60 * 60

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10

    # ------------------------------------------------------------------
    # Rate limiting (applied by api/, never by the auth core)
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/hour"
    register_rate_limit: str = "5/hour"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        # bcrypt itself accepts 4..31; above 16 a single login takes seconds.
        if v < 4 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16")
        return v

    @field_validator("access_token_expire_seconds")
    @classmethod
    def validate_access_ttl(cls, v: int) -> int:
        if v < 60 or v > 3600:
            raise ValueError("ACCESS_TOKEN_EXPIRE_SECONDS must be between 60 and 3600")
        return v

    @field_validator("refresh_token_expire_days")
    @classmethod
    def validate_refresh_ttl(cls, v: int) -> int:
        if v < 1 or v > 90:
            raise ValueError("REFRESH_TOKEN_EXPIRE_DAYS must be between 1 and 90")
        return v

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("HS256", "HS384", "HS512"):
            raise ValueError("JWT_ALGORITHM must be one of HS256, HS384, HS512")
        return v

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Test mode (APP_ENV=test): auto-generate a random key with a warning.
            Tokens will not survive restart -- irrelevant for a test run.

        Any other mode: refuse to start if JWT_SECRET is missing. Signing
            with a guessable default would let anyone mint admin tokens.

        All modes: reject keys shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.app_env == "test":
                self.jwt_secret = secrets.token_urlsafe(48)
                logger.warning("Using auto-generated JWT_SECRET (APP_ENV=test). Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "Only APP_ENV=test may run without one."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or build Settings(...) directly
    and pass it to the component under test.
    """
    return Settings()
