"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for NexStack happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  Frozen settings: Settings is immutable after construction. The lifespan in
      api/main.py builds one instance and hands it to every auth component
      (hasher, token issuer, cookie binder, auth service). Components never
      re-read the environment on the request path.

  @model_validator(mode="after"): cross-field checks on the two signing
      secrets, run once at startup.

Security notes:
  ACCESS_SECRET and REFRESH_SECRET have no default. A missing value fails
  Settings() with a ValidationError, so the process refuses to start.

  The two secrets must differ. A leaked refresh-signing key must not be able
  to forge access tokens, and vice versa.

  Secrets shorter than 32 chars are rejected. HS256 relies on key entropy.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("nexstack.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `access_secret` reads from ACCESS_SECRET.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: Literal["development", "production", "test"] = "development"
    database_url: str = "sqlite:///nexstack.db"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    # ------------------------------------------------------------------
    # Tokens -- two independent secrets and lifetimes
    # ------------------------------------------------------------------

    access_secret: str
    refresh_secret: str
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 10

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    allow_registration: bool = True

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "5/minute"
    global_rate_limit: str = "100/minute"

    # ------------------------------------------------------------------
    # Seeding (seed.py only)
    # ------------------------------------------------------------------

    seed_admin_password: str = ""
    seed_client_password: str = ""
    seed_team_password: str = ""

    @property
    def secure_cookies(self) -> bool:
        """Cookies carry the Secure attribute only in production."""
        return self.environment == "production"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Reject short or shared signing secrets at startup."""
        for name in ("access_secret", "refresh_secret"):
            if len(getattr(self, name)) < _MIN_SECRET_LENGTH:
                raise ValueError(f"{name.upper()} must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.access_secret == self.refresh_secret:
            raise ValueError("ACCESS_SECRET and REFRESH_SECRET must be different.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.access_token_expire_seconds <= 0 or self.refresh_token_expire_seconds <= 0:
            raise ValueError("Token lifetimes must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
