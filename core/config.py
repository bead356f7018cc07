"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the tours backend happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
and pass the Settings object to the component that needs it.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  Explicit injection: SessionAuthenticator and PasswordResetFlow receive the
      Settings instance at construction. They never reach for module-level
      config, so tests can build them with any Settings they like.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a SECRET_KEY with a
      warning, production mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies on
  key entropy -- a short key weakens every issued session.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or tours/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tours.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'tours.db'}"


class Settings(BaseSettings):
    """Tours backend settings, read from the process environment and .env.

    Every field has a default, so tests can build Settings(**overrides)
    without any environment. Only SECRET_KEY is checked at startup.

    Each field maps to its uppercased name as an environment variable.
    E.g. `secret_key` reads from SECRET_KEY, `environment` reads from ENVIRONMENT.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: str = "production"  # "development" | "production"
    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL
    port: int = 3000

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    token_expire_seconds: int = Field(default=90 * 24 * 3600, gt=0)
    cookie_expire_days: int = Field(default=90, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    reset_token_expire_minutes: int = Field(default=10, gt=0)

    # ------------------------------------------------------------------
    # Outbound email (empty SMTP_HOST means "log instead of send")
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_from: str = "Tours <no-reply@tours.local>"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def secure_cookies(self) -> bool:
        """Session cookies are marked Secure everywhere except local development."""
        return not (self.is_development or self.debug)

    @property
    def cookie_max_age(self) -> int:
        return self.cookie_expire_days * 24 * 3600

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true or ENVIRONMENT=development): auto-generate a
            random key with a warning. Sessions will not survive restart.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug or self.is_development:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "SECRET_KEY not set -- using a random key. Issued tokens stop working on restart."
                )
            else:
                raise ValueError(
                    "SECRET_KEY must be set outside development. "
                    "Export SECRET_KEY (32+ characters) or add it to .env; "
                    "set DEBUG=true or ENVIRONMENT=development for a throwaway key."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first use.

    Tests that change environment variables call get_settings.cache_clear()
    before and after.
    """
    return Settings()
