"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for meetai happen here. No module should call
os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). List fields are read as JSON arrays
      (TRUSTED_ORIGINS='["http://localhost:3000"]').

  @model_validator(mode="after"): dev mode generates a SECRET_KEY with a
      warning, production mode refuses to start without one.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models import SOCIAL_PROVIDERS

logger = logging.getLogger("meetai.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    log_level: str = "INFO"

    # Fixed origin the auth client facade talks to.
    base_url: str = "http://localhost:3000"

    # Browser origins allowed to POST to /api/auth/* and to make CORS calls.
    trusted_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:3002",
        "http://10.0.0.80:3000",
        "http://10.0.0.80:3001",
        "http://10.0.0.80:3002",
    ]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "10.0.0.80"]
    # Peers whose X-Forwarded-For header names the real client. The web pages
    # call the auth API from the server itself, so loopback is trusted.
    trusted_proxies: list[str] = ["127.0.0.1", "::1"]

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    # Any SQLAlchemy URL. Empty means the SQLite file next to auth/store.py.
    database_url: str = ""

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    session_expire_seconds: int = 60 * 60 * 24 * 7

    # ------------------------------------------------------------------
    # Social providers (empty string means provider is disabled)
    # ------------------------------------------------------------------

    github_client_id: str = ""
    github_client_secret: str = ""
    google_client_id: str = ""
    google_client_secret: str = ""

    def enabled_social_providers(self) -> list[dict]:
        """Return {"name", "label"} for every provider with both credentials set.

        Order follows SOCIAL_PROVIDERS so the pages render buttons consistently.
        """
        configured = {
            "github": bool(self.github_client_id and self.github_client_secret),
            "google": bool(self.google_client_id and self.google_client_secret),
        }
        return [{"name": name, "label": label} for name, label in SOCIAL_PROVIDERS.items() if configured.get(name)]

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    sign_in_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        self.base_url = self.base_url.rstrip("/")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
