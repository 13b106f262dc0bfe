"""
Central configuration using Pydantic BaseSettings.

Validates all env vars at startup (fail-fast). The signing secret is required
in every environment: the process refuses to start without it.

Usage:
    from config.settings import get_settings

    settings = get_settings()
    print(settings.auth.token_lifetime_minutes)

Lazy initialization: get_settings() creates the singleton on first call.
Tests can reset via get_settings.cache_clear().

Settings objects are frozen. Components receive them through their
constructors instead of reading module globals.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

PRODUCTION = "production"


# =============================================================================
# Nested Settings Groups
# =============================================================================


class AuthSettings(BaseSettings):
    """Token, session and login configuration."""

    model_config = {"env_prefix": "", "extra": "ignore", "frozen": True}

    jwt_secret: SecretStr = SecretStr("")
    jwt_algorithm: str = "HS256"
    token_lifetime_minutes: int = 60
    session_lifetime_minutes: int = 60

    auth_cookie_name: str = "auth_token"

    # Development-only bypass; refused when APP_ENV=production
    authentication_enabled: bool = True

    # Password policy
    password_min_length: int = 10
    password_require_uppercase: bool = True
    password_require_lowercase: bool = True
    password_require_digit: bool = True
    password_require_special: bool = True

    # Seeded on first start when set
    admin_password: SecretStr = SecretStr("")

    # Session and blacklist sweeps
    sweep_interval_minutes: int = 15


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    model_config = {"env_prefix": "", "extra": "ignore", "frozen": True}

    database_path: Optional[str] = None

    @property
    def db_path(self) -> Path:
        """SQLite path, defaulting to data/namhatta.db."""
        if self.database_path:
            return Path(self.database_path)
        return Path(__file__).parent.parent / "data" / "namhatta.db"


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration."""

    model_config = {"env_prefix": "RATE_LIMIT_", "extra": "ignore", "frozen": True}

    default: str = "500 per minute"
    login: str = "5 per 15 minutes"
    storage: Optional[str] = None  # memory:// when unset


# =============================================================================
# Root Settings
# =============================================================================


class AppSettings(BaseSettings):
    """Root application settings composing all sub-settings."""

    model_config = {
        "env_prefix": "",
        "extra": "ignore",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "frozen": True,
    }

    # Deployment environment: development, testing or production
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: str = ""

    # Server
    cors_origins: str = "http://localhost:3000,http://localhost:5000"

    # Nested groups (initialized separately to support env_prefix)
    auth: AuthSettings = None  # type: ignore[assignment]
    database: DatabaseSettings = None  # type: ignore[assignment]
    rate_limit: RateLimitSettings = None  # type: ignore[assignment]

    @model_validator(mode="before")
    @classmethod
    def _init_nested(cls, values):
        """Initialize nested settings from environment."""
        if values.get("auth") is None:
            values["auth"] = AuthSettings()
        if values.get("database") is None:
            values["database"] = DatabaseSettings()
        if values.get("rate_limit") is None:
            values["rate_limit"] = RateLimitSettings()
        return values

    @model_validator(mode="after")
    def _validate_required_secrets(self):
        """Require JWT_SECRET in every environment."""
        if not self.auth.jwt_secret.get_secret_value():
            raise ValueError(
                "JWT_SECRET env var is required. "
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == PRODUCTION

    @property
    def auth_bypass_requested(self) -> bool:
        """True when AUTHENTICATION_ENABLED=false, whatever the environment."""
        return not self.auth.authentication_enabled


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """
    Get the application settings singleton.

    Lazy-initialized on first call. Validates all env vars (fail-fast).
    Tests can reset via: get_settings.cache_clear()

    Raises:
        ConfigurationError: required configuration is missing or invalid
    """
    try:
        return AppSettings()
    except ValidationError as e:
        logger.critical(f"Refusing to start: invalid configuration ({e.error_count()} error(s))")
        raise ConfigurationError(f"Invalid configuration: {e}") from e
