"""Application settings with environment-based simple classes.

.. warning::
   ``JWT_SECRET_KEY`` signs every token this service issues. Rotating it
   invalidates all outstanding access, refresh, reset-password and
   verify-email tokens at once; plan a rotation as a forced global logout.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Loads .env in development (no-op when missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


def env_float(name: str, default: float) -> float:
    """Parse a float from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return float(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    SECRET_KEY: str
        Flask secret. Defaults to a development placeholder.
    JWT_SECRET_KEY: str
        Signing secret shared by the token codec and ``flask-jwt-extended``.
    JWT_ALGORITHM: str
        HMAC algorithm used for signing (``HS256``).
    JWT_ACCESS_EXPIRATION_MINUTES: int
        Lifetime of access tokens.
    JWT_REFRESH_EXPIRATION_DAYS: int
        Lifetime of refresh tokens.
    JWT_RESET_PASSWORD_EXPIRATION_MINUTES: int
        Lifetime of reset-password tokens.
    JWT_VERIFY_EMAIL_EXPIRATION_MINUTES: int
        Lifetime of verify-email tokens.
    TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_SERVICE_VERIFICATION_SID: str
        Verification provider credentials. Only the verification gateway reads them.
    TWILIO_VERIFY_BASE_URL: str
        Root URL of the Verify v2 API.
    VERIFICATION_TIMEOUT_SECONDS: float
        Upper bound for a single provider round trip.
    REDIS_URL: str | None
        Token store backend. When unset an in-process store is used.
    REDIS_SOCKET_TIMEOUT_SECONDS: float
        Connect and read timeout for the Redis client.
    SQLALCHEMY_DATABASE_URI: str
        User directory database.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

    # Token lifetimes
    JWT_ACCESS_EXPIRATION_MINUTES = env_int("JWT_ACCESS_EXPIRATION_MINUTES", 30)
    JWT_REFRESH_EXPIRATION_DAYS = env_int("JWT_REFRESH_EXPIRATION_DAYS", 30)
    JWT_RESET_PASSWORD_EXPIRATION_MINUTES = env_int("JWT_RESET_PASSWORD_EXPIRATION_MINUTES", 10)
    JWT_VERIFY_EMAIL_EXPIRATION_MINUTES = env_int("JWT_VERIFY_EMAIL_EXPIRATION_MINUTES", 10)

    # Verification provider
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_SERVICE_VERIFICATION_SID = os.getenv("TWILIO_SERVICE_VERIFICATION_SID", "")
    TWILIO_VERIFY_BASE_URL = os.getenv("TWILIO_VERIFY_BASE_URL", "https://verify.twilio.com/v2")
    VERIFICATION_TIMEOUT_SECONDS = env_float("VERIFICATION_TIMEOUT_SECONDS", 5.0)

    # Storage
    REDIS_URL = os.getenv("REDIS_URL")
    REDIS_SOCKET_TIMEOUT_SECONDS = env_float("REDIS_SOCKET_TIMEOUT_SECONDS", 2.0)
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Never talks to Redis; the in-process token store is used instead.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = "testing-secret-key-with-enough-entropy"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    REDIS_URL = None
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments."""

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
