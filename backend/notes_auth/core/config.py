"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Placeholders that must never reach a production deployment
INSECURE_SECRETS: Final[frozenset[str]] = frozenset(
    {"CHANGE_ME", "CHANGE_ME_ACCESS", "CHANGE_ME_REFRESH"}
)

# Loads .env in development (no-op when the file is missing)
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
    """Parse a positive integer from an environment variable.

    :param name: Environment variable to inspect.
    :param default: Value returned when the variable is unset or blank.
    :returns: Parsed integer.
    :raises ValueError: If the value is not a positive integer.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    parsed = int(val.strip())
    if parsed <= 0:
        raise ValueError(f"{name} must be a positive integer, got {parsed}.")
    return parsed


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    ACCESS_TOKEN_SECRET: str
        HMAC key for access tokens. Also handed to ``flask-jwt-extended`` so
        protected endpoints accept the tokens issued by the access codec.
    ACCESS_TOKEN_TTL_SECONDS: int
        Access token lifetime (minutes-scale).
    REFRESH_TOKEN_SECRET: str
        HMAC key for refresh tokens. Must differ from the access secret.
    REFRESH_TOKEN_TTL_SECONDS: int
        Refresh token lifetime (at least one day).
    ACTION_TOKEN_TTL_SECONDS: int
        Lifetime of password-reset and email-verification tokens.
    JWT_ALGORITHM: str
        Signing algorithm shared by both codecs.
    PASSWORD_HASH_METHOD: str | None
        Werkzeug hash method; ``None`` keeps werkzeug's default (scrypt).
    REDIS_URL: str | None
        Redis connection for the token store; ``None`` selects the
        in-process store.
    REFRESH_COOKIE_NAME: str
        Name of the HttpOnly cookie carrying the refresh token.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string for the user directory.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", "CHANGE_ME_ACCESS")
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "CHANGE_ME_REFRESH")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD") or None

    # Token lifetimes
    ACCESS_TOKEN_TTL_SECONDS = env_int("ACCESS_TOKEN_TTL_SECONDS", 15 * 60)
    REFRESH_TOKEN_TTL_SECONDS = env_int("REFRESH_TOKEN_TTL_SECONDS", 7 * 24 * 3600)
    ACTION_TOKEN_TTL_SECONDS = env_int("ACTION_TOKEN_TTL_SECONDS", 3600)

    # Refresh cookie transport
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", True)
    REFRESH_COOKIE_SAMESITE = os.getenv("REFRESH_COOKIE_SAMESITE", "Strict")

    # Stores
    REDIS_URL = os.getenv("REDIS_URL") or None
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and allows the refresh cookie over plain
    HTTP so the dev server works without TLS.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    REFRESH_COOKIE_SECURE = env_bool("REFRESH_COOKIE_SECURE", False)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and an in-memory SQLite database.
    - Never talks to Redis; the in-process token store is used instead.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    REDIS_URL = None
    ACCESS_TOKEN_SECRET = "test-access-secret-0123456789abcdef"
    REFRESH_TOKEN_SECRET = "test-refresh-secret-0123456789abcdef"
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    REFRESH_COOKIE_SECURE = False
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    :func:`validate_config` rejects this profile while any secret still holds
    its placeholder value.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


def validate_config(config: Mapping[str, object]) -> None:
    """Fail fast on token settings that would weaken the lifecycle guarantees.

    :param config: Loaded Flask configuration mapping.
    :raises RuntimeError: On shared or placeholder secrets (outside debug and
        testing) or on a refresh lifetime shorter than one day.
    """
    access_secret = str(config.get("ACCESS_TOKEN_SECRET") or "")
    refresh_secret = str(config.get("REFRESH_TOKEN_SECRET") or "")
    if not access_secret or not refresh_secret:
        raise RuntimeError("Token secrets must be configured.")
    if access_secret == refresh_secret:
        raise RuntimeError("Access and refresh tokens must use different secrets.")

    relaxed = bool(config.get("DEBUG")) or bool(config.get("TESTING"))
    if not relaxed and {access_secret, refresh_secret} & INSECURE_SECRETS:
        raise RuntimeError("Placeholder token secrets are not allowed outside development.")

    access_ttl = int(config.get("ACCESS_TOKEN_TTL_SECONDS") or 0)
    refresh_ttl = int(config.get("REFRESH_TOKEN_TTL_SECONDS") or 0)
    if access_ttl <= 0:
        raise RuntimeError("ACCESS_TOKEN_TTL_SECONDS must be positive.")
    if refresh_ttl < 24 * 3600:
        raise RuntimeError("REFRESH_TOKEN_TTL_SECONDS must be at least one day.")
