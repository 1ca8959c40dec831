"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

from membertx.tx.propagation import Propagation

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Sentinel accepted by the propagation settings for non-transactional components
NON_TRANSACTIONAL: Final[str] = "NONE"


# Load .env in development (no-op when the file is absent)
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


def parse_propagation(value: str | Propagation | None) -> Propagation | None:
    """Turn a configuration value into a :class:`Propagation` or ``None``.

    Parameters
    ----------
    value: str | Propagation | None
        ``"REQUIRED"``, ``"REQUIRES_NEW"`` (any case, dashes allowed) or
        ``"NONE"``/empty for a non-transactional component.

    Returns
    -------
    Propagation | None
        Parsed mode, ``None`` meaning "participate in the caller's context".

    Raises
    ------
    ValueError
        If the name is not a known propagation mode.
    """
    if value is None or isinstance(value, Propagation):
        return value
    token = str(value).strip().upper().replace("-", "_")
    if token in ("", NON_TRANSACTIONAL):
        return None
    try:
        return Propagation[token]
    except KeyError:
        allowed = ", ".join([*(p.name for p in Propagation), NON_TRANSACTIONAL])
        raise ValueError(f"Unknown propagation {value!r}; expected one of {allowed}.") from None


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret used for session signing.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    SQLALCHEMY_TRACK_MODIFICATIONS: bool
        Disabled to avoid extra overhead from the event system.
    SQLALCHEMY_ECHO: bool
        When ``True`` SQLAlchemy logs SQL statements for debugging.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    TX_LOG_LEVEL: str | None
        Separate verbosity for the transaction layer; ``None`` inherits
        ``LOG_LEVEL``.
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.
    LOG_FAILURE_MARKER: str
        Substring that makes the log repository reject a message. Drives the
        failing half of the propagation experiments.
    JOIN_SERVICE_PROPAGATION: str
        Propagation of the member join use case itself.
    MEMBER_REPOSITORY_PROPAGATION: str
        Propagation of the member write inside the join use case.
    LOG_REPOSITORY_PROPAGATION: str
        Propagation of the log write inside the join use case.

    Notes
    -----
    Propagation settings accept ``REQUIRED``, ``REQUIRES_NEW`` or ``NONE``
    (the component runs inside its caller's transaction).
    """

    API_BASE_PREFIX = "/api"

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    TX_LOG_LEVEL = os.getenv("TX_LOG_LEVEL") or None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Propagation experiment
    LOG_FAILURE_MARKER = os.getenv("LOG_FAILURE_MARKER", "logException")
    JOIN_SERVICE_PROPAGATION = os.getenv("JOIN_SERVICE_PROPAGATION", "REQUIRED")
    MEMBER_REPOSITORY_PROPAGATION = os.getenv("MEMBER_REPOSITORY_PROPAGATION", "REQUIRED")
    LOG_REPOSITORY_PROPAGATION = os.getenv("LOG_REPOSITORY_PROPAGATION", "REQUIRES_NEW")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses a file-backed SQLite database unless ``TEST_DATABASE_URL`` is set.
      An in-memory database would share a single connection between every
      session, so ``REQUIRES_NEW`` contexts could not be isolated.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///./test.db")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
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
