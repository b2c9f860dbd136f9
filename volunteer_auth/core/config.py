"""Environment-driven configuration profiles for the auth core."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

ENV_VAR: Final[str] = "APP_ENV"  # development | testing | production

# Defaults that must never sign tokens in production
PLACEHOLDER_SECRETS: Final[frozenset[str]] = frozenset({"CHANGE_ME", "CHANGE_ME_JWT"})

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})

load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """``True`` for 1/true/yes/y/on (any case), ``default`` when unset."""
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in _TRUTHY


def env_int(name: str, default: int) -> int:
    """Integer value of ``name``; blanks and garbage fall back to ``default``."""
    val = (os.getenv(name) or "").strip()
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        return default


class BaseConfig:
    """Settings shared by every profile.

    Auth keys
    ---------
    JWT_SECRET_KEY / JWT_ALGORITHM
        Access token signing, loaded once at startup (no hot rotation).
    AUTH_ACCESS_TOKEN_TTL_SECONDS
        Access token lifetime, reported to clients as ``expires_in``.
    AUTH_REFRESH_TOKEN_TTL_DAYS / AUTH_REFRESH_TOKEN_BYTES
        Refresh token lifetime and secret entropy.
    AUTH_PASSWORD_HASH_ITERATIONS
        PBKDF2 work factor.
    AUTH_DEFAULT_ROLE
        Role granted on self-registration.
    AUTH_REVOKE_ALL_ON_REUSE
        End every session of a user when a revoked refresh token is replayed.
    AUTH_STORE_TIMEOUT_SECONDS
        Bound on waiting for a pooled database connection.

    All values are validated together by
    :meth:`volunteer_auth.services.auth.settings.AuthSettings.from_mapping`.
    """

    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

    AUTH_ACCESS_TOKEN_TTL_SECONDS = env_int("AUTH_ACCESS_TOKEN_TTL_SECONDS", 900)
    AUTH_REFRESH_TOKEN_TTL_DAYS = env_int("AUTH_REFRESH_TOKEN_TTL_DAYS", 7)
    AUTH_REFRESH_TOKEN_BYTES = env_int("AUTH_REFRESH_TOKEN_BYTES", 40)
    AUTH_PASSWORD_HASH_ITERATIONS = env_int("AUTH_PASSWORD_HASH_ITERATIONS", 260_000)
    AUTH_DEFAULT_ROLE = os.getenv("AUTH_DEFAULT_ROLE", "volunteer")
    AUTH_REVOKE_ALL_ON_REUSE = env_bool("AUTH_REVOKE_ALL_ON_REUSE", False)
    AUTH_STORE_TIMEOUT_SECONDS = env_int("AUTH_STORE_TIMEOUT_SECONDS", 5)

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    SQLALCHEMY_ENGINE_OPTIONS: dict = {"pool_pre_ping": True}

    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    APP_ENV = "development"
    DEBUG = env_bool("FLASK_DEBUG", True)


class TestingConfig(BaseConfig):
    """In-memory SQLite and a cheap work factor so the suite stays fast."""

    APP_ENV = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    PROPAGATE_EXCEPTIONS = True
    JWT_SECRET_KEY = "testing-jwt-secret-key-with-enough-length"
    AUTH_PASSWORD_HASH_ITERATIONS = 1_000


class ProductionConfig(BaseConfig):
    """Placeholder secrets make :func:`volunteer_auth.factory.create_app` refuse to start."""

    APP_ENV = "production"
    SQLALCHEMY_ECHO = False


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Profile named by ``APP_ENV``; unknown or unset names get development."""
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
