"""Startup validation of the auth settings."""

from __future__ import annotations

from datetime import timedelta

import pytest

from volunteer_auth.services._shared.errors import ConfigurationError
from volunteer_auth.services.auth.settings import AuthSettings

SECRET = "settings-secret-key-long-enough-for-hs256"  # nosec B105


def _config(**overrides):
    base = {
        "APP_ENV": "testing",
        "JWT_SECRET_KEY": SECRET,
        "AUTH_PASSWORD_HASH_ITERATIONS": 1_000,
    }
    base.update(overrides)
    return base


def test_defaults_from_mapping():
    settings = AuthSettings.from_mapping(_config())

    assert settings.access_token_ttl == timedelta(minutes=15)
    assert settings.refresh_token_ttl == timedelta(days=7)
    assert settings.refresh_token_bytes == 40
    assert settings.default_role == "volunteer"
    assert settings.revoke_all_on_reuse is False
    assert settings.production is False


def test_overrides_from_mapping():
    settings = AuthSettings.from_mapping(
        _config(
            AUTH_ACCESS_TOKEN_TTL_SECONDS="300",
            AUTH_REFRESH_TOKEN_TTL_DAYS=30,
            AUTH_DEFAULT_ROLE="public",
            AUTH_REVOKE_ALL_ON_REUSE=True,
        )
    )

    assert settings.access_token_ttl == timedelta(minutes=5)
    assert settings.refresh_token_ttl == timedelta(days=30)
    assert settings.default_role == "public"
    assert settings.revoke_all_on_reuse is True


@pytest.mark.parametrize(
    ("overrides", "fragment"),
    [
        ({"JWT_SECRET_KEY": ""}, "non-empty"),
        ({"JWT_SECRET_KEY": "   "}, "non-empty"),
        ({"APP_ENV": "production", "JWT_SECRET_KEY": "CHANGE_ME_JWT"}, "production"),
        ({"AUTH_PASSWORD_HASH_ITERATIONS": 10}, "AUTH_PASSWORD_HASH_ITERATIONS"),
        ({"AUTH_PASSWORD_HASH_ITERATIONS": 10**9}, "AUTH_PASSWORD_HASH_ITERATIONS"),
        ({"AUTH_ACCESS_TOKEN_TTL_SECONDS": 0}, "positive"),
        ({"AUTH_REFRESH_TOKEN_TTL_DAYS": -1}, "positive"),
        ({"AUTH_REFRESH_TOKEN_BYTES": 16}, "AUTH_REFRESH_TOKEN_BYTES"),
        ({"AUTH_DEFAULT_ROLE": "superuser"}, "AUTH_DEFAULT_ROLE"),
        ({"AUTH_ACCESS_TOKEN_TTL_SECONDS": "fifteen"}, "Invalid auth configuration"),
    ],
)
def test_rejects_invalid_configuration(overrides, fragment):
    with pytest.raises(ConfigurationError, match=fragment):
        AuthSettings.from_mapping(_config(**overrides))


def test_placeholder_secret_allowed_outside_production():
    settings = AuthSettings.from_mapping(_config(JWT_SECRET_KEY="CHANGE_ME_JWT"))
    assert settings.jwt_secret == "CHANGE_ME_JWT"
