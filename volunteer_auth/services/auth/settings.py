# volunteer_auth/services/auth/settings.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from volunteer_auth.core.config import PLACEHOLDER_SECRETS
from volunteer_auth.infra.security.werkzeug_password_hasher import (
    MAX_ITERATIONS,
    MIN_ITERATIONS,
)
from volunteer_auth.models.user import UserRole
from volunteer_auth.services._shared.errors import ConfigurationError

MIN_REFRESH_TOKEN_BYTES = 32


@dataclass(frozen=True, slots=True)
class AuthSettings:
    """
    Consolidated auth configuration, built once at startup.

    :param jwt_secret: Access token signing key.
    :type jwt_secret: str
    :param access_token_ttl: Access token lifetime.
    :type access_token_ttl: timedelta
    :param refresh_token_ttl: Refresh token lifetime.
    :type refresh_token_ttl: timedelta
    :param refresh_token_bytes: Entropy of the opaque refresh secret.
    :type refresh_token_bytes: int
    :param password_hash_iterations: PBKDF2 work factor.
    :type password_hash_iterations: int
    :param default_role: Role granted on self-registration.
    :type default_role: str
    :param revoke_all_on_reuse: Revoke every session of a user on refresh reuse.
    :type revoke_all_on_reuse: bool
    :param production: Reject placeholder secrets when ``True``.
    :type production: bool
    """

    jwt_secret: str
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    refresh_token_bytes: int = 40
    password_hash_iterations: int = 260_000
    default_role: str = UserRole.VOLUNTEER.value
    revoke_all_on_reuse: bool = False
    production: bool = False

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> AuthSettings:
        """
        Build settings from a Flask config mapping and validate them.

        :raises ConfigurationError: On missing or out-of-range values.
        """
        try:
            settings = cls(
                jwt_secret=str(config.get("JWT_SECRET_KEY") or ""),
                access_token_ttl=timedelta(
                    seconds=int(config.get("AUTH_ACCESS_TOKEN_TTL_SECONDS", 900))
                ),
                refresh_token_ttl=timedelta(days=int(config.get("AUTH_REFRESH_TOKEN_TTL_DAYS", 7))),
                refresh_token_bytes=int(config.get("AUTH_REFRESH_TOKEN_BYTES", 40)),
                password_hash_iterations=int(
                    config.get("AUTH_PASSWORD_HASH_ITERATIONS", 260_000)
                ),
                default_role=str(config.get("AUTH_DEFAULT_ROLE", UserRole.VOLUNTEER.value)),
                revoke_all_on_reuse=bool(config.get("AUTH_REVOKE_ALL_ON_REUSE", False)),
                production=str(config.get("APP_ENV", "")).lower() == "production",
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid auth configuration: {exc}") from exc
        return settings.validate()

    def validate(self) -> AuthSettings:
        """
        Validate every setting once, before the session manager is built.

        :returns: ``self`` for chaining.
        :raises ConfigurationError: On the first violation found.
        """
        if not self.jwt_secret.strip():
            raise ConfigurationError("JWT_SECRET_KEY must be a non-empty string.")
        if self.production and self.jwt_secret in PLACEHOLDER_SECRETS:
            raise ConfigurationError("JWT_SECRET_KEY must be overridden in production.")
        if not MIN_ITERATIONS <= self.password_hash_iterations <= MAX_ITERATIONS:
            raise ConfigurationError(
                "AUTH_PASSWORD_HASH_ITERATIONS must be within "
                f"[{MIN_ITERATIONS}, {MAX_ITERATIONS}]."
            )
        if self.access_token_ttl <= timedelta(0) or self.refresh_token_ttl <= timedelta(0):
            raise ConfigurationError("Token lifetimes must be positive.")
        if self.refresh_token_bytes < MIN_REFRESH_TOKEN_BYTES:
            raise ConfigurationError(
                f"AUTH_REFRESH_TOKEN_BYTES must be at least {MIN_REFRESH_TOKEN_BYTES}."
            )
        if self.default_role not in {role.value for role in UserRole}:
            raise ConfigurationError(f"Unknown AUTH_DEFAULT_ROLE: {self.default_role!r}.")
        return self
