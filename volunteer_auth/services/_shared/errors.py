"""
Errors raised by the auth services and their stores.

Nothing here knows about HTTP. Each error carries a stable ``code``;
``volunteer_auth.core.errors.from_service_error`` maps them onto RFC 7807
responses.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar


class ServiceError(Exception):
    """Base of every error a store or service may raise on purpose."""

    code: ClassVar[str] = "service_error"


class ConfigurationError(Exception):
    """Raised at startup when auth settings fail validation."""


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    A lookup by id or key matched nothing.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    code: ClassVar[str] = "not_found"

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    A unique field (email or phone) is already taken.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    :param field: Name of the colliding field (e.g., ``"email"`` or ``"phone"``).
    :type field: str | None
    """

    code: ClassVar[str] = "conflict"

    entity: str
    detail: str
    field: str | None = None

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


@dataclass(slots=True)
class ValidationError(ServiceError):
    """
    Raised when input is malformed (schema violations, confirmation mismatch).

    :param message: Summary surfaced to the caller verbatim.
    :type message: str
    :param errors: Field name to list of messages.
    :type errors: Mapping[str, Any]
    """

    code: ClassVar[str] = "validation_error"

    message: str = "Validation failed"
    errors: Mapping[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


class InvalidCredentialsError(ServiceError):
    """Wrong email/password combination. Never says which half was wrong."""

    code: ClassVar[str] = "invalid_credentials"

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class AccountInactiveError(ServiceError):
    """The account exists but is not in ``active`` status."""

    code: ClassVar[str] = "account_inactive"

    def __init__(self, message: str = "Account is not active") -> None:
        super().__init__(message)


class InvalidRefreshTokenError(ServiceError):
    """Refresh token is unknown, revoked, expired or malformed (never distinguished)."""

    code: ClassVar[str] = "invalid_refresh_token"

    def __init__(self, message: str = "Invalid refresh token") -> None:
        super().__init__(message)


class InvalidTokenError(ServiceError):
    """Access token failed verification or no longer maps to a user."""

    code: ClassVar[str] = "invalid_token"

    def __init__(self, message: str = "Invalid or expired access token") -> None:
        super().__init__(message)


class StoreUnavailableError(ServiceError):
    """
    The persistent store failed or timed out.

    Retryable by the calling infrastructure; never conflated with an
    authentication failure and never retried inside the core.
    """

    code: ClassVar[str] = "store_unavailable"

    def __init__(self, message: str = "Authentication store is temporarily unavailable") -> None:
        super().__init__(message)
