# volunteer_auth/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from volunteer_auth.services._shared.ports.refresh_token_store import RefreshTokenRecord
from volunteer_auth.services._shared.ports.user_store import UserRecord

TOKEN_TYPE_BEARER = "Bearer"

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for self-registration.

    :param email: Login email (normalized by the service).
    :type email: str
    :param password: Raw password.
    :type password: str
    :param password_confirmation: Must equal ``password``.
    :type password_confirmation: str
    :param name: Display name.
    :type name: str
    :param phone: Optional E.164 phone number.
    :type phone: str | None
    """

    email: str
    password: str
    password_confirmation: str
    name: str
    phone: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email (normalized by the store).
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    email: str
    password: str


@dataclass(frozen=True, slots=True)
class ClientInfo:
    """
    Request metadata recorded on the issued refresh token.

    :param ip: Remote address as seen by the transport.
    :type ip: str | None
    :param user_agent: Raw ``User-Agent`` header.
    :type user_agent: str | None
    """

    ip: str | None = None
    user_agent: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokens:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Signed access JWT.
    :type access_token: str
    :param refresh_token: Opaque refresh secret, shown to the client once.
    :type refresh_token: str
    :param expires_in: Access token lifetime in seconds.
    :type expires_in: int
    :param token_type: Always ``"Bearer"``.
    :type token_type: str
    """

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = TOKEN_TYPE_BEARER


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """
    Sanitized user representation; never carries the password hash.

    :param id: User identifier.
    :param email: Login email.
    :param name: Display name.
    :param phone: Optional phone.
    :param roles: Role tags.
    :param status: Lifecycle status value (``"active"``...).
    """

    id: str
    email: str
    name: str
    phone: str | None
    roles: tuple[str, ...]
    status: str
    email_verified_at: datetime | None = None
    phone_verified_at: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_record(cls, user: UserRecord) -> UserPublicOut:
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            roles=tuple(user.roles),
            status=user.status.value,
            email_verified_at=user.email_verified_at,
            phone_verified_at=user.phone_verified_at,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
        )


@dataclass(frozen=True, slots=True)
class AuthSession:
    """
    Register/login result: a token pair plus the sanitized user.

    :param tokens: Issued token pair.
    :type tokens: AuthTokens
    :param user: Sanitized user.
    :type user: UserPublicOut
    """

    tokens: AuthTokens
    user: UserPublicOut


@dataclass(frozen=True, slots=True)
class SessionOut:
    """Active refresh session as shown to its owner (no secret, no hash)."""

    id: str
    issued_ip: str | None
    issued_user_agent: str | None
    created_at: datetime | None
    expires_at: datetime

    @classmethod
    def from_record(cls, record: RefreshTokenRecord) -> SessionOut:
        return cls(
            id=record.id,
            issued_ip=record.issued_ip,
            issued_user_agent=record.issued_user_agent,
            created_at=record.created_at,
            expires_at=record.expires_at,
        )
