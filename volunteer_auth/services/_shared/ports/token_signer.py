from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from volunteer_auth.services._shared.errors import InvalidTokenError


@dataclass(frozen=True, slots=True)
class IssuedAccessToken:
    """Signed access token and its lifetime in seconds."""

    token: str
    expires_in: int


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """
    Verified access token claims.

    :ivar subject: User id (``sub``).
    :ivar email: Email at issuance time.
    :ivar roles: Roles at issuance time.
    :ivar issued_at: ``iat`` (UTC).
    :ivar expires_at: ``exp`` (UTC).
    """

    subject: str
    email: str
    roles: tuple[str, ...]
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> AccessTokenClaims:
        """
        Build claims from a decoded JWT payload.

        :raises InvalidTokenError: When a required claim is missing or malformed.
        """
        try:
            subject = payload["sub"]
            email = payload["email"]
            roles = payload.get("roles") or []
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=UTC)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            raise InvalidTokenError() from exc
        if not isinstance(subject, str) or not subject or not isinstance(email, str):
            raise InvalidTokenError()
        if isinstance(roles, str) or not isinstance(roles, Sequence):
            raise InvalidTokenError()
        return cls(
            subject=subject,
            email=email,
            roles=tuple(str(r) for r in roles),
            issued_at=issued_at,
            expires_at=expires_at,
        )


class TokenSigner(Protocol):
    """Port for issuing and verifying stateless access tokens."""

    def issue_access_token(
        self, subject_id: str, email: str, roles: Sequence[str]
    ) -> IssuedAccessToken: ...

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """
        Verify signature, expiry and claim set.

        :raises InvalidTokenError: For tampered, expired or malformed tokens alike.
        """
