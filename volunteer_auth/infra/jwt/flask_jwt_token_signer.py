# volunteer_auth/infra/jwt/flask_jwt_token_signer.py
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from volunteer_auth.services._shared.errors import InvalidTokenError
from volunteer_auth.services._shared.ports import (
    AccessTokenClaims,
    IssuedAccessToken,
    TokenSigner,
)

# Flask-JWT-Extended sets "type": "access" | "refresh"
ACCESS_TOKEN_TYPE = "access"


@dataclass(slots=True)
class FlaskJWTTokenSigner(TokenSigner):
    """
    Adapter for Flask-JWT-Extended.

    Signing key and algorithm come from ``JWT_SECRET_KEY``/``JWT_ALGORITHM``
    of the current app config.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    access_ttl: timedelta = timedelta(minutes=15)

    def issue_access_token(
        self, subject_id: str, email: str, roles: Sequence[str]
    ) -> IssuedAccessToken:
        from flask_jwt_extended import create_access_token as _create_access

        token = cast(
            str,
            _create_access(
                identity=str(subject_id),
                additional_claims={"email": email, "roles": list(roles)},
                expires_delta=self.access_ttl,
                fresh=False,
            ),
        )
        return IssuedAccessToken(token=token, expires_in=int(self.access_ttl.total_seconds()))

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        from flask_jwt_extended import decode_token
        from flask_jwt_extended.exceptions import JWTExtendedException
        from jwt.exceptions import PyJWTError

        if not isinstance(token, str) or not token.strip():
            raise InvalidTokenError()
        try:
            payload = cast(dict[str, Any], decode_token(token))
        except (PyJWTError, JWTExtendedException) as exc:
            # Expired, tampered and malformed tokens share one error kind.
            raise InvalidTokenError() from exc

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidTokenError()
        return AccessTokenClaims.from_payload(payload)
