"""Unit tests for the flask-jwt-extended access token signer."""

from __future__ import annotations

from datetime import timedelta

import pytest
from flask_jwt_extended import create_refresh_token

from volunteer_auth.infra.jwt.flask_jwt_token_signer import FlaskJWTTokenSigner
from volunteer_auth.services._shared.errors import InvalidTokenError
from volunteer_auth.services._shared.ports import AccessTokenClaims


@pytest.fixture
def signer() -> FlaskJWTTokenSigner:
    return FlaskJWTTokenSigner(access_ttl=timedelta(minutes=15))


def test_issue_and_verify_round_trip(app, signer):
    issued = signer.issue_access_token("user-1", "a@x.com", ("volunteer", "admin"))

    assert issued.expires_in == 900
    claims = signer.verify_access_token(issued.token)
    assert claims.subject == "user-1"
    assert claims.email == "a@x.com"
    assert claims.roles == ("volunteer", "admin")
    assert claims.expires_at - claims.issued_at == timedelta(minutes=15)


def test_expired_token_is_rejected(app):
    expired = FlaskJWTTokenSigner(access_ttl=timedelta(seconds=-30))
    token = expired.issue_access_token("user-1", "a@x.com", ["volunteer"]).token

    with pytest.raises(InvalidTokenError):
        expired.verify_access_token(token)


def test_foreign_signature_is_rejected(app, signer, monkeypatch):
    token = signer.issue_access_token("user-1", "a@x.com", ["volunteer"]).token
    monkeypatch.setitem(app.config, "JWT_SECRET_KEY", "another-secret-key-of-sufficient-size")

    with pytest.raises(InvalidTokenError):
        signer.verify_access_token(token)


def test_refresh_type_token_is_rejected(app, signer):
    token = create_refresh_token(
        identity="user-1", additional_claims={"email": "a@x.com", "roles": []}
    )
    with pytest.raises(InvalidTokenError):
        signer.verify_access_token(token)


def test_missing_claims_are_rejected(app, signer):
    from flask_jwt_extended import create_access_token

    token = create_access_token(identity="user-1")  # no email claim
    with pytest.raises(InvalidTokenError):
        signer.verify_access_token(token)


@pytest.mark.parametrize(
    ("iat", "exp"),
    [
        (10**20, 1),
        (10**12, 1),
        (1, 10**20),
        (-(10**20), 1),
        ("soon", 1),
    ],
)
def test_out_of_range_timestamps_are_rejected(iat, exp):
    payload = {"sub": "user-1", "email": "a@x.com", "roles": [], "iat": iat, "exp": exp}

    with pytest.raises(InvalidTokenError):
        AccessTokenClaims.from_payload(payload)
