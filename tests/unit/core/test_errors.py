"""Service error translation and RFC 7807 rendering."""

from __future__ import annotations

import json

import pytest

from volunteer_auth.core.errors import APIError, from_service_error
from volunteer_auth.services._shared.errors import (
    AccountInactiveError,
    ConflictError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("exc", "status", "code"),
    [
        (ValidationError(errors={"email": ["bad"]}), 422, "validation_error"),
        (ConflictError("User", "Email already registered", field="email"), 409, "conflict"),
        (InvalidCredentialsError(), 401, "invalid_credentials"),
        (AccountInactiveError(), 403, "account_inactive"),
        (InvalidRefreshTokenError(), 401, "invalid_refresh_token"),
        (InvalidTokenError(), 401, "invalid_token"),
        (NotFoundError("User", "42"), 404, "not_found"),
        (StoreUnavailableError(), 503, "store_unavailable"),
    ],
)
def test_from_service_error(exc, status, code):
    api_error = from_service_error(exc)

    assert isinstance(api_error, APIError)
    assert api_error.status_code == status
    assert api_error.code == code


def test_conflict_carries_field():
    api_error = from_service_error(ConflictError("User", "Phone taken", field="phone"))
    assert api_error.details == {"field": "phone"}


def test_service_error_renders_problem_json(app):
    headers = {"X-Request-ID": "req-123"}
    with app.app_context(), app.test_request_context("/auth/refresh", headers=headers):
        rv = app.handle_user_exception(InvalidRefreshTokenError())
        response = app.make_response(rv)

    assert response.status_code == 401
    assert response.mimetype == "application/problem+json"
    body = json.loads(response.get_data(as_text=True))
    assert body["code"] == "invalid_refresh_token"
    assert body["detail"] == "Invalid refresh token"
    assert body["instance"] == "/auth/refresh"
    assert body["request_id"] == "req-123"


def test_validation_details_are_exposed(app):
    with app.app_context(), app.test_request_context("/auth/register"):
        rv = app.handle_user_exception(
            ValidationError(errors={"password_confirmation": ["Must match password."]})
        )
        response = app.make_response(rv)

    body = response.get_json()
    assert response.status_code == 422
    assert body["details"]["errors"] == {"password_confirmation": ["Must match password."]}


def test_unexpected_error_hides_internals(app):
    with app.app_context(), app.test_request_context("/auth/login"):
        rv = app.handle_user_exception(RuntimeError("db password is hunter2"))
        response = app.make_response(rv)

    body = response.get_json()
    assert response.status_code == 500
    assert body["code"] == "internal_server_error"
    assert "hunter2" not in response.get_data(as_text=True)
