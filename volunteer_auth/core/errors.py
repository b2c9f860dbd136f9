"""RFC 7807 problem responses for auth failures and unexpected errors."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, has_request_context, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from volunteer_auth.core.logger import ensure_request_id
from volunteer_auth.services._shared.errors import (
    AccountInactiveError,
    ConflictError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
    ValidationError,
)

log = logging.getLogger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"

_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    415: "unsupported_media_type",
    422: "unprocessable_entity",
    429: "too_many_requests",
    500: "internal_server_error",
    503: "service_unavailable",
}


def problem_details(
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 body.

    ``instance`` and ``request_id`` are filled from the active request, if any.
    """
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "code": code,
        "instance": request.path if has_request_context() else None,
    }
    if details:
        body["details"] = details
    if has_request_context():
        body["request_id"] = ensure_request_id()
    return body


def problem_response(body: dict[str, Any]) -> tuple[Response, int]:
    resp = jsonify(body)
    resp.mimetype = PROBLEM_MIMETYPE
    return resp, body["status"]


class APIError(Exception):
    """
    Error carrying its own HTTP status and stable ``code``.

    :param message: Client-safe description.
    :param status_code: HTTP status, ``400`` by default.
    :param code: Machine-readable snake_case identifier.
    :param details: Optional structured payload, e.g. field errors.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        return problem_details(self.status_code, self.code, self.message, self.details or None)


class NotFound(APIError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, HTTPStatus.NOT_FOUND, "not_found")


class Conflict(APIError):
    """409 carrying the colliding field (``email`` or ``phone``) when known."""

    def __init__(self, message: str = "Conflict", *, field: str | None = None) -> None:
        super().__init__(
            message, HTTPStatus.CONFLICT, "conflict", {"field": field} if field else None
        )


class Unauthorized(APIError):
    def __init__(self, message: str = "Unauthorized", *, code: str = "unauthorized") -> None:
        super().__init__(message, HTTPStatus.UNAUTHORIZED, code)


class Forbidden(APIError):
    def __init__(self, message: str = "Forbidden", *, code: str = "forbidden") -> None:
        super().__init__(message, HTTPStatus.FORBIDDEN, code)


class ServiceUnavailable(APIError):
    def __init__(self, message: str = "Service temporarily unavailable", *, code: str) -> None:
        super().__init__(message, HTTPStatus.SERVICE_UNAVAILABLE, code)


def from_service_error(exc: ServiceError) -> APIError:
    """
    Map a service-level error onto its HTTP counterpart.

    Authentication failures keep their stable ``code`` so clients can tell
    ``account_inactive`` apart from ``invalid_credentials`` without parsing text.
    """
    if isinstance(exc, ValidationError):
        return APIError(
            str(exc),
            HTTPStatus.UNPROCESSABLE_ENTITY,
            exc.code,
            {"errors": dict(exc.errors)} if exc.errors else None,
        )
    if isinstance(exc, ConflictError):
        return Conflict(str(exc), field=exc.field)
    if isinstance(exc, NotFoundError):
        return NotFound(str(exc))
    if isinstance(exc, InvalidCredentialsError | InvalidRefreshTokenError | InvalidTokenError):
        return Unauthorized(str(exc), code=exc.code)
    if isinstance(exc, AccountInactiveError):
        return Forbidden(str(exc), code=exc.code)
    if isinstance(exc, StoreUnavailableError):
        return ServiceUnavailable(str(exc), code=exc.code)
    return APIError(str(exc))


def _log_problem(kind: str, body: dict[str, Any], *, exc_info: bool = False) -> None:
    level = logging.ERROR if body["status"] >= 500 else logging.WARNING
    log.log(
        level,
        "%s: code=%s status=%s request_id=%s",
        kind,
        body["code"],
        body["status"],
        body.get("request_id"),
        exc_info=exc_info,
    )


def init_app(app: Flask) -> None:
    """
    Register problem+json handlers.

    4xx are logged as warnings, 5xx as errors with the traceback. Database
    error text never reaches the client.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        body = err.to_problem()
        _log_problem("APIError", body)
        return problem_response(body)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        return handle_api_error(from_service_error(err))

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        code = _STATUS_CODES.get(status, "error")
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        else:
            message = (err.description or code.replace("_", " ").capitalize()).strip()
        body = problem_details(status, code, message)
        _log_problem("HTTPException", body)
        return problem_response(body)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        body = problem_details(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "validation_error",
            "Validation failed",
            {"errors": err.messages},
        )
        _log_problem("ValidationError", body)
        return problem_response(body)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        body = problem_details(HTTPStatus.CONFLICT, "conflict", "Resource conflict")
        _log_problem("IntegrityError", body, exc_info=True)
        return problem_response(body)

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        body = problem_details(
            HTTPStatus.SERVICE_UNAVAILABLE, "store_unavailable", "Service temporarily unavailable"
        )
        _log_problem("OperationalError", body, exc_info=True)
        return problem_response(body)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        body = problem_details(
            HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error"
        )
        _log_problem("Unhandled exception", body, exc_info=True)
        return problem_response(body)
