"""Shared API helpers for authentication and request metadata."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import current_app, g, request

from volunteer_auth.core.errors import Forbidden, Unauthorized
from volunteer_auth.models.user import UserRole
from volunteer_auth.services._shared.errors import ServiceError
from volunteer_auth.services._shared.ports import has_role
from volunteer_auth.services.auth.dto import ClientInfo, UserPublicOut
from volunteer_auth.services.auth.service import SessionManager

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "bearer "


def get_session_manager() -> SessionManager:
    """Return the :class:`SessionManager` built by the application factory."""

    return cast(SessionManager, current_app.extensions["session_manager"])


def client_info() -> ClientInfo:
    """Capture the caller address and user agent recorded on refresh tokens."""

    return ClientInfo(
        ip=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        raise Unauthorized("Missing bearer token", code="missing_token")
    token = header[len(BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthorized("Missing bearer token", code="missing_token")
    return token


def current_user() -> UserPublicOut:
    """Return the user resolved by :func:`require_auth` for this request."""

    user = getattr(g, "current_user", None)
    if user is None:
        raise Unauthorized("Authentication required")
    return cast(UserPublicOut, user)


def require_auth(fn: F) -> F:
    """Authenticate the request's bearer token before running ``fn``.

    The subject is re-loaded on every request, so suspended or deleted
    accounts are refused even while their access token is unexpired.
    """

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        manager = get_session_manager()
        token = _bearer_token()
        try:
            g.current_user = manager.authenticate(token)
        except ServiceError as exc:
            raise manager.translate_exceptions(exc) from exc
        return fn(*args, **kwargs)

    return cast(F, wrapper)


def require_role(role: UserRole | str) -> Callable[[F], F]:
    """Like :func:`require_auth`, and also refuse users without ``role`` (403)."""

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def checked(*args: Any, **kwargs: Any) -> Any:
            if not has_role(current_user(), role):
                raise Forbidden("Insufficient role", code="insufficient_role")
            return fn(*args, **kwargs)

        return require_auth(cast(F, checked))

    return decorator
