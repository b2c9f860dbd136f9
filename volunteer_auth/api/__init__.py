"""Transport-side helpers for exposing the session manager over HTTP."""

from __future__ import annotations

from .deps import client_info, current_user, get_session_manager, require_auth, require_role

__all__ = ["client_info", "current_user", "get_session_manager", "require_auth", "require_role"]
