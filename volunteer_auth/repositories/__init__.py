"""SQL implementations of the ``UserStore`` and ``RefreshTokenStore`` ports."""

from __future__ import annotations

from volunteer_auth.repositories.base import BaseRepository, store_call, violates
from volunteer_auth.repositories.refresh_token import RefreshTokenRepository
from volunteer_auth.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
    "store_call",
    "violates",
]
