"""
volunteer_auth.services._shared.ports
=====================================

Collection of *ports* (hexagonal interfaces) that define the contracts
for credential hashing, token signing and the persistent stores.

These ports decouple the session manager from concrete implementations.

Modules
-------
- :mod:`password_hasher`:
    Defines :class:`~.PasswordHasher` for adaptive one-way hashing.

- :mod:`token_signer`:
    Defines :class:`~.TokenSigner`, :class:`~.IssuedAccessToken` and
    :class:`~.AccessTokenClaims` for stateless access tokens.

- :mod:`user_store`:
    Defines :class:`~.UserStore`, :class:`~.UserRecord`, :class:`~.NewUser`
    and the in-memory store.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore`, :class:`~.RotationResult`,
    :class:`~.RotationOutcome`, :class:`~.RefreshTokenRecord` and the
    in-memory store.

Design Notes
------------
Concrete adapters live under ``volunteer_auth.infra`` (hasher, signer) and
``volunteer_auth.repositories`` (SQL stores).
"""

from __future__ import annotations

from .password_hasher import PasswordHasher
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationOutcome,
    RotationResult,
)
from .token_signer import AccessTokenClaims, IssuedAccessToken, TokenSigner
from .user_store import (
    InMemoryUserStore,
    NewUser,
    UserRecord,
    UserStore,
    has_role,
    is_active,
)

__all__ = [
    "PasswordHasher",
    "TokenSigner",
    "IssuedAccessToken",
    "AccessTokenClaims",
    "UserStore",
    "UserRecord",
    "NewUser",
    "InMemoryUserStore",
    "is_active",
    "has_role",
    "RefreshTokenStore",
    "RefreshTokenRecord",
    "RotationResult",
    "RotationOutcome",
    "InMemoryRefreshTokenStore",
]
