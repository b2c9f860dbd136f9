"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import RegisterSchema, UserPublicSchema

__all__ = [
    "RegisterSchema",
    "UserPublicSchema",
]
