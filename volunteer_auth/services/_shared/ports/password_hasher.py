from __future__ import annotations

from typing import Protocol


class PasswordHasher(Protocol):
    """Port for one-way, salted, adaptive password hashing."""

    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        """Return ``False`` on any mismatch or unusable hash; never raise."""
