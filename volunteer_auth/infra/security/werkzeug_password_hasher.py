# volunteer_auth/infra/security/werkzeug_password_hasher.py
from __future__ import annotations

from dataclasses import dataclass

from werkzeug.security import check_password_hash, generate_password_hash

from volunteer_auth.services._shared.ports import PasswordHasher

DEFAULT_ITERATIONS = 260_000
MIN_ITERATIONS = 1_000
MAX_ITERATIONS = 10_000_000


@dataclass(frozen=True, slots=True)
class WerkzeugPasswordHasher(PasswordHasher):
    """
    Adapter over :mod:`werkzeug.security` using salted PBKDF2-SHA256.

    ``iterations`` is the work factor; the default costs roughly 100ms per
    verification on commodity hardware.
    """

    iterations: int = DEFAULT_ITERATIONS
    salt_length: int = 16

    def __post_init__(self) -> None:
        if not MIN_ITERATIONS <= self.iterations <= MAX_ITERATIONS:
            raise ValueError(
                f"iterations must be within [{MIN_ITERATIONS}, {MAX_ITERATIONS}], "
                f"got {self.iterations}"
            )

    @property
    def method(self) -> str:
        return f"pbkdf2:sha256:{self.iterations}"

    def hash(self, plaintext: str) -> str:
        if not isinstance(plaintext, str) or not plaintext:
            raise ValueError("Password must be a non-empty string.")
        return generate_password_hash(plaintext, method=self.method, salt_length=self.salt_length)

    def verify(self, plaintext: str, hashed: str | None) -> bool:
        if not hashed or not isinstance(plaintext, str):
            return False
        try:
            # ``check_password_hash`` compares digests with ``hmac.compare_digest``.
            return bool(check_password_hash(hashed, plaintext))
        except (ValueError, TypeError):
            # Unknown method or corrupted hash string.
            return False
