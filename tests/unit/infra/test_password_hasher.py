"""Unit tests for the werkzeug-backed password hasher."""

from __future__ import annotations

import pytest

from volunteer_auth.infra.security.werkzeug_password_hasher import (
    MAX_ITERATIONS,
    MIN_ITERATIONS,
    WerkzeugPasswordHasher,
)


@pytest.fixture
def hasher() -> WerkzeugPasswordHasher:
    return WerkzeugPasswordHasher(iterations=MIN_ITERATIONS)


def test_hash_is_salted_and_verifiable(hasher):
    first = hasher.hash("Secr3t!23")
    second = hasher.hash("Secr3t!23")

    assert first != second
    assert first.startswith(f"pbkdf2:sha256:{MIN_ITERATIONS}$")
    assert hasher.verify("Secr3t!23", first)
    assert hasher.verify("Secr3t!23", second)


def test_mismatch_returns_false(hasher):
    hashed = hasher.hash("Secr3t!23")
    assert hasher.verify("secr3t!23", hashed) is False


@pytest.mark.parametrize("hashed", [None, "", "not-a-hash", "unknown:method$salt$digest"])
def test_unusable_hash_never_raises(hasher, hashed):
    assert hasher.verify("Secr3t!23", hashed) is False


def test_empty_password_is_rejected(hasher):
    with pytest.raises(ValueError):
        hasher.hash("")


@pytest.mark.parametrize("iterations", [MIN_ITERATIONS - 1, MAX_ITERATIONS + 1])
def test_work_factor_bounds(iterations):
    with pytest.raises(ValueError):
        WerkzeugPasswordHasher(iterations=iterations)


def test_hash_verifies_across_work_factors(hasher):
    stronger = WerkzeugPasswordHasher(iterations=MIN_ITERATIONS * 2)
    assert hasher.verify("Secr3t!23", stronger.hash("Secr3t!23"))
