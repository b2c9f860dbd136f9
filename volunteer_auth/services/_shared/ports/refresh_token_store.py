from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Protocol
from uuid import uuid4

from volunteer_auth.services._shared.ports.user_store import UserRecord, UserStore


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Read-model for a refresh token row.

    :ivar id: Row identifier.
    :ivar user_id: Owner user id.
    :ivar token_hash: SHA-256 hex digest of the opaque secret.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar revoked_at: Revocation instant, ``None`` while not revoked.
    :ivar user: Owning user, resolved eagerly by ``find_by_hash``.
    """

    id: str
    user_id: str
    token_hash: str
    expires_at: datetime
    revoked_at: datetime | None = None
    issued_ip: str | None = None
    issued_user_agent: str | None = None
    created_at: datetime | None = None
    user: UserRecord | None = None

    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_valid(self, now: datetime) -> bool:
        """A token is valid iff it is neither revoked nor expired."""
        return not self.is_revoked() and not self.is_expired(now)


@dataclass(frozen=True, slots=True)
class RotationOutcome:
    """Result of :meth:`RefreshTokenStore.rotate` plus the replacement row on success."""

    result: RotationResult
    token: RefreshTokenRecord | None = None


class RefreshTokenStore(Protocol):
    """
    Persistence port for refresh tokens.

    ``revoke`` and ``revoke_all_for_user`` MUST be idempotent and ``rotate``
    MUST be atomic: of N concurrent rotations of one token exactly one wins.
    """

    def create(
        self,
        *,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshTokenRecord:
        """Persist a new token row. The raw secret never reaches the store."""

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        """Fetch a token (with its owning user) by digest."""

    def revoke(self, token_id: str, *, now: datetime) -> None:
        """Revoke a single token; already-revoked or unknown ids are a no-op."""

    def revoke_all_for_user(self, user_id: str, *, now: datetime) -> int:
        """
        Revoke every active token owned by ``user_id``.

        :returns: Number of tokens revoked by this call.
        """

    def rotate(
        self,
        token_id: str,
        *,
        now: datetime,
        new_token_hash: str,
        new_expires_at: datetime,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> RotationOutcome:
        """
        Atomically revoke ``token_id`` (only if still valid) and insert its successor.

        :returns: ``RotationResult.OK`` with the new row, otherwise the failure kind.
        """

    def list_active_for_user(self, user_id: str, *, now: datetime) -> list[RefreshTokenRecord]:
        """List non-revoked, non-expired tokens, newest first."""


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic rotation behavior.

    .. note::
       Uses a threading lock to provide compare-and-swap semantics, so the
       single-winner guarantee of :meth:`rotate` holds across threads.
    """

    def __init__(self, users: UserStore | None = None) -> None:
        self._users = users
        self._by_id: dict[str, RefreshTokenRecord] = {}
        self._by_hash: dict[str, str] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _insert(
        self,
        *,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip: str | None,
        user_agent: str | None,
    ) -> RefreshTokenRecord:
        if token_hash in self._by_hash:
            raise ValueError("Duplicate refresh token hash.")
        record = RefreshTokenRecord(
            id=str(uuid4()),
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            issued_ip=ip,
            issued_user_agent=user_agent,
            created_at=datetime.now(UTC),
        )
        self._by_id[record.id] = record
        self._by_hash[token_hash] = record.id
        return record

    def _with_user(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        if self._users is None:
            return record
        return replace(record, user=self._users.find_by_id(record.user_id))

    # -------------------------- API ----------------------------

    def create(
        self,
        *,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshTokenRecord:
        with self._lock:
            return self._insert(
                user_id=user_id,
                token_hash=token_hash,
                expires_at=expires_at,
                ip=ip,
                user_agent=user_agent,
            )

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self._lock:
            token_id = self._by_hash.get(token_hash)
            record = self._by_id.get(token_id) if token_id else None
        return self._with_user(record) if record else None

    def revoke(self, token_id: str, *, now: datetime) -> None:
        with self._lock:
            record = self._by_id.get(token_id)
            if record is not None and record.revoked_at is None:
                self._by_id[token_id] = replace(record, revoked_at=now)

    def revoke_all_for_user(self, user_id: str, *, now: datetime) -> int:
        revoked = 0
        with self._lock:
            for token_id, record in list(self._by_id.items()):
                if record.user_id == user_id and record.is_valid(now):
                    self._by_id[token_id] = replace(record, revoked_at=now)
                    revoked += 1
        return revoked

    def rotate(
        self,
        token_id: str,
        *,
        now: datetime,
        new_token_hash: str,
        new_expires_at: datetime,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> RotationOutcome:
        with self._lock:
            record = self._by_id.get(token_id)
            if record is None:
                return RotationOutcome(RotationResult.NOT_FOUND)
            if record.is_revoked():
                return RotationOutcome(RotationResult.REVOKED)
            if record.is_expired(now):
                return RotationOutcome(RotationResult.EXPIRED)

            self._by_id[token_id] = replace(record, revoked_at=now)
            successor = self._insert(
                user_id=record.user_id,
                token_hash=new_token_hash,
                expires_at=new_expires_at,
                ip=ip,
                user_agent=user_agent,
            )
            return RotationOutcome(RotationResult.OK, successor)

    def list_active_for_user(self, user_id: str, *, now: datetime) -> list[RefreshTokenRecord]:
        with self._lock:
            active = [r for r in self._by_id.values() if r.user_id == user_id and r.is_valid(now)]
        return sorted(active, key=lambda r: r.created_at or now, reverse=True)
