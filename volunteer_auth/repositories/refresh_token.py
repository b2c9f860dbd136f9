"""Refresh token repository implementing the :class:`RefreshTokenStore` port."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, select, update
from sqlalchemy.orm import joinedload

from volunteer_auth.models.refresh_token import RefreshToken
from volunteer_auth.repositories.base import BaseRepository, store_call
from volunteer_auth.repositories.user import as_utc, to_user_record
from volunteer_auth.services._shared.ports.refresh_token_store import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationOutcome,
    RotationResult,
)


def to_token_record(row: RefreshToken, *, with_user: bool = False) -> RefreshTokenRecord:
    """Snapshot an ORM ``RefreshToken`` (optionally with its owner)."""
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        expires_at=as_utc(row.expires_at),  # type: ignore[arg-type]
        revoked_at=as_utc(row.revoked_at),
        issued_ip=row.issued_ip,
        issued_user_agent=row.issued_user_agent,
        created_at=as_utc(row.created_at),
        user=to_user_record(row.user) if with_user and row.user is not None else None,
    )


class RefreshTokenRepository(BaseRepository[RefreshToken], RefreshTokenStore):
    """Persistence-only repository for :class:`RefreshToken`.

    All state transitions are single conditional ``UPDATE`` statements so they
    stay correct under concurrent requests without application locks:

    * ``revoke``/``revoke_all_for_user`` only touch rows with ``revoked_at IS NULL``,
      which makes them idempotent and keeps revocation monotonic.
    * ``rotate`` revokes the presented row only while it is still valid and
      inspects the affected-row count; the loser of a race sees ``0`` rows.
    """

    model = RefreshToken

    def _default_eagerload(self, stmt: Select) -> Select:
        return stmt.options(joinedload(RefreshToken.user))

    # ------------------------------- Reads ---------------------------------

    @store_call
    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        row = self.find_one(RefreshToken.token_hash == token_hash)
        return to_token_record(row, with_user=True) if row else None

    @store_call
    def list_active_for_user(self, user_id: str, *, now: datetime) -> list[RefreshTokenRecord]:
        stmt = (
            select(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.desc(), RefreshToken.id)
            .execution_options(populate_existing=True)
        )
        rows = self.session.execute(stmt).scalars().all()
        return [to_token_record(row) for row in rows]

    # ------------------------------- Writes --------------------------------

    @store_call
    def create(
        self,
        *,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshTokenRecord:
        row = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            issued_ip=ip,
            issued_user_agent=user_agent[:512] if user_agent else None,
        )
        self.add(row)
        self.session.refresh(row)
        return to_token_record(row)

    @store_call
    def revoke(self, token_id: str, *, now: datetime) -> None:
        self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )

    @store_call
    def revoke_all_for_user(self, user_id: str, *, now: datetime) -> int:
        result = self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    @store_call
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
        """Atomically consume ``token_id`` and insert its successor.

        The compare-and-swap is ``UPDATE ... WHERE id = :id AND revoked_at IS NULL
        AND expires_at > :now``. Under READ COMMITTED a concurrent rotation
        blocks on the row lock, re-evaluates the predicate after the winner
        commits and updates nothing.

        :returns: ``OK`` with the new row, or why the swap did not happen.
        :rtype: RotationOutcome
        """
        result = self.session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.id == token_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return RotationOutcome(self._classify_failure(token_id, now))

        user_id = self.session.execute(
            select(RefreshToken.user_id).where(RefreshToken.id == token_id)
        ).scalar_one()
        successor = self.create(
            user_id=user_id,
            token_hash=new_token_hash,
            expires_at=new_expires_at,
            ip=ip,
            user_agent=user_agent,
        )
        return RotationOutcome(RotationResult.OK, successor)

    def _classify_failure(self, token_id: str, now: datetime) -> RotationResult:
        row = self.find_one(RefreshToken.id == token_id)
        if row is None:
            return RotationResult.NOT_FOUND
        if row.revoked_at is not None:
            return RotationResult.REVOKED
        return RotationResult.EXPIRED
