"""
Units of work over the Flask-SQLAlchemy scoped session.

Both flavours expose ``users`` and ``refresh_tokens`` repositories bound to the
same session, so a registration's user row and its first refresh token land in
one transaction.
"""

from __future__ import annotations

import logging
from contextlib import suppress

from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction, scoped_session

from volunteer_auth.core.extensions import db
from volunteer_auth.repositories import RefreshTokenRepository, UserRepository
from volunteer_auth.repositories.base import store_call
from volunteer_auth.uow.base import UnitOfWork

log = logging.getLogger(__name__)

# First keyword of statements refused inside a read-only unit of work.
WRITE_KEYWORDS = frozenset(
    {"insert", "update", "delete", "merge", "replace", "create", "alter", "drop", "truncate"}
)
ISOLATION_LEVELS = frozenset(
    {"READ UNCOMMITTED", "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE"}
)
_SET_TRANSACTION_DIALECTS = frozenset({"postgresql", "mysql", "mariadb"})


class ReadOnlyViolation(RuntimeError):
    """A write was attempted inside a read-only unit of work."""


class _AuthRepositories:
    def __init__(self, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=session)
        self.refresh_tokens = RefreshTokenRepository(session=session)


class SQLAlchemyUnitOfWork(_AuthRepositories, UnitOfWork):
    """Commit on clean exit, roll back on error."""

    def __init__(self) -> None:
        super().__init__(db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            self.rollback()
            raise

    @store_call
    def commit(self) -> None:
        self.session.commit()

    @store_call
    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(_AuthRepositories, UnitOfWork):
    """
    Unit of work for lookups (refresh-token and user reads).

    On PostgreSQL and MySQL the transaction is opened with the requested
    isolation level and ``READ ONLY``. On every dialect, flushes of pending ORM
    changes and raw DML are refused with :class:`ReadOnlyViolation`, and the
    transaction is rolled back on exit when this unit of work opened it.

    :param isolation_level: ``SET TRANSACTION ISOLATION LEVEL`` value, or ``None``
        to keep the connection default.
    :param enforce_db_readonly: Issue ``SET TRANSACTION READ ONLY`` where supported.
    """

    def __init__(
        self,
        *,
        isolation_level: str | None = "READ COMMITTED",
        enforce_db_readonly: bool = True,
    ) -> None:
        super().__init__(db.session)
        self.isolation_level = isolation_level.upper().strip() if isolation_level else None
        self.enforce_db_readonly = enforce_db_readonly
        self._owned: SessionTransaction | None = None
        self._conn: Connection | None = None
        self._guarded: Session | None = None

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._open()
        # Guard this thread's Session only; a scoped_session target would
        # register the listener for every session of the factory.
        session = self.session
        self._guarded = session() if isinstance(session, scoped_session) else session
        event.listen(self._guarded, "before_flush", self._refuse_flush)
        event.listen(self._conn, "before_cursor_execute", self._refuse_dml)
        if self._owned is not None and self._conn.dialect.name in _SET_TRANSACTION_DIALECTS:
            self._apply_transaction_directives()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owned is not None:
                self.rollback()
        finally:
            self._owned = None
            if self._guarded is not None:
                with suppress(InvalidRequestError):
                    event.remove(self._guarded, "before_flush", self._refuse_flush)
            self._guarded = None
            if self._conn is not None:
                with suppress(InvalidRequestError):
                    event.remove(self._conn, "before_cursor_execute", self._refuse_dml)
            self._conn = None

    def commit(self) -> None:
        raise ReadOnlyViolation("Read-only UnitOfWork does not allow commit().")

    @store_call
    def rollback(self) -> None:
        self.session.rollback()

    # --------------------------------------------------------------------- #

    @store_call
    def _open(self) -> None:
        # Checks out the pooled connection.
        try:
            self._owned = self.session.begin()
        except InvalidRequestError:
            # A transaction is already running (autobegin or test fixture).
            self._owned = None
        try:
            self._conn = self.session.connection()
        except Exception:
            if self._owned is not None:
                self.session.rollback()
                self._owned = None
            raise

    def _apply_transaction_directives(self) -> None:
        try:
            if self.isolation_level:
                if self.isolation_level not in ISOLATION_LEVELS:
                    log.warning("Unknown isolation level %r, trying as-is.", self.isolation_level)
                self.session.execute(
                    text(f"SET TRANSACTION ISOLATION LEVEL {self.isolation_level}")
                )
            if self.enforce_db_readonly:
                self.session.execute(text("SET TRANSACTION READ ONLY"))
        except SQLAlchemyError as exc:
            log.warning("SET TRANSACTION failed (%s); relying on write guards only.", exc)

    @staticmethod
    def _refuse_flush(session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise ReadOnlyViolation("Read-only UnitOfWork: pending ORM changes cannot be flushed.")

    @staticmethod
    def _refuse_dml(conn, cursor, statement, parameters, context, executemany) -> None:
        keyword = statement.lstrip().split(None, 1)[0].lower() if statement else ""
        if keyword in WRITE_KEYWORDS:
            raise ReadOnlyViolation(f"Read-only UnitOfWork: {keyword.upper()} blocked.")
