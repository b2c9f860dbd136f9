"""Shared plumbing for the SQL-backed auth stores.

Repositories here are persistence-only. They never commit or roll back (the
unit of work does) and they return frozen snapshots instead of ORM instances,
so callers cannot trigger writes by mutating a result.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, Generic, ParamSpec, TypeVar, cast

from sqlalchemy import Select, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from volunteer_auth.core.extensions import db
from volunteer_auth.services._shared.errors import StoreUnavailableError

E = TypeVar("E")
P = ParamSpec("P")
R = TypeVar("R")


def store_call(fn: Callable[P, R]) -> Callable[P, R]:
    """
    Surface store outages as :class:`StoreUnavailableError`.

    Covers operational errors, pool checkout timeouts and invalidated
    connections. Integrity violations pass through; the repositories turn
    them into conflicts.
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return fn(*args, **kwargs)
        except (OperationalError, PoolTimeoutError) as exc:
            raise StoreUnavailableError() from exc
        except DBAPIError as exc:
            if not exc.connection_invalidated:
                raise
            raise StoreUnavailableError() from exc

    return wrapper


def violates(exc: IntegrityError, constraint: str, *, column: str | None = None) -> bool:
    """
    Whether ``exc`` comes from the unique constraint ``constraint``.

    PostgreSQL names the constraint in its message; SQLite only reports
    ``UNIQUE constraint failed: <table>.<column>``, so ``column`` is matched too.
    """
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return constraint.lower() in message or (column is not None and column.lower() in message)


class BaseRepository(Generic[E]):
    """
    Single-model repository bound to a unit-of-work session.

    Subclasses set ``model`` and may override ``_default_eagerload``.
    """

    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        """The unit-of-work session, else the Flask-scoped one of the current context."""
        return self._session if self._session is not None else cast(Session, db.session)

    def _default_eagerload(self, stmt: Select[Any]) -> Select[Any]:
        return stmt

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so unique violations surface here."""
        self.session.add(instance)
        self.flush()
        return instance

    def find_one(self, *clauses: Any) -> E | None:
        """First row matching every clause, refreshed from the database."""
        stmt = self._default_eagerload(select(self.model).where(*clauses))
        stmt = stmt.execution_options(populate_existing=True)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def flush(self) -> None:
        self.session.flush()
