"""Transaction boundary contract shared by the SQL and in-memory stores."""

from __future__ import annotations

from abc import ABC, abstractmethod


class UnitOfWork(ABC):
    """
    One auth use-case = one block: every store call inside it shares a
    transaction, committed on clean exit and rolled back on error.
    """

    @abstractmethod
    def __enter__(self) -> UnitOfWork: ...
    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...
    @abstractmethod
    def commit(self) -> None: ...
    @abstractmethod
    def rollback(self) -> None: ...


class NoopUnitOfWork(UnitOfWork):
    """
    Transaction boundary for stores without transactions (in-memory stores).

    Each in-memory store call is already atomic on its own; this UoW only
    keeps the service code identical for every backend.
    """

    def __enter__(self) -> NoopUnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def commit(self) -> None:
        return None

    def rollback(self) -> None:
        return None
