"""Transaction boundaries for the auth stores (SQL and in-memory)."""

from .base import NoopUnitOfWork, UnitOfWork
from .sqlalchemy_uow import ReadOnlyViolation, SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

__all__ = [
    "NoopUnitOfWork",
    "ReadOnlyViolation",
    "SQLAlchemyReadOnlyUnitOfWork",
    "SQLAlchemyUnitOfWork",
    "UnitOfWork",
]
