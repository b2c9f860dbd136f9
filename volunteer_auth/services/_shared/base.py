from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from volunteer_auth.services._shared.errors import ServiceError
from volunteer_auth.uow.base import UnitOfWork

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class BaseService:
    """
    Common plumbing for application services.

    * Opens read-write and read-only units of work.
    * Owns the clock, so every expiry decision uses one injectable "now".
    * Translates service errors for HTTP callers.

    Unit-of-work factories are injected so one service class runs unchanged
    against the SQL repositories or the in-memory stores. Without a factory
    the SQLAlchemy units of work over the Flask-scoped session are used.
    """

    DEFAULT_READ_ISOLATION = "READ COMMITTED"

    def __init__(
        self,
        *,
        uow_factory: Callable[[], UnitOfWork] | None = None,
        ro_uow_factory: Callable[[], UnitOfWork] | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        :param uow_factory: Builds a read-write unit of work.
        :param ro_uow_factory: Builds a read-only unit of work.
        :param clock: Returns the current aware UTC instant.
        """
        self._uow_factory = uow_factory
        self._ro_uow_factory = ro_uow_factory
        self._clock = clock or utcnow

    def rw_uow(self) -> UnitOfWork:
        if self._uow_factory is not None:
            return self._uow_factory()
        from volunteer_auth.uow.sqlalchemy_uow import SQLAlchemyUnitOfWork

        return SQLAlchemyUnitOfWork()

    def ro_uow(self, *, isolation: str | None = None) -> UnitOfWork:
        """
        Read-only unit of work.

        :param isolation: Isolation level for the SQL flavour, ``READ COMMITTED``
            when omitted. Ignored by injected factories.
        """
        if self._ro_uow_factory is not None:
            return self._ro_uow_factory()
        from volunteer_auth.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork

        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.DEFAULT_READ_ISOLATION
        )

    def now(self) -> datetime:
        return self._clock()

    def translate_exceptions(self, exc: Exception) -> Exception:
        """Return the HTTP error for a :class:`ServiceError`, anything else unchanged."""
        if isinstance(exc, ServiceError):
            from volunteer_auth.core.errors import from_service_error

            return from_service_error(exc)
        return exc
