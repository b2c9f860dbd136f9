"""Factory Boy base classes bound to the per-test SQL session."""

from __future__ import annotations

from factory.alchemy import SQLAlchemyModelFactory


class SQLAlchemySession:
    """Session slot filled by the autouse ``_factories_session`` fixture."""

    _session = None

    @classmethod
    def set(cls, session):
        cls._session = session

    @classmethod
    def get(cls):
        if cls._session is None:
            raise RuntimeError("No factory session; request the 'session' fixture first.")
        return cls._session


class BaseFactory(SQLAlchemyModelFactory):
    class Meta:
        abstract = True
        # Resolved per build, so every test persists into its own session.
        sqlalchemy_session_factory = SQLAlchemySession.get
        sqlalchemy_session_persistence = "flush"
