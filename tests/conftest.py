"""Shared fixtures: a throwaway SQL session per test and in-memory wiring.

SQL tests run against in-memory SQLite inside a transaction that is rolled
back after each case. Service tests that do not need SQL get a session
manager wired to the in-memory stores.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest
from sqlalchemy.orm import scoped_session, sessionmaker

from volunteer_auth.core.extensions import db as _db
from volunteer_auth.factory import create_app
from volunteer_auth.infra.jwt.flask_jwt_token_signer import FlaskJWTTokenSigner
from volunteer_auth.infra.security.werkzeug_password_hasher import WerkzeugPasswordHasher
from volunteer_auth.services._shared.ports import (
    InMemoryRefreshTokenStore,
    InMemoryUserStore,
)
from volunteer_auth.services.auth.service import SessionManager
from volunteer_auth.services.auth.settings import AuthSettings
from volunteer_auth.uow import NoopUnitOfWork

TEST_JWT_SECRET = "test-jwt-secret-key-long-enough-for-hs256"  # nosec B105
TEST_HASH_ITERATIONS = 1_000


class TestConfig:
    """In-memory SQLite and a cheap password work factor."""

    APP_ENV = "testing"
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = TEST_JWT_SECRET
    JWT_ALGORITHM = "HS256"
    AUTH_ACCESS_TOKEN_TTL_SECONDS = 900
    AUTH_REFRESH_TOKEN_TTL_DAYS = 7
    AUTH_PASSWORD_HASH_ITERATIONS = TEST_HASH_ITERATIONS
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app():
    """Session-wide application built from :class:`TestConfig`."""
    # DATABASE_URL from the shell must not redirect the suite
    os.environ.pop("DATABASE_URL", None)
    flask_app = create_app(TestConfig)
    flask_app.logger.setLevel("WARNING")
    return flask_app


@pytest.fixture(scope="session")
def db(app):
    """Create the schema once and keep an app context pushed for the whole run."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Per-test session whose work is discarded afterwards.

    The outer transaction belongs to the fixture. With
    ``join_transaction_mode="create_savepoint"`` every commit or rollback
    issued by code under test only ends a SAVEPOINT, so services behave as in
    production while nothing survives the test.
    """
    outer = connection.begin()
    # pysqlite emits no BEGIN; this SAVEPOINT keeps a SQLite transaction open
    # so releasing the session's own SAVEPOINTs never commits.
    connection.begin_nested()
    scoped = scoped_session(
        sessionmaker(bind=connection, join_transaction_mode="create_savepoint")
    )

    app_session = db.session
    db.session.remove()
    db.session = scoped
    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = app_session
        outer.rollback()


@pytest.fixture(scope="session")
def faker():
    """Seeded :class:`faker.Faker` so generated data is repeatable."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


@pytest.fixture(autouse=True)
def _factories_session(session):
    """Point every factory at the per-test session."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield


# -- Session manager wiring -----------------------------------------------------
@pytest.fixture()
def sql_manager(app) -> SessionManager:
    """The SQL-backed manager built by the application factory."""
    return app.extensions["session_manager"]


class FrozenClock:
    """Settable aware-UTC clock for expiry tests."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def auth_settings() -> AuthSettings:
    return AuthSettings(
        jwt_secret=TEST_JWT_SECRET,
        password_hash_iterations=TEST_HASH_ITERATIONS,
    ).validate()


@pytest.fixture()
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture()
def token_store(user_store) -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore(users=user_store)


@pytest.fixture()
def manager(app, user_store, token_store, auth_settings, clock) -> SessionManager:
    """
    Build a SessionManager wired to in-memory stores.

    .. note::
       The flask-jwt signer still needs the app context held by ``db``.
    """
    return SessionManager(
        users=user_store,
        refresh_tokens=token_store,
        hasher=WerkzeugPasswordHasher(iterations=TEST_HASH_ITERATIONS),
        signer=FlaskJWTTokenSigner(access_ttl=auth_settings.access_token_ttl),
        settings=auth_settings,
        uow_factory=NoopUnitOfWork,
        ro_uow_factory=NoopUnitOfWork,
        clock=clock,
    )
