"""Extension singletons for the auth service (database, migrations, JWT)."""

from __future__ import annotations

from typing import Any

from flask import Flask
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Constraint names are stable across dialects; the unique ones
# (uq_users_email, uq_users_phone, uq_refresh_tokens_token_hash) are matched
# by ``repositories.base.violates`` to tell conflicts apart.
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

db: SQLAlchemy = SQLAlchemy(
    metadata=MetaData(naming_convention=NAMING_CONVENTION),
    session_options={"autoflush": False},
)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()


def _engine_options(app: Flask) -> dict[str, Any]:
    options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    timeout = app.config.get("AUTH_STORE_TIMEOUT_SECONDS")
    uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
    # SQLite runs on a static pool without checkout timeouts.
    if timeout and not uri.startswith("sqlite"):
        options.setdefault("pool_timeout", int(timeout))
    return options


def init_app(app: Flask) -> None:
    """
    Bind ``db``, ``migrate`` and ``jwt`` to ``app``.

    The model package is imported before Flask-Migrate is initialized so the
    ``users`` and ``refresh_tokens`` tables are registered on the metadata.
    A store timeout from the config bounds pooled connection checkout.
    """
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(app)
    db.init_app(app)

    from volunteer_auth import models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)
