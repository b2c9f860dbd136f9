"""Application factory wiring Flask extensions and the session manager."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flask import Flask

from volunteer_auth.core.config import BaseConfig, get_config
from volunteer_auth.core.logger import configure_logging, init_app as init_logging

if TYPE_CHECKING:
    from volunteer_auth.services.auth.service import SessionManager
    from volunteer_auth.services.auth.settings import AuthSettings

SESSION_MANAGER_KEY = "session_manager"


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :raises ConfigurationError: When the auth settings fail validation.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from volunteer_auth.services.auth.settings import AuthSettings

    # Fail fast, before any extension is bound.
    settings = AuthSettings.from_mapping(app.config)
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = settings.access_token_ttl

    from volunteer_auth.core import extensions

    extensions.init_app(app)

    init_logging(app)

    app.extensions[SESSION_MANAGER_KEY] = build_session_manager(settings)

    from volunteer_auth.core import errors

    errors.init_app(app)

    from volunteer_auth import cli as app_cli

    app_cli.init_app(app)

    return app


def build_session_manager(settings: AuthSettings) -> SessionManager:
    """Compose the SQL-backed :class:`SessionManager` for ``settings``."""
    from volunteer_auth.infra.jwt.flask_jwt_token_signer import FlaskJWTTokenSigner
    from volunteer_auth.infra.security.werkzeug_password_hasher import WerkzeugPasswordHasher
    from volunteer_auth.repositories import RefreshTokenRepository, UserRepository
    from volunteer_auth.services.auth.service import SessionManager

    return SessionManager(
        users=UserRepository(),
        refresh_tokens=RefreshTokenRepository(),
        hasher=WerkzeugPasswordHasher(iterations=settings.password_hash_iterations),
        signer=FlaskJWTTokenSigner(access_ttl=settings.access_token_ttl),
        settings=settings,
    )
