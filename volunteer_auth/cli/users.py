"""Flask CLI commands for account administration and development seeding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import click
from flask import current_app
from flask.cli import with_appcontext

from volunteer_auth.models.user import UserRole, UserStatus
from volunteer_auth.schemas.auth import UserPublicSchema
from volunteer_auth.services._shared.errors import ConflictError, ServiceError
from volunteer_auth.services._shared.ports.user_store import NewUser, normalize_email
from volunteer_auth.services.auth.dto import UserPublicOut
from volunteer_auth.services.auth.service import SessionManager

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SeedAccount:
    email: str
    password: str
    name: str
    phone: str
    roles: tuple[str, ...]
    phone_verified: bool = True


SEED_ACCOUNTS: tuple[SeedAccount, ...] = (
    SeedAccount(
        email="admin@platform.local",
        password="admin123!@#",  # nosec B106
        name="Platform Administrator",
        phone="+6281234567890",
        roles=(UserRole.ADMIN.value,),
    ),
    SeedAccount(
        email="volunteer@platform.local",
        password="volunteer123!@#",  # nosec B106
        name="Sample Volunteer",
        phone="+6281234567891",
        roles=(UserRole.VOLUNTEER.value,),
    ),
    SeedAccount(
        email="public@platform.local",
        password="volunteer123!@#",  # nosec B106
        name="Sample Public User",
        phone="+6281234567892",
        roles=(UserRole.PUBLIC.value,),
        phone_verified=False,
    ),
)


def _manager() -> SessionManager:
    return current_app.extensions["session_manager"]


def _ensure_non_production() -> None:
    """Abort seeding when running in production."""
    app_env = str(current_app.config.get("APP_ENV", "")).lower()
    if app_env == "production":
        raise click.UsageError(
            "The 'flask users seed' command is restricted to non-production environments."
        )


def _echo_user(user: UserPublicOut) -> None:
    data = UserPublicSchema().dump(user)
    click.echo(f"  {data['email']}  roles={','.join(data['roles'])}  status={data['status']}")


@click.group("users")
def users_cli() -> None:
    """Account administration commands."""


@users_cli.command("seed")
@with_appcontext
def seed_command() -> None:
    """Create the sample admin, volunteer and public accounts (idempotent)."""
    _ensure_non_production()
    manager = _manager()
    now = datetime.now(UTC)
    created = existing = 0

    with manager.rw_uow():
        for account in SEED_ACCOUNTS:
            if manager.users.find_by_email(account.email) is not None:
                existing += 1
                continue
            manager.users.create(
                NewUser(
                    email=account.email,
                    password_hash=manager.hasher.hash(account.password),
                    name=account.name,
                    phone=account.phone,
                    roles=account.roles,
                    status=UserStatus.ACTIVE,
                    email_verified_at=now,
                    phone_verified_at=now if account.phone_verified else None,
                )
            )
            created += 1

    LOGGER.info("Seeded users: created=%s existing=%s", created, existing)
    click.echo(f"Seed summary: users  created={created:>2}  existing={existing:>2}")


@users_cli.command("create-admin")
@click.argument("email")
@click.option("--name", default="Administrator", show_default=True, help="Display name.")
@click.password_option("--password", help="Password (prompted when omitted).")
@with_appcontext
def create_admin_command(email: str, name: str, password: str) -> None:
    """Create an active administrator account."""
    manager = _manager()
    try:
        password_hash = manager.hasher.hash(password)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--password") from exc

    try:
        with manager.rw_uow():
            user = manager.users.create(
                NewUser(
                    email=normalize_email(email),
                    password_hash=password_hash,
                    name=name,
                    roles=(UserRole.ADMIN.value,),
                    status=UserStatus.ACTIVE,
                    email_verified_at=datetime.now(UTC),
                )
            )
    except ConflictError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo("Created administrator:")
    _echo_user(UserPublicOut.from_record(user))


@users_cli.command("set-status")
@click.argument("email")
@click.argument("status", type=click.Choice([s.value for s in UserStatus]))
@with_appcontext
def set_status_command(email: str, status: str) -> None:
    """Change an account status; leaving ``active`` ends every session."""
    manager = _manager()
    with manager.ro_uow():
        user = manager.users.find_by_email(email)
    if user is None:
        raise click.ClickException(f"User not found: {normalize_email(email)}")
    try:
        updated = manager.change_status(user.id, status)
    except ServiceError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo("Updated status:")
    _echo_user(updated)
