"""``flask users`` administration commands."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from tests.factories.user import UserFactory
from volunteer_auth.cli.users import SEED_ACCOUNTS
from volunteer_auth.models import User, UserStatus


@pytest.fixture()
def runner(app):
    return app.test_cli_runner()


def _user(session, email: str) -> User | None:
    stmt = select(User).where(User.email == email).execution_options(populate_existing=True)
    return session.execute(stmt).scalar_one_or_none()


class TestSeed:
    def test_creates_sample_accounts(self, runner, session):
        result = runner.invoke(args=["users", "seed"])

        assert result.exit_code == 0, result.output
        assert "created= 3" in result.output
        admin = _user(session, "admin@platform.local")
        assert admin is not None
        assert admin.roles == ["admin"]
        assert admin.phone_verified_at is not None
        public = _user(session, "public@platform.local")
        assert public.phone_verified_at is None

    def test_is_idempotent(self, runner):
        runner.invoke(args=["users", "seed"])
        result = runner.invoke(args=["users", "seed"])

        assert result.exit_code == 0, result.output
        assert "created= 0" in result.output
        assert f"existing= {len(SEED_ACCOUNTS)}" in result.output

    def test_seeded_accounts_can_log_in(self, runner, sql_manager):
        from volunteer_auth.services.auth.dto import LoginIn

        runner.invoke(args=["users", "seed"])
        account = SEED_ACCOUNTS[1]

        result = sql_manager.login(LoginIn(email=account.email, password=account.password))

        assert result.user.roles == ("volunteer",)

    def test_refused_in_production(self, runner, app, monkeypatch):
        monkeypatch.setitem(app.config, "APP_ENV", "production")

        result = runner.invoke(args=["users", "seed"])

        assert result.exit_code == 2
        assert "non-production" in result.output


class TestCreateAdmin:
    def test_creates_admin(self, runner, session):
        result = runner.invoke(
            args=["users", "create-admin", "Root@Example.com", "--password", "Adm1n!pass"]
        )

        assert result.exit_code == 0, result.output
        assert "root@example.com" in result.output
        assert "roles=admin" in result.output
        assert _user(session, "root@example.com").status is UserStatus.ACTIVE

    def test_duplicate_email(self, runner, session):
        UserFactory(email="dup-admin@example.com")
        session.commit()

        result = runner.invoke(
            args=["users", "create-admin", "dup-admin@example.com", "--password", "Adm1n!pass"]
        )

        assert result.exit_code == 1
        assert "Conflict on User" in result.output


class TestSetStatus:
    def test_suspends_account(self, runner, session):
        UserFactory(email="status@example.com")
        session.commit()

        result = runner.invoke(args=["users", "set-status", "status@example.com", "suspended"])

        assert result.exit_code == 0, result.output
        assert "status=suspended" in result.output
        assert _user(session, "status@example.com").status is UserStatus.SUSPENDED

    def test_unknown_user(self, runner):
        result = runner.invoke(args=["users", "set-status", "ghost@example.com", "inactive"])

        assert result.exit_code == 1
        assert "User not found: ghost@example.com" in result.output

    def test_rejects_unknown_status(self, runner):
        result = runner.invoke(args=["users", "set-status", "ghost@example.com", "banned"])

        assert result.exit_code == 2
