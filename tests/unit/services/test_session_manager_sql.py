# tests/unit/services/test_session_manager_sql.py
"""SessionManager against the SQL repositories wired by the application factory."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from tests.factories.refresh_token import RefreshTokenFactory
from tests.factories.user import DEFAULT_PASSWORD, UserFactory
from volunteer_auth.models import RefreshToken, User, UserStatus
from volunteer_auth.services._shared.errors import (
    AccountInactiveError,
    ConflictError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
)
from volunteer_auth.services.auth.dto import ClientInfo, LoginIn, RegisterIn
from volunteer_auth.services.auth.service import SessionManager, hash_refresh_token

PASSWORD = "Secr3t!23"  # nosec B105


def _register_in(email: str = "sql@x.com", **overrides) -> RegisterIn:
    data = {
        "email": email,
        "password": PASSWORD,
        "password_confirmation": PASSWORD,
        "name": "Sql User",
    }
    data.update(overrides)
    return RegisterIn(**data)


def _token_row(session, raw: str) -> RefreshToken:
    stmt = select(RefreshToken).where(RefreshToken.token_hash == hash_refresh_token(raw))
    return session.execute(stmt.execution_options(populate_existing=True)).scalar_one()


class _ExplodingSigner:
    def issue_access_token(self, subject_id, email, roles):
        raise RuntimeError("signer down")

    def verify_access_token(self, token):
        raise InvalidTokenError()


class TestRegisterSQL:
    def test_persists_user_and_token_together(self, sql_manager, session):
        result = sql_manager.register(
            _register_in(phone="+6281200000001"),
            client=ClientInfo(ip="203.0.113.9", user_agent="sql-agent"),
        )

        user = session.get(User, result.user.id)
        assert user is not None
        assert user.email == "sql@x.com"
        assert user.roles == ["volunteer"]
        assert user.status is UserStatus.ACTIVE

        row = _token_row(session, result.tokens.refresh_token)
        assert row.user_id == user.id
        assert row.revoked_at is None
        assert row.issued_ip == "203.0.113.9"
        assert row.issued_user_agent == "sql-agent"

    def test_duplicate_email(self, sql_manager, session):
        UserFactory(email="taken@x.com")
        session.commit()

        with pytest.raises(ConflictError) as excinfo:
            sql_manager.register(_register_in(email="taken@x.com"))
        assert excinfo.value.field == "email"

    def test_duplicate_phone(self, sql_manager, session):
        UserFactory(phone="+6281200000002")
        session.commit()

        with pytest.raises(ConflictError) as excinfo:
            sql_manager.register(_register_in(phone="+6281200000002"))
        assert excinfo.value.field == "phone"

    def test_insert_race_maps_to_conflict(self, sql_manager, session, monkeypatch):
        """A unique violation at insert time surfaces as the same conflict."""
        UserFactory(email="racy@x.com")
        session.commit()
        monkeypatch.setattr(SessionManager, "_ensure_unique", lambda self, email, phone: None)

        with pytest.raises(ConflictError) as excinfo:
            sql_manager.register(_register_in(email="racy@x.com"))
        assert excinfo.value.field == "email"

    def test_failure_after_insert_leaves_no_orphan(self, sql_manager, session, monkeypatch):
        monkeypatch.setattr(sql_manager, "signer", _ExplodingSigner())

        with pytest.raises(RuntimeError, match="signer down"):
            sql_manager.register(_register_in(email="orphan@x.com"))

        assert session.execute(select(User).where(User.email == "orphan@x.com")).first() is None


class TestLoginSQL:
    def test_login_sets_last_login(self, sql_manager, session):
        user = UserFactory(email="login@x.com")
        session.commit()

        result = sql_manager.login(LoginIn(email="LOGIN@x.com", password=DEFAULT_PASSWORD))

        assert result.user.id == user.id
        refreshed = session.get(User, user.id, populate_existing=True)
        assert refreshed.last_login_at is not None

    def test_wrong_password(self, sql_manager, session):
        UserFactory(email="wrong@x.com")
        session.commit()

        with pytest.raises(InvalidCredentialsError):
            sql_manager.login(LoginIn(email="wrong@x.com", password="Nope-1234"))

    def test_no_password_hash(self, sql_manager, session):
        UserFactory(email="nohash@x.com", password=False)
        session.commit()

        with pytest.raises(InvalidCredentialsError):
            sql_manager.login(LoginIn(email="nohash@x.com", password=DEFAULT_PASSWORD))

    def test_suspended_user(self, sql_manager, session):
        UserFactory(email="suspended@x.com", status=UserStatus.SUSPENDED)
        session.commit()

        with pytest.raises(AccountInactiveError):
            sql_manager.login(LoginIn(email="suspended@x.com", password=DEFAULT_PASSWORD))


class TestRefreshSQL:
    def test_rotation_revokes_predecessor_row(self, sql_manager, session):
        token = RefreshTokenFactory(raw="sql-secret-a")
        session.commit()

        pair = sql_manager.refresh("sql-secret-a")

        assert _token_row(session, "sql-secret-a").revoked_at is not None
        successor = _token_row(session, pair.refresh_token)
        assert successor.user_id == token.user_id
        assert successor.revoked_at is None

        with pytest.raises(InvalidRefreshTokenError):
            sql_manager.refresh("sql-secret-a")

    def test_expired_row(self, sql_manager, session):
        RefreshTokenFactory(raw="sql-expired", expires_at=datetime.now(UTC) - timedelta(minutes=1))
        session.commit()

        with pytest.raises(InvalidRefreshTokenError):
            sql_manager.refresh("sql-expired")

    def test_inactive_owner(self, sql_manager, session):
        user = UserFactory(status=UserStatus.SUSPENDED)
        RefreshTokenFactory(user=user, raw="sql-suspended")
        session.commit()

        with pytest.raises(AccountInactiveError):
            sql_manager.refresh("sql-suspended")
        assert _token_row(session, "sql-suspended").revoked_at is None


class TestLogoutSQL:
    def test_logout_revokes_row(self, sql_manager, session):
        token = RefreshTokenFactory(raw="sql-logout")
        session.commit()

        sql_manager.logout(token.user_id, "sql-logout")

        assert _token_row(session, "sql-logout").revoked_at is not None

    def test_logout_all(self, sql_manager, session):
        user = UserFactory()
        for i in range(3):
            RefreshTokenFactory(user=user, raw=f"sql-all-{i}")
        other = RefreshTokenFactory(raw="sql-other-user")
        session.commit()

        assert sql_manager.logout_all(user.id) == 3

        for i in range(3):
            with pytest.raises(InvalidRefreshTokenError):
                sql_manager.refresh(f"sql-all-{i}")
        assert _token_row(session, "sql-other-user").revoked_at is None
        assert other.user_id != user.id

    def test_change_status_revokes_sessions(self, sql_manager, session):
        user = UserFactory()
        RefreshTokenFactory(user=user, raw="sql-status")
        session.commit()

        out = sql_manager.change_status(user.id, UserStatus.INACTIVE)

        assert out.status == "inactive"
        assert _token_row(session, "sql-status").revoked_at is not None
        assert sql_manager.list_sessions(user.id) == []

    def test_authenticate_round_trip(self, sql_manager, session):
        result = sql_manager.register(_register_in(email="me@x.com"))

        me = sql_manager.authenticate(result.tokens.access_token)

        assert me.id == result.user.id
        assert sql_manager.get_profile(me.id).email == "me@x.com"
