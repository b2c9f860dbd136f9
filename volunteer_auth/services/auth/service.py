# volunteer_auth/services/auth/service.py
from __future__ import annotations

import hashlib
import logging
import secrets
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any, NoReturn

from marshmallow import ValidationError as SchemaValidationError

from volunteer_auth.models.user import UserStatus
from volunteer_auth.schemas.auth import RegisterSchema
from volunteer_auth.services._shared.base import BaseService, Clock
from volunteer_auth.services._shared.errors import (
    AccountInactiveError,
    ConflictError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from volunteer_auth.services._shared.ports.password_hasher import PasswordHasher
from volunteer_auth.services._shared.ports.refresh_token_store import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)
from volunteer_auth.services._shared.ports.token_signer import AccessTokenClaims, TokenSigner
from volunteer_auth.services._shared.ports.user_store import (
    NewUser,
    UserRecord,
    UserStore,
    is_active,
    normalize_email,
)
from volunteer_auth.services.auth.dto import (
    AuthSession,
    AuthTokens,
    ClientInfo,
    LoginIn,
    RegisterIn,
    SessionOut,
    UserPublicOut,
)
from volunteer_auth.services.auth.settings import AuthSettings
from volunteer_auth.uow.base import UnitOfWork

log = logging.getLogger(__name__)

# Verified against when the email is unknown, so both branches pay one hash.
_DUMMY_PASSWORD = "dummy-password-for-timing"  # nosec B105


def hash_refresh_token(raw: str) -> str:
    """Return the at-rest digest of an opaque refresh secret."""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class SessionManager(BaseService):
    """
    Authentication and session lifecycle service.

    Issues stateless access tokens through a :class:`TokenSigner` and keeps
    refresh sessions in a :class:`RefreshTokenStore` (opaque secrets, stored
    as SHA-256 digests, rotated atomically on every refresh).

    Lifecycle of a refresh token: ``active`` until it is revoked (logout,
    rotation, logout-all) or its ``expires_at`` passes. Both end states are
    terminal.
    """

    def __init__(
        self,
        *,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        hasher: PasswordHasher,
        signer: TokenSigner,
        settings: AuthSettings,
        uow_factory: Callable[[], UnitOfWork] | None = None,
        ro_uow_factory: Callable[[], UnitOfWork] | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the manager with its collaborators.

        :param users: User persistence port.
        :param refresh_tokens: Refresh token persistence port.
        :param hasher: Adaptive password hasher.
        :param signer: Access token signer/verifier.
        :param settings: Validated auth settings.
        :param uow_factory: Read-write transaction boundary (SQL by default).
        :param ro_uow_factory: Read-only transaction boundary (SQL by default).
        :param clock: Aware UTC clock, injectable for expiry tests.
        """
        super().__init__(uow_factory=uow_factory, ro_uow_factory=ro_uow_factory, clock=clock)
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher
        self.signer = signer
        self.settings = settings
        self._dummy_hash: str | None = None

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn, *, client: ClientInfo | None = None) -> AuthSession:
        """
        Create an account and open its first session.

        The user row and the first refresh token share one unit of work, so a
        failure while issuing tokens leaves no account behind.

        :param dto: Registration input.
        :param client: Optional request metadata stored on the refresh token.
        :returns: Token pair plus the sanitized user.
        :raises ValidationError: Malformed input or confirmation mismatch.
        :raises ConflictError: Email or phone already registered.
        """
        data = self._validate_registration(dto)

        with self.rw_uow():
            self._ensure_unique(data["email"], data.get("phone"))
            user = self.users.create(
                NewUser(
                    email=data["email"],
                    password_hash=self.hasher.hash(data["password"]),
                    name=data["name"],
                    phone=data.get("phone"),
                    roles=(self.settings.default_role,),
                    status=UserStatus.ACTIVE,
                )
            )
            tokens = self._issue_session(user, client=client)

        log.info("auth.register.succeeded", extra={"user_id": user.id})
        return AuthSession(tokens=tokens, user=UserPublicOut.from_record(user))

    def _validate_registration(self, dto: RegisterIn) -> dict[str, Any]:
        try:
            data: dict[str, Any] = RegisterSchema().load(
                {
                    "email": dto.email,
                    "password": dto.password,
                    "password_confirmation": dto.password_confirmation,
                    "name": dto.name,
                    "phone": dto.phone or None,
                }
            )
        except SchemaValidationError as exc:
            raise ValidationError(errors=exc.normalized_messages()) from exc

        if data["password"] != data["password_confirmation"]:
            raise ValidationError(
                message="Password confirmation does not match",
                errors={"password_confirmation": ["Must match password."]},
            )
        data["email"] = normalize_email(data["email"])
        return data

    def _ensure_unique(self, email: str, phone: str | None) -> None:
        if self.users.find_by_email(email) is not None:
            raise ConflictError("User", "Email already registered", field="email")
        if phone and self.users.find_by_phone(phone) is not None:
            raise ConflictError("User", "Phone number already registered", field="phone")

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn, *, client: ClientInfo | None = None) -> AuthSession:
        """
        Verify credentials and open a new session.

        :param dto: Login input.
        :param client: Optional request metadata stored on the refresh token.
        :returns: Token pair plus the sanitized user.
        :raises InvalidCredentialsError: Unknown email, no password set or mismatch.
        :raises AccountInactiveError: The account is not ``active``.
        """
        now = self.now()
        with self.rw_uow():
            user = self.users.find_by_email(dto.email or "")
            if user is None:
                self.hasher.verify(dto.password or "", self._timing_hash())
                self._login_failed(None, "unknown_email")
                raise InvalidCredentialsError()
            if not is_active(user):
                self._login_failed(user.id, "inactive")
                raise AccountInactiveError()
            # A missing hash disables password login for the account.
            if not self.hasher.verify(dto.password or "", user.password_hash):
                self._login_failed(user.id, "bad_password")
                raise InvalidCredentialsError()

            self.users.update_last_login(user.id, now)
            user = replace(user, last_login_at=now)
            tokens = self._issue_session(user, client=client)

        log.info("auth.login.succeeded", extra={"user_id": user.id})
        return AuthSession(tokens=tokens, user=UserPublicOut.from_record(user))

    def _timing_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash(_DUMMY_PASSWORD)
        return self._dummy_hash

    @staticmethod
    def _login_failed(user_id: str | None, reason: str) -> None:
        log.warning("auth.login.failed", extra={"user_id": user_id, "reason": reason})

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, raw_refresh_token: Any, *, client: ClientInfo | None = None) -> AuthTokens:
        """
        Rotate a refresh token and return a new token pair.

        Security
        --------
        - Unknown, revoked, expired and malformed tokens fail identically.
        - Rotation is a compare-and-swap in the store; of concurrent callers
          presenting the same token exactly one wins.
        - Replaying a revoked token is logged as reuse and, when
          ``revoke_all_on_reuse`` is set, ends every session of the owner.

        :param raw_refresh_token: Opaque secret previously issued.
        :param client: Optional request metadata stored on the successor.
        :raises InvalidRefreshTokenError: The token cannot be used.
        :raises AccountInactiveError: The owner is not ``active``.
        """
        if not isinstance(raw_refresh_token, str) or not raw_refresh_token.strip():
            self._refresh_rejected(None, "malformed")
        now = self.now()

        with self.ro_uow():
            record = self.refresh_tokens.find_by_hash(hash_refresh_token(raw_refresh_token))
            user = self._owner_of(record) if record is not None else None

        if record is None:
            self._refresh_rejected(None, "not_found")
        if record.is_revoked():
            self._on_reuse(record, now)
        if record.is_expired(now):
            self._refresh_rejected(record.user_id, "expired")
        if user is None:
            self._refresh_rejected(record.user_id, "owner_missing")
        if not is_active(user):
            log.warning(
                "auth.refresh.rejected", extra={"user_id": user.id, "reason": "inactive"}
            )
            raise AccountInactiveError()

        with self.rw_uow():
            raw_successor, successor_hash = self._new_refresh_secret()
            client = client or ClientInfo()
            outcome = self.refresh_tokens.rotate(
                record.id,
                now=now,
                new_token_hash=successor_hash,
                new_expires_at=now + self.settings.refresh_token_ttl,
                ip=client.ip,
                user_agent=client.user_agent,
            )
            if outcome.result is not RotationResult.OK:
                self._refresh_rejected(user.id, f"rotation_{outcome.result.name.lower()}")
            access = self.signer.issue_access_token(user.id, user.email, user.roles)

        log.info("auth.refresh.rotated", extra={"user_id": user.id})
        return AuthTokens(
            access_token=access.token,
            refresh_token=raw_successor,
            expires_in=access.expires_in,
        )

    def _owner_of(self, record: RefreshTokenRecord) -> UserRecord | None:
        return record.user or self.users.find_by_id(record.user_id)

    def _on_reuse(self, record: RefreshTokenRecord, now: datetime) -> NoReturn:
        revoked = 0
        if self.settings.revoke_all_on_reuse:
            # Committed on its own so the revocation survives the error below.
            with self.rw_uow():
                revoked = self.refresh_tokens.revoke_all_for_user(record.user_id, now=now)
        log.warning(
            "auth.refresh.reuse_detected",
            extra={"user_id": record.user_id, "token_id": record.id, "revoked": revoked},
        )
        raise InvalidRefreshTokenError()

    @staticmethod
    def _refresh_rejected(user_id: str | None, reason: str) -> NoReturn:
        log.info("auth.refresh.rejected", extra={"user_id": user_id, "reason": reason})
        raise InvalidRefreshTokenError()

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, user_id: str, raw_refresh_token: str | None = None) -> None:
        """
        Revoke one refresh token of ``user_id``.

        Absent, foreign or already revoked tokens are a silent no-op. Without
        a token nothing is revoked; ending every session takes
        :meth:`logout_all`.

        :raises StoreUnavailableError: The store failed.
        """
        if not raw_refresh_token:
            log.info("auth.logout.no_token", extra={"user_id": user_id})
            return

        with self.rw_uow():
            record = self.refresh_tokens.find_by_hash(hash_refresh_token(raw_refresh_token))
            if record is None or record.user_id != user_id:
                log.info("auth.logout", extra={"user_id": user_id, "revoked": 0})
                return
            self.refresh_tokens.revoke(record.id, now=self.now())

        revoked = 0 if record.is_revoked() else 1
        log.info(
            "auth.logout", extra={"user_id": user_id, "token_id": record.id, "revoked": revoked}
        )

    def logout_all(self, user_id: str) -> int:
        """
        Revoke every active refresh token of ``user_id``.

        :returns: Number of tokens revoked by this call.
        """
        with self.rw_uow():
            revoked = self.refresh_tokens.revoke_all_for_user(user_id, now=self.now())
        log.info("auth.logout_all", extra={"user_id": user_id, "revoked": revoked})
        return revoked

    # ------------------------------------------------------------------ #
    # Access tokens
    # ------------------------------------------------------------------ #

    def validate_access_token(self, token: str) -> AccessTokenClaims:
        """
        Verify an access token.

        :raises InvalidTokenError: Tampered, expired or malformed token.
        """
        if not isinstance(token, str) or not token:
            raise InvalidTokenError()
        return self.signer.verify_access_token(token)

    def resolve_user_from_payload(
        self, claims: AccessTokenClaims | Mapping[str, Any]
    ) -> UserPublicOut:
        """
        Load the current state of the token's subject.

        Roles and status come from the store, not from the token, so a
        suspension takes effect before the access token expires.

        :raises InvalidTokenError: The subject no longer exists.
        :raises AccountInactiveError: The subject is not ``active``.
        """
        if not isinstance(claims, AccessTokenClaims):
            claims = AccessTokenClaims.from_payload(claims)
        with self.ro_uow():
            user = self.users.find_by_id(claims.subject)
        if user is None:
            raise InvalidTokenError()
        if not is_active(user):
            raise AccountInactiveError()
        return UserPublicOut.from_record(user)

    def authenticate(self, token: str) -> UserPublicOut:
        """Validate ``token`` and resolve its subject."""
        return self.resolve_user_from_payload(self.validate_access_token(token))

    # ------------------------------------------------------------------ #
    # Account queries and administration
    # ------------------------------------------------------------------ #

    def get_profile(self, user_id: str) -> UserPublicOut:
        with self.ro_uow():
            user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return UserPublicOut.from_record(user)

    def change_status(self, user_id: str, status: UserStatus | str) -> UserPublicOut:
        """
        Set the lifecycle status of an account.

        Leaving ``active`` also revokes every refresh token of the account in
        the same unit of work.

        :raises ValidationError: Unknown status value.
        :raises NotFoundError: Unknown user.
        """
        try:
            status = UserStatus(status)
        except ValueError as exc:
            raise ValidationError(
                message="Unknown status",
                errors={"status": [f"Must be one of: {', '.join(s.value for s in UserStatus)}."]},
            ) from exc

        revoked = 0
        with self.rw_uow():
            user = self.users.update_status(user_id, status)
            if status is not UserStatus.ACTIVE:
                revoked = self.refresh_tokens.revoke_all_for_user(user_id, now=self.now())

        log.info(
            "auth.status.changed",
            extra={"user_id": user_id, "status": status.value, "revoked": revoked},
        )
        return UserPublicOut.from_record(user)

    def list_sessions(self, user_id: str) -> list[SessionOut]:
        """Active refresh sessions of ``user_id``, newest first."""
        with self.ro_uow():
            records = self.refresh_tokens.list_active_for_user(user_id, now=self.now())
        return [SessionOut.from_record(r) for r in records]

    # ------------------------------------------------------------------ #
    # Token issuance
    # ------------------------------------------------------------------ #

    def _new_refresh_secret(self) -> tuple[str, str]:
        raw = secrets.token_hex(self.settings.refresh_token_bytes)
        return raw, hash_refresh_token(raw)

    def _issue_session(self, user: UserRecord, *, client: ClientInfo | None) -> AuthTokens:
        """Persist a new refresh token for ``user`` and sign an access token."""
        client = client or ClientInfo()
        raw, digest = self._new_refresh_secret()
        self.refresh_tokens.create(
            user_id=user.id,
            token_hash=digest,
            expires_at=self.now() + self.settings.refresh_token_ttl,
            ip=client.ip,
            user_agent=client.user_agent,
        )
        access = self.signer.issue_access_token(user.id, user.email, user.roles)
        return AuthTokens(
            access_token=access.token,
            refresh_token=raw,
            expires_in=access.expires_in,
        )
