from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import uuid4

from volunteer_auth.models.user import UserRole, UserStatus
from volunteer_auth.services._shared.errors import ConflictError, NotFoundError


@dataclass(frozen=True, slots=True)
class UserRecord:
    """
    Immutable snapshot of a user row.

    :ivar id: Opaque user identifier.
    :ivar email: Normalized login email.
    :ivar password_hash: Adaptive hash or ``None`` (password login disabled).
    :ivar name: Display name.
    :ivar phone: Optional phone number.
    :ivar roles: Role tags.
    :ivar status: Lifecycle status.
    :ivar last_login_at: Last successful login (UTC).
    """

    id: str
    email: str
    password_hash: str | None
    name: str
    phone: str | None
    roles: tuple[str, ...]
    status: UserStatus
    email_verified_at: datetime | None = None
    phone_verified_at: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class NewUser:
    """Values required to insert a user."""

    email: str
    password_hash: str | None
    name: str
    phone: str | None = None
    roles: tuple[str, ...] = (UserRole.VOLUNTEER.value,)
    status: UserStatus = UserStatus.ACTIVE
    email_verified_at: datetime | None = None
    phone_verified_at: datetime | None = None


def is_active(user: UserRecord) -> bool:
    """Return ``True`` when the account may authenticate."""
    return user.status is UserStatus.ACTIVE


class HasRoles(Protocol):
    @property
    def roles(self) -> Sequence[str]: ...


def has_role(user: HasRoles, role: UserRole | str) -> bool:
    """Whether ``user`` (a record or its public view) holds ``role``."""
    value = role.value if isinstance(role, UserRole) else role
    return value in user.roles


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore(Protocol):
    """
    Persistence port for user records.

    Lookups return snapshots, never live ORM instances.
    """

    def find_by_email(self, email: str) -> UserRecord | None:
        """Case-insensitive lookup by email."""

    def find_by_phone(self, phone: str) -> UserRecord | None: ...

    def find_by_id(self, user_id: str) -> UserRecord | None: ...

    def create(self, new_user: NewUser) -> UserRecord:
        """
        Insert a user.

        :raises ConflictError: With ``field`` set to ``"email"`` or ``"phone"``.
        """

    def update_last_login(self, user_id: str, at: datetime) -> None: ...

    def update_status(self, user_id: str, status: UserStatus) -> UserRecord:
        """
        Change the lifecycle status.

        :raises NotFoundError: If the user does not exist.
        """


class InMemoryUserStore(UserStore):
    """
    Dictionary-backed user store for unit tests and embedding.

    .. note::
       Uses a threading lock so uniqueness checks and inserts are atomic.
    """

    def __init__(self, users: Sequence[UserRecord] = ()) -> None:
        self._by_id: dict[str, UserRecord] = {u.id: u for u in users}
        self._lock = threading.Lock()

    def find_by_email(self, email: str) -> UserRecord | None:
        key = normalize_email(email)
        return next((u for u in self._by_id.values() if u.email == key), None)

    def find_by_phone(self, phone: str) -> UserRecord | None:
        key = phone.strip()
        return next((u for u in self._by_id.values() if u.phone == key), None)

    def find_by_id(self, user_id: str) -> UserRecord | None:
        return self._by_id.get(user_id)

    def create(self, new_user: NewUser) -> UserRecord:
        email = normalize_email(new_user.email)
        phone = new_user.phone.strip() if new_user.phone else None
        with self._lock:
            if any(u.email == email for u in self._by_id.values()):
                raise ConflictError("User", "Email already registered", field="email")
            if phone and any(u.phone == phone for u in self._by_id.values()):
                raise ConflictError("User", "Phone number already registered", field="phone")
            record = UserRecord(
                id=str(uuid4()),
                email=email,
                password_hash=new_user.password_hash,
                name=new_user.name.strip(),
                phone=phone,
                roles=tuple(new_user.roles),
                status=new_user.status,
                email_verified_at=new_user.email_verified_at,
                phone_verified_at=new_user.phone_verified_at,
                created_at=datetime.now(UTC),
            )
            self._by_id[record.id] = record
            return record

    def update_last_login(self, user_id: str, at: datetime) -> None:
        with self._lock:
            current = self._by_id.get(user_id)
            if current is not None:
                self._by_id[user_id] = replace(current, last_login_at=at)

    def update_status(self, user_id: str, status: UserStatus) -> UserRecord:
        with self._lock:
            current = self._by_id.get(user_id)
            if current is None:
                raise NotFoundError("User", user_id)
            updated = replace(current, status=status)
            self._by_id[user_id] = updated
            return updated
