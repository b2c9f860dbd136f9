"""User repository implementing the :class:`UserStore` port."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from volunteer_auth.models.user import User, UserStatus
from volunteer_auth.repositories.base import BaseRepository, store_call, violates
from volunteer_auth.services._shared.errors import ConflictError, NotFoundError
from volunteer_auth.services._shared.ports.user_store import (
    NewUser,
    UserRecord,
    UserStore,
    normalize_email,
)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def to_user_record(user: User) -> UserRecord:
    """Snapshot an ORM ``User`` into an immutable :class:`UserRecord`."""
    return UserRecord(
        id=user.id,
        email=user.email,
        password_hash=user.password_hash,
        name=user.name,
        phone=user.phone,
        roles=tuple(user.roles or ()),
        status=UserStatus(user.status),
        email_verified_at=as_utc(user.email_verified_at),
        phone_verified_at=as_utc(user.phone_verified_at),
        last_login_at=as_utc(user.last_login_at),
        created_at=as_utc(user.created_at),
    )


class UserRepository(BaseRepository[User], UserStore):
    """Persistence-only repository for :class:`User`.

    This repository focuses on safe lookup and lifecycle updates. It NEVER
    handles password verification or token issuance.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    @store_call
    def find_by_email(self, email: str) -> UserRecord | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :type email: str
        :returns: Snapshot or ``None`` when not found.
        :rtype: UserRecord | None
        """
        user = self.find_one(User.email == normalize_email(email))
        return to_user_record(user) if user else None

    @store_call
    def find_by_phone(self, phone: str) -> UserRecord | None:
        user = self.find_one(User.phone == phone.strip())
        return to_user_record(user) if user else None

    @store_call
    def find_by_id(self, user_id: str) -> UserRecord | None:
        user = self.find_one(User.id == user_id)
        return to_user_record(user) if user else None

    # ------------------------------ Writes ---------------------------------

    @store_call
    def create(self, new_user: NewUser) -> UserRecord:
        """Insert a user and flush so unique constraints fire inside the UoW.

        :param new_user: Values to insert.
        :type new_user: NewUser
        :returns: Snapshot including database defaults.
        :rtype: UserRecord
        :raises ConflictError: When email or phone is already taken.
        """
        user = User(
            email=new_user.email,
            password_hash=new_user.password_hash,
            name=new_user.name,
            phone=new_user.phone,
            roles=list(new_user.roles),
            status=new_user.status,
            email_verified_at=new_user.email_verified_at,
            phone_verified_at=new_user.phone_verified_at,
        )
        try:
            self.add(user)
        except IntegrityError as exc:
            if violates(exc, "uq_users_email", column="users.email"):
                raise ConflictError("User", "Email already registered", field="email") from exc
            if violates(exc, "uq_users_phone", column="users.phone"):
                raise ConflictError(
                    "User", "Phone number already registered", field="phone"
                ) from exc
            raise
        # Load server defaults (created_at) before snapshotting.
        self.session.refresh(user)
        return to_user_record(user)

    @store_call
    def update_last_login(self, user_id: str, at: datetime) -> None:
        self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_login_at=at)
            .execution_options(synchronize_session=False)
        )

    @store_call
    def update_status(self, user_id: str, status: UserStatus) -> UserRecord:
        """Change the lifecycle status of a user.

        :raises NotFoundError: If the user does not exist.
        """
        user = self.find_one(User.id == user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        user.status = status
        self.flush()
        return to_user_record(user)
