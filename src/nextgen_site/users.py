"""
Back-office user accounts stored in users.json.
"""

from __future__ import annotations

import logging
from typing import Optional

from .auth import hash_password, validate_new_password
from .errors import ConflictError, NotFoundError, ValidationError
from .models import User, UserRole, timestamp_id, utc_now_iso
from .storage import USERS, JSONStore

logger = logging.getLogger(__name__)


class UserService:
    """User CRUD. Everything returned to callers leaves out the password hash."""

    def __init__(self, store: JSONStore):
        self.store = store

    def _read(self) -> list[User]:
        return [User.from_dict(u) for u in self.store.read_list(USERS)]

    def _write(self, users: list[User]) -> None:
        self.store.write_list(USERS, [u.to_dict() for u in users])

    def list(self) -> list[dict]:
        return [u.to_public_dict() for u in self._read()]

    def get(self, user_id: str) -> dict:
        for user in self._read():
            if user.id == user_id:
                return user.to_public_dict()
        raise NotFoundError("User not found")

    def find_by_username(self, username: str) -> Optional[User]:
        for user in self._read():
            if user.username == username:
                return user
        return None

    def create(
        self,
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
        role: Optional[str],
    ) -> dict:
        """
        Create a user.

        Raises:
            ValidationError: Missing fields, unknown role or short password.
            ConflictError: Username or email already taken.
        """
        if not username or not email or not password or not role:
            raise ValidationError(
                "Missing required fields: username, email, password, and role are required"
            )
        if role not in UserRole.values():
            raise ValidationError(f"Invalid role. Must be one of: {', '.join(UserRole.values())}")
        validate_new_password(password)

        users = self._read()
        if any(u.username == username for u in users):
            raise ConflictError("A user with this username already exists")
        if any(u.email == email for u in users):
            raise ConflictError("A user with this email already exists")

        now = utc_now_iso()
        user = User(
            id=f"user-{timestamp_id()}",
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=UserRole(role),
            created_at=now,
            updated_at=now,
            is_active=True,
        )
        users.append(user)
        self._write(users)
        logger.info(f"Created user {username} ({role})")
        return user.to_public_dict()

    def update(
        self,
        user_id: str,
        email: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        new_password: Optional[str] = None,
    ) -> dict:
        """Update the given fields; anything left as None is unchanged."""
        users = self._read()
        for user in users:
            if user.id == user_id:
                break
        else:
            raise NotFoundError("User not found")

        if role and role not in UserRole.values():
            raise ValidationError("Invalid role")
        if email and any(u.email == email and u.id != user_id for u in users):
            raise ConflictError("Email already in use")
        if new_password:
            validate_new_password(new_password)

        if email:
            user.email = email
        if role:
            user.role = UserRole(role)
        if is_active is not None:
            user.is_active = is_active
        if new_password:
            user.password_hash = hash_password(new_password)
        user.updated_at = utc_now_iso()

        self._write(users)
        logger.info(f"Updated user {user.username}")
        return user.to_public_dict()

    def delete(self, user_id: str, acting_username: Optional[str] = None) -> None:
        """Delete a user. Accounts cannot delete themselves."""
        users = self._read()
        for index, user in enumerate(users):
            if user.id == user_id:
                break
        else:
            raise NotFoundError("User not found")

        if acting_username and user.username == acting_username:
            raise ValidationError("You cannot delete your own account")

        del users[index]
        self._write(users)
        logger.info(f"Deleted user {user.username}")
