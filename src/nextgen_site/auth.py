"""
Authentication for the admin back-office.

Passwords are hashed with bcrypt and sessions are HS256 JWTs carried in an
httpOnly cookie. Two kinds of account can log in: the environment admin
(ADMIN_USERNAME / ADMIN_PASSWORD_HASH) and active users from users.json.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from .config import SiteConfig
from .errors import AuthenticationError, PermissionDeniedError, ValidationError
from .models import SessionPayload, User, UserRole, utc_now_iso
from .storage import USERS, JSONStore

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
MIN_PASSWORD_LENGTH = 8
EXPIRY_WARNING = timedelta(hours=1)

ENV_ADMIN_INSTRUCTIONS = [
    "1. Copy the new password hash below",
    "2. Open your .env file",
    "3. Update ADMIN_PASSWORD_HASH with the new hash",
    "4. Restart the server",
    "5. Login with your new password",
]


@dataclass
class Identity:
    """An authenticated account."""
    username: str
    role: UserRole
    user_id: Optional[str] = None  # None for the environment admin

    @property
    def is_env_admin(self) -> bool:
        return self.user_id is None


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def validate_new_password(password: Optional[str], label: str = "Password") -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"{label} must be at least {MIN_PASSWORD_LENGTH} characters long")


def create_token(
    username: str,
    config: SiteConfig,
    role: UserRole = UserRole.SUPER_ADMIN,
    now: Optional[datetime] = None,
) -> str:
    """
    Create a signed session token.

    Args:
        username: Account the session belongs to.
        config: Site configuration (secret and session lifetime).
        role: Role captured at login time.
        now: Issue time, for tests.

    Returns:
        Encoded JWT string.
    """
    now = now or datetime.now(timezone.utc)
    expires = now + timedelta(days=config.session_days)
    payload = {
        "username": username,
        "role": role.value,
        "expiresAt": int(expires.timestamp() * 1000),
        "iat": now,
        "exp": expires,
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=ALGORITHM)


def verify_token(token: Optional[str], config: SiteConfig) -> Optional[SessionPayload]:
    """
    Verify a session token.

    Returns:
        The decoded session, or None when the token is missing, expired,
        tampered with or lacks required claims.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(
            token, config.jwt_secret, algorithms=[ALGORITHM], options={"require": ["exp"]},
        )
    except jwt.InvalidTokenError:
        return None

    username = payload.get("username")
    if not username:
        return None
    try:
        role = UserRole(payload.get("role", UserRole.SUPER_ADMIN.value))
    except ValueError:
        return None
    expires_at = payload.get("expiresAt") or int(payload["exp"]) * 1000
    return SessionPayload(username=username, role=role, expires_at=int(expires_at))


def session_expiring_soon(session: SessionPayload, now: Optional[datetime] = None) -> bool:
    """True when less than an hour of the session remains."""
    now = now or datetime.now(timezone.utc)
    remaining_ms = session.expires_at - int(now.timestamp() * 1000)
    return remaining_ms < EXPIRY_WARNING.total_seconds() * 1000


def require_role(session: Optional[SessionPayload], minimum: UserRole) -> SessionPayload:
    """Raise unless the session exists and its role is at least `minimum`."""
    if session is None:
        raise AuthenticationError("Unauthorized")
    if not session.role.at_least(minimum):
        raise PermissionDeniedError("Insufficient permissions for this action")
    return session


def _load_users(store: JSONStore) -> list[User]:
    return [User.from_dict(u) for u in store.read_list(USERS)]


def verify_admin_credentials(
    username: str,
    password: str,
    config: SiteConfig,
    store: JSONStore,
) -> Optional[Identity]:
    """
    Check a username/password pair.

    The environment admin is tried first, then active users from users.json.

    Returns:
        The authenticated identity, or None on any mismatch.
    """
    normalized = (username or "").strip()
    if not normalized or not password:
        return None

    if normalized == config.admin_username:
        if not config.admin_password_hash:
            logger.error("ADMIN_PASSWORD_HASH not set; environment admin login disabled")
        elif verify_password(password, config.admin_password_hash):
            return Identity(username=normalized, role=UserRole.SUPER_ADMIN)

    for user in _load_users(store):
        if user.username != normalized:
            continue
        if not user.is_active:
            logger.info(f"Rejected login for inactive user {normalized}")
            return None
        if verify_password(password, user.password_hash):
            return Identity(username=user.username, role=user.role, user_id=user.id)
        return None

    logger.info(f"Failed login for {normalized!r}")
    return None


def change_password(
    session: SessionPayload,
    current_password: Optional[str],
    new_password: Optional[str],
    config: SiteConfig,
    store: JSONStore,
) -> dict:
    """
    Change the password of the logged-in account.

    File-backed users are updated in place. The environment admin's hash
    lives in the environment, so the new hash is returned for the operator
    to install by hand.

    Returns:
        Response payload with a message, and for the environment admin the
        new hash plus instructions.
    """
    if not current_password or not new_password:
        raise ValidationError("Current password and new password are required")
    validate_new_password(new_password, label="New password")

    users = store.read_list(USERS)
    for index, raw in enumerate(users):
        user = User.from_dict(raw)
        if user.username != session.username:
            continue
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        user.updated_at = utc_now_iso()
        users[index] = user.to_dict()
        store.write_list(USERS, users)
        logger.info(f"Password changed for user {user.username}")
        return {"message": "Password changed successfully"}

    if session.username != config.admin_username:
        raise AuthenticationError("Unauthorized")
    if not config.admin_password_hash:
        raise ValidationError("Admin password not configured", status_code=500)
    if not verify_password(current_password, config.admin_password_hash):
        raise ValidationError("Current password is incorrect")

    return {
        "message": "Password hash generated successfully",
        "newPasswordHash": hash_password(new_password),
        "instructions": ENV_ADMIN_INSTRUCTIONS,
    }
