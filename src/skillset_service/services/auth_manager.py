"""Account registration, login, and current-user lookup."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from passlib.context import CryptContext

from skillset_service.core.exceptions import ServiceError
from skillset_service.logging import get_logger
from skillset_service.services.skillset_store import DuplicateUsernameError

if TYPE_CHECKING:
    from skillset_service.services.session_manager import SessionManager
    from skillset_service.services.skillset_store import SkillsetStore


def _now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    """Public user shape. Never includes the password hash."""
    return {
        "id": user["user_id"],
        "username": user["username"],
        "balance": user["balance"],
    }


class AuthManager:
    """
    Handles credentials and ties authenticated users to sessions.

    Passwords are stored as salted sha256_crypt hashes with a fixed
    round count taken from configuration.
    """

    def __init__(
        self,
        store: SkillsetStore,
        sessions: SessionManager,
        password_hash_rounds: int,
        admin_usernames: list[str],
        max_username_length: int,
        min_password_length: int,
        max_password_length: int,
    ) -> None:
        self._store = store
        self._sessions = sessions
        self._pwd_context = CryptContext(
            schemes=["sha256_crypt"],
            sha256_crypt__rounds=password_hash_rounds,
        )
        self._admin_usernames = frozenset(admin_usernames)
        self._max_username_length = max_username_length
        self._min_password_length = min_password_length
        self._max_password_length = max_password_length
        self._logger = get_logger(__name__)

    def _check_credentials_shape(self, username: str, password: str) -> None:
        if len(username) > self._max_username_length:
            raise ServiceError(
                "INVALID_PAYLOAD",
                f"Username must be at most {self._max_username_length} characters",
                400,
                {},
            )
        if len(password) < self._min_password_length:
            raise ServiceError(
                "INVALID_PAYLOAD",
                f"Password must be at least {self._min_password_length} characters",
                400,
                {},
            )
        if len(password) > self._max_password_length:
            raise ServiceError(
                "INVALID_PAYLOAD",
                f"Password must be at most {self._max_password_length} characters",
                400,
                {},
            )

    def hash_password(self, password: str) -> str:
        """Hash a plaintext password."""
        return str(self._pwd_context.hash(password))

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Check a plaintext password against a stored hash."""
        return bool(self._pwd_context.verify(password, password_hash))

    def register(self, username: str, password: str) -> tuple[dict[str, Any], str]:
        """
        Create an account with a zero balance and open a session for it.

        Returns (public_user, session_id).

        Raises:
            ServiceError: INVALID_PAYLOAD, USERNAME_EXISTS
        """
        self._check_credentials_shape(username, password)

        if self._store.get_user_by_username(username) is not None:
            raise ServiceError("USERNAME_EXISTS", "Username already exists", 400, {})

        user = {
            "user_id": f"u-{uuid.uuid4()}",
            "username": username,
            "password_hash": self.hash_password(password),
            "balance": 0,
            "is_admin": 1 if username in self._admin_usernames else 0,
            "created_at": _now_iso(),
        }
        try:
            self._store.insert_user(user)
        except DuplicateUsernameError as exc:
            raise ServiceError("USERNAME_EXISTS", "Username already exists", 400, {}) from exc

        session_id = self._sessions.create_session(user["user_id"])
        self._logger.info(
            "User registered",
            extra={"user_id": user["user_id"], "is_admin": bool(user["is_admin"])},
        )
        return public_user(user), session_id

    def login(self, username: str, password: str) -> tuple[dict[str, Any], str]:
        """
        Verify credentials and open a session.

        Returns (public_user, session_id).

        Raises:
            ServiceError: INVALID_CREDENTIALS
        """
        user = self._store.get_user_by_username(username)
        if user is None or not self.verify_password(password, user["password_hash"]):
            self._logger.info("Login rejected", extra={"username": username})
            raise ServiceError("INVALID_CREDENTIALS", "Invalid credentials", 401, {})

        session_id = self._sessions.create_session(user["user_id"])
        self._logger.info("User logged in", extra={"user_id": user["user_id"]})
        return public_user(user), session_id

    def logout(self, session_id: str | None) -> None:
        """Destroy the caller's session, if any."""
        self._sessions.destroy(session_id)

    def get_session_user(self, session_id: str | None) -> dict[str, Any]:
        """
        Resolve the full user record behind a session.

        Raises:
            ServiceError: UNAUTHORIZED (no live session), USER_NOT_FOUND
        """
        user_id = self._sessions.resolve(session_id)
        if user_id is None:
            raise ServiceError("UNAUTHORIZED", "Not authenticated", 401, {})

        user = self._store.get_user(user_id)
        if user is None:
            raise ServiceError("USER_NOT_FOUND", "User not found", 404, {})
        return user

    def promote_configured_admins(self) -> int:
        """Flag already-registered users listed as admins in configuration."""
        return self._store.promote_admins(sorted(self._admin_usernames))
