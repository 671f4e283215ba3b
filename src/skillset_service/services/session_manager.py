"""Server-side session records backing the session cookie."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from skillset_service.logging import get_logger

if TYPE_CHECKING:
    from skillset_service.services.skillset_store import SkillsetStore


def _format_ts(value: datetime) -> str:
    return value.isoformat(timespec="microseconds").replace("+00:00", "Z")


class SessionManager:
    """
    Issues, resolves, and destroys sessions.

    The cookie only carries an opaque random identifier; the user it
    belongs to and its expiry live in the store.
    """

    def __init__(self, store: SkillsetStore, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            msg = "Session TTL must be positive"
            raise ValueError(msg)
        self._store = store
        self._ttl = timedelta(seconds=ttl_seconds)
        self._logger = get_logger(__name__)

    @property
    def ttl_seconds(self) -> int:
        """Session lifetime in seconds."""
        return int(self._ttl.total_seconds())

    def create_session(self, user_id: str) -> str:
        """Create a session for a user and return its identifier."""
        now = datetime.now(UTC)
        session_id = secrets.token_urlsafe(32)
        self._store.insert_session(
            {
                "session_id": session_id,
                "user_id": user_id,
                "created_at": _format_ts(now),
                "expires_at": _format_ts(now + self._ttl),
            }
        )
        return session_id

    def resolve(self, session_id: str | None) -> str | None:
        """Return the user_id for a live session, or None."""
        if not session_id:
            return None

        session = self._store.get_session(session_id)
        if session is None:
            return None

        if session["expires_at"] <= _format_ts(datetime.now(UTC)):
            self._store.delete_session(session_id)
            return None

        return str(session["user_id"])

    def destroy(self, session_id: str | None) -> None:
        """Delete a session record if one exists."""
        if not session_id:
            return
        self._store.delete_session(session_id)

    def purge_expired(self) -> int:
        """Remove every expired session record."""
        removed = self._store.delete_expired_sessions(_format_ts(datetime.now(UTC)))
        if removed > 0:
            self._logger.info("Purged expired sessions", extra={"removed": removed})
        return removed
