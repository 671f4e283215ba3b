"""SQLite-backed storage for users, tasks, uploads, sessions, and stored objects."""

from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any


class DuplicateUsernameError(Exception):
    """Raised when attempting to insert a user with a username that is taken."""


class DuplicateOpenUploadError(Exception):
    """Raised when a user already holds a validating or approved upload for a task."""


class UploadStatusConflictError(Exception):
    """Raised when a status-guarded upload transition finds an unexpected status."""


class UploadOwnerMissingError(Exception):
    """Raised when the owner of an upload no longer exists."""


class SkillsetStore:
    """SQLite-backed storage for the task/reward application."""

    _USER_COLUMNS: tuple[str, ...] = (
        "user_id",
        "username",
        "password_hash",
        "balance",
        "is_admin",
        "created_at",
    )
    _TASK_COLUMNS: tuple[str, ...] = (
        "task_id",
        "title",
        "difficulty",
        "reward",
        "description",
        "created_at",
    )
    _UPLOAD_COLUMNS: tuple[str, ...] = (
        "upload_id",
        "user_id",
        "task_id",
        "status",
        "file_url",
        "uploaded_at",
        "decided_at",
    )
    _OBJECT_COLUMNS: tuple[str, ...] = (
        "object_path",
        "owner_id",
        "content_type",
        "size_bytes",
        "created_at",
        "stored_at",
    )

    _USER_SELECT_SQL = (
        "SELECT user_id, username, password_hash, balance, is_admin, created_at FROM users"
    )
    _TASK_SELECT_SQL = (
        "SELECT task_id, title, difficulty, reward, description, created_at FROM tasks"
    )
    _UPLOAD_SELECT_SQL = (
        "SELECT upload_id, user_id, task_id, status, file_url, uploaded_at, decided_at FROM uploads"
    )
    _OBJECT_SELECT_SQL = (
        "SELECT object_path, owner_id, content_type, size_bytes, created_at, stored_at "
        "FROM objects"
    )

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA foreign_keys=ON")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    username TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    task_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    difficulty TEXT NOT NULL CHECK (difficulty IN ('Low', 'Medium', 'High')),
                    reward INTEGER NOT NULL CHECK (reward > 0),
                    description TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS uploads (
                    upload_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(user_id),
                    task_id TEXT NOT NULL REFERENCES tasks(task_id),
                    status TEXT NOT NULL DEFAULT 'validating',
                    file_url TEXT,
                    uploaded_at TEXT NOT NULL,
                    decided_at TEXT
                );

                CREATE UNIQUE INDEX IF NOT EXISTS ux_uploads_open_per_user_task
                    ON uploads(user_id, task_id)
                    WHERE status IN ('validating', 'approved');

                CREATE INDEX IF NOT EXISTS ix_uploads_user_uploaded_at
                    ON uploads(user_id, uploaded_at);

                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS objects (
                    object_path TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    content_type TEXT,
                    size_bytes INTEGER,
                    created_at TEXT NOT NULL,
                    stored_at TEXT
                );
                """
            )

    @staticmethod
    def _row_to_dict(row: sqlite3.Row, columns: tuple[str, ...]) -> dict[str, Any]:
        return {column: row[column] for column in columns}

    def _rollback(self) -> None:
        with contextlib.suppress(sqlite3.Error):
            self._db.execute("ROLLBACK")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def insert_user(self, user_data: dict[str, Any]) -> None:
        """Insert a new user row."""
        values = tuple(user_data[column] for column in self._USER_COLUMNS)
        with self._lock:
            try:
                self._db.execute(
                    "INSERT INTO users (user_id, username, password_hash, balance, is_admin, "
                    "created_at) VALUES (?, ?, ?, ?, ?, ?)",
                    values,
                )
            except sqlite3.IntegrityError as exc:
                if "unique" in str(exc).lower():
                    raise DuplicateUsernameError(
                        f"Username {user_data['username']!r} already exists"
                    ) from exc
                raise

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Fetch a user by ID."""
        with self._lock:
            row = self._db.execute(
                self._USER_SELECT_SQL + " WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_dict(row, self._USER_COLUMNS)

    def get_user_by_username(self, username: str) -> dict[str, Any] | None:
        """Fetch a user by username."""
        with self._lock:
            row = self._db.execute(
                self._USER_SELECT_SQL + " WHERE username = ?", (username,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_dict(row, self._USER_COLUMNS)

    def promote_admins(self, usernames: list[str]) -> int:
        """Flag the given usernames as admins and return the number of rows changed."""
        if len(usernames) == 0:
            return 0
        placeholders = ", ".join("?" for _ in usernames)
        query = (
            "UPDATE users SET is_admin = 1 "  # nosec B608
            "WHERE is_admin = 0 AND username IN (" + placeholders + ")"
        )
        with self._lock:
            cursor = self._db.execute(query, usernames)
        return int(cursor.rowcount)

    def count_users(self) -> int:
        """Count registered users."""
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) FROM users").fetchone()
        return int(row[0]) if row is not None else 0

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def insert_task(self, task_data: dict[str, Any]) -> bool:
        """Insert a task unless one with the same task_id exists. Returns True if inserted."""
        values = tuple(task_data[column] for column in self._TASK_COLUMNS)
        with self._lock:
            cursor = self._db.execute(
                "INSERT OR IGNORE INTO tasks (task_id, title, difficulty, reward, description, "
                "created_at) VALUES (?, ?, ?, ?, ?, ?)",
                values,
            )
        return cursor.rowcount == 1

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        """Fetch a task by ID."""
        with self._lock:
            row = self._db.execute(
                self._TASK_SELECT_SQL + " WHERE task_id = ?", (task_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_dict(row, self._TASK_COLUMNS)

    def list_tasks(self) -> list[dict[str, Any]]:
        """List all tasks in insertion order."""
        with self._lock:
            rows = self._db.execute(self._TASK_SELECT_SQL + " ORDER BY rowid").fetchall()
        return [self._row_to_dict(row, self._TASK_COLUMNS) for row in rows]

    def count_tasks(self) -> int:
        """Count tasks in the catalog."""
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) FROM tasks").fetchone()
        return int(row[0]) if row is not None else 0

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def insert_upload(self, upload_data: dict[str, Any]) -> None:
        """Insert an upload row, enforcing one open upload per user and task."""
        values = tuple(upload_data[column] for column in self._UPLOAD_COLUMNS)
        with self._lock:
            try:
                self._db.execute(
                    "INSERT INTO uploads (upload_id, user_id, task_id, status, file_url, "
                    "uploaded_at, decided_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
            except sqlite3.IntegrityError as exc:
                if "unique" in str(exc).lower():
                    raise DuplicateOpenUploadError(
                        "User already holds an open upload for this task"
                    ) from exc
                raise

    def get_upload(self, upload_id: str) -> dict[str, Any] | None:
        """Fetch an upload by ID."""
        with self._lock:
            row = self._db.execute(
                self._UPLOAD_SELECT_SQL + " WHERE upload_id = ?", (upload_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_dict(row, self._UPLOAD_COLUMNS)

    def has_upload_with_status(self, user_id: str, task_id: str, status: str) -> bool:
        """Check whether the user holds an upload in the given status for a task."""
        with self._lock:
            row = self._db.execute(
                "SELECT 1 FROM uploads WHERE user_id = ? AND task_id = ? AND status = ? LIMIT 1",
                (user_id, task_id, status),
            ).fetchone()
        return row is not None

    def list_uploads_for_user(self, user_id: str) -> list[dict[str, Any]]:
        """List a user's uploads, newest first."""
        with self._lock:
            rows = self._db.execute(
                self._UPLOAD_SELECT_SQL
                + " WHERE user_id = ? ORDER BY uploaded_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_dict(row, self._UPLOAD_COLUMNS) for row in rows]

    def list_uploads_with_details(self) -> list[dict[str, Any]]:
        """List all uploads joined with username and task title, newest first."""
        with self._lock:
            rows = self._db.execute(
                """
                SELECT u.upload_id, u.uploaded_at, usr.username, t.title AS task_title,
                       u.file_url, u.status
                FROM uploads AS u
                JOIN users AS usr ON usr.user_id = u.user_id
                JOIN tasks AS t ON t.task_id = u.task_id
                ORDER BY u.uploaded_at DESC, u.rowid DESC
                """
            ).fetchall()
        return [
            {
                "upload_id": row["upload_id"],
                "uploaded_at": row["uploaded_at"],
                "username": row["username"],
                "task_title": row["task_title"],
                "file_url": row["file_url"],
                "status": row["status"],
            }
            for row in rows
        ]

    def update_upload_status(
        self,
        upload_id: str,
        status: str,
        decided_at: str,
        *,
        expected_status: str | None,
    ) -> int:
        """Set an upload's status and return the number of affected rows."""
        query = "UPDATE uploads SET status = ?, decided_at = ? WHERE upload_id = ?"
        params: list[object] = [status, decided_at, upload_id]
        if expected_status is not None:
            query += " AND status = ?"
            params.append(expected_status)

        with self._lock:
            cursor = self._db.execute(query, params)
        return int(cursor.rowcount)

    def set_upload_file_url(self, upload_id: str, file_url: str) -> int:
        """Attach a file URL to an upload that has none yet."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE uploads SET file_url = ? WHERE upload_id = ? AND file_url IS NULL",
                (file_url, upload_id),
            )
        return int(cursor.rowcount)

    def approve_upload_and_credit(
        self,
        upload_id: str,
        user_id: str,
        reward: int,
        decided_at: str,
    ) -> int:
        """
        Approve a validating upload and credit its owner in one transaction.

        Returns the owner's balance after the credit.

        Raises:
            UploadStatusConflictError: the upload is no longer validating.
            UploadOwnerMissingError: the owning user row is gone.
        """
        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                cursor = self._db.execute(
                    "UPDATE uploads SET status = 'approved', decided_at = ? "
                    "WHERE upload_id = ? AND status = 'validating'",
                    (decided_at, upload_id),
                )
                if cursor.rowcount == 0:
                    raise UploadStatusConflictError(f"Upload {upload_id} is not validating")

                cursor = self._db.execute(
                    "UPDATE users SET balance = balance + ? WHERE user_id = ?",
                    (reward, user_id),
                )
                if cursor.rowcount == 0:
                    raise UploadOwnerMissingError(f"User {user_id} not found")

                row = self._db.execute(
                    "SELECT balance FROM users WHERE user_id = ?", (user_id,)
                ).fetchone()
                self._db.execute("COMMIT")
            except Exception:
                self._rollback()
                raise
        return int(row["balance"])

    def count_uploads_by_status(self) -> dict[str, int]:
        """Count uploads grouped by status."""
        with self._lock:
            rows = self._db.execute(
                "SELECT status, COUNT(*) FROM uploads GROUP BY status"
            ).fetchall()
        return {str(row[0]): int(row[1]) for row in rows}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def insert_session(self, session_data: dict[str, Any]) -> None:
        """Insert a server-side session record."""
        with self._lock:
            self._db.execute(
                "INSERT INTO sessions (session_id, user_id, created_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (
                    session_data["session_id"],
                    session_data["user_id"],
                    session_data["created_at"],
                    session_data["expires_at"],
                ),
            )

    def get_session(self, session_id: str) -> dict[str, Any] | None:
        """Fetch a session record by ID."""
        with self._lock:
            row = self._db.execute(
                "SELECT session_id, user_id, created_at, expires_at FROM sessions "
                "WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return {
            "session_id": row["session_id"],
            "user_id": row["user_id"],
            "created_at": row["created_at"],
            "expires_at": row["expires_at"],
        }

    def delete_session(self, session_id: str) -> int:
        """Delete a session record."""
        with self._lock:
            cursor = self._db.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
        return int(cursor.rowcount)

    def delete_expired_sessions(self, now: str) -> int:
        """Purge sessions whose expiry is at or before ``now``."""
        with self._lock:
            cursor = self._db.execute("DELETE FROM sessions WHERE expires_at <= ?", (now,))
        return int(cursor.rowcount)

    # ------------------------------------------------------------------
    # Stored objects
    # ------------------------------------------------------------------

    def insert_object(self, object_data: dict[str, Any]) -> None:
        """Record an issued object path and its owner."""
        values = tuple(object_data[column] for column in self._OBJECT_COLUMNS)
        with self._lock:
            self._db.execute(
                "INSERT INTO objects (object_path, owner_id, content_type, size_bytes, "
                "created_at, stored_at) VALUES (?, ?, ?, ?, ?, ?)",
                values,
            )

    def get_object(self, object_path: str) -> dict[str, Any] | None:
        """Fetch an object record by path."""
        with self._lock:
            row = self._db.execute(
                self._OBJECT_SELECT_SQL + " WHERE object_path = ?", (object_path,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_dict(row, self._OBJECT_COLUMNS)

    def mark_object_stored(
        self,
        object_path: str,
        content_type: str,
        size_bytes: int,
        stored_at: str,
    ) -> int:
        """Record that the bytes for an object have been written. Only the first write counts."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE objects SET content_type = ?, size_bytes = ?, stored_at = ? "
                "WHERE object_path = ? AND stored_at IS NULL",
                (content_type, size_bytes, stored_at, object_path),
            )
        return int(cursor.rowcount)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
