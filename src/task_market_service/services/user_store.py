"""SQLite-backed user storage."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any


class DuplicateUserError(Exception):
    """Raised when attempting to insert a user with an email already in use."""


class UserStore:
    """SQLite-backed storage for platform users."""

    _USER_COLUMNS: tuple[str, ...] = (
        "user_id",
        "email",
        "phone",
        "role",
        "email_verified",
        "phone_verified",
        "trust_score",
        "is_active",
        "created_at",
    )
    _MUTABLE_COLUMNS: frozenset[str] = frozenset(
        {"phone", "role", "email_verified", "phone_verified", "trust_score", "is_active"}
    )

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    phone TEXT,
                    role TEXT NOT NULL DEFAULT 'USER',
                    email_verified INTEGER NOT NULL DEFAULT 0,
                    phone_verified INTEGER NOT NULL DEFAULT 0,
                    trust_score INTEGER NOT NULL DEFAULT 0,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                );
                """
            )
            self._db.commit()

    def insert_user(self, user_data: dict[str, Any]) -> None:
        """Insert a new user row."""
        values = tuple(user_data[column] for column in self._USER_COLUMNS)
        with self._lock:
            try:
                self._db.execute(
                    "INSERT INTO users ("  # nosec B608
                    + ", ".join(self._USER_COLUMNS)
                    + ") VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
                self._db.commit()
            except sqlite3.IntegrityError as exc:
                self._db.rollback()
                if "unique" in str(exc).lower():
                    raise DuplicateUserError(
                        f"A user with email={user_data['email']} already exists"
                    ) from exc
                raise

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Fetch a user by ID."""
        with self._lock:
            row = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._USER_COLUMNS)
                + " FROM users WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return {column: row[column] for column in self._USER_COLUMNS}

    def update_user(self, user_id: str, updates: dict[str, Any]) -> int:
        """Update user columns and return the number of affected rows."""
        if len(updates) == 0:
            return 0

        if any(column not in self._MUTABLE_COLUMNS for column in updates):
            msg = "Attempted to update unknown or immutable user column"
            raise ValueError(msg)

        set_clause = ", ".join(f"{column} = ?" for column in updates)
        params: list[object] = list(updates.values())
        params.append(user_id)

        with self._lock:
            cursor = self._db.execute(
                "UPDATE users SET " + set_clause + " WHERE user_id = ?",  # nosec B608
                params,
            )
            self._db.commit()
        return int(cursor.rowcount)

    def count_users(self) -> int:
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) FROM users").fetchone()
        return int(row[0]) if row is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
