"""SQLite-backed storage for verification tokens, documents and issuance logs."""

from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from threading import RLock
from typing import Any


class DuplicatePendingDocumentError(Exception):
    """Raised when a user already has a PENDING document of the same type."""


class VerificationStore:
    """
    Storage for email tokens, phone codes, document verifications and the
    issuance log used for rate limiting.

    Issuance rows outlive the tokens they record, so consuming or sweeping
    a token never frees rate-limit quota.
    """

    _EMAIL_COLUMNS: tuple[str, ...] = (
        "verification_id",
        "user_id",
        "token",
        "email",
        "expires_at",
        "created_at",
    )
    _PHONE_COLUMNS: tuple[str, ...] = (
        "verification_id",
        "user_id",
        "code",
        "phone",
        "attempts",
        "max_attempts",
        "expires_at",
        "created_at",
    )
    _DOCUMENT_COLUMNS: tuple[str, ...] = (
        "verification_id",
        "user_id",
        "document_type",
        "document_url",
        "notes",
        "status",
        "submitted_at",
        "reviewed_at",
        "reviewer_notes",
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
                CREATE TABLE IF NOT EXISTS email_verifications (
                    verification_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    token TEXT NOT NULL UNIQUE,
                    email TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS phone_verifications (
                    verification_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    code TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    max_attempts INTEGER NOT NULL,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_phone_verifications_user
                    ON phone_verifications(user_id);

                CREATE TABLE IF NOT EXISTS document_verifications (
                    verification_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    document_type TEXT NOT NULL,
                    document_url TEXT NOT NULL,
                    notes TEXT,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    submitted_at TEXT NOT NULL,
                    reviewed_at TEXT,
                    reviewer_notes TEXT
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_documents_single_pending
                    ON document_verifications(user_id, document_type)
                    WHERE status = 'PENDING';

                CREATE TABLE IF NOT EXISTS verification_issuances (
                    issuance_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    channel TEXT NOT NULL,
                    issued_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_issuances_user_channel
                    ON verification_issuances(user_id, channel, issued_at);
                """
            )
            self._db.commit()

    def _insert_with_issuance(
        self,
        table: str,
        columns: tuple[str, ...],
        record: dict[str, Any],
        channel: str,
    ) -> None:
        column_list = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        statement = f"INSERT INTO {table} ({column_list}) VALUES ({placeholders})"  # nosec B608
        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                self._db.execute(
                    statement,
                    tuple(record[column] for column in columns),
                )
                self._db.execute(
                    "INSERT INTO verification_issuances "
                    "(issuance_id, user_id, channel, issued_at) VALUES (?, ?, ?, ?)",
                    (record["verification_id"], record["user_id"], channel, record["created_at"]),
                )
                self._db.commit()
            except Exception:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise

    # ------------------------------------------------------------------
    # Issuance log
    # ------------------------------------------------------------------

    def count_issuances(self, user_id: str, channel: str, since: str) -> int:
        """Count tokens issued to ``user_id`` on ``channel`` at or after ``since``."""
        with self._lock:
            row = self._db.execute(
                "SELECT COUNT(*) FROM verification_issuances "
                "WHERE user_id = ? AND channel = ? AND issued_at >= ?",
                (user_id, channel, since),
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def delete_issuance(self, issuance_id: str) -> int:
        with self._lock:
            cursor = self._db.execute(
                "DELETE FROM verification_issuances WHERE issuance_id = ?",
                (issuance_id,),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def prune_issuances(self, before: str) -> int:
        """Delete issuance rows older than ``before``."""
        with self._lock:
            cursor = self._db.execute(
                "DELETE FROM verification_issuances WHERE issued_at < ?",
                (before,),
            )
            self._db.commit()
        return int(cursor.rowcount)

    # ------------------------------------------------------------------
    # Email tokens
    # ------------------------------------------------------------------

    def insert_email_token(self, record: dict[str, Any]) -> None:
        """Insert an email token and its issuance row atomically."""
        self._insert_with_issuance("email_verifications", self._EMAIL_COLUMNS, record, "email")

    def find_email_token(self, token: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._EMAIL_COLUMNS)
                + " FROM email_verifications WHERE token = ?",
                (token,),
            ).fetchone()
        if row is None:
            return None
        return {column: row[column] for column in self._EMAIL_COLUMNS}

    def delete_email_token(self, verification_id: str) -> int:
        with self._lock:
            cursor = self._db.execute(
                "DELETE FROM email_verifications WHERE verification_id = ?",
                (verification_id,),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def delete_expired_email_tokens(self, now: str) -> int:
        with self._lock:
            cursor = self._db.execute(
                "DELETE FROM email_verifications WHERE expires_at < ?",
                (now,),
            )
            self._db.commit()
        return int(cursor.rowcount)

    # ------------------------------------------------------------------
    # Phone codes
    # ------------------------------------------------------------------

    def insert_phone_code(self, record: dict[str, Any]) -> None:
        """
        Insert a phone code and its issuance row atomically.

        Earlier codes for the user stay in place until
        ``discard_other_phone_codes`` runs, so a code that was never
        delivered does not cost the user a still-valid one.
        """
        self._insert_with_issuance("phone_verifications", self._PHONE_COLUMNS, record, "phone")

    def discard_other_phone_codes(self, user_id: str, keep_verification_id: str) -> int:
        """Delete every code for ``user_id`` except ``keep_verification_id``."""
        with self._lock:
            cursor = self._db.execute(
                "DELETE FROM phone_verifications WHERE user_id = ? AND verification_id != ?",
                (user_id, keep_verification_id),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def find_active_phone_code(self, user_id: str, now: str) -> dict[str, Any] | None:
        """Fetch the newest unexpired code for ``user_id``."""
        with self._lock:
            row = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._PHONE_COLUMNS)
                + " FROM phone_verifications WHERE user_id = ? AND expires_at > ? "
                "ORDER BY created_at DESC LIMIT 1",
                (user_id, now),
            ).fetchone()
        if row is None:
            return None
        return {column: row[column] for column in self._PHONE_COLUMNS}

    def increment_phone_attempts(self, verification_id: str) -> int:
        """Increment the attempt counter and return the new value (0 if gone)."""
        with self._lock:
            self._db.execute(
                "UPDATE phone_verifications SET attempts = attempts + 1 "
                "WHERE verification_id = ?",
                (verification_id,),
            )
            self._db.commit()
            row = self._db.execute(
                "SELECT attempts FROM phone_verifications WHERE verification_id = ?",
                (verification_id,),
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def delete_phone_code(self, verification_id: str) -> int:
        with self._lock:
            cursor = self._db.execute(
                "DELETE FROM phone_verifications WHERE verification_id = ?",
                (verification_id,),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def delete_expired_phone_codes(self, now: str) -> int:
        with self._lock:
            cursor = self._db.execute(
                "DELETE FROM phone_verifications WHERE expires_at < ?",
                (now,),
            )
            self._db.commit()
        return int(cursor.rowcount)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def insert_document(self, record: dict[str, Any]) -> None:
        """Insert a PENDING document verification."""
        placeholders = ", ".join("?" for _ in self._DOCUMENT_COLUMNS)
        with self._lock:
            try:
                self._db.execute(
                    "INSERT INTO document_verifications ("  # nosec B608
                    + ", ".join(self._DOCUMENT_COLUMNS)
                    + ") VALUES ("
                    + placeholders
                    + ")",
                    tuple(record[column] for column in self._DOCUMENT_COLUMNS),
                )
                self._db.commit()
            except sqlite3.IntegrityError as exc:
                self._db.rollback()
                if "unique" in str(exc).lower():
                    raise DuplicatePendingDocumentError(
                        f"A {record['document_type']} verification is already pending"
                    ) from exc
                raise

    def get_document(self, verification_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._DOCUMENT_COLUMNS)
                + " FROM document_verifications WHERE verification_id = ?",
                (verification_id,),
            ).fetchone()
        if row is None:
            return None
        return {column: row[column] for column in self._DOCUMENT_COLUMNS}

    def find_pending_document(self, user_id: str, document_type: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._DOCUMENT_COLUMNS)
                + " FROM document_verifications "
                "WHERE user_id = ? AND document_type = ? AND status = 'PENDING'",
                (user_id, document_type),
            ).fetchone()
        if row is None:
            return None
        return {column: row[column] for column in self._DOCUMENT_COLUMNS}

    def list_documents(self, user_id: str) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._DOCUMENT_COLUMNS)
                + " FROM document_verifications WHERE user_id = ? ORDER BY submitted_at",
                (user_id,),
            ).fetchall()
        return [{column: row[column] for column in self._DOCUMENT_COLUMNS} for row in rows]

    def count_verified_documents(self, user_id: str) -> int:
        with self._lock:
            row = self._db.execute(
                "SELECT COUNT(*) FROM document_verifications "
                "WHERE user_id = ? AND status = 'VERIFIED'",
                (user_id,),
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def resolve_document(
        self,
        verification_id: str,
        status: str,
        *,
        reviewed_at: str,
        reviewer_notes: str | None,
    ) -> int:
        """Resolve a PENDING document; returns 0 if it was not PENDING."""
        with self._lock:
            cursor = self._db.execute(
                "UPDATE document_verifications "
                "SET status = ?, reviewed_at = ?, reviewer_notes = ? "
                "WHERE verification_id = ? AND status = 'PENDING'",
                (status, reviewed_at, reviewer_notes, verification_id),
            )
            self._db.commit()
        return int(cursor.rowcount)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
