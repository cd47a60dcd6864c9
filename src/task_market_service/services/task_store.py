"""SQLite-backed task, bid and task event storage."""

from __future__ import annotations

import contextlib
import sqlite3
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class _Rollback(Exception):
    """Internal signal that aborts a transaction without surfacing an error."""


class DuplicateTaskError(Exception):
    """Raised when attempting to insert a task with a duplicate task_id."""


class DuplicateBidError(Exception):
    """Raised when a bidder already holds an active bid on the task."""


class TaskStore:
    """SQLite-backed storage for tasks, bids, and task events.

    Task updates are compare-and-swap on the ``version`` column: an update
    only applies when the caller's expected version is still current, and
    every applied update increments it.
    """

    _TASK_COLUMNS: tuple[str, ...] = (
        "task_id",
        "owner_id",
        "title",
        "description",
        "status",
        "priority",
        "budget_amount",
        "budget_type",
        "category",
        "location",
        "deadline",
        "assignee_id",
        "accepted_bid_id",
        "version",
        "created_at",
        "updated_at",
        "completed_at",
        "cancelled_at",
        "disputed_at",
    )
    _BID_COLUMNS: tuple[str, ...] = (
        "bid_id",
        "task_id",
        "bidder_id",
        "amount",
        "message",
        "status",
        "submitted_at",
        "updated_at",
    )
    _EVENT_COLUMNS: tuple[str, ...] = (
        "event_id",
        "task_id",
        "actor_id",
        "from_status",
        "to_status",
        "notes",
        "created_at",
    )
    _MUTABLE_TASK_COLUMNS: frozenset[str] = frozenset(_TASK_COLUMNS) - {
        "task_id",
        "owner_id",
        "version",
        "created_at",
    }

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False, isolation_level=None)
        self._db.row_factory = sqlite3.Row
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'OPEN',
                    priority TEXT NOT NULL DEFAULT 'MEDIUM',
                    budget_amount REAL,
                    budget_type TEXT,
                    category TEXT,
                    location TEXT,
                    deadline TEXT,
                    assignee_id TEXT,
                    accepted_bid_id TEXT,
                    version INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    completed_at TEXT,
                    cancelled_at TEXT,
                    disputed_at TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner_id);
                CREATE INDEX IF NOT EXISTS idx_tasks_assignee_status
                    ON tasks(assignee_id, status);

                CREATE TABLE IF NOT EXISTS bids (
                    bid_id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    bidder_id TEXT NOT NULL,
                    amount REAL NOT NULL,
                    message TEXT,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    submitted_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE UNIQUE INDEX IF NOT EXISTS idx_bids_active_bidder
                    ON bids(task_id, bidder_id) WHERE status IN ('PENDING', 'ACCEPTED');

                CREATE UNIQUE INDEX IF NOT EXISTS idx_bids_single_accepted
                    ON bids(task_id) WHERE status = 'ACCEPTED';

                CREATE TABLE IF NOT EXISTS task_events (
                    event_id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    actor_id TEXT NOT NULL,
                    from_status TEXT,
                    to_status TEXT NOT NULL,
                    notes TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_task_events_task ON task_events(task_id);
                """
            )

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside BEGIN IMMEDIATE, rolling back on any error."""
        with self._lock:
            self._db.execute("BEGIN IMMEDIATE")
            try:
                yield self._db
            except Exception:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise
            self._db.execute("COMMIT")

    def _insert_event(self, db: sqlite3.Connection, event: dict[str, Any]) -> None:
        db.execute(
            "INSERT INTO task_events ("
            + ", ".join(self._EVENT_COLUMNS)
            + ") VALUES (?, ?, ?, ?, ?, ?, ?)",
            tuple(event[column] for column in self._EVENT_COLUMNS),
        )

    def _cas_update(
        self,
        db: sqlite3.Connection,
        task_id: str,
        updates: dict[str, Any],
        expected_version: int,
    ) -> int:
        if any(column not in self._MUTABLE_TASK_COLUMNS for column in updates):
            msg = "Attempted to update unknown or immutable task column"
            raise ValueError(msg)

        set_clause = ", ".join(f"{column} = ?" for column in updates)
        params: list[object] = list(updates.values())
        query = (
            "UPDATE tasks SET "  # nosec B608
            + set_clause
            + ", version = version + 1 WHERE task_id = ? AND version = ?"
        )
        params.extend([task_id, expected_version])
        cursor = db.execute(query, params)
        return int(cursor.rowcount)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def insert_task(self, task_data: dict[str, Any], event: dict[str, Any]) -> None:
        """Insert a new task row together with its creation event."""
        values = tuple(task_data[column] for column in self._TASK_COLUMNS)
        placeholders = ", ".join("?" for _ in self._TASK_COLUMNS)

        try:
            with self._transaction() as db:
                db.execute(
                    "INSERT INTO tasks ("  # nosec B608
                    + ", ".join(self._TASK_COLUMNS)
                    + ") VALUES ("
                    + placeholders
                    + ")",
                    values,
                )
                self._insert_event(db, event)
        except sqlite3.IntegrityError as exc:
            if "unique" in str(exc).lower():
                raise DuplicateTaskError(
                    f"A task with task_id={task_data['task_id']} already exists"
                ) from exc
            raise

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        """Fetch a task by ID."""
        with self._lock:
            row = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._TASK_COLUMNS)
                + " FROM tasks WHERE task_id = ?",
                (task_id,),
            ).fetchone()
        if row is None:
            return None
        return {column: row[column] for column in self._TASK_COLUMNS}

    def update_task(
        self,
        task_id: str,
        updates: dict[str, Any],
        *,
        expected_version: int,
        event: dict[str, Any] | None,
    ) -> int:
        """
        Apply ``updates`` if the task is still at ``expected_version``.

        The optional event row is written in the same transaction.
        Returns the number of affected task rows (0 or 1).
        """
        if len(updates) == 0:
            return 0

        with self._transaction() as db:
            changed = self._cas_update(db, task_id, updates, expected_version)
            if changed == 1 and event is not None:
                self._insert_event(db, event)
        return changed

    def accept_bid(
        self,
        task_id: str,
        bid_id: str,
        task_updates: dict[str, Any],
        *,
        expected_version: int,
        updated_at: str,
        event: dict[str, Any],
    ) -> bool:
        """
        Accept a PENDING bid and assign its task in one transaction.

        Returns False (and changes nothing) if the task version moved or
        the bid is no longer PENDING.
        """
        try:
            with self._transaction() as db:
                if self._cas_update(db, task_id, task_updates, expected_version) != 1:
                    raise _Rollback
                cursor = db.execute(
                    "UPDATE bids SET status = 'ACCEPTED', updated_at = ? "
                    "WHERE bid_id = ? AND task_id = ? AND status = 'PENDING'",
                    (updated_at, bid_id, task_id),
                )
                if cursor.rowcount != 1:
                    raise _Rollback
                self._insert_event(db, event)
        except _Rollback:
            return False
        return True

    def delete_task(self, task_id: str, *, expected_version: int) -> int:
        """Delete a task with its bids and events if still at ``expected_version``."""
        with self._transaction() as db:
            cursor = db.execute(
                "DELETE FROM tasks WHERE task_id = ? AND version = ?",
                (task_id, expected_version),
            )
            deleted = int(cursor.rowcount)
            if deleted == 1:
                db.execute("DELETE FROM bids WHERE task_id = ?", (task_id,))
                db.execute("DELETE FROM task_events WHERE task_id = ?", (task_id,))
        return deleted

    def list_tasks(
        self,
        status: str | None,
        owner_id: str | None,
        assignee_id: str | None,
        limit: int | None,
        offset: int | None,
    ) -> list[dict[str, Any]]:
        """List tasks with optional filters, newest first."""
        query = "SELECT " + ", ".join(self._TASK_COLUMNS) + " FROM tasks"  # nosec B608
        clauses: list[str] = []
        params: list[object] = []

        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if owner_id is not None:
            clauses.append("owner_id = ?")
            params.append(owner_id)
        if assignee_id is not None:
            clauses.append("assignee_id = ?")
            params.append(assignee_id)

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)

        query += " ORDER BY created_at DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
            if offset is not None:
                query += " OFFSET ?"
                params.append(offset)
        elif offset is not None:
            query += " LIMIT -1 OFFSET ?"
            params.append(offset)

        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [{column: row[column] for column in self._TASK_COLUMNS} for row in rows]

    def count_tasks(self) -> int:
        """Count total tasks."""
        with self._lock:
            row = self._db.execute("SELECT COUNT(*) FROM tasks").fetchone()
        return int(row[0]) if row is not None else 0

    def count_tasks_by_status(self) -> dict[str, int]:
        """Count tasks grouped by status."""
        with self._lock:
            rows = self._db.execute("SELECT status, COUNT(*) FROM tasks GROUP BY status").fetchall()
        return {str(row[0]): int(row[1]) for row in rows}

    def count_completed_for_assignee(self, user_id: str) -> int:
        """Count COMPLETED tasks assigned to ``user_id``."""
        with self._lock:
            row = self._db.execute(
                "SELECT COUNT(*) FROM tasks WHERE assignee_id = ? AND status = 'COMPLETED'",
                (user_id,),
            ).fetchone()
        return int(row[0]) if row is not None else 0

    def get_events(self, task_id: str) -> list[dict[str, Any]]:
        """Fetch the status history of a task, oldest first."""
        with self._lock:
            rows = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._EVENT_COLUMNS)
                + " FROM task_events WHERE task_id = ? ORDER BY created_at, rowid",
                (task_id,),
            ).fetchall()
        return [{column: row[column] for column in self._EVENT_COLUMNS} for row in rows]

    # ------------------------------------------------------------------
    # Bids
    # ------------------------------------------------------------------

    def insert_bid(self, bid_data: dict[str, Any]) -> None:
        """Insert a bid; raises DuplicateBidError if the bidder has an active bid."""
        values = tuple(bid_data[column] for column in self._BID_COLUMNS)
        try:
            with self._transaction() as db:
                db.execute(
                    "INSERT INTO bids ("  # nosec B608
                    + ", ".join(self._BID_COLUMNS)
                    + ") VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    values,
                )
        except sqlite3.IntegrityError as exc:
            if "unique" in str(exc).lower():
                raise DuplicateBidError("This user already has an active bid on this task") from exc
            raise

    def get_bid(self, bid_id: str, task_id: str) -> dict[str, Any] | None:
        """Fetch a bid by bid_id and task_id."""
        with self._lock:
            row = self._db.execute(
                "SELECT "  # nosec B608
                + ", ".join(self._BID_COLUMNS)
                + " FROM bids WHERE bid_id = ? AND task_id = ?",
                (bid_id, task_id),
            ).fetchone()
        if row is None:
            return None
        return {column: row[column] for column in self._BID_COLUMNS}

    def get_bids_for_task(self, task_id: str, bidder_id: str | None = None) -> list[dict[str, Any]]:
        """Fetch bids for a task sorted by submission time, optionally for one bidder."""
        query = (
            "SELECT "  # nosec B608
            + ", ".join(self._BID_COLUMNS)
            + " FROM bids WHERE task_id = ?"
        )
        params: list[object] = [task_id]
        if bidder_id is not None:
            query += " AND bidder_id = ?"
            params.append(bidder_id)
        query += " ORDER BY submitted_at, rowid"
        with self._lock:
            rows = self._db.execute(query, params).fetchall()
        return [{column: row[column] for column in self._BID_COLUMNS} for row in rows]

    def update_bid_status(
        self,
        bid_id: str,
        status: str,
        *,
        expected_status: str,
        updated_at: str,
    ) -> int:
        """Move a bid to ``status`` if it is still in ``expected_status``."""
        with self._transaction() as db:
            cursor = db.execute(
                "UPDATE bids SET status = ?, updated_at = ? WHERE bid_id = ? AND status = ?",
                (status, updated_at, bid_id, expected_status),
            )
        return int(cursor.rowcount)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
