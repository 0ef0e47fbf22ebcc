# src/taskbuddy/storage/sqlite_gateway.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import Any

from ..tasks.task_models import id_timestamp_ms

logger = logging.getLogger(__name__)

_TASK_COLUMNS = (
    "id",
    "owner",
    "text",
    "is_completed",
    "completed_at",
    "due_date",
    "priority",
    "type",
    "category",
    "custom_notification_time",
    "reminders",
    "created_at",
)

_MESSAGE_COLUMNS = ("id", "owner", "role", "text", "timestamp")


class SqliteGateway:
    """
    SQLite persistence gateway (tasks + conversation messages).

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection (writes run in worker threads)
    """

    def __init__(self, db_path: str | Path = "taskbuddy.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SqliteGateway ready db=%s", self._db_path)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    text TEXT NOT NULL DEFAULT '',
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    role TEXT NOT NULL,
                    text TEXT NOT NULL DEFAULT ''
                )
                """
            )

            def add_col(table: str, name: str, decl: str) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                logger.info("SqliteGateway migration: added %s.%s", table, name)

            # Columns added after the first schema; old DBs get them here.
            add_col("tasks", "completed_at", "TEXT")
            add_col("tasks", "due_date", "TEXT")
            add_col("tasks", "priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col("tasks", "type", "TEXT NOT NULL DEFAULT 'Other'")
            add_col("tasks", "category", "TEXT")
            add_col("tasks", "custom_notification_time", "TEXT")
            add_col("tasks", "reminders", "TEXT NOT NULL DEFAULT '[]'")
            add_col("messages", "timestamp", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks(owner)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_messages_owner ON messages(owner)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _upsert(conn: sqlite3.Connection, table: str, columns: tuple[str, ...], record: dict[str, Any]) -> None:
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
        conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
            f"ON CONFLICT(id) DO UPDATE SET {updates}",
            tuple(record.get(c) for c in columns),
        )

    # ---- tasks ----

    def put_task(self, record: dict[str, Any]) -> None:
        rec = dict(record)
        rec["is_completed"] = 1 if rec.get("is_completed") else 0
        conn = self._get_conn()
        try:
            self._upsert(conn, "tasks", _TASK_COLUMNS, rec)
            conn.commit()
            logger.debug("put_task id=%s", rec.get("id"))
        finally:
            conn.close()

    def delete_task(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
            logger.debug("delete_task id=%s", task_id)
        finally:
            conn.close()

    def get_all_tasks(self, owner: str) -> list[dict[str, Any]]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE owner = ? ORDER BY rowid ASC", (owner,))
            out: list[dict[str, Any]] = []
            for row in cur.fetchall():
                rec = {c: row[c] for c in row.keys()}
                rec["is_completed"] = bool(rec.get("is_completed"))
                out.append(rec)
            return out
        finally:
            conn.close()

    # ---- messages ----

    def put_message(self, record: dict[str, Any]) -> None:
        conn = self._get_conn()
        try:
            self._upsert(conn, "messages", _MESSAGE_COLUMNS, record)
            conn.commit()
        finally:
            conn.close()

    def get_all_messages(self, owner: str) -> list[dict[str, Any]]:
        """Ordered by the millisecond timestamp embedded in the message id."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM messages WHERE owner = ?", (owner,))
            rows = [{c: row[c] for c in row.keys()} for row in cur.fetchall()]
        finally:
            conn.close()
        rows.sort(key=lambda r: id_timestamp_ms(str(r.get("id", ""))))
        return rows
