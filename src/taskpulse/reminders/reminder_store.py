# src/taskpulse/reminders/reminder_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from .reminder_models import Reminder

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


class ReminderStore:
    """
    SQLite reminder store.

    Lives in the same database file as TaskStore so that deleting a task
    cascades to its reminders (FOREIGN KEY ... ON DELETE CASCADE).
    Each method opens its own SQLite connection.
    """

    def __init__(self, db_path: str | Path = "taskpulse.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_reminders()
        except sqlite3.Error:
            total = -1
        logger.info("ReminderStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    reminder_time REAL NOT NULL,
                    triggered INTEGER NOT NULL DEFAULT 0,
                    snoozed_until REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(reminders)")
            cols = {row["name"] for row in cur.fetchall()}
            if "snoozed_until" not in cols:
                cur.execute("ALTER TABLE reminders ADD COLUMN snoozed_until REAL")
                logger.info("ReminderStore migration: added column snoozed_until")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_pending "
                "ON reminders(triggered, reminder_time)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reminders_task ON reminders(task_id)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=int(row["id"]),
            task_id=int(row["task_id"]),
            reminder_time=float(row["reminder_time"]),
            triggered=bool(row["triggered"]),
            snoozed_until=float(row["snoozed_until"]) if row["snoozed_until"] is not None else None,
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[Reminder]:
        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_reminder(r) for r in rows]
        finally:
            conn.close()

    # ---- public API ----

    def count_reminders(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM reminders").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_reminder(self, task_id: int, reminder_time: float) -> Reminder:
        """Insert a reminder for an existing task (sqlite3.IntegrityError if the task is gone)."""
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO reminders(task_id, reminder_time, triggered, snoozed_until, created_at, updated_at)
                VALUES (?, ?, 0, NULL, ?, ?)
                """,
                (int(task_id), float(reminder_time), now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for reminders insert")
            reminder_id = int(rowid)
        finally:
            conn.close()

        logger.debug("Reminder added id=%s task_id=%s at=%s", reminder_id, task_id, reminder_time)
        return Reminder(
            id=reminder_id,
            task_id=int(task_id),
            reminder_time=float(reminder_time),
            triggered=False,
            snoozed_until=None,
            created_at=now,
            updated_at=now,
        )

    def get_reminder(self, reminder_id: int) -> Reminder | None:
        found = self._query("SELECT * FROM reminders WHERE id = ?", (int(reminder_id),))
        return found[0] if found else None

    def list_for_task(self, task_id: int) -> list[Reminder]:
        return self._query(
            "SELECT * FROM reminders WHERE task_id = ? ORDER BY reminder_time ASC",
            (int(task_id),),
        )

    def list_pending(self, now_ts: float) -> list[Reminder]:
        """
        Reminders to (re)schedule at startup.

        Untriggered, and either never snoozed or the snooze has run out.
        Future fire times are included; the scheduler arms timers for them.
        """
        return self._query(
            """
            SELECT *
            FROM reminders
            WHERE triggered = 0
              AND (snoozed_until IS NULL OR snoozed_until <= ?)
            ORDER BY reminder_time ASC
            """,
            (float(now_ts),),
        )

    def list_due(self, now_ts: float) -> list[Reminder]:
        """Reminders that should already have fired (used by the fallback sweep)."""
        return self._query(
            """
            SELECT *
            FROM reminders
            WHERE triggered = 0
              AND reminder_time <= ?
              AND (snoozed_until IS NULL OR snoozed_until <= ?)
            ORDER BY reminder_time ASC
            """,
            (float(now_ts), float(now_ts)),
        )

    def update_reminder_fields(
        self,
        reminder_id: int,
        *,
        reminder_time: float | None = None,
        triggered: bool | None = None,
        snoozed_until: float | None = UNSET,
    ) -> Reminder | None:
        """Update selected columns and return the fresh row (None if it does not exist)."""
        fields: list[str] = []
        params: list[Any] = []

        if reminder_time is not None:
            fields.append("reminder_time = ?")
            params.append(float(reminder_time))

        if triggered is not None:
            fields.append("triggered = ?")
            params.append(1 if triggered else 0)

        if snoozed_until is not UNSET:
            fields.append("snoozed_until = ?")
            params.append(float(snoozed_until) if snoozed_until is not None else None)

        if fields:
            fields.append("updated_at = ?")
            params.append(time.time())
            params.append(int(reminder_id))

            conn = self._get_conn()
            try:
                conn.execute(f"UPDATE reminders SET {', '.join(fields)} WHERE id = ?", params)
                conn.commit()
            finally:
                conn.close()

        return self.get_reminder(reminder_id)

    def mark_triggered(self, reminder_id: int) -> bool:
        """
        Flip triggered 0 -> 1.

        Returns True only for the caller that performed the transition.
        """
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE reminders SET triggered = 1, updated_at = ? WHERE id = ? AND triggered = 0",
                (time.time(), int(reminder_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_reminder(self, reminder_id: int) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM reminders WHERE id = ?", (int(reminder_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_for_task(self, task_id: int) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM reminders WHERE task_id = ?", (int(task_id),))
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()
