# src/taskpulse/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator
from datetime import date
from pathlib import Path
from typing import Any

from .task_models import Priority, RecurrencePattern, RegenerateMode, Task

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# "Leave this column alone" marker for update_task_fields (None means "set NULL").
UNSET: Any = _Unset()


class TaskStore:
    """
    SQLite task store (tasks, tags, task_tags).

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Connections:
    - each method opens its own short-lived SQLite connection
    - inside `with store.transaction():` every call shares one connection and
      all writes commit or roll back together
    """

    def __init__(self, db_path: str | Path = "taskpulse.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._tx_conn: sqlite3.Connection | None = None
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Yield the open transaction connection, or a fresh auto-committing one."""
        if self._tx_conn is not None:
            yield self._tx_conn
            return

        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Group several store calls into one atomic unit.

        Nested use joins the outer transaction.
        """
        if self._tx_conn is not None:
            yield
            return

        conn = self._get_conn()
        self._tx_conn = conn
        try:
            yield
            conn.commit()
        except BaseException:
            conn.rollback()
            logger.warning("TaskStore transaction rolled back db=%s", self._db_path)
            raise
        finally:
            self._tx_conn = None
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    list_id INTEGER,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    notes TEXT NOT NULL DEFAULT '',
                    due_date TEXT,
                    due_time TEXT,
                    priority TEXT NOT NULL DEFAULT 'none',
                    completed INTEGER NOT NULL DEFAULT 0,
                    completed_at REAL,
                    position INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    recurrence_pattern TEXT NOT NULL DEFAULT 'none',
                    recurrence_interval INTEGER NOT NULL DEFAULT 1,
                    recurrence_weekdays TEXT NOT NULL DEFAULT '[]',
                    recurrence_end_date TEXT,
                    regenerate_mode TEXT NOT NULL DEFAULT 'on_completion'
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            # Databases created before recurrence support lack these.
            add_col("notes", "TEXT NOT NULL DEFAULT ''")
            add_col("position", "INTEGER NOT NULL DEFAULT 0")
            add_col("recurrence_pattern", "TEXT NOT NULL DEFAULT 'none'")
            add_col("recurrence_interval", "INTEGER NOT NULL DEFAULT 1")
            add_col("recurrence_weekdays", "TEXT NOT NULL DEFAULT '[]'")
            add_col("recurrence_end_date", "TEXT")
            add_col("regenerate_mode", "TEXT NOT NULL DEFAULT 'on_completion'")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tags (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS task_tags (
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                    created_at REAL NOT NULL,
                    PRIMARY KEY (task_id, tag_id)
                )
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_list_pos ON tasks(list_id, position)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_completed ON tasks(completed)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_task_tags_task ON task_tags(task_id)")

    @staticmethod
    def _date_to_str(d: date | None) -> str | None:
        return d.isoformat() if d is not None else None

    @staticmethod
    def _str_to_date(s: str | None) -> date | None:
        if not s:
            return None
        try:
            return date.fromisoformat(s[:10])
        except ValueError:
            logger.warning("Unparseable stored date %r; treating as NULL", s)
            return None

    @staticmethod
    def _weekdays_to_str(weekdays: Iterable[int] | None) -> str:
        if not weekdays:
            return "[]"
        return json.dumps(sorted({int(w) for w in weekdays if 0 <= int(w) <= 6}))

    @staticmethod
    def _str_to_weekdays(s: str | None) -> tuple[int, ...]:
        if not s:
            return ()
        try:
            val = json.loads(s)
        except ValueError:
            return ()
        if not isinstance(val, list):
            return ()
        return tuple(sorted({int(v) for v in val if isinstance(v, int) and 0 <= v <= 6}))

    def _row_to_task(self, row: sqlite3.Row, tags: Iterable[str] = ()) -> Task:
        return Task(
            id=int(row["id"]),
            list_id=int(row["list_id"]) if row["list_id"] is not None else None,
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            notes=str(row["notes"] or ""),
            due_date=self._str_to_date(row["due_date"]),
            due_time=row["due_time"],
            priority=Priority.from_db(row["priority"]),
            completed=bool(row["completed"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            position=int(row["position"] or 0),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            recurrence_pattern=RecurrencePattern.from_db(row["recurrence_pattern"]),
            recurrence_interval=int(row["recurrence_interval"] or 1),
            recurrence_weekdays=self._str_to_weekdays(row["recurrence_weekdays"]),
            recurrence_end_date=self._str_to_date(row["recurrence_end_date"]),
            regenerate_mode=RegenerateMode.from_db(row["regenerate_mode"]),
            tags=tuple(tags),
        )

    @staticmethod
    def _tags_for(conn: sqlite3.Connection, task_id: int) -> list[str]:
        cur = conn.execute(
            """
            SELECT g.name
            FROM task_tags tt
            JOIN tags g ON g.id = tt.tag_id
            WHERE tt.task_id = ?
            ORDER BY g.name ASC
            """,
            (int(task_id),),
        )
        return [str(r["name"]) for r in cur.fetchall()]

    @staticmethod
    def _next_position(conn: sqlite3.Connection, list_id: int | None) -> int:
        cur = conn.execute(
            "SELECT COALESCE(MAX(position), -1) FROM tasks WHERE list_id IS ?",
            (list_id,),
        )
        (max_pos,) = cur.fetchone()
        return int(max_pos) + 1

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._session() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def next_position(self, list_id: int | None) -> int:
        """Position that appends a task at the end of its list."""
        with self._session() as conn:
            return self._next_position(conn, list_id)

    def add_task(
        self,
        *,
        title: str,
        list_id: int | None = None,
        description: str = "",
        notes: str = "",
        due_date: date | None = None,
        due_time: str | None = None,
        priority: Priority | str = Priority.NONE,
        recurrence_pattern: RecurrencePattern | str = RecurrencePattern.NONE,
        recurrence_interval: int = 1,
        recurrence_weekdays: Iterable[int] | None = None,
        recurrence_end_date: date | None = None,
        regenerate_mode: RegenerateMode | str = RegenerateMode.ON_COMPLETION,
        position: int | None = None,
    ) -> int:
        if not title or not title.strip():
            raise ValueError("title is required")
        if int(recurrence_interval) < 1:
            raise ValueError("recurrence_interval must be >= 1")

        pattern = RecurrencePattern(recurrence_pattern)
        mode = RegenerateMode(regenerate_mode)
        prio = Priority(priority)
        now = time.time()

        with self._session() as conn:
            if position is None:
                position = self._next_position(conn, list_id)

            cur = conn.execute(
                """
                INSERT INTO tasks(
                    list_id, title, description, notes,
                    due_date, due_time, priority,
                    completed, completed_at, position, created_at, updated_at,
                    recurrence_pattern, recurrence_interval, recurrence_weekdays,
                    recurrence_end_date, regenerate_mode
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, 0, NULL, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    list_id,
                    title.strip(),
                    description or "",
                    notes or "",
                    self._date_to_str(due_date),
                    due_time,
                    prio.value,
                    int(position),
                    now,
                    now,
                    pattern.value,
                    int(recurrence_interval),
                    self._weekdays_to_str(recurrence_weekdays),
                    self._date_to_str(recurrence_end_date),
                    mode.value,
                ),
            )
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)

        logger.debug(
            "Task added id=%s pattern=%s due_date=%s position=%s",
            task_id,
            pattern.value,
            due_date,
            position,
        )
        return task_id

    def get_task(self, task_id: int) -> Task | None:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            if row is None:
                return None
            return self._row_to_task(row, self._tags_for(conn, int(task_id)))

    def list_open_tasks(self, limit: int = 50) -> list[Task]:
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE completed = 0
                ORDER BY due_date IS NULL, due_date ASC, position ASC
                    LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [self._row_to_task(r, self._tags_for(conn, int(r["id"]))) for r in rows]

    def update_task_fields(
        self,
        task_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        notes: str | None = None,
        due_date: date | None = UNSET,
        due_time: str | None = UNSET,
        priority: Priority | str | None = None,
        recurrence_pattern: RecurrencePattern | str | None = None,
        recurrence_interval: int | None = None,
        recurrence_weekdays: Iterable[int] | None = None,
        recurrence_end_date: date | None = UNSET,
        regenerate_mode: RegenerateMode | str | None = None,
        position: int | None = None,
    ) -> bool:
        """Update selected columns. Returns False if the task does not exist."""
        fields: list[str] = []
        params: list[Any] = []

        if title is not None:
            if not title.strip():
                raise ValueError("title must not be empty")
            fields.append("title = ?")
            params.append(title.strip())

        if description is not None:
            fields.append("description = ?")
            params.append(description)

        if notes is not None:
            fields.append("notes = ?")
            params.append(notes)

        if due_date is not UNSET:
            fields.append("due_date = ?")
            params.append(self._date_to_str(due_date))

        if due_time is not UNSET:
            fields.append("due_time = ?")
            params.append(due_time)

        if priority is not None:
            fields.append("priority = ?")
            params.append(Priority(priority).value)

        if recurrence_pattern is not None:
            fields.append("recurrence_pattern = ?")
            params.append(RecurrencePattern(recurrence_pattern).value)

        if recurrence_interval is not None:
            if int(recurrence_interval) < 1:
                raise ValueError("recurrence_interval must be >= 1")
            fields.append("recurrence_interval = ?")
            params.append(int(recurrence_interval))

        if recurrence_weekdays is not None:
            fields.append("recurrence_weekdays = ?")
            params.append(self._weekdays_to_str(recurrence_weekdays))

        if recurrence_end_date is not UNSET:
            fields.append("recurrence_end_date = ?")
            params.append(self._date_to_str(recurrence_end_date))

        if regenerate_mode is not None:
            fields.append("regenerate_mode = ?")
            params.append(RegenerateMode(regenerate_mode).value)

        if position is not None:
            fields.append("position = ?")
            params.append(int(position))

        if not fields:
            return self.get_task(task_id) is not None

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(task_id))

        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"

        with self._session() as conn:
            cur = conn.execute(sql, params)
            return cur.rowcount == 1

    def mark_completed(self, task_id: int, completed_at: float | None = None) -> bool:
        """
        Transition an open task to completed.

        Returns True only for the caller that performed the transition;
        an already-completed or missing task returns False.
        """
        if completed_at is None:
            completed_at = time.time()

        with self._session() as conn:
            cur = conn.execute(
                """
                UPDATE tasks
                SET completed = 1, completed_at = ?, updated_at = ?
                WHERE id = ?
                  AND completed = 0
                """,
                (float(completed_at), float(completed_at), int(task_id)),
            )
            return cur.rowcount == 1

    def delete_task(self, task_id: int) -> bool:
        """Delete a task; tag links and reminders go with it (ON DELETE CASCADE)."""
        with self._session() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            deleted = cur.rowcount == 1
        if deleted:
            logger.debug("Task deleted id=%s", task_id)
        return deleted

    # ---- tags ----

    def add_tags(self, task_id: int, names: Iterable[str]) -> list[str]:
        """Attach tags (created on first use) to a task. Returns the task's full tag list."""
        clean = [n.strip().lower() for n in names if n and n.strip()]
        now = time.time()

        with self._session() as conn:
            for name in clean:
                conn.execute(
                    "INSERT OR IGNORE INTO tags(name, created_at) VALUES (?, ?)",
                    (name, now),
                )
                conn.execute(
                    """
                    INSERT OR IGNORE INTO task_tags(task_id, tag_id, created_at)
                    SELECT ?, id, ? FROM tags WHERE name = ?
                    """,
                    (int(task_id), now, name),
                )
            return self._tags_for(conn, int(task_id))

    def list_tags(self, task_id: int) -> list[str]:
        with self._session() as conn:
            return self._tags_for(conn, int(task_id))

    def copy_tags(self, from_task_id: int, to_task_id: int) -> int:
        """Copy every tag link of one task onto another (the source keeps its links)."""
        with self._session() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO task_tags(task_id, tag_id, created_at)
                SELECT ?, tag_id, ?
                FROM task_tags
                WHERE task_id = ?
                """,
                (int(to_task_id), time.time(), int(from_task_id)),
            )
            return int(cur.rowcount)
