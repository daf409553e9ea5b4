# tests/test_task_store.py

from __future__ import annotations

import sqlite3
import time
from datetime import date
from pathlib import Path

import pytest

from taskpulse.reminders.reminder_store import ReminderStore
from taskpulse.tasks.task_models import Priority, RecurrencePattern, RegenerateMode
from taskpulse.tasks.task_store import UNSET, TaskStore


def test_add_and_get_round_trip(task_store: TaskStore) -> None:
    task_id = task_store.add_task(
        title="  Water plants ",
        list_id=7,
        description="balcony",
        due_date=date(2024, 1, 10),
        due_time="08:30",
        priority=Priority.HIGH,
        recurrence_pattern=RecurrencePattern.WEEKLY,
        recurrence_interval=2,
        recurrence_weekdays=[5, 1, 3, 3],
        recurrence_end_date=date(2024, 6, 30),
        regenerate_mode=RegenerateMode.FIXED_SCHEDULE,
    )

    task = task_store.get_task(task_id)
    assert task is not None
    assert task.title == "Water plants"
    assert task.list_id == 7
    assert task.due_date == date(2024, 1, 10)
    assert task.due_time == "08:30"
    assert task.priority == Priority.HIGH
    assert task.recurrence_pattern == RecurrencePattern.WEEKLY
    assert task.recurrence_interval == 2
    assert task.recurrence_weekdays == (1, 3, 5)
    assert task.recurrence_end_date == date(2024, 6, 30)
    assert task.regenerate_mode == RegenerateMode.FIXED_SCHEDULE
    assert task.completed is False
    assert task.completed_at is None
    assert task.is_recurring


def test_add_task_validates_input(task_store: TaskStore) -> None:
    with pytest.raises(ValueError):
        task_store.add_task(title="   ")
    with pytest.raises(ValueError):
        task_store.add_task(title="x", recurrence_interval=0)
    with pytest.raises(ValueError):
        task_store.add_task(title="x", recurrence_pattern="hourly")
    assert task_store.count_tasks() == 0


def test_positions_append_per_list(task_store: TaskStore) -> None:
    a = task_store.add_task(title="a", list_id=1)
    b = task_store.add_task(title="b", list_id=1)
    c = task_store.add_task(title="c", list_id=2)
    d = task_store.add_task(title="d")

    assert [task_store.get_task(i).position for i in (a, b, c, d)] == [0, 1, 0, 0]
    assert task_store.next_position(1) == 2
    assert task_store.next_position(None) == 1


def test_update_fields_leaves_unset_columns_alone(task_store: TaskStore) -> None:
    task_id = task_store.add_task(title="x", due_date=date(2024, 1, 1), due_time="09:00")

    assert task_store.update_task_fields(task_id, priority="low") is True
    task = task_store.get_task(task_id)
    assert task.due_date == date(2024, 1, 1)
    assert task.due_time == "09:00"
    assert task.priority == Priority.LOW

    assert task_store.update_task_fields(task_id, due_date=date(2024, 2, 2), due_time=UNSET) is True
    assert task_store.get_task(task_id).due_time == "09:00"

    assert task_store.update_task_fields(task_id, due_date=None, due_time=None) is True
    task = task_store.get_task(task_id)
    assert task.due_date is None
    assert task.due_time is None

    assert task_store.update_task_fields(999, title="nope") is False
    with pytest.raises(ValueError):
        task_store.update_task_fields(task_id, recurrence_interval=0)


def test_mark_completed_only_transitions_once(task_store: TaskStore) -> None:
    task_id = task_store.add_task(title="x")

    assert task_store.mark_completed(task_id, 100.0) is True
    assert task_store.mark_completed(task_id, 200.0) is False

    task = task_store.get_task(task_id)
    assert task.completed is True
    assert task.completed_at == 100.0
    assert task_store.list_open_tasks() == []
    assert task_store.mark_completed(12345) is False


def test_tags_are_normalized_and_copied(task_store: TaskStore) -> None:
    src = task_store.add_task(title="src")
    dst = task_store.add_task(title="dst")

    assert task_store.add_tags(src, ["Home", "errands", "home", " "]) == ["errands", "home"]
    assert task_store.copy_tags(src, dst) == 2
    assert task_store.list_tags(dst) == ["errands", "home"]
    # Copying again does not duplicate links.
    assert task_store.copy_tags(src, dst) == 0
    assert task_store.list_tags(src) == ["errands", "home"]
    assert task_store.get_task(dst).tags == ("errands", "home")


def test_transaction_rolls_back_every_write(task_store: TaskStore) -> None:
    task_id = task_store.add_task(title="x")

    with pytest.raises(RuntimeError):
        with task_store.transaction():
            task_store.mark_completed(task_id)
            task_store.add_task(title="clone")
            raise RuntimeError("boom")

    assert task_store.get_task(task_id).completed is False
    assert task_store.count_tasks() == 1


def test_transaction_commits_as_a_unit(task_store: TaskStore) -> None:
    task_id = task_store.add_task(title="x")

    with task_store.transaction():
        task_store.mark_completed(task_id)
        with task_store.transaction():
            new_id = task_store.add_task(title="clone")

    assert task_store.get_task(task_id).completed is True
    assert task_store.get_task(new_id) is not None


def test_delete_cascades_to_tags_and_reminders(task_store: TaskStore, reminder_store: ReminderStore) -> None:
    task_id = task_store.add_task(title="x")
    task_store.add_tags(task_id, ["a"])
    reminder = reminder_store.add_reminder(task_id, time.time() + 60)

    assert task_store.delete_task(task_id) is True
    assert task_store.get_task(task_id) is None
    assert task_store.list_tags(task_id) == []
    assert reminder_store.get_reminder(reminder.id) is None
    assert task_store.delete_task(task_id) is False


def test_migrates_database_without_recurrence_columns(tmp_path: Path) -> None:
    db_path = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(db_path)
    conn.execute(
        """
        CREATE TABLE tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            list_id INTEGER,
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            due_date TEXT,
            due_time TEXT,
            priority TEXT NOT NULL DEFAULT 'none',
            completed INTEGER NOT NULL DEFAULT 0,
            completed_at REAL,
            created_at REAL NOT NULL,
            updated_at REAL NOT NULL
        )
        """
    )
    conn.execute(
        "INSERT INTO tasks(title, due_date, created_at, updated_at) VALUES ('legacy', '2023-05-01', 1, 1)"
    )
    conn.commit()
    conn.close()

    store = TaskStore(db_path)

    task = store.get_task(1)
    assert task is not None
    assert task.title == "legacy"
    assert task.due_date == date(2023, 5, 1)
    assert task.recurrence_pattern == RecurrencePattern.NONE
    assert task.recurrence_interval == 1
    assert task.recurrence_weekdays == ()
    assert task.regenerate_mode == RegenerateMode.ON_COMPLETION

    new_id = store.add_task(title="new", recurrence_pattern="daily", due_date=date(2024, 1, 1))
    assert store.get_task(new_id).recurrence_pattern == RecurrencePattern.DAILY


def test_stores_hold_no_connection_between_calls(settings, task_store: TaskStore, reminder_store: ReminderStore) -> None:
    with task_store.transaction():
        task_id = task_store.add_task(title="x")
    reminder_store.add_reminder(task_id, time.time())

    # Nothing to close at shutdown: every call opened and released its own connection.
    assert task_store._tx_conn is None
    assert not hasattr(task_store, "close")
    assert not hasattr(reminder_store, "close")

    other = TaskStore(settings.db_path)
    assert other.get_task(task_id).title == "x"
