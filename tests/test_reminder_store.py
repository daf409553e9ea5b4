# tests/test_reminder_store.py

from __future__ import annotations

import sqlite3

import pytest

from taskpulse.reminders.reminder_store import ReminderStore
from taskpulse.tasks.task_store import TaskStore

NOW = 1_700_000_000.0


@pytest.fixture()
def task_id(task_store: TaskStore) -> int:
    return task_store.add_task(title="Pay rent")


def test_add_and_get(reminder_store: ReminderStore, task_id: int) -> None:
    r = reminder_store.add_reminder(task_id, NOW + 60)

    got = reminder_store.get_reminder(r.id)
    assert got is not None
    assert got.task_id == task_id
    assert got.reminder_time == NOW + 60
    assert got.triggered is False
    assert got.snoozed_until is None
    assert reminder_store.get_reminder(r.id + 100) is None


def test_add_for_unknown_task_is_rejected(reminder_store: ReminderStore) -> None:
    with pytest.raises(sqlite3.IntegrityError):
        reminder_store.add_reminder(999, NOW)


def test_pending_and_due_filters(reminder_store: ReminderStore, task_id: int) -> None:
    past = reminder_store.add_reminder(task_id, NOW - 10)
    future = reminder_store.add_reminder(task_id, NOW + 600)
    done = reminder_store.add_reminder(task_id, NOW - 20)
    reminder_store.mark_triggered(done.id)
    held = reminder_store.add_reminder(task_id, NOW - 5)
    reminder_store.update_reminder_fields(held.id, snoozed_until=NOW + 300)

    assert [r.id for r in reminder_store.list_pending(NOW)] == [past.id, future.id]
    assert [r.id for r in reminder_store.list_due(NOW)] == [past.id]

    # Once the snooze runs out the held reminder is due again.
    later = NOW + 301
    assert {r.id for r in reminder_store.list_due(later)} == {past.id, held.id}


def test_mark_triggered_flips_once(reminder_store: ReminderStore, task_id: int) -> None:
    r = reminder_store.add_reminder(task_id, NOW)

    assert reminder_store.mark_triggered(r.id) is True
    assert reminder_store.mark_triggered(r.id) is False
    assert reminder_store.get_reminder(r.id).triggered is True
    assert reminder_store.mark_triggered(r.id + 100) is False


def test_update_fields(reminder_store: ReminderStore, task_id: int) -> None:
    r = reminder_store.add_reminder(task_id, NOW)
    reminder_store.mark_triggered(r.id)

    updated = reminder_store.update_reminder_fields(
        r.id, reminder_time=NOW + 600, triggered=False, snoozed_until=NOW + 600
    )
    assert updated is not None
    assert updated.reminder_time == NOW + 600
    assert updated.triggered is False
    assert updated.snoozed_until == NOW + 600

    cleared = reminder_store.update_reminder_fields(r.id, snoozed_until=None)
    assert cleared.snoozed_until is None
    assert cleared.reminder_time == NOW + 600

    assert reminder_store.update_reminder_fields(r.id + 100, triggered=True) is None


def test_is_due_matches_list_due(reminder_store: ReminderStore, task_id: int) -> None:
    r = reminder_store.add_reminder(task_id, NOW)
    assert r.is_due(NOW) is True
    assert r.is_due(NOW - 1) is False

    held = reminder_store.update_reminder_fields(r.id, snoozed_until=NOW + 60)
    assert held.is_due(NOW) is False
    assert held.is_due(NOW + 60) is True


def test_delete(reminder_store: ReminderStore, task_id: int) -> None:
    a = reminder_store.add_reminder(task_id, NOW)
    reminder_store.add_reminder(task_id, NOW + 1)
    reminder_store.add_reminder(task_id, NOW + 2)

    assert reminder_store.delete_reminder(a.id) is True
    assert reminder_store.delete_reminder(a.id) is False
    assert reminder_store.delete_for_task(task_id) == 2
    assert reminder_store.list_for_task(task_id) == []
