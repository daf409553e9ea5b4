# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskpulse.cli.bootstrap import create_initial_state
from taskpulse.core.state import AppState
from taskpulse.reminders.reminder_scheduler import ReminderScheduler
from taskpulse.reminders.reminder_store import ReminderStore
from taskpulse.tasks.task_store import TaskStore

from .fakes import FakeNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskpulse-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        db_path=tmp_path / "taskpulse.sqlite3",
        sweep_interval_seconds=0.05,
        default_snooze_minutes=10,
        notification_title="Task Reminder",
    )


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.db_path)


@pytest.fixture()
def reminder_store(settings: SimpleNamespace, task_store: TaskStore) -> ReminderStore:
    # Depends on task_store so the tasks table exists before reminders reference it.
    return ReminderStore(settings.db_path)


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def scheduler(
    task_store: TaskStore,
    reminder_store: ReminderStore,
    notifier: FakeNotifier,
) -> ReminderScheduler:
    return ReminderScheduler(task_store, reminder_store, notifier)


@pytest.fixture()
def state(settings: SimpleNamespace, notifier: FakeNotifier) -> AppState:
    """
    AppState wired through the real composition root with a fake notifier.

    NOTE: We keep real SQLite stores here because their correctness is part
    of what we want to test.
    """
    return create_initial_state(settings=settings, notifier=notifier)
