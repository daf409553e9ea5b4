# src/taskpulse/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires stores, notifier and the one ReminderScheduler into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.console_notifier import ConsoleNotifier
from ..core.ports import NotificationSink
from ..core.state import AppState
from ..reminders.reminder_models import ReminderEvent
from ..reminders.reminder_scheduler import ReminderScheduler
from ..reminders.reminder_store import ReminderStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, notifier: NotificationSink | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the notifier) injectable makes the app easier to test and
    avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    # TaskStore first: the reminders table references tasks(id).
    task_store = TaskStore(settings.db_path)
    reminder_store = ReminderStore(settings.db_path)

    if notifier is None:
        notifier = ConsoleNotifier()

    scheduler = ReminderScheduler(
        task_store,
        reminder_store,
        notifier,
        title=str(getattr(settings, "notification_title", "Task Reminder")),
    )

    state = AppState(
        settings=settings,
        task_store=task_store,
        reminder_store=reminder_store,
        notifier=notifier,
        scheduler=scheduler,
    )

    def remember_event(event: ReminderEvent) -> None:
        state.last_event = event

    def open_task(task_id: int) -> None:
        state.opened_task_ids.append(task_id)

    scheduler.add_listener(remember_event)
    scheduler.add_click_handler(open_task)
    return state
