# src/taskpulse/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..reminders.reminder_models import ReminderEvent
from ..reminders.reminder_scheduler import ReminderScheduler
from ..reminders.reminder_store import ReminderStore
from ..tasks.task_store import TaskStore
from .ports import NotificationSink

if TYPE_CHECKING:
    from ..cli.service import ReminderServiceRunner


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskStore
    reminder_store: ReminderStore
    notifier: NotificationSink
    scheduler: ReminderScheduler

    # Set by cli.main once the reminder loop thread is up.
    runner: ReminderServiceRunner | None = None

    # Most recent shown reminder (target of /snooze and /open without arguments).
    last_event: ReminderEvent | None = None

    # Tasks opened by clicking a notification (most recent last).
    opened_task_ids: list[int] = field(default_factory=list)
