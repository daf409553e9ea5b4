# src/taskpulse/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage and notification backends swappable and makes testing easier.
"""

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Awaitable, Protocol

from ..reminders.reminder_models import Reminder, Urgency
from ..tasks.task_models import Task

Clock = Callable[[], float]
# Wall-clock source in epoch seconds (time.time by default).

ClickHandler = Callable[[], None]


class NotificationHandle(Protocol):
    """A notification that has been shown and may be clicked later."""

    def on_click(self, handler: ClickHandler) -> None: ...


class NotificationSink(Protocol):
    """
    Output port for reminders.

    The sink decides how a notification looks (console line, desktop popup, ...).
    Awaiting show() is a suspension point for the scheduler.
    """

    def show(self, title: str, body: str, urgency: Urgency) -> Awaitable[NotificationHandle]: ...


class TaskRepo(Protocol):
    # Reads
    def get_task(self, task_id: int) -> Task | None: ...
    def next_position(self, list_id: int | None) -> int: ...

    # Completion workflow
    def mark_completed(self, task_id: int, completed_at: float | None = None) -> bool: ...
    def update_task_fields(self, task_id: int, **fields: Any) -> bool: ...
    def add_task(
            self,
            *,
            title: str,
            list_id: int | None = None,
            description: str = "",
            notes: str = "",
            due_date: date | None = None,
            due_time: str | None = None,
            priority: Any = None,  # Priority (kept as Any to avoid import coupling)
            recurrence_pattern: Any = None,
            recurrence_interval: int = 1,
            recurrence_weekdays: Iterable[int] | None = None,
            recurrence_end_date: date | None = None,
            regenerate_mode: Any = None,
            position: int | None = None,
    ) -> int: ...
    def copy_tags(self, from_task_id: int, to_task_id: int) -> int: ...
    def transaction(self) -> AbstractContextManager[None]: ...

    # Cascade delete
    def delete_task(self, task_id: int) -> bool: ...


class ReminderRepo(Protocol):
    def add_reminder(self, task_id: int, reminder_time: float) -> Reminder: ...
    def get_reminder(self, reminder_id: int) -> Reminder | None: ...
    def list_for_task(self, task_id: int) -> list[Reminder]: ...

    # Scheduler API
    def list_pending(self, now_ts: float) -> list[Reminder]: ...
    def list_due(self, now_ts: float) -> list[Reminder]: ...
    def mark_triggered(self, reminder_id: int) -> bool: ...
    def update_reminder_fields(
            self,
            reminder_id: int,
            *,
            reminder_time: float | None = None,
            triggered: bool | None = None,
            snoozed_until: float | None = ...,
    ) -> Reminder | None: ...
    def delete_reminder(self, reminder_id: int) -> bool: ...
    def delete_for_task(self, task_id: int) -> int: ...
