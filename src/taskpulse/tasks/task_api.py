# src/taskpulse/tasks/task_api.py

from __future__ import annotations

import logging
import time
from datetime import date

from ..core.state import AppState
from ..reminders.reminder_models import Reminder
from .completion import CompletionResult, complete_recurring_task

logger = logging.getLogger(__name__)


def complete_task(state: AppState, task_id: int, *, today: date | None = None) -> CompletionResult | None:
    """
    Convenience helper: complete a task via state.task_store.

    Pending reminders of the completed task are left in place; they are
    suppressed at delivery time because the task is completed by then.
    """
    if today is None:
        return complete_recurring_task(state.task_store, task_id)
    return complete_recurring_task(state.task_store, task_id, today=lambda: today)


async def remind_in(state: AppState, task_id: int, *, run_after_minutes: float) -> Reminder | None:
    """Convenience helper: remind about a task `run_after_minutes` from now."""
    reminder_time = time.time() + max(0.0, float(run_after_minutes)) * 60
    return await state.scheduler.add_and_schedule_reminder(task_id, reminder_time)


async def delete_task(state: AppState, task_id: int) -> bool:
    """
    Delete a task together with its reminders.

    Jobs are cancelled first so no timer can fire for a row that is going away.
    """
    if state.task_store.get_task(task_id) is None:
        return False

    cancelled = state.scheduler.cancel_for_task(task_id)
    removed = state.reminder_store.delete_for_task(task_id)
    deleted = state.task_store.delete_task(task_id)

    logger.info(
        "Task %s deleted (reminders removed=%s, jobs cancelled=%s)",
        task_id,
        removed,
        cancelled,
    )
    return deleted
