# src/taskpulse/tasks/completion.py

from __future__ import annotations

"""
Task completion workflow.

Completing a repeating task never rewinds it: the instance becomes Completed for good
and the series continues through a freshly created clone with the next due date.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from ..core.ports import Clock, TaskRepo
from .recurrence import calculate_next_due_date
from .task_models import Task

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CompletionResult:
    completed_task: Task
    next_task: Task | None


def next_due_date_for(task: Task, *, today: Callable[[], date] = date.today) -> date | None:
    """
    Next due date of a series, honouring recurrence_end_date.

    None means the series ends with this instance.
    """
    if not task.is_recurring:
        return None

    next_due = calculate_next_due_date(
        task.due_date,
        task.recurrence_pattern,
        task.recurrence_interval,
        task.recurrence_weekdays,
        task.regenerate_mode,
        today=today,
    )
    if next_due is None:
        return None

    if task.recurrence_end_date is not None and next_due > task.recurrence_end_date:
        logger.info(
            "Task %s: series ends (next %s is past end date %s)",
            task.id,
            next_due,
            task.recurrence_end_date,
        )
        return None

    return next_due


def _spawn_next(task_store: TaskRepo, completed: Task, due_date: date) -> int:
    new_id = task_store.add_task(
        title=completed.title,
        list_id=completed.list_id,
        description=completed.description,
        notes=completed.notes,
        due_date=due_date,
        due_time=completed.due_time,
        priority=completed.priority,
        recurrence_pattern=completed.recurrence_pattern,
        recurrence_interval=completed.recurrence_interval,
        recurrence_weekdays=completed.recurrence_weekdays,
        recurrence_end_date=completed.recurrence_end_date,
        regenerate_mode=completed.regenerate_mode,
        position=task_store.next_position(completed.list_id),
    )
    task_store.copy_tags(completed.id, new_id)
    return new_id


def complete_recurring_task(
    task_store: TaskRepo,
    task_id: int,
    *,
    today: Callable[[], date] = date.today,
    clock: Clock = time.time,
) -> CompletionResult | None:
    """
    Mark a task completed and, for a repeating task, create its next instance.

    - Unknown task -> None.
    - Already completed -> the task as-is and next_task=None (no second successor).
    - Mark-complete, clone and tag copy commit together or not at all;
      store errors propagate to the caller.
    """
    task = task_store.get_task(task_id)
    if task is None:
        logger.debug("complete_recurring_task: task %s not found", task_id)
        return None

    if task.completed:
        logger.info("Task %s already completed; nothing to do", task_id)
        return CompletionResult(completed_task=task, next_task=None)

    # Compute from the pre-completion snapshot; completion does not touch recurrence fields.
    next_due = next_due_date_for(task, today=today)

    with task_store.transaction():
        if not task_store.mark_completed(task.id, clock()):
            # Lost a race against another completion of the same instance.
            current = task_store.get_task(task.id)
            if current is None:
                return None
            return CompletionResult(completed_task=current, next_task=None)

        new_id = _spawn_next(task_store, task, next_due) if next_due is not None else None

        completed_task = task_store.get_task(task.id)
        next_task = task_store.get_task(new_id) if new_id is not None else None

    if completed_task is None:
        raise RuntimeError(f"Task {task.id} vanished while completing it")

    if next_task is not None:
        logger.info(
            "Task %s completed; next instance %s due %s",
            task.id,
            next_task.id,
            next_task.due_date,
        )
    else:
        logger.info("Task %s completed", task.id)

    return CompletionResult(completed_task=completed_task, next_task=next_task)
