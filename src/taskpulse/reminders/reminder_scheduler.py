# src/taskpulse/reminders/reminder_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

Owns the table of live timers (reminder_id -> asyncio.Task) for one process:
- init() rebuilds the table from the store (the only recovery path after a restart),
- schedule/cancel/snooze/delete keep at most one live job per reminder,
- deliver() re-reads reminder and task right before notifying.

Delivery is at-least-once. A fired timer and a fallback sweep tick may race for the
same reminder; inside one process the in-flight set lets only one of them notify,
across processes duplicates are possible and accepted. The store write that flips
`triggered` is what makes a delivery final.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from ..core.ports import Clock, NotificationSink, ReminderRepo, TaskRepo
from ..tasks.task_models import Priority
from .reminder_models import Reminder, ReminderEvent, Urgency

logger = logging.getLogger(__name__)

ReminderListener = Callable[[ReminderEvent], None]
TaskClickHandler = Callable[[int], None]

DEFAULT_TITLE = "Task Reminder"


def urgency_for(priority: Priority) -> Urgency:
    return Urgency.CRITICAL if priority == Priority.HIGH else Urgency.NORMAL


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class ReminderScheduler:
    """Single-loop reminder scheduler. Construct once per process, pass it around."""

    def __init__(
        self,
        task_store: TaskRepo,
        reminder_store: ReminderRepo,
        notifier: NotificationSink,
        *,
        clock: Clock = time.time,
        title: str = DEFAULT_TITLE,
    ) -> None:
        self._tasks = task_store
        self._reminders = reminder_store
        self._notifier = notifier
        self._clock = clock
        self._title = title

        self._jobs: dict[int, asyncio.Task[None]] = {}
        self._in_flight: set[int] = set()
        self._listeners: list[ReminderListener] = []
        self._click_handlers: list[TaskClickHandler] = []

    # ---- wiring ----

    def add_listener(self, listener: ReminderListener) -> None:
        """Called with a ReminderEvent after every shown reminder."""
        self._listeners.append(listener)

    def add_click_handler(self, handler: TaskClickHandler) -> None:
        """Called with the task id when a shown notification is clicked."""
        self._click_handlers.append(handler)

    def job_ids(self) -> list[int]:
        return sorted(self._jobs)

    def has_job(self, reminder_id: int) -> bool:
        return int(reminder_id) in self._jobs

    # ---- lifecycle ----

    async def init(self) -> int:
        """
        Drop every live job and re-arm all pending reminders from the store.

        Past-due reminders are delivered right away. Returns how many were loaded.
        """
        self._cancel_all()

        pending = self._reminders.list_pending(self._clock())
        for reminder in pending:
            try:
                await self.schedule_reminder(reminder)
            except Exception:
                # The fallback sweep retries anything that failed here.
                logger.exception("Failed to schedule reminder %s during init", reminder.id)

        logger.info("Scheduled %d reminders", len(pending))
        return len(pending)

    async def shutdown(self) -> None:
        """Cancel every live job and wait for them to unwind."""
        jobs = self._cancel_all()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)
        logger.info("Reminder scheduler stopped (%d jobs cancelled)", len(jobs))

    def _cancel_all(self) -> list[asyncio.Task[None]]:
        me = _current_task()
        jobs = [j for j in self._jobs.values() if j is not me]
        for job in jobs:
            job.cancel()
        self._jobs.clear()
        return jobs

    # ---- scheduling ----

    async def schedule_reminder(self, reminder: Reminder) -> None:
        """
        Cancel-then-register.

        A reminder whose time has come is delivered before this call returns.
        """
        self.cancel_reminder(reminder.id)

        if reminder.reminder_time <= self._clock():
            logger.debug("Reminder %s is already due; delivering now", reminder.id)
            await self.deliver(reminder.id)
            return

        job = asyncio.create_task(
            self._run_job(reminder.id, reminder.reminder_time),
            name=f"reminder-{reminder.id}",
        )
        self._jobs[reminder.id] = job
        logger.debug("Reminder %s armed for %.3f", reminder.id, reminder.reminder_time)

    def cancel_reminder(self, reminder_id: int) -> bool:
        """Stop the timer of a reminder. The stored row is left alone."""
        job = self._jobs.pop(int(reminder_id), None)
        if job is None:
            return False
        if job is not _current_task():
            job.cancel()
        logger.debug("Reminder %s job cancelled", reminder_id)
        return True

    def cancel_for_task(self, task_id: int) -> int:
        """Cancel the jobs of every reminder attached to a task."""
        cancelled = 0
        for reminder in self._reminders.list_for_task(task_id):
            if self.cancel_reminder(reminder.id):
                cancelled += 1
        return cancelled

    async def _run_job(self, reminder_id: int, fire_at: float) -> None:
        try:
            # Deliver only once the wall clock has reached fire_at.
            delay = fire_at - self._clock()
            while delay > 0:
                await asyncio.sleep(delay)
                delay = fire_at - self._clock()

            # The job leaves the table once it starts delivering.
            if self._jobs.get(reminder_id) is _current_task():
                del self._jobs[reminder_id]

            await self.deliver(reminder_id)
        except Exception:
            logger.exception("Timer delivery failed reminder_id=%s; leaving it to the sweep", reminder_id)

    # ---- delivery ----

    async def deliver(self, reminder_id: int) -> bool:
        """
        Fire one reminder, re-checking the store first.

        Returns True if a notification was shown. Stale reminders (task deleted or
        completed) are marked triggered without notifying.
        """
        reminder_id = int(reminder_id)
        if reminder_id in self._in_flight:
            logger.debug("Reminder %s is already being delivered; skipping", reminder_id)
            return False

        self._in_flight.add(reminder_id)
        try:
            return await self._deliver(reminder_id)
        finally:
            self._in_flight.discard(reminder_id)

    async def _deliver(self, reminder_id: int) -> bool:
        reminder = self._reminders.get_reminder(reminder_id)
        if reminder is None or reminder.triggered:
            self._drop_job(reminder_id)
            return False

        if not reminder.is_due(self._clock()):
            # Snoozed or moved after the caller picked it up; its own job fires it later.
            logger.debug("Reminder %s is no longer due; skipping", reminder_id)
            return False

        task = self._tasks.get_task(reminder.task_id)
        if task is None or task.completed:
            self._reminders.mark_triggered(reminder_id)
            self._drop_job(reminder_id)
            logger.info(
                "Reminder %s suppressed (task %s %s)",
                reminder_id,
                reminder.task_id,
                "missing" if task is None else "completed",
            )
            return False

        urgency = urgency_for(task.priority)
        handle = await self._notifier.show(self._title, task.title, urgency)
        task_id = task.id
        handle.on_click(lambda: self._handle_click(task_id))

        current = self._reminders.get_reminder(reminder_id)
        if current is not None and current.reminder_time != reminder.reminder_time:
            # Snoozed while the notification was being shown; the new job owns it now.
            logger.info("Reminder %s was rescheduled during delivery; keeping it pending", reminder_id)
        else:
            self._reminders.mark_triggered(reminder_id)
            self._drop_job(reminder_id)

        logger.info("Reminder %s delivered for task %s (%s)", reminder_id, task_id, urgency.value)
        self._emit(ReminderEvent(reminder_id=reminder_id, task_id=task_id, task_title=task.title, urgency=urgency))
        return True

    def _drop_job(self, reminder_id: int) -> None:
        self.cancel_reminder(reminder_id)

    def _emit(self, event: ReminderEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Reminder listener failed reminder_id=%s", event.reminder_id)

    def _handle_click(self, task_id: int) -> None:
        logger.info("Reminder notification clicked for task %s", task_id)
        for handler in list(self._click_handlers):
            try:
                handler(task_id)
            except Exception:
                logger.exception("Reminder click handler failed task_id=%s", task_id)

    # ---- user operations ----

    async def add_and_schedule_reminder(self, task_id: int, reminder_time: float) -> Reminder | None:
        """Create a reminder for an existing task and arm it. None if the task is unknown."""
        if self._tasks.get_task(task_id) is None:
            logger.debug("add_and_schedule_reminder: task %s not found", task_id)
            return None

        reminder = self._reminders.add_reminder(task_id, float(reminder_time))
        await self.schedule_reminder(reminder)
        return self._reminders.get_reminder(reminder.id) or reminder

    async def snooze_reminder(self, reminder_id: int, duration_minutes: float) -> Reminder | None:
        """
        Push a reminder `duration_minutes` into the future and re-arm it.

        Works for already-triggered reminders too. None if the reminder does not exist.
        """
        if float(duration_minutes) <= 0:
            raise ValueError("duration_minutes must be > 0")

        if self._reminders.get_reminder(reminder_id) is None:
            return None

        until = self._clock() + float(duration_minutes) * 60.0
        updated = self._reminders.update_reminder_fields(
            reminder_id,
            reminder_time=until,
            triggered=False,
            snoozed_until=until,
        )
        if updated is None:
            return None

        await self.schedule_reminder(updated)
        logger.info("Reminder %s snoozed for %s min", reminder_id, duration_minutes)
        return updated

    async def delete_reminder(self, reminder_id: int) -> bool:
        self.cancel_reminder(reminder_id)
        deleted = self._reminders.delete_reminder(reminder_id)
        if deleted:
            logger.info("Reminder %s deleted", reminder_id)
        return deleted
