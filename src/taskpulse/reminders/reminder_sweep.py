# src/taskpulse/reminders/reminder_sweep.py

from __future__ import annotations

"""
Fallback reminder sweep.

A small polling loop, independent of the timer table, that:
- fetches reminders that should already have fired,
- hands each one to ReminderScheduler.deliver (same re-check-then-notify path).

It covers timer drift, a job that was never armed, and the host sleeping through
a scheduled instant. Together with the timers this gives at-least-once delivery.
"""

import asyncio
import logging
import time

from ..core.ports import Clock, ReminderRepo
from .reminder_scheduler import ReminderScheduler

logger = logging.getLogger(__name__)


async def sweep_once(
        scheduler: ReminderScheduler,
        reminder_store: ReminderRepo,
        *,
        clock: Clock = time.time,
) -> int:
    """
    One sweep tick. Returns the number of notifications shown.

    A failure on one reminder does not stop the others.
    """
    due = reminder_store.list_due(clock())
    if not due:
        return 0

    logger.debug("Sweep found %d due reminders", len(due))
    shown = 0
    for reminder in due:
        try:
            if await scheduler.deliver(reminder.id):
                shown += 1
        except Exception:
            logger.exception("Sweep delivery failed reminder_id=%s", reminder.id)

    if shown:
        logger.info("Sweep delivered %d missed reminders", shown)
    return shown


async def run_reminder_sweep(
        scheduler: ReminderScheduler,
        reminder_store: ReminderRepo,
        *,
        interval_seconds: float = 60.0,
        clock: Clock = time.time,
) -> None:
    """
    Run sweep_once every interval_seconds, forever.

    Store errors are logged and retried on the next tick. To stop the sweep,
    cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    logger.info("Reminder sweep started (every %.1fs)", sleep_s)

    while True:
        try:
            await sweep_once(scheduler, reminder_store, clock=clock)
        except Exception:
            logger.exception("Reminder sweep tick failed")

        await asyncio.sleep(sleep_s)
