# src/taskpulse/reminders/reminder_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Urgency(StrEnum):
    NORMAL = "normal"
    CRITICAL = "critical"


@dataclass(slots=True)
class Reminder:
    id: int
    task_id: int
    reminder_time: float
    triggered: bool
    snoozed_until: float | None
    created_at: float
    updated_at: float

    def is_due(self, now_ts: float) -> bool:
        """Untriggered, past its fire time, and not held back by a snooze."""
        if self.triggered or self.reminder_time > now_ts:
            return False
        return self.snoozed_until is None or self.snoozed_until <= now_ts


@dataclass(slots=True, frozen=True)
class ReminderEvent:
    """
    What listeners hear after a reminder was shown.

    Suppressed (stale) reminders do not produce an event.
    """

    reminder_id: int
    task_id: int
    task_title: str
    urgency: Urgency
