# src/taskpulse/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum


class RecurrencePattern(StrEnum):
    """
    Cadence of a repeating task.

    Notes:
    - "custom" advances by `recurrence_interval` days, like "daily".
    - "none" makes every other recurrence field inert.
    """

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrencePattern:
        if not raw:
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


class RegenerateMode(StrEnum):
    """Whether the next instance advances from the due date or from the completion day."""

    ON_COMPLETION = "on_completion"
    FIXED_SCHEDULE = "fixed_schedule"

    @classmethod
    def from_db(cls, raw: str | None) -> RegenerateMode:
        if not raw:
            return cls.ON_COMPLETION
        try:
            return cls(raw)
        except ValueError:
            return cls.ON_COMPLETION


class Priority(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE


# Weekday numbering used by recurrence_weekdays: 0=Sunday .. 6=Saturday.
WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


@dataclass(slots=True)
class Task:
    id: int
    list_id: int | None
    title: str
    description: str
    notes: str

    due_date: date | None
    due_time: str | None
    priority: Priority

    completed: bool
    completed_at: float | None
    position: int
    created_at: float
    updated_at: float

    recurrence_pattern: RecurrencePattern = RecurrencePattern.NONE
    recurrence_interval: int = 1
    recurrence_weekdays: tuple[int, ...] = ()
    recurrence_end_date: date | None = None
    regenerate_mode: RegenerateMode = RegenerateMode.ON_COMPLETION

    tags: tuple[str, ...] = ()

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_pattern != RecurrencePattern.NONE
