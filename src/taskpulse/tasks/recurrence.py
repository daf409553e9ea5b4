# src/taskpulse/tasks/recurrence.py

from __future__ import annotations

"""
Recurrence arithmetic.

Two layers:
- compute_next_date(): pure date math, no clock access
- calculate_next_due_date(): picks the anchor (due date or "today") from the regenerate mode

Month/year overflow is clamped to the last valid day of the target month
(2024-01-31 + 1 month -> 2024-02-29, 2024-02-29 + 1 year -> 2025-02-28).
dateutil.relativedelta implements exactly that rule.

Invalid configurations (no anchor, interval < 1, unknown pattern) yield None,
which callers treat as "the series ends here".
"""

import logging
from collections.abc import Callable, Iterable
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from .task_models import RecurrencePattern, RegenerateMode

logger = logging.getLogger(__name__)


def weekday_of(d: date) -> int:
    """Weekday in the 0=Sunday .. 6=Saturday numbering."""
    return d.isoweekday() % 7


def normalize_weekdays(weekdays: Iterable[int] | None) -> tuple[int, ...]:
    """Sorted, deduplicated weekdays; values outside 0..6 are dropped."""
    if not weekdays:
        return ()
    out: set[int] = set()
    for wd in weekdays:
        try:
            v = int(wd)
        except (TypeError, ValueError):
            continue
        if 0 <= v <= 6:
            out.add(v)
    return tuple(sorted(out))


def find_next_weekday(base_date: date, weekdays: Iterable[int], weeks_interval: int = 1) -> date:
    """
    Next date strictly after base_date that falls on one of `weekdays`.

    With weeks_interval == 1 a later weekday in the same week wins.
    Otherwise jump to the first listed weekday of the week `weeks_interval` weeks ahead.
    """
    days = normalize_weekdays(weekdays)
    if not days:
        raise ValueError("weekdays must contain at least one value in 0..6")

    weeks = max(1, int(weeks_interval))
    current = weekday_of(base_date)

    if weeks == 1:
        later = next((wd for wd in days if wd > current), None)
        if later is not None:
            return base_date + timedelta(days=later - current)

    first = days[0]
    days_to_first = (7 - current + first) % 7 or 7
    return base_date + timedelta(days=days_to_first + (weeks - 1) * 7)


def compute_next_date(
    anchor: date | None,
    pattern: RecurrencePattern | str,
    interval: int = 1,
    weekdays: Iterable[int] | None = None,
) -> date | None:
    """Pure next-date computation from an explicit anchor date."""
    if anchor is None:
        return None

    try:
        pattern = RecurrencePattern(pattern)
    except ValueError:
        logger.warning("Unknown recurrence pattern %r; no next date", pattern)
        return None

    if pattern == RecurrencePattern.NONE:
        return None

    try:
        step = int(interval)
    except (TypeError, ValueError):
        return None
    if step < 1:
        logger.debug("Recurrence interval %r < 1; no next date", interval)
        return None

    if pattern in (RecurrencePattern.DAILY, RecurrencePattern.CUSTOM):
        return anchor + timedelta(days=step)

    if pattern == RecurrencePattern.WEEKLY:
        days = normalize_weekdays(weekdays)
        if days:
            return find_next_weekday(anchor, days, step)
        return anchor + timedelta(weeks=step)

    if pattern == RecurrencePattern.MONTHLY:
        return anchor + relativedelta(months=step)

    if pattern == RecurrencePattern.YEARLY:
        return anchor + relativedelta(years=step)

    return None


def calculate_next_due_date(
    current_due_date: date | None,
    pattern: RecurrencePattern | str,
    interval: int,
    weekdays: Iterable[int] | None,
    regenerate_mode: RegenerateMode | str,
    *,
    today: Callable[[], date] = date.today,
) -> date | None:
    """
    Next due date for a completed instance.

    A recurring task without a due date has no anchor and never repeats,
    even in on_completion mode.
    """
    if current_due_date is None:
        return None

    if RegenerateMode.from_db(str(regenerate_mode)) == RegenerateMode.FIXED_SCHEDULE:
        base = current_due_date
    else:
        base = today()

    return compute_next_date(base, pattern, interval, weekdays)
