# src/taskpulse/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, cast

from ..core.state import AppState
from ..tasks import task_api
from ..tasks.task_models import WEEKDAY_NAMES, Priority, RecurrencePattern, RegenerateMode, Task
from ..tasks.task_store import UNSET

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /done, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _call(state: AppState, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Run a store/scheduler call on the reminder loop thread when it is running.

    Without a running service only synchronous calls are allowed.
    """
    runner = state.runner
    if runner is None:
        result = fn(*args, **kwargs)
        if inspect.iscoroutine(result):
            result.close()
            raise RuntimeError("Reminder service is not running.")
        return result

    async def _go() -> Any:
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            return await result
        return result

    return runner.call(_go())


def _parse_id(raw: str) -> int:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        raise ValueError(f"not an id: {raw!r}") from None


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"not a date (YYYY-MM-DD): {raw!r}") from None


def _parse_time(raw: str) -> str:
    try:
        return datetime.strptime(raw, "%H:%M").strftime("%H:%M")
    except ValueError:
        raise ValueError(f"not a time (HH:MM): {raw!r}") from None


def _parse_weekdays(raw: str) -> list[int]:
    """Parse 'mon,wed,fri' or '1,3,5' into [1, 3, 5] (0=Sunday)."""
    out: list[int] = []
    for part in raw.lower().replace(" ", "").split(","):
        if not part:
            continue
        if part.isdigit() and 0 <= int(part) <= 6:
            out.append(int(part))
        elif part[:3] in WEEKDAY_NAMES:
            out.append(WEEKDAY_NAMES.index(part[:3]))
        else:
            raise ValueError(f"not a weekday: {part!r}")
    return out


def _fmt_task(task: Task) -> str:
    parts = [f"#{task.id}", task.title]
    if task.due_date is not None:
        parts.append(f"due {task.due_date.isoformat()}" + (f" {task.due_time}" if task.due_time else ""))
    if task.priority != Priority.NONE:
        parts.append(f"[{task.priority.value}]")
    if task.is_recurring:
        rule = f"{task.recurrence_pattern.value}/{task.recurrence_interval}"
        if task.recurrence_weekdays:
            rule += " " + ",".join(WEEKDAY_NAMES[d] for d in task.recurrence_weekdays)
        if task.regenerate_mode == RegenerateMode.FIXED_SCHEDULE:
            rule += " fixed"
        if task.recurrence_end_date is not None:
            rule += f" until {task.recurrence_end_date.isoformat()}"
        parts.append(f"(repeats {rule})")
    if task.tags:
        parts.append(" ".join(f"+{t}" for t in task.tags))
    if task.completed:
        parts.append("[done]")
    return " ".join(parts)


def _ts_local(ts: float) -> str:
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M:%S")


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    service = "running" if state.runner is not None else "stopped"
    open_tasks = _call(state, state.task_store.list_open_tasks, 1000)
    return (
        "Status:\n"
        f"  Database: {getattr(settings, 'db_path', '?')}\n"
        f"  Reminder service: {service}\n"
        f"  Live reminder jobs: {len(_call(state, state.scheduler.job_ids))}\n"
        f"  Sweep interval: {getattr(settings, 'sweep_interval_seconds', '?')}s\n"
        f"  Open tasks: {len(open_tasks)}"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = _call(state, state.task_store.list_open_tasks, 50)
    if not tasks:
        return "No open tasks."
    return "\n".join(_fmt_task(t) for t in tasks)


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <title...>"""
    title = " ".join(args).strip()
    if not title:
        return "Usage: /add <title>"
    task_id = _call(state, state.task_store.add_task, title=title)
    return f"Added task #{task_id}."


def cmd_due(state: AppState, args: list[str]) -> str:
    """/due <task_id> <YYYY-MM-DD|none> [HH:MM]"""
    if len(args) < 2:
        return "Usage: /due <task_id> <YYYY-MM-DD|none> [HH:MM]"
    try:
        task_id = _parse_id(args[0])
        due_date = None if args[1].lower() == "none" else _parse_date(args[1])
        if due_date is None:
            due_time = None
        else:
            due_time = _parse_time(args[2]) if len(args) > 2 else UNSET
    except ValueError as e:
        return f"Bad argument: {e}"

    ok = _call(state, state.task_store.update_task_fields, task_id, due_date=due_date, due_time=due_time)
    return f"Task #{task_id} updated." if ok else f"Task #{task_id} not found."


def cmd_repeat(state: AppState, args: list[str]) -> str:
    """
    /repeat <task_id> <none|daily|weekly|monthly|yearly|custom> [interval] [weekdays] [fixed]

    Examples:
      /repeat 3 weekly 1 mon,wed,fri
      /repeat 4 monthly 1 fixed
    """
    if len(args) < 2:
        return "Usage: /repeat <task_id> <pattern> [interval] [weekdays] [fixed]"
    try:
        task_id = _parse_id(args[0])
        pattern = RecurrencePattern(args[1].lower())
    except ValueError as e:
        return f"Bad argument: {e}"

    rest = list(args[2:])
    interval = int(rest.pop(0)) if rest and rest[0].isdigit() else 1
    weekdays: list[int] = []
    mode = RegenerateMode.ON_COMPLETION
    try:
        for extra in rest:
            if extra.lower() == "fixed":
                mode = RegenerateMode.FIXED_SCHEDULE
            else:
                weekdays = _parse_weekdays(extra)
        ok = _call(
            state,
            state.task_store.update_task_fields,
            task_id,
            recurrence_pattern=pattern,
            recurrence_interval=interval,
            recurrence_weekdays=weekdays,
            regenerate_mode=mode,
        )
    except ValueError as e:
        return f"Bad argument: {e}"

    return f"Task #{task_id} now repeats {pattern.value}." if ok else f"Task #{task_id} not found."


def cmd_until(state: AppState, args: list[str]) -> str:
    """/until <task_id> <YYYY-MM-DD|none>"""
    if len(args) < 2:
        return "Usage: /until <task_id> <YYYY-MM-DD|none>"
    try:
        task_id = _parse_id(args[0])
        end = None if args[1].lower() == "none" else _parse_date(args[1])
    except ValueError as e:
        return f"Bad argument: {e}"

    ok = _call(state, state.task_store.update_task_fields, task_id, recurrence_end_date=end)
    return f"Task #{task_id} updated." if ok else f"Task #{task_id} not found."


def cmd_priority(state: AppState, args: list[str]) -> str:
    """/priority <task_id> <none|low|medium|high>"""
    if len(args) < 2:
        return "Usage: /priority <task_id> <none|low|medium|high>"
    try:
        task_id = _parse_id(args[0])
        prio = Priority(args[1].lower())
    except ValueError as e:
        return f"Bad argument: {e}"

    ok = _call(state, state.task_store.update_task_fields, task_id, priority=prio)
    return f"Task #{task_id} priority set to {prio.value}." if ok else f"Task #{task_id} not found."


def cmd_tag(state: AppState, args: list[str]) -> str:
    """/tag <task_id> <tag...>"""
    if len(args) < 2:
        return "Usage: /tag <task_id> <tag...>"
    try:
        task_id = _parse_id(args[0])
    except ValueError as e:
        return f"Bad argument: {e}"

    if _call(state, state.task_store.get_task, task_id) is None:
        return f"Task #{task_id} not found."
    tags = _call(state, state.task_store.add_tags, task_id, args[1:])
    return f"Task #{task_id} tags: {', '.join(tags)}"


def cmd_done(state: AppState, args: list[str]) -> str:
    """/done <task_id>"""
    if not args:
        return "Usage: /done <task_id>"
    try:
        task_id = _parse_id(args[0])
    except ValueError as e:
        return f"Bad argument: {e}"

    result = _call(state, task_api.complete_task, state, task_id)
    if result is None:
        return f"Task #{task_id} not found."
    if result.next_task is None:
        return f"Completed #{task_id}."
    return f"Completed #{task_id}. Next: {_fmt_task(result.next_task)}"


def cmd_remind(state: AppState, args: list[str]) -> str:
    """/remind <task_id> <minutes>"""
    if len(args) < 2:
        return "Usage: /remind <task_id> <minutes>"
    try:
        task_id = _parse_id(args[0])
        minutes = float(args[1])
    except ValueError:
        return "Usage: /remind <task_id> <minutes>"

    reminder = _call(state, task_api.remind_in, state, task_id, run_after_minutes=minutes)
    if reminder is None:
        return f"Task #{task_id} not found."
    if reminder.triggered:
        return f"Reminder #{reminder.id} delivered."
    return f"Reminder #{reminder.id} set for {_ts_local(reminder.reminder_time)}."


def cmd_reminders(state: AppState, args: list[str]) -> str:
    """/reminders <task_id>"""
    if not args:
        return "Usage: /reminders <task_id>"
    try:
        task_id = _parse_id(args[0])
    except ValueError as e:
        return f"Bad argument: {e}"

    if _call(state, state.task_store.get_task, task_id) is None:
        return f"Task #{task_id} not found."
    reminders = _call(state, state.reminder_store.list_for_task, task_id)
    if not reminders:
        return f"No reminders for task #{task_id}."

    lines = [f"Reminders for task #{task_id}:"]
    for r in reminders:
        if r.triggered:
            status = "delivered"
        elif r.snoozed_until is not None:
            status = "snoozed"
        else:
            status = "pending"
        lines.append(f"  #{r.id} {_ts_local(r.reminder_time)} {status}")
    return "\n".join(lines)


def cmd_snooze(state: AppState, args: list[str]) -> str:
    """
    /snooze                       -> snooze the last shown reminder (default minutes)
    /snooze <reminder_id>         -> snooze that reminder (default minutes)
    /snooze <reminder_id> <min>
    """
    default_minutes = int(getattr(state.settings, "default_snooze_minutes", 10))
    try:
        if args:
            reminder_id = _parse_id(args[0])
        elif state.last_event is not None:
            reminder_id = state.last_event.reminder_id
        else:
            return "Nothing to snooze yet. Usage: /snooze <reminder_id> [minutes]"
        minutes = float(args[1]) if len(args) > 1 else float(default_minutes)
        reminder = _call(state, state.scheduler.snooze_reminder, reminder_id, minutes)
    except ValueError as e:
        return f"Bad argument: {e}"

    if reminder is None:
        return f"Reminder #{reminder_id} not found."
    return f"Reminder #{reminder_id} snoozed until {_ts_local(reminder.reminder_time)}."


def cmd_unremind(state: AppState, args: list[str]) -> str:
    """/unremind <reminder_id>"""
    if not args:
        return "Usage: /unremind <reminder_id>"
    try:
        reminder_id = _parse_id(args[0])
    except ValueError as e:
        return f"Bad argument: {e}"

    ok = _call(state, state.scheduler.delete_reminder, reminder_id)
    return f"Reminder #{reminder_id} deleted." if ok else f"Reminder #{reminder_id} not found."


def cmd_delete(state: AppState, args: list[str]) -> str:
    """/delete <task_id>"""
    if not args:
        return "Usage: /delete <task_id>"
    try:
        task_id = _parse_id(args[0])
    except ValueError as e:
        return f"Bad argument: {e}"

    ok = _call(state, task_api.delete_task, state, task_id)
    return f"Task #{task_id} deleted." if ok else f"Task #{task_id} not found."


def cmd_jobs(state: AppState, args: list[str]) -> str:
    ids = _call(state, state.scheduler.job_ids)
    if not ids:
        return "No live reminder jobs."
    return "Live reminder jobs: " + ", ".join(f"#{i}" for i in ids)


def cmd_open(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """Open the task of the last notification (same as clicking it)."""
    note = getattr(state.notifier, "last", None)
    if note is None:
        return "No notification to open."

    note.click()
    if not state.opened_task_ids:
        return "No notification to open."

    task_id = state.opened_task_ids[-1]
    task = _call(state, state.task_store.get_task, task_id)
    if task is None:
        return f"Task #{task_id} no longer exists."
    if emit:
        with contextlib.suppress(Exception):
            emit(f"Opening task #{task_id}...")
    return _fmt_task(task)


registry.register("help", cmd_help, "Show this help.")
registry.register("status", cmd_status, "Show service status.")
registry.register("tasks", cmd_tasks, "List open tasks.", aliases=["ls"])
registry.register("add", cmd_add, "Add a task: /add <title>")
registry.register("due", cmd_due, "Set due date: /due <task_id> <YYYY-MM-DD|none> [HH:MM]")
registry.register(
    "repeat",
    cmd_repeat,
    "Set recurrence: /repeat <task_id> <pattern> [interval] [mon,wed,...] [fixed]",
)
registry.register("until", cmd_until, "Set recurrence end: /until <task_id> <YYYY-MM-DD|none>")
registry.register("priority", cmd_priority, "Set priority: /priority <task_id> <none|low|medium|high>")
registry.register("tag", cmd_tag, "Tag a task: /tag <task_id> <tag...>")
registry.register("done", cmd_done, "Complete a task (spawns the next one if it repeats).")
registry.register("remind", cmd_remind, "Remind about a task: /remind <task_id> <minutes>")
registry.register("reminders", cmd_reminders, "List a task's reminders: /reminders <task_id>")
registry.register("snooze", cmd_snooze, "Snooze a reminder: /snooze [reminder_id] [minutes]")
registry.register("unremind", cmd_unremind, "Delete a reminder: /unremind <reminder_id>")
registry.register("delete", cmd_delete, "Delete a task and its reminders.", aliases=["rm"])
registry.register("jobs", cmd_jobs, "List live reminder timers.")
registry.register("open", cmd_open, "Open the task of the last notification.")
