# tests/test_commands.py

from __future__ import annotations

import time
from datetime import date

import pytest

from taskpulse.cli.bootstrap import create_initial_state
from taskpulse.cli.commands import CommandRegistry, registry
from taskpulse.cli.service import start_reminder_service
from taskpulse.tasks.task_models import RecurrencePattern, RegenerateMode


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}
    notes: list[str] = []

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a", aliases=["aa"])
    reg.register("b", h3, "b")

    assert reg.handle(state, "/a x y") == "h2:x,y"
    assert reg.handle(state, "/AA") == "h2:"
    assert reg.handle(state, "/b y", emit=notes.append) == "h3"
    assert called == {"h2": 2, "h3": 1}
    assert notes == ["note"]
    assert "/a - a" in reg.build_help()


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_add_list_and_edit_tasks(state) -> None:
    assert registry.handle(state, "/add Buy milk") == "Added task #1."
    assert registry.handle(state, "/add") == "Usage: /add <title>"

    assert registry.handle(state, "/due 1 2024-01-10 18:00") == "Task #1 updated."
    assert registry.handle(state, "/due #1 2024-01-11") == "Task #1 updated."
    task = state.task_store.get_task(1)
    assert task.due_date == date(2024, 1, 11)
    assert task.due_time == "18:00"

    assert "Bad argument" in registry.handle(state, "/due 1 tomorrow")
    assert registry.handle(state, "/due 9 2024-01-10") == "Task #9 not found."

    assert registry.handle(state, "/priority 1 high") == "Task #1 priority set to high."
    assert registry.handle(state, "/tag 1 Home errands") == "Task #1 tags: errands, home"

    listing = registry.handle(state, "/tasks")
    assert "#1 Buy milk" in listing
    assert "due 2024-01-11 18:00" in listing
    assert "[high]" in listing
    assert "+errands +home" in listing


def test_repeat_command_parses_rule(state) -> None:
    registry.handle(state, "/add Standup")

    assert registry.handle(state, "/repeat 1 weekly 2 mon,wed,fri fixed") == "Task #1 now repeats weekly."
    task = state.task_store.get_task(1)
    assert task.recurrence_pattern == RecurrencePattern.WEEKLY
    assert task.recurrence_interval == 2
    assert task.recurrence_weekdays == (1, 3, 5)
    assert task.regenerate_mode == RegenerateMode.FIXED_SCHEDULE

    assert registry.handle(state, "/repeat 1 daily") == "Task #1 now repeats daily."
    task = state.task_store.get_task(1)
    assert task.recurrence_interval == 1
    assert task.recurrence_weekdays == ()
    assert task.regenerate_mode == RegenerateMode.ON_COMPLETION

    assert "Bad argument" in registry.handle(state, "/repeat 1 hourly")
    assert "Bad argument" in registry.handle(state, "/repeat 1 weekly 1 funday")

    assert registry.handle(state, "/until 1 2024-12-31") == "Task #1 updated."
    assert state.task_store.get_task(1).recurrence_end_date == date(2024, 12, 31)


def test_done_spawns_next_instance(state) -> None:
    registry.handle(state, "/add Water plants")
    registry.handle(state, "/due 1 2024-01-01")
    registry.handle(state, "/repeat 1 daily 3 fixed")

    reply = registry.handle(state, "/done 1")

    assert reply.startswith("Completed #1. Next: #2 Water plants due 2024-01-04")
    assert registry.handle(state, "/done 1") == "Completed #1."
    assert registry.handle(state, "/done 42") == "Task #42 not found."
    assert "#1 " not in registry.handle(state, "/tasks")


def test_reminder_commands_need_running_service(state) -> None:
    registry.handle(state, "/add x")

    with pytest.raises(RuntimeError):
        registry.handle(state, "/remind 1 5")

    assert registry.handle(state, "/jobs") == "No live reminder jobs."
    assert "Reminder service: stopped" in registry.handle(state, "/status")
    assert "Nothing to snooze" in registry.handle(state, "/snooze")


def test_reminders_command_lists_delivered_and_pending(state) -> None:
    registry.handle(state, "/add x")
    assert registry.handle(state, "/reminders 1") == "No reminders for task #1."
    assert registry.handle(state, "/reminders 9") == "Task #9 not found."
    assert registry.handle(state, "/reminders") == "Usage: /reminders <task_id>"

    now = time.time()
    done = state.reminder_store.add_reminder(1, now - 60)
    state.reminder_store.mark_triggered(done.id)
    state.reminder_store.add_reminder(1, now + 3600)

    lines = registry.handle(state, "/reminders 1").splitlines()
    assert lines[0] == "Reminders for task #1:"
    assert lines[1].startswith("  #1 ") and lines[1].endswith("delivered")
    assert lines[2].startswith("  #2 ") and lines[2].endswith("pending")


def test_reminder_commands_with_service(state, notifier) -> None:
    runner = start_reminder_service(state)
    assert runner is not None
    state.runner = runner
    try:
        registry.handle(state, "/add Call mom")

        assert registry.handle(state, "/remind 1 0") == "Reminder #1 delivered."
        assert notifier.bodies == ["Call mom"]
        assert state.last_event is not None and state.last_event.reminder_id == 1

        reply = registry.handle(state, "/snooze")
        assert reply.startswith("Reminder #1 snoozed until")
        assert state.reminder_store.get_reminder(1).triggered is False
        assert registry.handle(state, "/jobs") == "Live reminder jobs: #1"
        assert "Live reminder jobs: 1" in registry.handle(state, "/status")

        listing = registry.handle(state, "/reminders 1")
        assert listing.startswith("Reminders for task #1:")
        assert "#1 " in listing and listing.endswith("snoozed")

        assert registry.handle(state, "/unremind 1") == "Reminder #1 deleted."
        assert registry.handle(state, "/unremind 1") == "Reminder #1 not found."

        assert registry.handle(state, "/remind 1 30").startswith("Reminder #2 set for")
        listing = registry.handle(state, "/reminders #1")
        assert "#2 " in listing and listing.endswith("pending")
        assert "#1 " not in listing.splitlines()[1]
        assert registry.handle(state, "/delete 1") == "Task #1 deleted."
        assert registry.handle(state, "/jobs") == "No live reminder jobs."
        assert state.reminder_store.get_reminder(2) is None
        assert registry.handle(state, "/remind 1 5") == "Task #1 not found."
    finally:
        runner.stop()
        runner.join(timeout=5.0)
        state.runner = None

    assert not runner.thread.is_alive()


def test_open_clicks_last_notification(settings, capsys) -> None:
    state = create_initial_state(settings=settings)
    runner = start_reminder_service(state)
    assert runner is not None
    state.runner = runner
    try:
        assert registry.handle(state, "/open") == "No notification to open."

        registry.handle(state, "/add Read book")
        registry.handle(state, "/remind 1 0")
        emitted: list[str] = []

        assert registry.handle(state, "/open", emit=emitted.append) == "#1 Read book"
        assert state.opened_task_ids == [1]
        assert emitted == ["Opening task #1..."]
    finally:
        runner.stop()
        runner.join(timeout=5.0)
        state.runner = None

    assert "Task Reminder: Read book" in capsys.readouterr().out
