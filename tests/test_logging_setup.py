# tests/test_logging_setup.py

from __future__ import annotations

import logging
import threading
from pathlib import Path

from taskpulse.logging_setup import (
    SERVICE_THREAD_NAME,
    ServiceThreadConsoleFilter,
    level_from_name,
    setup_logging,
)


def _record(name: str, level: int, thread_name: str = "MainThread") -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, "msg", None, None)
    record.threadName = thread_name
    return record


def test_level_from_name() -> None:
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name(" WARNING ") == logging.WARNING
    assert level_from_name("loud") == logging.INFO
    assert level_from_name("loud", default=logging.ERROR) == logging.ERROR


def test_console_filter_quiets_service_thread() -> None:
    f = ServiceThreadConsoleFilter()

    assert f.filter(_record("taskpulse.cli.commands", logging.DEBUG)) is True
    assert f.filter(_record("taskpulse.reminders.reminder_scheduler", logging.INFO)) is True

    assert f.filter(_record("taskpulse.reminders.reminder_scheduler", logging.INFO, SERVICE_THREAD_NAME)) is False
    assert f.filter(_record("taskpulse.reminders.reminder_sweep", logging.WARNING, SERVICE_THREAD_NAME)) is True


def test_console_filter_drops_third_party_noise() -> None:
    f = ServiceThreadConsoleFilter()

    assert f.filter(_record("asyncio", logging.WARNING)) is False
    assert f.filter(_record("asyncio", logging.ERROR)) is True
    assert f.filter(_record("py.warnings", logging.WARNING)) is False
    assert f.filter(_record("taskpulsex", logging.INFO)) is False


def test_setup_logging_writes_all_threads_to_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    try:
        log_file = setup_logging(log_dir=tmp_path / "logs", console_level=logging.WARNING)

        logging.getLogger("taskpulse.test").debug("main %s", "thread")
        worker = threading.Thread(
            target=lambda: logging.getLogger("taskpulse.test").info("from loop"),
            name=SERVICE_THREAD_NAME,
        )
        worker.start()
        worker.join()

        for h in root.handlers:
            h.flush()
        text = log_file.read_text(encoding="utf-8")
        assert log_file == tmp_path / "logs" / "taskpulse.log"
        assert "main thread" in text
        assert f"[{SERVICE_THREAD_NAME}] taskpulse.test: from loop" in text
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved_handlers:
            root.addHandler(h)
        root.setLevel(saved_level)
        logging.captureWarnings(False)
