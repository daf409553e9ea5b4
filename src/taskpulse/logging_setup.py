# src/taskpulse/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Name of the background thread that hosts reminder timers and the sweep.
SERVICE_THREAD_NAME = "reminder-service"

LOG_FILE_NAME = "taskpulse.log"


def level_from_name(name: object, default: int = logging.INFO) -> int:
    """Map "debug"/"INFO"/... to a logging level; unknown names give `default`."""
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else default


class ServiceThreadConsoleFilter(logging.Filter):
    """
    Console filter for an interactive session.

    The REPL blocks in input() on the main thread, so anything the reminder loop
    logs lands in the middle of the prompt. Records from that thread reach the
    console only at WARNING+; notifications are printed by the notifier itself.
    Records from outside the taskpulse package need ERROR+.
    """

    def __init__(self, service_thread_name: str = SERVICE_THREAD_NAME) -> None:
        super().__init__()
        self.service_thread_name = service_thread_name

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "taskpulse" and not record.name.startswith("taskpulse."):
            return record.levelno >= logging.ERROR
        if record.threadName == self.service_thread_name:
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskpulse",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Install a filtered stderr handler and a rotating file handler on the root logger.

    The file keeps every thread's records (thread name included). Returns the log file path.
    Call once, before the first log line.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    datefmt = "%Y-%m-%d %H:%M:%S"

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt))
    ch.addFilter(ServiceThreadConsoleFilter())
    root.addHandler(ch)

    fh = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(
        logging.Formatter(
            "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s",
            datefmt,
        )
    )
    root.addHandler(fh)

    logging.captureWarnings(True)
    return log_file
