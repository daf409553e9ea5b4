# src/taskpulse/connectors/console_notifier.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from ..core.ports import ClickHandler
from ..reminders.reminder_models import Urgency

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


@dataclass(slots=True)
class ConsoleNotification:
    """A printed notification. A terminal line cannot be clicked; click() simulates it."""

    title: str
    body: str
    urgency: Urgency
    handlers: list[ClickHandler] = field(default_factory=list)

    def on_click(self, handler: ClickHandler) -> None:
        self.handlers.append(handler)

    def click(self) -> None:
        for handler in list(self.handlers):
            handler()


class ConsoleNotifier:
    """
    NotificationSink that prints reminders to stdout.

    Keeps the last shown notification so the console can "click" it (/open).
    """

    def __init__(self) -> None:
        self.last: ConsoleNotification | None = None

    async def show(self, title: str, body: str, urgency: Urgency) -> ConsoleNotification:
        marker = "!!" if urgency == Urgency.CRITICAL else "--"
        print(f"\n[{_ts_local()}] {marker} {title}: {body}", flush=True)
        logger.info("Notification shown title=%r urgency=%s", body, urgency.value)

        note = ConsoleNotification(title=title, body=body, urgency=urgency)
        self.last = note
        return note
