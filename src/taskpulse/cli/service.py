# src/taskpulse/cli/service.py

"""
Reminder service loop.

One asyncio event loop in a background thread hosts every reminder timer and the
fallback sweep. The console REPL (blocking input()) stays in the main thread and
submits work to that loop, so all store access and timers live on one thread.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState
from ..logging_setup import SERVICE_THREAD_NAME
from ..reminders.reminder_sweep import run_reminder_sweep

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_reminder_service(state: AppState, stop_event: asyncio.Event) -> None:
    """
    init -> sweep -> wait for stop -> shutdown

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - every live job is cancelled before the loop closes
    """
    scheduler = state.scheduler
    interval = float(getattr(state.settings, "sweep_interval_seconds", 60.0))

    try:
        await scheduler.init()
    except Exception:
        # Nothing armed; the sweep still delivers whatever is due.
        logger.exception("Reminder scheduler init failed.")

    sweep_task = asyncio.create_task(
        run_reminder_sweep(scheduler, state.reminder_store, interval_seconds=interval),
        name="reminder-sweep",
    )

    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("Reminder service cancelled.")
    finally:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
        await scheduler.shutdown()
        logger.info("Reminder service stopped.")


@dataclass
class ReminderServiceRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def call(self, coro: Coroutine[Any, Any, T], timeout: float | None = 30.0) -> T:
        """Run a coroutine on the service loop and wait for its result."""
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            logger.debug("Failed to signal reminder service stop (loop closed).", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_reminder_service(state: AppState) -> ReminderServiceRunner | None:
    """
    Start the reminder loop in a background thread.

    Why a thread:
    - console REPL is blocking (input()).
    - timers and the sweep want their own event loop.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(run_reminder_service(state, stop_event))
        except Exception:
            logger.exception("Reminder service crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name=SERVICE_THREAD_NAME, daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Reminder service thread did not initialize properly.")
        return None

    logger.info("Reminder service thread started.")
    return ReminderServiceRunner(thread=t, loop=loop, stop_event=stop_event)
