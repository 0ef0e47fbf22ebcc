# src/taskbuddy/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one asyncio loop:
- the console REPL,
- the reminder poller (background task, cancelled when the console exits).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from ..cli.bootstrap import create_initial_state, load_persisted
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..tasks.reminder_scheduler import run_reminder_scheduler

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState, poller: asyncio.Task[None]) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    poller.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await poller

    try:
        await asyncio.wait_for(state.flush(), timeout=10.0)
    except TimeoutError:
        logger.warning("Some writes were still pending at shutdown (%d).", state.writer.pending)
    except Exception:
        logger.exception("Failed to flush pending writes.")


async def run(state: AppState) -> None:
    poller = asyncio.create_task(run_reminder_scheduler(state.scheduler), name="reminder-poller")
    try:
        await run_console_loop(state)
    finally:
        await _shutdown(state, poller)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/taskbuddy")
    setup_logging(log_dir=log_dir, console_level=console_level)

    logger.info("Starting %s...", getattr(settings, "app_name", "taskbuddy"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    n_tasks, n_msgs = load_persisted(state)
    logger.info("Loaded %d tasks and %d messages for owner=%s", n_tasks, n_msgs, settings.owner)

    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
