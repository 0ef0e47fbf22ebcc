# src/taskbuddy/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable
from datetime import datetime, timedelta

from ..cli.bootstrap import attach_event_sink
from ..cli.commands import registry as command_registry
from ..core.chat import handle_turn
from ..core.events import EngineEvent, PersistenceWarning, ReminderFired, SnoozeExpired
from ..core.state import AppState

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def time_remaining(due: datetime | None, now: datetime) -> str:
    if due is None:
        return ""
    secs = int((due - now).total_seconds())
    if secs <= 0:
        return "Due now"
    minutes, seconds = divmod(secs, 60)
    if minutes > 0:
        return f"Due in {minutes}m {seconds}s"
    return f"Due in {seconds}s"


def _snooze_label(duration: timedelta) -> str:
    minutes = max(1, round(duration.total_seconds() / 60))
    return "1 minute" if minutes == 1 else f"{minutes} minutes"


def render_event(event: EngineEvent, snooze: timedelta = timedelta(minutes=5)) -> str | None:
    """Console text for an engine event, or None when it needs no output."""
    if isinstance(event, ReminderFired):
        task = event.task
        remaining = time_remaining(task.due_date, event.fired_at)
        suffix = f" ({remaining})" if remaining else ""
        return (
            f"[REMINDER] {task.text}{suffix}\n"
            f"           /done to complete, /snooze to wait {_snooze_label(snooze)}, /dismiss to close."
        )
    if isinstance(event, PersistenceWarning):
        return f"[WARN] {event.message}"
    if isinstance(event, SnoozeExpired):
        return None
    # Cleared / snoozed are already confirmed by the command reply.
    return None


async def run_console_loop(
    state: AppState,
    *,
    read_line: Callable[[str], str] = input,
) -> None:
    """
    Console REPL on the running event loop.

    `input()` runs in a worker thread so the reminder poller keeps ticking while we wait.
    """
    logger.info("Console connector started (owner=%s).", state.store.owner)
    app_name = str(getattr(getattr(state, "settings", None), "app_name", "taskbuddy"))

    def on_event(event: EngineEvent) -> None:
        text = render_event(event, state.scheduler.snooze_duration)
        if text:
            print()
            _print_ts(text)

    attach_event_sink(state, on_event)
    _print_ts("[CONSOLE] Type your messages. Use /help for commands. Use /exit to quit.\n")

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(read_line, ">>> You: ")).strip()
                _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in EXIT_COMMANDS:
                logger.info("Console exit command received.")
                break

            # Commands (/help, /tasks, ...)
            try:
                cmd_response = command_registry.handle(state, user_input, emit=_print_ts)
            except Exception:
                logger.exception("Command handler crashed.")
                cmd_response = "Internal error while handling a command."

            if cmd_response is not None:
                _print_ts(cmd_response)
                continue

            reply = await handle_turn(state, user_input)
            if not reply:
                _print_ts("[LLM] No output (model produced no content).")
                continue
            _print_ts(f"<<< {app_name}: {reply}\n")
    finally:
        attach_event_sink(state, None)
        logger.info("Console connector finished.")
