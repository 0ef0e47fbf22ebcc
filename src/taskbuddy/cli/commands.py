# src/taskbuddy/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import date, tzinfo
from typing import cast

from ..core.state import AppState
from ..llm.offline import OfflineLLMClient
from ..tasks.task_models import Task
from ..tasks.timeutil import format_hhmm, format_human
from ..tasks.views import SortOption, days_with_tasks, sort_tasks, tasks_for_day

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

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

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
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
        lines.append("  /exit - Quit.")
        return "\n".join(lines)


registry = CommandRegistry()


def _task_line(t: Task, tz: tzinfo | None = None) -> str:
    mark = "x" if t.is_completed else " "
    due = f" (due {format_human(t.due_date, tz)})" if t.due_date else ""
    cat = f" #{t.category}" if t.category else ""
    return f"  [{mark}] {t.text}{due} [{t.priority.value}]{cat}\n      id: {t.id}"


def _target_id(state: AppState, args: list[str]) -> str | None:
    """Explicit id argument, else the task behind the active notification."""
    if args:
        return args[0]
    active = state.scheduler.active
    return active.task.id if active is not None else None


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    s = state.settings
    tasks = state.store.tasks()
    pending = sum(1 for t in tasks if not t.is_completed)
    models = ", ".join(list(getattr(s, "llm_models", []) or []))
    llm_mode = "OFFLINE (demo)" if isinstance(state.llm, OfflineLLMClient) else "ONLINE"
    active = state.scheduler.active
    active_s = f'"{active.task.text}"' if active is not None else "none"
    return (
        "Status:\n"
        f"  Owner: {s.owner}\n"
        f"  LLM: {llm_mode}\n"
        f"  Models (priority -> fallback): {models}\n"
        f"  Tasks: {len(tasks)} ({pending} pending)\n"
        f"  Active notification: {active_s}\n"
        f"  Snoozed tasks: {len(state.scheduler.snoozed_ids)}\n"
        f"  Unsaved writes: {state.writer.pending} (failed so far: {state.writer.failures})"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks           -> pending + completed, by due date
    /tasks priority  -> by priority (high first)
    /tasks latest    -> newest first
    """
    tz = state.dispatcher.tz
    option = SortOption.parse(args[0] if args else None)
    pending, completed = sort_tasks(state.store.tasks(), option)
    if not pending and not completed:
        return "You have no tasks yet. Just tell me what you need to do."

    lines = [f"Tasks (sorted by {option.value}):", "Pending:"]
    lines.extend(_task_line(t, tz) for t in pending)
    if not pending:
        lines.append("  (none)")

    lines.append("Completed:")
    lines.extend(_task_line(t, tz) for t in completed)
    if not completed:
        lines.append("  (none)")
    return "\n".join(lines)


def cmd_calendar(state: AppState, args: list[str]) -> str:
    """/calendar [YYYY-MM-DD] -> tasks due that day (default: today)."""
    tz = state.dispatcher.tz
    if args:
        try:
            day = date.fromisoformat(args[0])
        except ValueError:
            return "Usage: /calendar [YYYY-MM-DD]"
    else:
        day = state.dispatcher.now().astimezone(tz).date()

    tasks = state.store.tasks()
    hits = tasks_for_day(tasks, day, tz)
    marked = sorted(d.day for d in days_with_tasks(tasks, tz) if (d.year, d.month) == (day.year, day.month))

    lines = [f"{day.strftime('%A, %B %d %Y')}:"]
    if hits:
        lines.extend(_task_line(t, tz) for t in hits)
    else:
        lines.append("  No tasks due this day.")
    if marked:
        lines.append(f"Days with tasks in {day.strftime('%B')}: {', '.join(str(d) for d in marked)}")
    return "\n".join(lines)


def cmd_done(state: AppState, args: list[str]) -> str:
    task_id = _target_id(state, args)
    if task_id is None:
        return "Usage: /done <task id> (or run it while a reminder is shown)."
    task = state.scheduler.mark_as_done(task_id)
    if task is None:
        return "Sorry, I couldn't find that task."
    return f'Nice work! "{task.text}" is marked as done.'


def cmd_snooze(state: AppState, args: list[str]) -> str:
    task_id = _target_id(state, args)
    if task_id is None:
        return "Usage: /snooze <task id> (or run it while a reminder is shown)."
    if task_id not in state.store:
        return "Sorry, I couldn't find that task."
    until = state.scheduler.snooze(task_id)
    return f"Snoozed until {format_hhmm(until, state.dispatcher.tz)}."


def cmd_dismiss(state: AppState, args: list[str]) -> str:
    if state.scheduler.active is None:
        return "There is no active reminder."
    state.scheduler.dismiss()
    return "Reminder dismissed."


def cmd_schedule(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit is not None and state.writer.pending:
        emit(f"[SCHEDULE] {state.writer.pending} write(s) still saving; showing in-memory state.")
    now = state.dispatcher.now()
    return state.dispatcher.generate_notification_schedule(now)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings and engine state.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [priority|due|latest].", aliases=["goals"])
registry.register("calendar", cmd_calendar, help_text="Tasks due on a day: /calendar [YYYY-MM-DD].")
registry.register("done", cmd_done, help_text="Mark a task as done: /done <id>.")
registry.register("snooze", cmd_snooze, help_text="Snooze a task's reminders for a few minutes: /snooze <id>.")
registry.register("dismiss", cmd_dismiss, help_text="Close the active reminder.")
registry.register("schedule", cmd_schedule, help_text="Show upcoming notifications as JSON.")
