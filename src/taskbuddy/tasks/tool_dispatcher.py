# src/taskbuddy/tasks/tool_dispatcher.py

from __future__ import annotations

"""
Tool-call dispatcher.

Takes the complete batch of tool invocations produced by one conversational
turn, applies them to the TaskStore strictly in the order received, and
resolves ONE reply for the turn by fixed precedence (highest wins):

    deletion > update > productivity report > notification schedule
    > creation/reminder confirmation > a failed tool > the model's own text

Unresolved task ids are answered with a plain sentence; nothing raised by a
single tool escapes the batch.
"""

import asyncio
import json
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, tzinfo
from typing import Any

from ..core.errors import ValidationError, friendly_error_message, is_quota_error
from ..core.ports import AnalysisClient, ToolCall
from . import tool_schemas as tools
from .analysis import ANALYSIS_SCHEMA, INSUFFICIENT_HISTORY_MESSAGE, build_payload, render_report
from .notification_times import generate_schedule
from .task_models import Priority, Task, TaskType, new_record_id
from .task_store import TaskStore
from .timeutil import format_human, now_local, parse_timestamp

logger = logging.getLogger(__name__)

DELETE_NOT_FOUND = "Sorry, I couldn't find that task."
UPDATE_NOT_FOUND = "Sorry, I couldn't find that task to update."
REMINDER_NOT_FOUND = "Sorry, I couldn't find that task to set a reminder."
NOTHING_TO_SCHEDULE = (
    "There's nothing to schedule right now: none of your pending tasks "
    "has an upcoming deadline."
)
ANALYSIS_UNAVAILABLE = "Sorry, I couldn't analyze your productivity right now. Please try again later."

_TRUE_STATUS = {"completed", "complete", "done", "finished", "true", "1", "yes"}
_FALSE_STATUS = {"pending", "open", "incomplete", "not completed", "todo", "false", "0", "no"}


@dataclass(slots=True)
class TurnOutcome:
    """What one dispatched turn did, plus the single reply to show."""

    reply: str
    created: list[Task] = field(default_factory=list)
    reminded: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unknown_tools: list[str] = field(default_factory=list)

    @property
    def changed_store(self) -> bool:
        return bool(self.created or self.reminded or self.updated or self.deleted)


@dataclass(slots=True)
class _TurnResults:
    created: list[Task] = field(default_factory=list)
    reminded_texts: list[str] = field(default_factory=list)
    reminder_failures: int = 0
    deletion_message: str = ""
    update_message: str = ""
    analysis_report: str = ""
    schedule_report: str = ""
    updated_ids: list[str] = field(default_factory=list)
    deleted_ids: list[str] = field(default_factory=list)
    unknown_tools: list[str] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)


def _arg_str(args: dict[str, Any], key: str) -> str | None:
    raw = args.get(key)
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def _arg_time(args: dict[str, Any], key: str, tz: tzinfo | None = None) -> datetime | None:
    raw = args.get(key)
    try:
        return parse_timestamp(raw, tz)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparsable %s=%r", key, raw)
        return None


def _parse_status(raw: Any) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return None
    s = str(raw).strip().lower()
    if s in _TRUE_STATUS:
        return True
    if s in _FALSE_STATUS:
        return False
    logger.warning("Ignoring unknown newStatus=%r", raw)
    return None


def _normalize_args(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            val = json.loads(raw)
            return val if isinstance(val, dict) else {}
        except ValueError:
            logger.warning("Tool arguments are not valid JSON: %r", raw[:200])
    return {}


class ToolCallDispatcher:
    def __init__(
        self,
        store: TaskStore,
        *,
        analyzer: AnalysisClient | None = None,
        clock: Callable[[], datetime] = now_local,
        min_tasks_for_analysis: int = 5,
        tz: tzinfo | None = None,
    ) -> None:
        self._store = store
        self._analyzer = analyzer
        self._clock = clock
        self._min_tasks = max(1, int(min_tasks_for_analysis))
        self._tz = tz

    def now(self) -> datetime:
        return self._clock()

    @property
    def tz(self) -> tzinfo | None:
        return self._tz

    async def dispatch(self, tool_calls: Iterable[ToolCall], text: str = "") -> TurnOutcome:
        """
        Apply a full turn of tool calls, in order, and resolve the reply.

        Callers must pass the complete batch: processing a partially streamed
        turn would confirm actions the model had not finished emitting.
        """
        acc = _TurnResults()

        for call in tool_calls:
            args = _normalize_args(call.args)
            try:
                await self._apply(call.name, args, acc)
            except Exception as e:
                logger.exception("Tool %s failed args=%r", call.name, args)
                acc.errors.append(e)

        reply = self._resolve_reply(acc, text)
        logger.debug(
            "Turn dispatched created=%d reminded=%d updated=%d deleted=%d",
            len(acc.created),
            len(acc.reminded_texts),
            len(acc.updated_ids),
            len(acc.deleted_ids),
        )
        return TurnOutcome(
            reply=reply,
            created=list(acc.created),
            reminded=list(acc.reminded_texts),
            updated=list(acc.updated_ids),
            deleted=list(acc.deleted_ids),
            unknown_tools=list(acc.unknown_tools),
        )

    async def _apply(self, name: str, args: dict[str, Any], acc: _TurnResults) -> None:
        now = self._clock()

        if name == tools.CREATE_TASK:
            task = self.create_task(args, now)
            if task is not None:
                acc.created.append(task)

        elif name == tools.UPDATE_TASK:
            task_id = _arg_str(args, "taskId") or ""
            before = self._store.get(task_id)
            acc.update_message = self.update_task(args, now)
            if before is not None and self._store.get(task_id) is not before:
                acc.updated_ids.append(task_id)

        elif name == tools.SCHEDULE_REMINDER:
            reminded = self.schedule_reminder(args)
            if reminded is not None:
                acc.reminded_texts.append(reminded)
            else:
                acc.reminder_failures += 1

        elif name == tools.DELETE_TASK:
            task_id = _arg_str(args, "taskId") or ""
            deleted = self.delete_task(task_id)
            if deleted is not None:
                acc.deletion_message = f'Alright, I\'ve removed the task: "{deleted}".'
                acc.deleted_ids.append(task_id)
            else:
                acc.deletion_message = DELETE_NOT_FOUND

        elif name == tools.ANALYZE_PRODUCTIVITY:
            acc.analysis_report = await self.analyze_productivity_patterns()

        elif name == tools.GENERATE_SCHEDULE:
            acc.schedule_report = self.generate_notification_schedule(now)

        else:
            logger.warning("Unknown tool %r ignored", name)
            acc.unknown_tools.append(name)

    # ---- tools ----

    def create_task(self, args: dict[str, Any], now: datetime) -> Task | None:
        text = _arg_str(args, "text")
        if not text:
            logger.warning("createTask without text ignored args=%r", args)
            return None

        raw_priority = args.get("priority")
        priority = Priority.parse(raw_priority, Priority.MEDIUM) or Priority.MEDIUM
        if raw_priority and priority.value != str(raw_priority).strip().lower():
            logger.warning("createTask: unknown priority %r -> medium", raw_priority)

        task = Task(
            id=self._new_task_id(),
            text=text,
            owner=self._store.owner,
            created_at=now,
            priority=priority,
            type=TaskType.parse(args.get("type"), TaskType.OTHER) or TaskType.OTHER,
            due_date=_arg_time(args, "dueDate", self._tz),
            category=_arg_str(args, "category"),
            custom_notification_time=_arg_time(args, "customNotificationTime", self._tz),
        )
        self._store.insert(task)
        logger.info("Task created id=%s text=%r", task.id, task.text)
        return task

    def update_task(self, args: dict[str, Any], now: datetime) -> str:
        task_id = _arg_str(args, "taskId") or ""
        try:
            task = self._require(task_id)
        except ValidationError as e:
            logger.info("updateTask: %s", e)
            return UPDATE_NOT_FOUND

        changes: list[str] = []
        fields: dict[str, Any] = {}
        due_changed = False

        new_text = _arg_str(args, "newText")
        if new_text is not None and new_text != task.text:
            fields["text"] = new_text
            changes.append(f'renamed it to "{new_text}"')

        new_due = _arg_time(args, "newDueDate", self._tz)
        if new_due is not None and new_due != task.due_date:
            fields["due_date"] = new_due
            due_changed = True
            changes.append(f"moved the deadline to {format_human(new_due, self._tz)}")

        if args.get("newPriority") is not None:
            new_priority = Priority.parse(args.get("newPriority"))
            if new_priority is None:
                logger.warning("updateTask: unknown newPriority=%r ignored", args.get("newPriority"))
            elif new_priority != task.priority:
                fields["priority"] = new_priority
                changes.append(f"set the priority to {new_priority.value.capitalize()}")

        new_category = _arg_str(args, "newCategory")
        if new_category is not None and new_category != task.category:
            fields["category"] = new_category
            changes.append(f'changed the category to "{new_category}"')

        if args.get("newType") is not None:
            new_type = TaskType.parse(args.get("newType"))
            if new_type is None:
                logger.warning("updateTask: unknown newType=%r ignored", args.get("newType"))
            elif new_type != task.type:
                fields["type"] = new_type
                changes.append(f"changed the type to {new_type.value}")

        new_notify = _arg_time(args, "newNotificationTime", self._tz)
        if new_notify is not None and new_notify != task.custom_notification_time:
            fields["custom_notification_time"] = new_notify
            changes.append(f"set the notification time to {format_human(new_notify, self._tz)}")

        new_status = _parse_status(args.get("newStatus"))
        status_changed = new_status is not None and new_status != task.is_completed
        if status_changed:
            changes.append("marked it as completed" if new_status else "marked it as pending")

        if not changes:
            return f'It looks like no changes were needed for "{task.text}".'

        updated = replace(task, reminders=list(task.reminders), **fields)
        if status_changed:
            updated = updated.with_completion(bool(new_status), now)
        self._store.replace(updated)
        logger.info("Task updated id=%s changes=%d", task.id, len(changes))

        if due_changed and len(changes) == 1:
            return (
                f'OK, I\'ve moved the deadline for "{updated.text}" to '
                f"{format_human(updated.due_date, self._tz)}."
            )

        summary = "; ".join(changes)
        return f'OK, I\'ve updated "{task.text}": {summary}.\n\n{self._details_block(updated)}'

    def schedule_reminder(self, args: dict[str, Any]) -> str | None:
        """Append a reminder instant (no dedup). Returns the task text, or None."""
        task_id = _arg_str(args, "taskId") or ""
        task = self._store.get(task_id)
        if task is None:
            logger.info("scheduleReminder: unknown task_id=%s", task_id)
            return None

        instant = _arg_time(args, "reminderTime", self._tz)
        if instant is None:
            logger.warning("scheduleReminder: missing/invalid reminderTime for task_id=%s", task_id)
            return None

        self._store.replace(task.with_reminder(instant))
        logger.info("Reminder scheduled task_id=%s at=%s", task_id, instant.isoformat())
        return task.text

    def delete_task(self, task_id: str) -> str | None:
        removed = self._store.remove(task_id)
        if removed is None:
            logger.info("deleteTask: unknown task_id=%s", task_id)
            return None
        logger.info("Task deleted id=%s", task_id)
        return removed.text

    async def analyze_productivity_patterns(self) -> str:
        tasks = self._store.tasks()
        if len(tasks) < self._min_tasks:
            return INSUFFICIENT_HISTORY_MESSAGE.format(minimum=self._min_tasks)

        if self._analyzer is None:
            logger.warning("Productivity analysis requested but no analyzer is configured.")
            return ANALYSIS_UNAVAILABLE

        payload = build_payload(tasks)
        try:
            result = await asyncio.to_thread(self._analyzer.analyze, payload, ANALYSIS_SCHEMA)
        except Exception as e:
            if is_quota_error(e):
                logger.warning("Productivity analysis rate-limited: %s", e)
                return friendly_error_message(e)
            logger.exception("Productivity analysis failed.")
            return ANALYSIS_UNAVAILABLE

        return render_report(result)

    def generate_notification_schedule(self, now: datetime) -> str:
        entries = generate_schedule(self._store.tasks(), now, tz=self._tz)
        if not entries:
            return NOTHING_TO_SCHEDULE
        return json.dumps([e.to_json(self._tz) for e in entries], indent=2, ensure_ascii=False)

    # ---- helpers ----

    def _require(self, task_id: str) -> Task:
        task = self._store.get(task_id)
        if task is None:
            raise ValidationError(task_id)
        return task

    def _new_task_id(self) -> str:
        while True:
            task_id = new_record_id("task")
            if task_id not in self._store:
                return task_id

    def _details_block(self, task: Task) -> str:
        deadline = format_human(task.due_date, self._tz) if task.due_date else "No deadline"
        return "\n".join(
            [
                "Current details:",
                f"- Name: {task.text}",
                f"- Status: {'Completed' if task.is_completed else 'Pending'}",
                f"- Priority: {task.priority.value.capitalize()}",
                f"- Deadline: {deadline}",
            ]
        )

    def _resolve_reply(self, acc: _TurnResults, text: str) -> str:
        if acc.deletion_message:
            return acc.deletion_message
        if acc.update_message:
            return acc.update_message
        if acc.analysis_report:
            return acc.analysis_report
        if acc.schedule_report:
            return acc.schedule_report

        confirmation = ""
        if len(acc.created) > 1:
            confirmation = f"Got it. I've added all {len(acc.created)} tasks to your list."
        elif len(acc.created) == 1:
            confirmation = f'OK, I\'ve added "{acc.created[0].text}" to your list.'

        if acc.reminded_texts:
            joined = '", "'.join(acc.reminded_texts)
            reminder_conf = f'I\'ll remind you about: "{joined}".'
            confirmation = f"{confirmation} {reminder_conf}" if confirmation else f"OK. {reminder_conf}"
        elif acc.reminder_failures and not confirmation:
            confirmation = REMINDER_NOT_FOUND

        if confirmation:
            return confirmation

        if acc.errors:
            return friendly_error_message(acc.errors[0])
        return text.strip()
