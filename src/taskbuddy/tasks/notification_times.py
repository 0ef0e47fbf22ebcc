# src/taskbuddy/tasks/notification_times.py

"""
When should a task notify the user?

Pure functions, no store access:
- compute_instants(task, now): the future notification instants of one task
- generate_schedule(tasks, now): the same over every pending task with a due date

Rules, in order:
1. custom_notification_time, when set, is the only candidate;
2. otherwise due_date minus a per-type offset;
3. high priority adds due_date - 24h unless it lands within 60s of a candidate;
4. candidates not strictly after `now` are dropped.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Any

from .task_models import Priority, Task, TaskType
from .timeutil import format_hhmm, to_local_naive_iso

DEFAULT_OFFSETS: dict[TaskType, timedelta] = {
    TaskType.APPOINTMENT: timedelta(minutes=60),
    TaskType.MEETING: timedelta(minutes=90),
    TaskType.ASSIGNMENT: timedelta(minutes=30),
    TaskType.OTHER: timedelta(minutes=15),
}
HIGH_PRIORITY_LEAD = timedelta(hours=24)
PROXIMITY = timedelta(seconds=60)


@dataclass(slots=True, frozen=True)
class ScheduledNotification:
    task: Task
    notify_at: datetime
    message: str

    def to_json(self, tz: tzinfo | None = None) -> dict[str, Any]:
        return {
            "task": self.task.text,
            "notify_at": to_local_naive_iso(self.notify_at, tz),
            "message": self.message,
        }


def notification_message(task: Task, tz: tzinfo | None = None) -> str:
    anchor = task.due_date or task.custom_notification_time
    at = format_hhmm(anchor, tz) if anchor is not None else "--:--"
    return f"Reminder: '{task.text}' is due at {at}. Priority: {task.priority.value.capitalize()}"


def _candidates(task: Task) -> list[datetime]:
    if task.custom_notification_time is not None:
        return [task.custom_notification_time]

    if task.due_date is None:
        return []

    offset = DEFAULT_OFFSETS.get(task.type, DEFAULT_OFFSETS[TaskType.OTHER])
    picked = [task.due_date - offset]

    if task.priority == Priority.HIGH:
        early = task.due_date - HIGH_PRIORITY_LEAD
        if all(abs(early - c) > PROXIMITY for c in picked):
            picked.append(early)

    return picked


def compute_instants(
    task: Task, now: datetime, *, tz: tzinfo | None = None
) -> list[ScheduledNotification]:
    message = notification_message(task, tz)
    return [
        ScheduledNotification(task=task, notify_at=instant, message=message)
        for instant in _candidates(task)
        if instant > now
    ]


def generate_schedule(
    tasks: Iterable[Task], now: datetime, *, tz: tzinfo | None = None
) -> list[ScheduledNotification]:
    """Flattened in task iteration order (not globally sorted by instant)."""
    out: list[ScheduledNotification] = []
    for task in tasks:
        if task.is_completed or task.due_date is None:
            continue
        out.extend(compute_instants(task, now, tz=tz))
    return out
