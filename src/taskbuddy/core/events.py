# src/taskbuddy/core/events.py

"""
Domain events emitted by the engine.

The engine never renders anything. It calls an injected EventSink with one
of these records and the presentation layer (console connector, tests)
decides what to show.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from ..tasks.task_models import Task


class ClearReason(StrEnum):
    DONE = "done"
    SNOOZED = "snoozed"
    DISMISSED = "dismissed"


@dataclass(slots=True, frozen=True)
class ReminderFired:
    task: Task
    reminder_at: datetime
    fired_at: datetime


@dataclass(slots=True, frozen=True)
class NotificationCleared:
    task_id: str
    reason: ClearReason


@dataclass(slots=True, frozen=True)
class TaskSnoozed:
    task_id: str
    until: datetime


@dataclass(slots=True, frozen=True)
class SnoozeExpired:
    task_id: str


@dataclass(slots=True, frozen=True)
class PersistenceWarning:
    op: str
    message: str


EngineEvent = ReminderFired | NotificationCleared | TaskSnoozed | SnoozeExpired | PersistenceWarning
