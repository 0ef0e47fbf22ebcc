# src/taskbuddy/tasks/task_models.py

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from .timeutil import parse_timestamp, to_iso

logger = logging.getLogger(__name__)


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, raw: Any, default: Priority | None = None) -> Priority | None:
        """Case-insensitive parse; unknown values fall back to `default`."""
        if isinstance(raw, Priority):
            return raw
        if not raw:
            return default
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return default


class TaskType(StrEnum):
    APPOINTMENT = "Appointment"
    MEETING = "Meeting"
    ASSIGNMENT = "Assignment"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw: Any, default: TaskType | None = None) -> TaskType | None:
        if isinstance(raw, TaskType):
            return raw
        if not raw:
            return default
        s = str(raw).strip().lower()
        for member in cls:
            if member.value.lower() == s:
                return member
        return default


class Role(StrEnum):
    USER = "user"
    MODEL = "model"


def new_record_id(prefix: str) -> str:
    """
    `<prefix>-<epoch-ms>-<suffix>`.

    The millisecond part is what sorting-by-creation reads back; the suffix
    keeps ids unique when several records are created in the same millisecond.
    """
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


def id_timestamp_ms(record_id: str) -> int:
    try:
        return int(record_id.split("-")[1])
    except (IndexError, ValueError):
        return 0


@dataclass(slots=True)
class Task:
    id: str
    text: str
    owner: str
    created_at: datetime

    priority: Priority = Priority.MEDIUM
    type: TaskType = TaskType.OTHER
    is_completed: bool = False
    completed_at: datetime | None = None

    due_date: datetime | None = None
    reminders: list[datetime] = field(default_factory=list)
    category: str | None = None
    custom_notification_time: datetime | None = None

    def __post_init__(self) -> None:
        if self.is_completed != (self.completed_at is not None):
            raise ValueError(
                f"Task {self.id}: completed_at must be set iff is_completed "
                f"(is_completed={self.is_completed}, completed_at={self.completed_at})"
            )

    @property
    def is_pending(self) -> bool:
        return not self.is_completed

    def with_completion(self, completed: bool, now: datetime) -> Task:
        """Copy with the completion flag changed; completed_at follows the flag."""
        if completed == self.is_completed:
            return replace(self, reminders=list(self.reminders))
        return replace(
            self,
            is_completed=completed,
            completed_at=now if completed else None,
            reminders=list(self.reminders),
        )

    def with_reminder(self, instant: datetime) -> Task:
        return replace(self, reminders=[*self.reminders, instant])

    # ---- records (gateway format) ----

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "text": self.text,
            "is_completed": bool(self.is_completed),
            "completed_at": to_iso(self.completed_at) if self.completed_at else None,
            "due_date": to_iso(self.due_date) if self.due_date else None,
            "priority": self.priority.value,
            "type": self.type.value,
            "category": self.category,
            "custom_notification_time": (
                to_iso(self.custom_notification_time) if self.custom_notification_time else None
            ),
            "reminders": json.dumps([to_iso(r) for r in self.reminders]),
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> Task:
        created_at = _safe_ts(rec.get("created_at")) or datetime.fromtimestamp(
            id_timestamp_ms(str(rec.get("id", ""))) / 1000.0
        ).astimezone()

        is_completed = bool(rec.get("is_completed"))
        completed_at = _safe_ts(rec.get("completed_at")) if is_completed else None
        if is_completed and completed_at is None:
            # Older rows stored only the flag.
            completed_at = created_at

        raw_reminders = rec.get("reminders") or "[]"
        if isinstance(raw_reminders, str):
            try:
                raw_reminders = json.loads(raw_reminders)
            except ValueError:
                logger.warning("Task %s: unreadable reminders column; dropping", rec.get("id"))
                raw_reminders = []
        reminders = [r for r in (_safe_ts(x) for x in raw_reminders or []) if r is not None]

        return cls(
            id=str(rec["id"]),
            text=str(rec.get("text") or ""),
            owner=str(rec.get("owner") or ""),
            created_at=created_at,
            priority=Priority.parse(rec.get("priority"), Priority.MEDIUM) or Priority.MEDIUM,
            type=TaskType.parse(rec.get("type"), TaskType.OTHER) or TaskType.OTHER,
            is_completed=is_completed,
            completed_at=completed_at,
            due_date=_safe_ts(rec.get("due_date")),
            reminders=reminders,
            category=rec.get("category") or None,
            custom_notification_time=_safe_ts(rec.get("custom_notification_time")),
        )


@dataclass(slots=True)
class Message:
    id: str
    role: Role
    text: str
    timestamp: datetime
    owner: str

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": to_iso(self.timestamp),
            "owner": self.owner,
        }

    @classmethod
    def from_record(cls, rec: dict[str, Any]) -> Message:
        try:
            role = Role(str(rec.get("role") or "user"))
        except ValueError:
            role = Role.USER
        return cls(
            id=str(rec["id"]),
            role=role,
            text=str(rec.get("text") or ""),
            timestamp=_safe_ts(rec.get("timestamp"))
            or datetime.fromtimestamp(id_timestamp_ms(str(rec["id"])) / 1000.0).astimezone(),
            owner=str(rec.get("owner") or ""),
        )


def _safe_ts(raw: Any) -> datetime | None:
    try:
        return parse_timestamp(raw)
    except (TypeError, ValueError):
        logger.warning("Unreadable timestamp %r; ignoring", raw)
        return None
