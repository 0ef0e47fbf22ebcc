# src/taskbuddy/tasks/views.py

"""
Data side of the goals and calendar screens: sorting and per-day queries.
Rendering is left to the connector.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, tzinfo
from enum import StrEnum

from .task_models import Priority, Task, id_timestamp_ms

_PRIORITY_ORDER = {Priority.HIGH: 1, Priority.MEDIUM: 2, Priority.LOW: 3}


class SortOption(StrEnum):
    PRIORITY = "priority"
    DUE = "due"
    LATEST = "latest"

    @classmethod
    def parse(cls, raw: str | None) -> SortOption:
        s = (raw or "").strip().lower()
        if s in {"duedate", "due_date", "deadline"}:
            return cls.DUE
        try:
            return cls(s)
        except ValueError:
            return cls.DUE


def _sorted(tasks: list[Task], option: SortOption) -> list[Task]:
    if option == SortOption.PRIORITY:
        return sorted(tasks, key=lambda t: _PRIORITY_ORDER[t.priority])
    if option == SortOption.LATEST:
        return sorted(tasks, key=lambda t: id_timestamp_ms(t.id), reverse=True)
    # Tasks with a deadline first (ascending); the rest keep their order.
    with_due = sorted((t for t in tasks if t.due_date is not None), key=lambda t: t.due_date)
    without_due = [t for t in tasks if t.due_date is None]
    return with_due + without_due


def sort_tasks(
    tasks: Iterable[Task], option: SortOption = SortOption.DUE
) -> tuple[list[Task], list[Task]]:
    """Split into (pending, completed), each sorted by `option`."""
    items = list(tasks)
    pending = [t for t in items if t.is_pending]
    completed = [t for t in items if t.is_completed]
    return _sorted(pending, option), _sorted(completed, option)


def tasks_for_day(tasks: Iterable[Task], day: date, tz: tzinfo | None = None) -> list[Task]:
    hits = [t for t in tasks if t.due_date is not None and t.due_date.astimezone(tz).date() == day]
    return sorted(hits, key=lambda t: t.due_date)


def days_with_tasks(tasks: Iterable[Task], tz: tzinfo | None = None) -> set[date]:
    return {t.due_date.astimezone(tz).date() for t in tasks if t.due_date is not None}
