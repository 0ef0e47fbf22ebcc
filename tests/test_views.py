# tests/test_views.py

from __future__ import annotations

from datetime import UTC, date, timedelta

from taskbuddy.tasks.task_models import Priority
from taskbuddy.tasks.views import SortOption, days_with_tasks, sort_tasks, tasks_for_day

from .fakes import NOW, make_task


def _sample():
    return [
        make_task("task-1000-a", text="old low", priority=Priority.LOW, due_date=NOW + timedelta(days=3)),
        make_task("task-3000-c", text="new high", priority=Priority.HIGH),
        make_task("task-2000-b", text="mid soon", due_date=NOW + timedelta(hours=1)),
        make_task("task-4000-d", text="done", is_completed=True, completed_at=NOW),
    ]


def test_sort_by_priority() -> None:
    pending, completed = sort_tasks(_sample(), SortOption.PRIORITY)
    assert [t.text for t in pending] == ["new high", "mid soon", "old low"]
    assert [t.text for t in completed] == ["done"]


def test_sort_by_due_puts_undated_last() -> None:
    pending, _ = sort_tasks(_sample(), SortOption.DUE)
    assert [t.text for t in pending] == ["mid soon", "old low", "new high"]


def test_sort_by_latest_uses_id_timestamp() -> None:
    pending, _ = sort_tasks(_sample(), SortOption.LATEST)
    assert [t.text for t in pending] == ["new high", "mid soon", "old low"]


def test_sort_option_parse_defaults_to_due() -> None:
    assert SortOption.parse("Priority") == SortOption.PRIORITY
    assert SortOption.parse("deadline") == SortOption.DUE
    assert SortOption.parse("whatever") == SortOption.DUE
    assert SortOption.parse(None) == SortOption.DUE


def test_tasks_for_day_and_marked_days() -> None:
    tasks = _sample()
    assert [t.text for t in tasks_for_day(tasks, date(2024, 7, 21), UTC)] == ["mid soon"]
    assert days_with_tasks(tasks, UTC) == {date(2024, 7, 21), date(2024, 7, 24)}
