# tests/test_task_store.py

from __future__ import annotations

import pytest

from taskbuddy.core.events import PersistenceWarning
from taskbuddy.core.history import MessageHistory
from taskbuddy.core.persistence import MirroredWriter
from taskbuddy.tasks.task_models import Role
from taskbuddy.tasks.task_store import TaskStore

from .fakes import NOW, OWNER, EventRecorder, FakeGateway, make_task


def test_insert_without_loop_writes_inline(store, gateway) -> None:
    task = make_task()
    store.insert(task)

    assert store.get(task.id) is task
    assert gateway.tasks[task.id]["text"] == "Write report"


def test_store_is_scoped_to_owner(gateway) -> None:
    store = TaskStore(OWNER, gateway)
    store.insert(make_task("task-1-a"))
    store.insert(make_task("task-2-b", owner="bob"))

    assert len(store) == 1
    assert [t.id for t in store.tasks()] == ["task-1-a"]
    assert [t.id for t in store.list_by_owner("bob")] == ["task-2-b"]


def test_replace_keeps_scan_position(store) -> None:
    store.insert(make_task("task-1-a", text="a"))
    store.insert(make_task("task-2-b", text="b"))
    store.replace(make_task("task-1-a", text="a2"))

    assert [t.text for t in store.tasks()] == ["a2", "b"]


def test_remove_unknown_id_returns_none(store, gateway) -> None:
    assert store.remove("task-nope") is None
    assert gateway.ops == []


def test_load_round_trips_through_gateway(gateway) -> None:
    first = TaskStore(OWNER, gateway)
    first.insert(make_task(reminders=[NOW], due_date=NOW, is_completed=True, completed_at=NOW))

    second = TaskStore(OWNER, gateway)
    assert second.load() == 1
    loaded = second.get(make_task().id)
    assert loaded is not None
    assert loaded.reminders == [NOW]
    assert loaded.is_completed and loaded.completed_at == NOW


def test_failed_write_keeps_memory_and_emits_warning() -> None:
    gateway = FakeGateway(fail_ops={"put_task"})
    events = EventRecorder()
    writer = MirroredWriter(emit=events)
    store = TaskStore(OWNER, gateway, writer=writer)

    store.insert(make_task())

    assert make_task().id in store
    assert gateway.tasks == {}
    assert writer.failures == 1
    (warning,) = events.of_type(PersistenceWarning)
    assert warning.op == "put_task"
    assert "could not be saved" in warning.message


@pytest.mark.asyncio
async def test_writes_are_fire_and_forget_inside_a_loop(gateway) -> None:
    store = TaskStore(OWNER, gateway)
    store.insert(make_task("task-1-a"))
    store.insert(make_task("task-2-b"))
    store.remove("task-1-a")

    # Memory is already updated; the gateway catches up on flush.
    assert [t.id for t in store.tasks()] == ["task-2-b"]
    await store.flush()

    assert store.writer.pending == 0
    assert [op for op, _ in gateway.ops] == ["put_task", "put_task", "delete_task"]
    assert set(gateway.tasks) == {"task-2-b"}


@pytest.mark.asyncio
async def test_failed_async_write_is_reported_not_raised() -> None:
    gateway = FakeGateway(fail_ops={"delete_task"})
    events = EventRecorder()
    store = TaskStore(OWNER, gateway, writer=MirroredWriter(emit=events))
    store.insert(make_task())

    assert store.remove(make_task().id) is not None
    await store.flush()

    assert len(store) == 0
    assert [w.op for w in events.of_type(PersistenceWarning)] == ["delete_task"]


def test_history_appends_and_maps_roles(gateway) -> None:
    history = MessageHistory(OWNER, gateway)
    history.append(Role.USER, "hi", now=NOW)
    history.append(Role.MODEL, "hello", now=NOW)
    history.append(Role.USER, "add milk", now=NOW)

    assert history.as_chat_messages(2) == [
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "add milk"},
    ]
    assert history.as_chat_messages(0) == []
    assert len(gateway.messages) == 3

    reloaded = MessageHistory(OWNER, gateway)
    assert reloaded.load() == 3
