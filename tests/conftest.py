# tests/conftest.py

from __future__ import annotations

from datetime import UTC
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskbuddy.core.history import MessageHistory
from taskbuddy.core.persistence import MirroredWriter
from taskbuddy.core.state import AppState
from taskbuddy.tasks.reminder_scheduler import ReminderScheduler
from taskbuddy.tasks.task_store import TaskStore
from taskbuddy.tasks.tool_dispatcher import ToolCallDispatcher

from .fakes import NOW, OWNER, EventRecorder, FakeAnalyzer, FakeClock, FakeGateway, FakeLLMClient

@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskbuddy",
        owner=OWNER,
        llm_models=["test/model-a", "test/model-b"],
        data_dir=tmp_path,
        db_path=tmp_path / "taskbuddy.sqlite3",
        poll_interval_seconds=30.0,
        snooze_minutes=5.0,
        history_limit=20,
        min_tasks_for_analysis=5,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def events() -> EventRecorder:
    return EventRecorder()


@pytest.fixture()
def store(gateway: FakeGateway, events: EventRecorder) -> TaskStore:
    return TaskStore(OWNER, gateway, writer=MirroredWriter(emit=events))


@pytest.fixture()
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture()
def scheduler(store: TaskStore, clock: FakeClock, events: EventRecorder) -> ReminderScheduler:
    return ReminderScheduler(store, clock=clock, emit=events)


@pytest.fixture()
def dispatcher(store: TaskStore, analyzer: FakeAnalyzer, clock: FakeClock) -> ToolCallDispatcher:
    return ToolCallDispatcher(store, analyzer=analyzer, clock=clock, tz=UTC)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    gateway: FakeGateway,
    store: TaskStore,
    scheduler: ReminderScheduler,
    dispatcher: ToolCallDispatcher,
) -> AppState:
    """
    AppState wired with deterministic fakes (clock, LLM, gateway).
    """
    return AppState(
        settings=settings,
        llm=FakeLLMClient(),
        writer=store.writer,
        store=store,
        history=MessageHistory(OWNER, gateway, writer=store.writer),
        scheduler=scheduler,
        dispatcher=dispatcher,
        gateway=gateway,
    )

