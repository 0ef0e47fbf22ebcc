# src/taskbuddy/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (LLM/storage/tasks/scheduler),
- loads persisted tasks and conversation history.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from ..config import get_settings
from ..core.history import MessageHistory
from ..core.persistence import MirroredWriter
from ..core.ports import EventSink, LLMClient, PersistenceGateway
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..storage.sqlite_gateway import SqliteGateway
from ..tasks.analysis import LLMProductivityAnalyzer
from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_store import TaskStore
from ..tasks.tool_dispatcher import ToolCallDispatcher

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def _make_llm(settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except Exception as e:
        # Fallback for demos / local runs without external services.
        logger.info("Using offline LLM client: %s", e)
        return OfflineLLMClient()


def create_initial_state(
    *,
    settings=None,
    gateway: PersistenceGateway | None = None,
    llm: LLMClient | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the gateway/LLM) injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    if gateway is None:
        _ensure_local_dirs(settings)
        gateway = SqliteGateway(settings.db_path)

    if llm is None:
        llm = _make_llm(settings)

    writer = MirroredWriter()
    store = TaskStore(settings.owner, gateway, writer=writer)
    history = MessageHistory(settings.owner, gateway, writer=writer)

    scheduler = ReminderScheduler(
        store,
        poll_interval=timedelta(seconds=float(settings.poll_interval_seconds)),
        snooze_duration=timedelta(minutes=float(settings.snooze_minutes)),
    )
    dispatcher = ToolCallDispatcher(
        store,
        analyzer=LLMProductivityAnalyzer(llm),
        min_tasks_for_analysis=int(settings.min_tasks_for_analysis),
    )

    return AppState(
        settings=settings,
        llm=llm,
        writer=writer,
        store=store,
        history=history,
        scheduler=scheduler,
        dispatcher=dispatcher,
        gateway=gateway,
    )


def load_persisted(state: AppState) -> tuple[int, int]:
    """Load tasks and history from the gateway. Returns (tasks, messages)."""
    n_tasks = state.store.load()
    n_msgs = state.history.load()
    return n_tasks, n_msgs


def attach_event_sink(state: AppState, emit: EventSink | None) -> None:
    """Route scheduler and persistence events to one presentation sink."""
    state.scheduler.set_emitter(emit)
    state.writer.set_emitter(emit)
