# src/taskbuddy/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_store import TaskStore
from ..tasks.tool_dispatcher import ToolCallDispatcher
from .history import MessageHistory
from .persistence import MirroredWriter
from .ports import LLMClient, PersistenceGateway


@dataclass(slots=True)
class AppState:
    """Everything one running assistant needs, wired by cli.bootstrap."""

    settings: Any
    llm: LLMClient
    writer: MirroredWriter
    store: TaskStore
    history: MessageHistory
    scheduler: ReminderScheduler
    dispatcher: ToolCallDispatcher
    gateway: PersistenceGateway | None = None

    async def flush(self) -> None:
        await self.writer.flush()
