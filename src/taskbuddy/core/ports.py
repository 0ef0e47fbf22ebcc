# src/taskbuddy/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/LLM providers swappable and makes testing easier.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .events import EngineEvent

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

TaskRecord = dict[str, Any]
MessageRecord = dict[str, Any]

EventSink = Callable[[EngineEvent], None]


@dataclass(slots=True, frozen=True)
class ToolCall:
    """One structured tool invocation emitted by the conversational model."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None


@dataclass(slots=True)
class TurnChunk:
    """
    A piece of a streamed model turn.

    Text arrives incrementally; tool calls arrive only once their arguments
    are complete. Consumers must read the whole stream before acting.
    """

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


class LLMClient(Protocol):
    """Tool-calling chat completion client (OpenAI/OpenRouter-compatible)."""

    def stream_turn(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            tools: list[dict[str, Any]],
    ) -> Iterable[TurnChunk]: ...

    def complete_json(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            schema: dict[str, Any],
    ) -> dict[str, Any]: ...


class AnalysisClient(Protocol):
    """Summarization collaborator: task-history payload in, {"patterns", "suggestions"} out."""

    def analyze(self, payload: str, schema: dict[str, Any]) -> dict[str, Any]: ...


class PersistenceGateway(Protocol):
    """
    Durable mirror of the in-memory stores.

    put_* is an idempotent upsert keyed by record id.
    get_all_messages returns messages ordered by the timestamp embedded in the id.
    """

    def put_task(self, record: TaskRecord) -> None: ...
    def delete_task(self, task_id: str) -> None: ...
    def get_all_tasks(self, owner: str) -> list[TaskRecord]: ...

    def put_message(self, record: MessageRecord) -> None: ...
    def get_all_messages(self, owner: str) -> list[MessageRecord]: ...
