# src/taskbuddy/core/chat.py

"""
Core chat orchestration.

This module is transport-agnostic:
- connectors pass inbound text,
- the core adds the task context, runs one model turn and dispatches its tool calls,
- connectors decide how to show the reply.

Key invariants:
- the whole model turn (text + tool calls) is collected before anything is dispatched,
- the model reply is recorded only after the turn completed,
- nothing raised here escapes to the connector: failures become a friendly reply.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, tzinfo

from ..tasks.task_models import Role, Task
from ..tasks.timeutil import to_iso
from ..tasks.tool_dispatcher import TurnOutcome
from ..tasks.tool_schemas import TOOL_DEFINITIONS
from .errors import friendly_error_message
from .persona import get_system_prompt
from .ports import ChatMessage, LLMClient, ToolCall
from .state import AppState

logger = logging.getLogger(__name__)

USER_MESSAGE_MARKER = "User message:"


def _format_task_line(t: Task) -> str:
    status = "Completed" if t.is_completed else "Pending"
    due = f', Due: "{to_iso(t.due_date)}"' if t.due_date is not None else ""
    return f'- Task ID: {t.id}, Text: "{t.text}", Status: {status}{due}'


def build_augmented_message(user_text: str, tasks: list[Task], now: datetime) -> str:
    """
    Prefix the user's text with the current time and the full task list.

    The model needs the list to resolve task ids for update/delete/reminder tools.
    """
    time_note = f"(System note: Current time is {to_iso(now)}. Use this for all time calculations.)"
    if tasks:
        lines = "\n".join(_format_task_line(t) for t in tasks)
        task_note = (
            "(System note: Here is the user's full task list, including status. "
            "Use this to answer questions about tasks, summarize progress, "
            "or find the correct 'taskId' for other tools.)\n"
            f"{lines}"
        )
    else:
        task_note = "(System note: The user currently has no tasks.)"
    return f"{time_note}\n\n{task_note}\n\n{USER_MESSAGE_MARKER} {user_text}"


def collect_turn(
    llm: LLMClient,
    messages: list[ChatMessage],
    system_prompt: str,
) -> tuple[str, list[ToolCall]]:
    """Drain one streamed turn. Blocking; run it in a worker thread."""
    text_parts: list[str] = []
    calls: list[ToolCall] = []
    for chunk in llm.stream_turn(messages, system_prompt, TOOL_DEFINITIONS):
        if chunk.text:
            text_parts.append(chunk.text)
        if chunk.tool_calls:
            calls.extend(chunk.tool_calls)
    return "".join(text_parts).strip(), calls


async def run_turn(state: AppState, user_text: str, *, tz: tzinfo | None = None) -> TurnOutcome:
    """
    One conversational turn. Raises on model failures; see handle_turn for the safe wrapper.
    """
    s = state.settings
    limit = int(getattr(s, "history_limit", 20))

    # Prior history only: the current message goes in augmented, not raw.
    prior = state.history.as_chat_messages(limit)
    state.history.append(Role.USER, user_text)

    now = state.dispatcher.now()
    augmented = build_augmented_message(user_text, state.store.tasks(), now)
    messages: list[ChatMessage] = [*prior, {"role": "user", "content": augmented}]

    text, calls = await asyncio.to_thread(collect_turn, state.llm, messages, get_system_prompt(tz))
    logger.debug("Turn collected text_len=%d tool_calls=%d", len(text), len(calls))

    outcome = await state.dispatcher.dispatch(calls, text)
    if outcome.unknown_tools:
        logger.warning("Model asked for unknown tools: %s", ", ".join(outcome.unknown_tools))
    if outcome.changed_store:
        logger.info(
            "Turn changed tasks created=%d reminded=%d updated=%d deleted=%d",
            len(outcome.created),
            len(outcome.reminded),
            len(outcome.updated),
            len(outcome.deleted),
        )

    if outcome.reply:
        state.history.append(Role.MODEL, outcome.reply)
    return outcome


async def handle_turn(state: AppState, user_text: str, *, tz: tzinfo | None = None) -> str:
    """Run a turn and return the reply text. Never raises."""
    text = (user_text or "").strip()
    if not text:
        return ""
    try:
        outcome = await run_turn(state, text, tz=tz)
    except Exception as e:
        logger.exception("Chat turn failed")
        reply = friendly_error_message(e)
        state.history.append(Role.MODEL, reply)
        return reply
    return outcome.reply
