# tests/test_chat.py

from __future__ import annotations

import logging
from datetime import UTC

import pytest

from taskbuddy.core.chat import build_augmented_message, handle_turn
from taskbuddy.core.ports import ToolCall
from taskbuddy.tasks import tool_schemas as tools
from taskbuddy.tasks.task_models import Role

from .fakes import NOW, FakeLLMClient, make_task


def test_augmented_message_lists_tasks_and_time() -> None:
    task = make_task(text="Report", due_date=NOW)
    msg = build_augmented_message("what's due?", [task], NOW)

    assert msg.startswith("(System note: Current time is 2024-07-21T18:00:00+00:00.")
    assert f'- Task ID: {task.id}, Text: "Report", Status: Pending, Due: "2024-07-21T18:00:00+00:00"' in msg
    assert msg.endswith("User message: what's due?")


def test_augmented_message_without_tasks() -> None:
    msg = build_augmented_message("hi", [], NOW)
    assert "The user currently has no tasks." in msg


@pytest.mark.asyncio
async def test_turn_dispatches_tool_calls_and_records_history(state) -> None:
    state.llm = FakeLLMClient(
        next_text="Adding those now.",
        next_calls=[
            ToolCall(name=tools.CREATE_TASK, args={"text": "milk"}),
            ToolCall(name=tools.CREATE_TASK, args={"text": "eggs"}),
        ],
    )

    reply = await handle_turn(state, "add milk and eggs", tz=UTC)
    await state.flush()

    assert reply == "Got it. I've added all 2 tasks to your list."
    assert [t.text for t in state.store.tasks()] == ["milk", "eggs"]
    assert [(m.role, m.text) for m in state.history.messages] == [
        (Role.USER, "add milk and eggs"),
        (Role.MODEL, reply),
    ]
    assert len(state.gateway.messages) == 2


@pytest.mark.asyncio
async def test_turn_sends_history_and_task_context(state) -> None:
    llm = FakeLLMClient(next_text="Sure.")
    state.llm = llm
    state.store.insert(make_task(text="Report"))

    await handle_turn(state, "first", tz=UTC)
    await handle_turn(state, "second", tz=UTC)

    messages, system_prompt = llm.calls[-1]
    assert "TaskBuddy" in system_prompt
    assert messages[:2] == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "Sure."},
    ]
    assert messages[-1]["role"] == "user"
    assert 'Text: "Report"' in messages[-1]["content"]
    assert messages[-1]["content"].endswith("User message: second")


@pytest.mark.asyncio
async def test_turn_failure_becomes_friendly_reply(state) -> None:
    llm = FakeLLMClient()
    llm.raise_on_turn = RuntimeError("LLM is rate-limited. Try again later.")
    state.llm = llm

    reply = await handle_turn(state, "hello", tz=UTC)

    assert "usage limit" in reply
    assert state.store.tasks() == []


@pytest.mark.asyncio
async def test_empty_input_is_ignored(state) -> None:
    assert await handle_turn(state, "   ") == ""
    assert len(state.history) == 0


@pytest.mark.asyncio
async def test_turn_logs_store_changes(state, caplog) -> None:
    state.llm = FakeLLMClient(next_calls=[ToolCall(name=tools.CREATE_TASK, args={"text": "milk"})])

    with caplog.at_level(logging.INFO, logger="taskbuddy.core.chat"):
        await handle_turn(state, "add milk", tz=UTC)

    assert "Turn changed tasks created=1 reminded=0 updated=0 deleted=0" in caplog.text
