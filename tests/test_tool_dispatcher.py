# tests/test_tool_dispatcher.py

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta, timezone

import pytest

from taskbuddy.core.ports import ToolCall
from taskbuddy.tasks import tool_schemas as tools
from taskbuddy.tasks.task_models import Priority, TaskType
from taskbuddy.tasks.tool_dispatcher import (
    ANALYSIS_UNAVAILABLE,
    DELETE_NOT_FOUND,
    NOTHING_TO_SCHEDULE,
    UPDATE_NOT_FOUND,
    ToolCallDispatcher,
)

from .fakes import NOW, make_task


def _call(name: str, **args) -> ToolCall:
    return ToolCall(name=name, args=args)


@pytest.mark.asyncio
async def test_three_creates_add_three_tasks(store, dispatcher) -> None:
    calls = [_call(tools.CREATE_TASK, text=t) for t in ("milk", "eggs", "bread")]

    outcome = await dispatcher.dispatch(calls, "Sure!")

    assert len(store) == 3
    assert [t.text for t in store.tasks()] == ["milk", "eggs", "bread"]
    assert outcome.reply == "Got it. I've added all 3 tasks to your list."


@pytest.mark.asyncio
async def test_create_applies_defaults_and_parses_fields(store, dispatcher) -> None:
    outcome = await dispatcher.dispatch(
        [
            _call(
                tools.CREATE_TASK,
                text="Dentist",
                dueDate="2024-07-22T09:00:00Z",
                priority="HIGH",
                type="appointment",
                category="health",
            )
        ]
    )

    (task,) = store.tasks()
    assert outcome.reply == 'OK, I\'ve added "Dentist" to your list.'
    assert task.id.startswith("task-")
    assert task.owner == store.owner
    assert task.created_at == NOW
    assert task.priority == Priority.HIGH
    assert task.type == TaskType.APPOINTMENT
    assert task.category == "health"
    assert task.due_date == NOW + timedelta(hours=15)
    assert not task.is_completed and task.completed_at is None


@pytest.mark.asyncio
async def test_create_unknown_priority_falls_back_to_medium(store, dispatcher) -> None:
    await dispatcher.dispatch([_call(tools.CREATE_TASK, text="x", priority="urgent", type="chore")])
    (task,) = store.tasks()
    assert task.priority == Priority.MEDIUM
    assert task.type == TaskType.OTHER


@pytest.mark.asyncio
async def test_update_due_date_only_has_no_details_block(store, dispatcher) -> None:
    store.insert(make_task(text="Report", due_date=NOW + timedelta(days=1)))

    outcome = await dispatcher.dispatch(
        [_call(tools.UPDATE_TASK, taskId=make_task().id, newDueDate="2024-07-25T10:00:00Z")]
    )

    assert outcome.reply == 'OK, I\'ve moved the deadline for "Report" to Thu, Jul 25 2024 at 10:00.'
    assert "Current details:" not in outcome.reply
    assert outcome.updated == [make_task().id]


@pytest.mark.asyncio
async def test_update_priority_includes_details_block(store, dispatcher) -> None:
    store.insert(make_task(text="Report"))

    outcome = await dispatcher.dispatch(
        [_call(tools.UPDATE_TASK, taskId=make_task().id, newPriority="high")]
    )

    assert outcome.reply.startswith('OK, I\'ve updated "Report": set the priority to High.')
    assert outcome.reply.endswith(
        "Current details:\n"
        "- Name: Report\n"
        "- Status: Pending\n"
        "- Priority: High\n"
        "- Deadline: No deadline"
    )
    assert store.get(make_task().id).priority == Priority.HIGH


@pytest.mark.asyncio
async def test_update_due_date_with_other_change_has_details_block(store, dispatcher) -> None:
    store.insert(make_task(text="Report"))

    outcome = await dispatcher.dispatch(
        [
            _call(
                tools.UPDATE_TASK,
                taskId=make_task().id,
                newDueDate="2024-07-25T10:00:00Z",
                newPriority="low",
            )
        ]
    )

    assert "Current details:" in outcome.reply
    assert "- Deadline: Thu, Jul 25 2024 at 10:00" in outcome.reply


@pytest.mark.asyncio
async def test_update_status_sets_and_clears_completed_at(store, dispatcher) -> None:
    task_id = make_task().id
    store.insert(make_task())

    await dispatcher.dispatch([_call(tools.UPDATE_TASK, taskId=task_id, newStatus="completed")])
    done = store.get(task_id)
    assert done.is_completed and done.completed_at == NOW

    await dispatcher.dispatch([_call(tools.UPDATE_TASK, taskId=task_id, newStatus="pending")])
    reopened = store.get(task_id)
    assert not reopened.is_completed and reopened.completed_at is None


@pytest.mark.asyncio
async def test_update_without_changes(store, dispatcher) -> None:
    store.insert(make_task(text="Report", priority=Priority.HIGH))

    outcome = await dispatcher.dispatch(
        [_call(tools.UPDATE_TASK, taskId=make_task().id, newPriority="high")]
    )

    assert outcome.reply == 'It looks like no changes were needed for "Report".'
    assert outcome.updated == []


@pytest.mark.asyncio
async def test_update_unknown_id(store, dispatcher) -> None:
    outcome = await dispatcher.dispatch([_call(tools.UPDATE_TASK, taskId="task-nope", newText="x")])
    assert outcome.reply == UPDATE_NOT_FOUND


@pytest.mark.asyncio
async def test_delete_missing_id_reports_not_found(store, dispatcher) -> None:
    store.insert(make_task())

    outcome = await dispatcher.dispatch([_call(tools.DELETE_TASK, taskId="task-nope")])

    assert outcome.reply == DELETE_NOT_FOUND
    assert len(store) == 1


@pytest.mark.asyncio
async def test_delete_removes_task_and_gateway_record(store, dispatcher, gateway) -> None:
    task = make_task(text="Old thing")
    store.insert(task)

    outcome = await dispatcher.dispatch([_call(tools.DELETE_TASK, taskId=task.id)])
    await store.flush()

    assert outcome.reply == 'Alright, I\'ve removed the task: "Old thing".'
    assert task.id not in store
    assert task.id not in gateway.tasks


@pytest.mark.asyncio
async def test_schedule_reminder_appends_without_dedup(store, dispatcher) -> None:
    task = make_task(text="Call mom")
    store.insert(task)
    at = "2024-07-21T20:00:00Z"

    first = await dispatcher.dispatch([_call(tools.SCHEDULE_REMINDER, taskId=task.id, reminderTime=at)])
    await dispatcher.dispatch([_call(tools.SCHEDULE_REMINDER, taskId=task.id, reminderTime=at)])

    assert first.reply == 'OK. I\'ll remind you about: "Call mom".'
    assert store.get(task.id).reminders == [NOW + timedelta(hours=2)] * 2


@pytest.mark.asyncio
async def test_schedule_reminder_unknown_id(store, dispatcher) -> None:
    outcome = await dispatcher.dispatch(
        [_call(tools.SCHEDULE_REMINDER, taskId="task-nope", reminderTime="2024-07-21T20:00:00Z")]
    )
    assert outcome.reply == "Sorry, I couldn't find that task to set a reminder."


@pytest.mark.asyncio
async def test_create_and_reminder_confirmations_are_combined(store, dispatcher) -> None:
    task = make_task(text="Gym")
    store.insert(task)

    outcome = await dispatcher.dispatch(
        [
            _call(tools.CREATE_TASK, text="Buy shoes"),
            _call(tools.SCHEDULE_REMINDER, taskId=task.id, reminderTime="2024-07-21T19:00:00Z"),
        ]
    )

    assert outcome.reply == (
        'OK, I\'ve added "Buy shoes" to your list. I\'ll remind you about: "Gym".'
    )


@pytest.mark.asyncio
async def test_deletion_message_wins_over_everything(store, dispatcher) -> None:
    task = make_task(text="Old thing")
    store.insert(task)

    outcome = await dispatcher.dispatch(
        [
            _call(tools.CREATE_TASK, text="New thing"),
            _call(tools.DELETE_TASK, taskId=task.id),
            _call(tools.GENERATE_SCHEDULE),
        ],
        "model text",
    )

    assert outcome.reply == 'Alright, I\'ve removed the task: "Old thing".'
    assert [t.text for t in store.tasks()] == ["New thing"]


@pytest.mark.asyncio
async def test_update_wins_over_creation(store, dispatcher) -> None:
    store.insert(make_task(text="Report"))

    outcome = await dispatcher.dispatch(
        [
            _call(tools.CREATE_TASK, text="Another"),
            _call(tools.UPDATE_TASK, taskId=make_task().id, newText="Final report"),
        ]
    )

    assert outcome.reply.startswith('OK, I\'ve updated "Report": renamed it to "Final report".')


@pytest.mark.asyncio
async def test_plain_text_when_no_tools(dispatcher) -> None:
    outcome = await dispatcher.dispatch([], "  Hello there!  ")
    assert outcome.reply == "Hello there!"
    assert not outcome.changed_store


@pytest.mark.asyncio
async def test_unknown_tool_is_ignored(dispatcher) -> None:
    outcome = await dispatcher.dispatch([_call("launchRocket")], "hi")
    assert outcome.reply == "hi"
    assert outcome.unknown_tools == ["launchRocket"]


@pytest.mark.asyncio
async def test_analysis_requires_minimum_history(store, dispatcher, analyzer) -> None:
    for i in range(4):
        store.insert(make_task(f"task-{i}-x", text=f"t{i}"))

    outcome = await dispatcher.dispatch([_call(tools.ANALYZE_PRODUCTIVITY)])

    assert "at least 5" in outcome.reply
    assert analyzer.payloads == []


@pytest.mark.asyncio
async def test_analysis_report_is_rendered(store, dispatcher, analyzer) -> None:
    for i in range(5):
        store.insert(make_task(f"task-{i}-x", text=f"t{i}"))
    analyzer.result = {
        "patterns": ["You finish most tasks in the evening."],
        "suggestions": ["Plan deep work after 18:00."],
    }

    outcome = await dispatcher.dispatch([_call(tools.ANALYZE_PRODUCTIVITY)], "ignored")

    assert outcome.reply == (
        "Here's what I noticed about how you work:\n\n"
        "Patterns:\n- You finish most tasks in the evening.\n\n"
        "Suggestions:\n- Plan deep work after 18:00."
    )
    payload = json.loads(analyzer.payloads[0])
    assert len(payload) == 5 and payload[0]["status"] == "pending"


@pytest.mark.asyncio
async def test_analysis_failure_is_a_message(store, dispatcher, analyzer) -> None:
    for i in range(5):
        store.insert(make_task(f"task-{i}-x", text=f"t{i}"))
    analyzer.error = RuntimeError("boom")

    outcome = await dispatcher.dispatch([_call(tools.ANALYZE_PRODUCTIVITY)])
    assert outcome.reply == ANALYSIS_UNAVAILABLE


@pytest.mark.asyncio
async def test_analysis_quota_error_gets_friendly_message(store, dispatcher, analyzer) -> None:
    for i in range(5):
        store.insert(make_task(f"task-{i}-x", text=f"t{i}"))
    analyzer.error = RuntimeError("429 RESOURCE_EXHAUSTED: quota exceeded")

    outcome = await dispatcher.dispatch([_call(tools.ANALYZE_PRODUCTIVITY)])
    assert "usage limit" in outcome.reply


@pytest.mark.asyncio
async def test_generate_schedule_returns_json(store, dispatcher) -> None:
    store.insert(
        make_task(text="Submit essay", type=TaskType.ASSIGNMENT, due_date=NOW + timedelta(hours=1))
    )

    outcome = await dispatcher.dispatch([_call(tools.GENERATE_SCHEDULE)], "ignored")

    assert json.loads(outcome.reply) == [
        {
            "task": "Submit essay",
            "notify_at": "2024-07-21T18:30:00",
            "message": "Reminder: 'Submit essay' is due at 19:00. Priority: Medium",
        }
    ]


@pytest.mark.asyncio
async def test_generate_schedule_when_nothing_upcoming(dispatcher) -> None:
    outcome = await dispatcher.dispatch([_call(tools.GENERATE_SCHEDULE)])
    assert outcome.reply == NOTHING_TO_SCHEDULE


@pytest.mark.asyncio
async def test_string_arguments_are_decoded(store, dispatcher) -> None:
    call = ToolCall(name=tools.CREATE_TASK, args=json.dumps({"text": "from json"}))  # type: ignore[arg-type]
    await dispatcher.dispatch([call])
    assert [t.text for t in store.tasks()] == ["from json"]



@pytest.mark.asyncio
async def test_every_declared_tool_is_routed(dispatcher) -> None:
    names = [t["function"]["name"] for t in tools.TOOL_DEFINITIONS]
    assert len(names) == 6

    outcome = await dispatcher.dispatch([_call(n) for n in names])
    assert outcome.unknown_tools == []


@pytest.mark.asyncio
async def test_naive_times_follow_dispatcher_timezone(store, analyzer, clock) -> None:
    eastern = timezone(timedelta(hours=-4))
    dispatcher = ToolCallDispatcher(store, analyzer=analyzer, clock=clock, tz=eastern)

    await dispatcher.dispatch(
        [_call(tools.CREATE_TASK, text="Essay", dueDate="2024-07-21T15:00:00", type="Assignment")]
    )

    (task,) = store.tasks()
    assert task.due_date == datetime(2024, 7, 21, 19, 0, tzinfo=UTC)
    (entry,) = json.loads(dispatcher.generate_notification_schedule(NOW))
    assert entry["notify_at"] == "2024-07-21T14:30:00"
    assert entry["message"] == "Reminder: 'Essay' is due at 15:00. Priority: Medium"


@pytest.mark.asyncio
async def test_failed_tool_outranks_model_text(store, dispatcher, monkeypatch) -> None:
    def boom(args, now):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(dispatcher, "create_task", boom)

    outcome = await dispatcher.dispatch([_call(tools.CREATE_TASK, text="milk")], "Done, added it!")

    assert outcome.reply.startswith("Sorry, something went wrong: ")
    assert "disk on fire" in outcome.reply
    assert len(store) == 0
