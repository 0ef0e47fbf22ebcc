# src/taskbuddy/tasks/tool_schemas.py

"""
Tool declarations sent to the conversational model (OpenAI function-calling format).

Names and argument keys are the wire contract with the model; the dispatcher
routes on exactly these names.
"""

from __future__ import annotations

from typing import Any, Final

CREATE_TASK: Final = "createTask"
UPDATE_TASK: Final = "updateTask"
SCHEDULE_REMINDER: Final = "scheduleReminder"
DELETE_TASK: Final = "deleteTask"
ANALYZE_PRODUCTIVITY: Final = "analyzeProductivityPatterns"
GENERATE_SCHEDULE: Final = "generateNotificationSchedule"

_RFC3339_HINT = (
    "Complete RFC3339 format (e.g. '2024-07-21T19:00:00Z'). "
    "Compute it from the user's request and the current time in the system note."
)

_PRIORITY = {
    "type": "string",
    "enum": ["high", "medium", "low"],
    "description": "Priority: 'high', 'medium', or 'low'. Infer if not specified.",
}

_TYPE = {
    "type": "string",
    "enum": ["Appointment", "Meeting", "Assignment", "Other"],
    "description": "Kind of task. Drives the default notification lead time.",
}

_TASK_ID = {
    "type": "string",
    "description": (
        "The unique ID of an existing task. You MUST take it from the task list "
        "in the system note; never invent one."
    ),
}


TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": CREATE_TASK,
            "description": (
                "Creates a new task, reminder, goal, or event. Use this only for brand new items. "
                "For a reminder about an existing task use 'scheduleReminder' instead."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "text": {
                        "type": "string",
                        "description": (
                            "A concise title phrased as a noun phrase, e.g. "
                            "'Physics 2nd assignment'."
                        ),
                    },
                    "dueDate": {"type": "string", "description": f"Due date and time. {_RFC3339_HINT}"},
                    "priority": _PRIORITY,
                    "category": {"type": "string", "description": "Optional free-text category tag."},
                    "type": _TYPE,
                    "customNotificationTime": {
                        "type": "string",
                        "description": f"Explicit notification instant overriding the defaults. {_RFC3339_HINT}",
                    },
                },
                "required": ["text"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": UPDATE_TASK,
            "description": (
                "Changes an existing task: rename, move the deadline, change priority, category, "
                "type, notification time, or mark it completed/pending. Only pass fields that change."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "taskId": _TASK_ID,
                    "newText": {"type": "string", "description": "New title."},
                    "newDueDate": {"type": "string", "description": f"New due date. {_RFC3339_HINT}"},
                    "newPriority": _PRIORITY,
                    "newCategory": {"type": "string", "description": "New category tag."},
                    "newType": _TYPE,
                    "newNotificationTime": {
                        "type": "string",
                        "description": f"New custom notification time. {_RFC3339_HINT}",
                    },
                    "newStatus": {
                        "type": "string",
                        "enum": ["completed", "pending"],
                        "description": "Mark the task completed or pending again.",
                    },
                },
                "required": ["taskId"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": SCHEDULE_REMINDER,
            "description": (
                "Schedules a reminder for an existing task. Do NOT use this to create new tasks."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "taskId": _TASK_ID,
                    "reminderTime": {
                        "type": "string",
                        "description": f"Exact reminder time. {_RFC3339_HINT}",
                    },
                },
                "required": ["taskId", "reminderTime"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": DELETE_TASK,
            "description": "Deletes a task, reminder, goal, or event identified by its taskId.",
            "parameters": {
                "type": "object",
                "properties": {"taskId": _TASK_ID},
                "required": ["taskId"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": ANALYZE_PRODUCTIVITY,
            "description": (
                "Analyzes the user's task history (completion times, deadlines, priorities) "
                "and reports patterns plus suggestions. Use when the user asks how they are doing."
            ),
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
    {
        "type": "function",
        "function": {
            "name": GENERATE_SCHEDULE,
            "description": (
                "Computes when each pending task with a deadline should notify the user "
                "and returns the notification schedule."
            ),
            "parameters": {"type": "object", "properties": {}, "required": []},
        },
    },
]
