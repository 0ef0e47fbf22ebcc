# src/taskbuddy/tasks/analysis.py

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from ..core.errors import ExternalServiceError
from ..core.ports import LLMClient
from .task_models import Task
from .timeutil import to_iso

logger = logging.getLogger(__name__)

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "patterns": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Observed productivity patterns, one sentence each.",
        },
        "suggestions": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Concrete, actionable suggestions, one sentence each.",
        },
    },
    "required": ["patterns", "suggestions"],
    "additionalProperties": False,
}

ANALYSIS_SYSTEM_PROMPT = """
You are a productivity analysis module.

You do NOT chat with the user.

Input: a JSON array describing the user's tasks. Each item has:
status, priority, type, category, deadline, created_at, completed_at,
completion_hours (time from creation to completion, when known),
completed_before_deadline (when both timestamps are known).

Task:
- Identify 2-5 patterns (e.g. when tasks get done, which priorities slip,
  deadlines met or missed, categories that pile up).
- Give 2-5 concrete suggestions that follow from those patterns.

Rules:
- Base every statement on the data. Do not invent tasks.
- Address the user as "you".
- Return STRICT JSON matching the schema. No Markdown.
""".strip()

INSUFFICIENT_HISTORY_MESSAGE = (
    "I need a bit more history to spot meaningful patterns. "
    "Keep adding and completing tasks (at least {minimum}) and ask me again."
)


def task_features(task: Task) -> dict[str, Any]:
    """Closed-form per-task features sent to the analysis collaborator."""
    completion_hours: float | None = None
    before_deadline: bool | None = None
    if task.completed_at is not None:
        completion_hours = round((task.completed_at - task.created_at).total_seconds() / 3600.0, 2)
        if task.due_date is not None:
            before_deadline = task.completed_at <= task.due_date

    return {
        "task": task.text,
        "status": "completed" if task.is_completed else "pending",
        "priority": task.priority.value,
        "type": task.type.value,
        "category": task.category,
        "deadline": to_iso(task.due_date) if task.due_date else None,
        "created_at": to_iso(task.created_at),
        "completed_at": to_iso(task.completed_at) if task.completed_at else None,
        "completion_hours": completion_hours,
        "completed_before_deadline": before_deadline,
    }


def build_payload(tasks: Iterable[Task]) -> str:
    return json.dumps([task_features(t) for t in tasks], ensure_ascii=False)


def _clean_items(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [str(x).strip() for x in raw if str(x).strip()]


def render_report(result: dict[str, Any]) -> str:
    patterns = _clean_items(result.get("patterns"))
    suggestions = _clean_items(result.get("suggestions"))

    lines = ["Here's what I noticed about how you work:", "", "Patterns:"]
    if patterns:
        lines.extend(f"- {p}" for p in patterns)
    else:
        lines.append("- No clear patterns yet.")

    lines.extend(["", "Suggestions:"])
    if suggestions:
        lines.extend(f"- {s}" for s in suggestions)
    else:
        lines.append("- Keep going as you are; nothing stands out to change.")
    return "\n".join(lines)


class LLMProductivityAnalyzer:
    """AnalysisClient built on the LLM's structured-output call."""

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    def analyze(self, payload: str, schema: dict[str, Any]) -> dict[str, Any]:
        result = self._llm.complete_json(
            [{"role": "user", "content": f"Task history:\n{payload}"}],
            ANALYSIS_SYSTEM_PROMPT,
            schema,
        )
        if not isinstance(result, dict):
            raise ExternalServiceError("Analysis result is not a JSON object.")
        logger.debug(
            "Productivity analysis patterns=%d suggestions=%d",
            len(_clean_items(result.get("patterns"))),
            len(_clean_items(result.get("suggestions"))),
        )
        return result
