# src/taskbuddy/llm/offline.py

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..core.ports import ChatMessage, TurnChunk


class OfflineLLMClient:
    """
    Offline deterministic LLM client used for demos when no external API is configured.

    Behavior:
    - Chat turns -> a friendly offline notice, never any tool calls
    - Structured (JSON) requests -> an empty analysis result
    """

    def stream_turn(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            tools: list[dict[str, Any]],
    ) -> Iterable[TurnChunk]:
        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        # Only echo what the user typed, not the task context prepended to it.
        marker = "User message:"
        if marker in user_text:
            user_text = user_text.split(marker, 1)[1].strip()

        yield TurnChunk(
            text=(
                "Offline demo mode: no external LLM is configured.\n"
                "Set TASKBUDDY_OPENROUTER_API_KEY (and TASKBUDDY_LLM_MODELS) to enable real responses.\n"
                "Commands like /tasks, /calendar and /done still work.\n\n"
                f"You said: {user_text}"
            )
        )

    def complete_json(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            schema: dict[str, Any],
    ) -> dict[str, Any]:
        return {"patterns": [], "suggestions": []}
