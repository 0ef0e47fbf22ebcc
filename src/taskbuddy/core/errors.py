# src/taskbuddy/core/errors.py

"""
Error taxonomy.

Nothing here is meant to terminate the process: every error is turned
into a string for the conversation layer or into a warning event.

- ValidationError: a tool referenced a task id that does not resolve.
- PersistenceError: the gateway mirror failed; in-memory state stays authoritative.
- ExternalServiceError: the LLM / analysis collaborator failed (quota, network, config).
"""

from __future__ import annotations

import openai

MAX_ERROR_MESSAGE_CHARS = 200

QUOTA_SIGNALS: tuple[str, ...] = (
    "quota",
    "rate limit",
    "rate-limit",
    "ratelimit",
    "rate-limited",
    "429",
    "resource_exhausted",
    "too many requests",
)


class TaskBuddyError(Exception):
    """Base class for errors raised inside taskbuddy."""


class ValidationError(TaskBuddyError):
    def __init__(self, task_id: str, message: str | None = None) -> None:
        self.task_id = task_id
        super().__init__(message or f"No task with id {task_id!r}.")


class PersistenceError(TaskBuddyError):
    def __init__(self, op: str, cause: BaseException) -> None:
        self.op = op
        self.cause = cause
        super().__init__(f"Persistence {op} failed: {cause}")


class ExternalServiceError(TaskBuddyError):
    pass


def is_quota_error(err: BaseException) -> bool:
    if isinstance(err, openai.RateLimitError):
        return True
    if err.__class__.__name__ in {"RateLimitError", "TooManyRequestsError", "ResourceExhausted"}:
        return True

    # Walk the cause chain: the LLM client wraps SDK errors in RuntimeError.
    cur: BaseException | None = err
    seen = 0
    while cur is not None and seen < 5:
        text = str(cur).lower()
        if any(sig in text for sig in QUOTA_SIGNALS):
            return True
        cur = cur.__cause__
        seen += 1
    return False


def _truncate(msg: str, limit: int) -> str:
    if len(msg) <= limit:
        return msg
    return msg[: max(0, limit - 1)] + "…"


def friendly_error_message(err: BaseException, *, max_chars: int = MAX_ERROR_MESSAGE_CHARS) -> str:
    """Map an exception to a short user-facing sentence."""
    msg = str(err).strip() or err.__class__.__name__

    if is_quota_error(err):
        return (
            "I've hit the AI service's usage limit for the moment. "
            "Please wait a minute and try again."
        )
    if "LLM API key is not set" in msg:
        return "The AI is not configured (missing API key). Set TASKBUDDY_OPENROUTER_API_KEY in .env."
    if "LLM model list is empty" in msg:
        return "The AI is not configured (no models). Set TASKBUDDY_LLM_MODELS in .env."
    if "LLM base URL is not set" in msg:
        return "The AI is not configured (missing base URL). Set TASKBUDDY_OPENROUTER_BASE_URL in .env."
    if "LLM authentication failed" in msg:
        return "The AI rejected the API key. Check TASKBUDDY_OPENROUTER_API_KEY."

    return _truncate(f"Sorry, something went wrong: {msg}", max_chars)
