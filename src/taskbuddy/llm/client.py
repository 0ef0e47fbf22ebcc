# src/taskbuddy/llm/client.py

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Iterable, Iterator
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..core.ports import ChatMessage, ToolCall, TurnChunk

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    s = raw.strip()
    if not s:
        return default
    try:
        return float(s)
    except ValueError:
        return default


def _timeouts_from_env() -> dict[str, float]:
    """
    Timeouts are configurable via env to avoid "hanging forever"
    when a model has a long time-to-first-token.

    Defaults are conservative for local console UX:
    - connect timeout: 5s
    - read timeout: 25s (no data from server)
    - first token timeout: 20s (no content or tool-call tokens)
    """
    first_token = _env_float("TASKBUDDY_LLM_FIRST_TOKEN_TIMEOUT_SECONDS", 20.0)
    read_timeout = _env_float("TASKBUDDY_LLM_READ_TIMEOUT_SECONDS", 25.0)
    connect_timeout = _env_float("TASKBUDDY_LLM_CONNECT_TIMEOUT_SECONDS", 5.0)

    # keep read >= first_token as a sane baseline
    read_timeout = max(read_timeout, first_token)

    return {
        "first_token": first_token,
        "read": read_timeout,
        "connect": connect_timeout,
    }


def _make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _is_auth_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "AuthenticationError",
        "PermissionDeniedError",
        "UnauthorizedError",
    }


def _is_rate_limit_error(exc: Exception) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    return exc.__class__.__name__ in {"RateLimitError", "TooManyRequestsError"}


def _is_connection_error(exc: Exception) -> bool:
    return exc.__class__.__name__ in {
        "APIConnectionError",
        "APITimeoutError",
        "Timeout",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
    }


def _is_not_found_error(exc: Exception) -> bool:
    # OpenAI-compatible SDK uses NotFoundError for HTTP 404
    return exc.__class__.__name__ in {"NotFoundError"}


def _extract_json_object(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("{") and raw.endswith("}"):
        return raw
    first = raw.find("{")
    last = raw.rfind("}")
    if first != -1 and last != -1 and last > first:
        return raw[first : last + 1]
    return raw


def _close_stream(stream: Any) -> None:
    close = getattr(stream, "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.debug("Stream close failed.", exc_info=True)


class _ToolCallAssembler:
    """
    Rebuild complete tool calls from streamed deltas.

    Providers stream a tool call as: first delta with index/id/name, then
    argument fragments for the same index. Arguments are only parsed once the
    stream has ended.
    """

    def __init__(self) -> None:
        self._slots: dict[int, dict[str, str]] = {}

    def feed(self, deltas: Iterable[Any]) -> bool:
        got_any = False
        for tc in deltas:
            idx = int(getattr(tc, "index", 0) or 0)
            slot = self._slots.setdefault(idx, {"id": "", "name": "", "arguments": ""})
            if getattr(tc, "id", None):
                slot["id"] = tc.id
            fn = getattr(tc, "function", None)
            if fn is not None:
                if getattr(fn, "name", None) and not slot["name"]:
                    slot["name"] = fn.name
                if getattr(fn, "arguments", None):
                    slot["arguments"] += fn.arguments
            got_any = True
        return got_any

    def finish(self) -> list[ToolCall]:
        out: list[ToolCall] = []
        for idx in sorted(self._slots):
            slot = self._slots[idx]
            if not slot["name"]:
                logger.warning("Dropping streamed tool call without a name (index=%s)", idx)
                continue
            args: dict[str, Any] = {}
            raw = slot["arguments"].strip()
            if raw:
                try:
                    parsed = json.loads(raw)
                    args = parsed if isinstance(parsed, dict) else {}
                except ValueError:
                    logger.warning("Tool %s: arguments are not JSON: %r", slot["name"], raw[:500])
            out.append(ToolCall(name=slot["name"], args=args, call_id=slot["id"] or None))
        return out


class OpenRouterLLMClient:
    """
    Tool-calling client for any OpenAI-compatible endpoint (OpenRouter by default).

    Behavior:
    - Tries models in the order from settings (TASKBUDDY_LLM_MODELS).
    - If a model doesn't produce a first token within FIRST_TOKEN timeout,
      we abort and try the next model.
    - 404 (model not available) -> try next, and skip it for an hour.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast (no retries across models).
    """

    def __init__(self, settings: Any) -> None:
        api_key = getattr(settings, "openrouter_api_key", None)
        base_url = getattr(settings, "openrouter_base_url", "") or ""

        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set TASKBUDDY_OPENROUTER_API_KEY in your .env.")
        if not base_url.strip():
            raise RuntimeError("LLM base URL is not set. Set TASKBUDDY_OPENROUTER_BASE_URL in your .env.")

        self._models: list[str] = [m.strip() for m in (getattr(settings, "llm_models", []) or []) if m.strip()]
        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._bad_models: dict[str, float] = {}  # model -> retry_at (monotonic)

        t = _timeouts_from_env()
        # Automatic retries are disabled to allow quick fallback across models.
        self._client = OpenAI(
            base_url=str(base_url),
            api_key=str(api_key),
            timeout=_make_timeout(t["connect"], t["read"]),
            max_retries=0,
        )

    def _candidate_models(self) -> list[str]:
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKBUDDY_LLM_MODELS in your .env.")
        now = time.monotonic()
        return [m for m in self._models if self._bad_models.get(m, 0.0) <= now]

    def _classify_and_continue(self, model: str, e: Exception) -> None:
        """Log a per-model failure; raise immediately for errors no other model can fix."""
        if _is_auth_error(e):
            raise RuntimeError(
                "LLM authentication failed. Check your API key (TASKBUDDY_OPENROUTER_API_KEY)."
            ) from e
        if _is_not_found_error(e):
            self._bad_models[model] = time.monotonic() + 3600.0
            logger.info("LLM: model not available (404): %s", model)
        elif _is_rate_limit_error(e):
            logger.info("LLM: rate-limited on model=%s, trying next", model)
        elif _is_connection_error(e):
            logger.info("LLM: network/timeout error on model=%s, trying next", model)
        else:
            logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)

    @staticmethod
    def _raise_final(last_error: Exception | None) -> None:
        if last_error is not None:
            if _is_rate_limit_error(last_error):
                raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
            if _is_connection_error(last_error):
                raise RuntimeError("LLM network/timeout error. Try again later or change models.") from last_error
            raise RuntimeError("All LLM models failed.") from last_error
        raise RuntimeError("All LLM models failed.")

    def stream_turn(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            tools: list[dict[str, Any]],
    ) -> Iterator[TurnChunk]:
        """
        Stream one model turn.

        Text is yielded as it arrives. Tool calls are yielded once, in a final
        chunk, after the stream has completed and their arguments are whole.
        """
        t = _timeouts_from_env()
        first_token_timeout = float(t["first_token"])
        last_error: Exception | None = None

        for model in self._candidate_models():
            logger.info("LLM: trying model=%s (first_token_timeout=%.1fs)", model, first_token_timeout)
            t0 = time.monotonic()
            deadline = t0 + first_token_timeout
            assembler = _ToolCallAssembler()
            stream = None
            used_any = False
            yielded_text = False

            try:
                stream = self._client.chat.completions.create(
                    model=model,
                    stream=True,
                    extra_headers=self._headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    tools=tools,
                    tool_choice="auto",
                )

                for chunk in stream:
                    if not used_any and time.monotonic() > deadline:
                        last_error = TimeoutError(f"First token timeout on model: {model}")
                        logger.info("LLM: first token timeout on model=%s -> trying next", model)
                        break

                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta
                    if delta is None:
                        continue

                    if assembler.feed(getattr(delta, "tool_calls", None) or []):
                        used_any = True

                    content = getattr(delta, "content", None)
                    if content:
                        if not used_any:
                            logger.info("LLM: first token from model=%s (%.2fs)", model, time.monotonic() - t0)
                        used_any = True
                        yielded_text = True
                        yield TurnChunk(text=content)

                if used_any:
                    calls = assembler.finish()
                    if calls:
                        logger.debug("LLM: model=%s returned %d tool call(s)", model, len(calls))
                        yield TurnChunk(tool_calls=calls)
                    return

                if last_error is None:
                    last_error = RuntimeError(f"Model returned no content: {model}")

            except Exception as e:
                if yielded_text:
                    # Part of the answer is already out; switching models would duplicate it.
                    raise RuntimeError(f"LLM stream broke mid-answer on model {model}.") from e
                last_error = e
                self._classify_and_continue(model, e)
                continue

            finally:
                if stream is not None:
                    _close_stream(stream)

        self._raise_final(last_error)

    def complete_json(
            self,
            messages: list[ChatMessage],
            system_prompt: str,
            schema: dict[str, Any],
    ) -> dict[str, Any]:
        """Structured-output call: returns the parsed JSON object."""
        last_error: Exception | None = None

        for model in self._candidate_models():
            try:
                resp = self._client.chat.completions.create(
                    model=model,
                    extra_headers=self._headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                    response_format={
                        "type": "json_schema",
                        "json_schema": {"name": "structured_result", "schema": schema, "strict": True},
                    },
                )
                raw = (resp.choices[0].message.content or "").strip() if resp.choices else ""
                if not raw:
                    last_error = RuntimeError(f"Model returned no content: {model}")
                    continue
                parsed = json.loads(_extract_json_object(raw))
                if not isinstance(parsed, dict):
                    last_error = ValueError(f"Model returned non-object JSON: {model}")
                    continue
                return parsed
            except ValueError as e:
                logger.info("LLM: unparsable JSON from model=%s, trying next", model)
                last_error = e
            except Exception as e:
                last_error = e
                self._classify_and_continue(model, e)

        self._raise_final(last_error)
        raise AssertionError("unreachable")
