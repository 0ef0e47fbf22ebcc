# src/taskbuddy/core/persistence.py

from __future__ import annotations

"""
Fire-and-forget mirroring of in-memory state into the persistence gateway.

Policy (eventual consistency, not transactional):
- callers mutate memory first, then submit the matching gateway write;
- with a running event loop the write runs in a worker thread, serialized in
  submission order, and the caller never waits for it;
- without a loop (scripts, sync tests) the write runs inline;
- a failed write is logged and reported as a PersistenceWarning event.
  It never rolls back memory and never raises into the caller.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from .errors import PersistenceError
from .events import PersistenceWarning
from .ports import EventSink

logger = logging.getLogger(__name__)


class MirroredWriter:
    def __init__(self, *, emit: EventSink | None = None) -> None:
        self._emit = emit
        self._lock: asyncio.Lock | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self.failures: int = 0

    def set_emitter(self, emit: EventSink | None) -> None:
        self._emit = emit

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, op: str, fn: Callable[..., Any], *args: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            try:
                fn(*args)
            except Exception as e:
                self._report(PersistenceError(op, e))
            return

        if self._lock is None:
            self._lock = asyncio.Lock()

        task = loop.create_task(self._write(op, fn, args))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, op: str, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        assert self._lock is not None
        async with self._lock:
            try:
                await asyncio.to_thread(fn, *args)
            except Exception as e:
                self._report(PersistenceError(op, e))

    async def flush(self) -> None:
        """Wait for every write submitted so far (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _report(self, err: PersistenceError) -> None:
        self.failures += 1
        logger.warning("%s (in-memory state kept)", err)
        if self._emit is None:
            return
        try:
            self._emit(
                PersistenceWarning(
                    op=err.op,
                    message="Warning: your change is active but could not be saved to history.",
                )
            )
        except Exception:
            logger.exception("Event sink failed while reporting a persistence warning.")
