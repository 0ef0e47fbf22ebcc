# src/taskbuddy/tasks/reminder_scheduler.py

from __future__ import annotations

"""
Reminder poller.

Every poll interval the scheduler scans the TaskStore and surfaces at most one
reminder as the "active notification":
- completed, snoozed and reminder-less tasks are skipped;
- a reminder fires iff  now - window < instant <= now  and it has not fired before;
- it is marked triggered before it is surfaced, so overlapping ticks cannot fire it twice;
- the first match in store order wins; later matches wait for the next tick.

The snoozed map and the triggered set belong to the scheduler instance.
Rendering belongs to whoever subscribes to the emitted events.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from ..core.events import (
    ClearReason,
    NotificationCleared,
    ReminderFired,
    SnoozeExpired,
    TaskSnoozed,
)
from ..core.ports import EventSink
from .task_models import Task
from .task_store import TaskStore
from .timeutil import now_local, to_iso

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = timedelta(seconds=30)
DEFAULT_SNOOZE = timedelta(minutes=5)


def reminder_key(task_id: str, instant: datetime, ordinal: int = 0) -> str:
    """
    Composite key of one reminder entry.

    `ordinal` counts earlier identical instants on the same task, so duplicate
    entries created by repeated scheduleReminder calls stay distinct. The instant
    keeps its full precision so sub-second neighbours get separate keys.
    """
    base = f"{task_id}-{instant.astimezone(UTC).isoformat()}"
    return base if ordinal == 0 else f"{base}#{ordinal}"


@dataclass(slots=True, frozen=True)
class ActiveNotification:
    task: Task
    reminder_at: datetime
    fired_at: datetime


class ReminderScheduler:
    def __init__(
        self,
        store: TaskStore,
        *,
        poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
        snooze_duration: timedelta = DEFAULT_SNOOZE,
        clock: Callable[[], datetime] = now_local,
        emit: EventSink | None = None,
        triggered: Iterable[str] | None = None,
    ) -> None:
        self._store = store
        self.poll_interval = poll_interval
        self.snooze_duration = snooze_duration
        self._clock = clock
        self._emit = emit

        self._active: ActiveNotification | None = None
        self._snoozed: dict[str, datetime] = {}
        self._triggered: set[str] = set(triggered or ())

    # ---- state views ----

    @property
    def active(self) -> ActiveNotification | None:
        return self._active

    @property
    def snoozed_ids(self) -> frozenset[str]:
        return frozenset(self._snoozed)

    @property
    def triggered(self) -> frozenset[str]:
        return frozenset(self._triggered)

    def set_emitter(self, emit: EventSink | None) -> None:
        self._emit = emit

    # ---- poll ----

    def tick(self, now: datetime | None = None) -> ActiveNotification | None:
        """
        Run one poll. Returns the notification surfaced by this tick, if any.
        """
        if now is None:
            now = self._clock()

        self._expire_snoozes(now)

        if self._active is not None:
            return None

        window_start = now - self.poll_interval

        for task in self._store.tasks():
            if task.is_completed or task.id in self._snoozed or not task.reminders:
                continue

            seen: Counter[datetime] = Counter()
            for instant in task.reminders:
                key = reminder_key(task.id, instant, seen[instant])
                seen[instant] += 1

                if not (window_start < instant <= now):
                    continue
                if key in self._triggered:
                    continue

                self._triggered.add(key)
                self._active = ActiveNotification(task=task, reminder_at=instant, fired_at=now)
                logger.info("Reminder fired task_id=%s at=%s", task.id, to_iso(instant))
                self._publish(ReminderFired(task=task, reminder_at=instant, fired_at=now))
                return self._active

        return None

    def _expire_snoozes(self, now: datetime) -> None:
        expired = [tid for tid, until in self._snoozed.items() if until <= now]
        for tid in expired:
            del self._snoozed[tid]
            logger.debug("Snooze expired task_id=%s", tid)
            self._publish(SnoozeExpired(task_id=tid))

    # ---- user actions on the active notification ----

    def mark_as_done(self, task_id: str, now: datetime | None = None) -> Task | None:
        """Complete the task and clear the active notification. None if the id is unknown."""
        if now is None:
            now = self._clock()

        task = self._store.get(task_id)
        if task is None:
            logger.warning("mark_as_done: unknown task_id=%s", task_id)
            self._clear(task_id, ClearReason.DONE)
            return None

        done = task.with_completion(True, now)
        self._store.replace(done)
        logger.info("Task %s -> completed", task_id)
        self._clear(task_id, ClearReason.DONE)
        return done

    def snooze(
        self,
        task_id: str,
        duration: timedelta | None = None,
        now: datetime | None = None,
    ) -> datetime:
        """
        Suppress every reminder of `task_id` until now + duration.

        One-shot: there is no cancel; the next tick after the deadline resumes checking.
        """
        if now is None:
            now = self._clock()
        until = now + (self.snooze_duration if duration is None else duration)
        self._snoozed[task_id] = until
        logger.info("Task %s snoozed until %s", task_id, to_iso(until))
        self._clear(task_id, ClearReason.SNOOZED)
        self._publish(TaskSnoozed(task_id=task_id, until=until))
        return until

    def dismiss(self) -> None:
        """Close the active notification. The reminder stays triggered."""
        if self._active is None:
            return
        self._clear(self._active.task.id, ClearReason.DISMISSED)

    def _clear(self, task_id: str, reason: ClearReason) -> None:
        if self._active is None:
            return
        active_id = self._active.task.id
        self._active = None
        if active_id != task_id:
            logger.debug("Cleared notification for %s via action on %s", active_id, task_id)
        self._publish(NotificationCleared(task_id=active_id, reason=reason))

    def _publish(self, event) -> None:
        if self._emit is None:
            return
        try:
            self._emit(event)
        except Exception:
            logger.exception("Event sink failed for %s", type(event).__name__)


async def run_reminder_scheduler(
        scheduler: ReminderScheduler,
        *,
        interval_seconds: float | None = None,
) -> None:
    """
    Simple polling loop: tick, sleep, repeat.

    A failing tick is logged and the loop keeps going.
    To stop the scheduler, cancel the coroutine/task.
    """
    if interval_seconds is None:
        interval_seconds = scheduler.poll_interval.total_seconds()
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            scheduler.tick()
        except Exception:
            logger.exception("Reminder tick failed")

        await asyncio.sleep(sleep_s)
