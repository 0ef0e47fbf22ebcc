# src/taskbuddy/tasks/task_store.py

from __future__ import annotations

import logging

from ..core.persistence import MirroredWriter
from ..core.ports import PersistenceGateway
from .task_models import Task

logger = logging.getLogger(__name__)


class TaskStore:
    """
    Authoritative in-memory task collection for one owner.

    - Insertion order is preserved; it is the order the reminder poller scans.
    - At most one record per id (last write wins).
    - Every mutation is visible immediately; the gateway mirror is submitted
      through MirroredWriter and never blocks or rolls back memory.
    """

    def __init__(
        self,
        owner: str,
        gateway: PersistenceGateway | None = None,
        *,
        writer: MirroredWriter | None = None,
    ) -> None:
        self.owner = owner
        self._gateway = gateway
        self._writer = writer or MirroredWriter()
        self._tasks: dict[str, Task] = {}

    @property
    def writer(self) -> MirroredWriter:
        return self._writer

    def load(self) -> int:
        """Populate memory from the gateway (startup). Returns the number loaded."""
        if self._gateway is None:
            return 0
        try:
            records = self._gateway.get_all_tasks(self.owner)
        except Exception:
            logger.exception("Failed to load tasks for owner=%s; starting empty", self.owner)
            return 0

        loaded = 0
        for rec in records:
            try:
                task = Task.from_record(rec)
            except (KeyError, ValueError):
                logger.warning("Skipping unreadable task record id=%s", rec.get("id"))
                continue
            self._tasks[task.id] = task
            loaded += 1
        logger.info("TaskStore loaded owner=%s tasks=%d", self.owner, loaded)
        return loaded

    # ---- reads ----

    def __len__(self) -> int:
        return len(self.list_by_owner(self.owner))

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def list_by_owner(self, owner: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.owner == owner]

    def tasks(self) -> list[Task]:
        return self.list_by_owner(self.owner)

    # ---- writes ----

    def insert(self, task: Task) -> None:
        if task.id in self._tasks:
            logger.warning("insert: task id=%s already present; replacing", task.id)
        self._tasks[task.id] = task
        logger.debug("Task inserted id=%s text=%r", task.id, task.text)
        self._mirror_put(task)

    def replace(self, task: Task) -> None:
        """Full-record upsert keyed by id (keeps the original scan position)."""
        self._tasks[task.id] = task
        logger.debug("Task replaced id=%s", task.id)
        self._mirror_put(task)

    def remove(self, task_id: str) -> Task | None:
        task = self._tasks.pop(task_id, None)
        if task is None:
            return None
        logger.debug("Task removed id=%s", task_id)
        if self._gateway is not None:
            self._writer.submit("delete_task", self._gateway.delete_task, task_id)
        return task

    async def flush(self) -> None:
        await self._writer.flush()

    def _mirror_put(self, task: Task) -> None:
        if self._gateway is None:
            return
        self._writer.submit("put_task", self._gateway.put_task, task.to_record())
