# src/taskbuddy/core/history.py

from __future__ import annotations

import logging
from datetime import datetime

from ..tasks.task_models import Message, Role, new_record_id
from ..tasks.timeutil import now_local
from .persistence import MirroredWriter
from .ports import ChatMessage, PersistenceGateway

logger = logging.getLogger(__name__)


class MessageHistory:
    """
    Conversation log for one owner, mirrored like the TaskStore.

    The in-memory list is authoritative; a failed save only produces a warning.
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
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def load(self) -> int:
        if self._gateway is None:
            return 0
        try:
            records = self._gateway.get_all_messages(self.owner)
        except Exception:
            logger.exception("Failed to load message history for owner=%s", self.owner)
            return 0
        self._messages = [Message.from_record(r) for r in records]
        logger.info("Loaded %d messages for owner=%s", len(self._messages), self.owner)
        return len(self._messages)

    def append(self, role: Role, text: str, *, now: datetime | None = None) -> Message:
        msg = Message(
            id=new_record_id(role.value),
            role=role,
            text=text,
            timestamp=now or now_local(),
            owner=self.owner,
        )
        self._messages.append(msg)
        if self._gateway is not None:
            self._writer.submit("put_message", self._gateway.put_message, msg.to_record())
        return msg

    def as_chat_messages(self, limit: int) -> list[ChatMessage]:
        """Last `limit` messages in OpenAI chat format (model -> assistant)."""
        if limit <= 0:
            return []
        out: list[ChatMessage] = []
        for m in self._messages[-limit:]:
            role = "assistant" if m.role == Role.MODEL else "user"
            out.append({"role": role, "content": m.text})
        return out
