from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import TypeAdapter, ValidationError

from ..persistence import CONVERSATIONS_KEY, KeyValueStore
from .models import ConversationSummary, Message, StoredConversation

logger = logging.getLogger(__name__)

TITLE_LENGTH = 30
PREVIEW_LENGTH = 50

_stored_list = TypeAdapter(list[StoredConversation])


class ConversationNotFoundError(KeyError):
    pass


def derive_title(content: str) -> str:
    """Title from the first user message, ellipsized past 30 characters."""
    return content[:TITLE_LENGTH] + ("..." if len(content) > TITLE_LENGTH else "")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStore:
    """Ordered conversation summaries plus per-conversation message history.

    Every mutation rewrites the whole list (summaries and histories) to the
    storage port under a single key.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.storage = storage
        self._clock = clock
        self._summaries: list[ConversationSummary] = []
        self._messages: dict[str, list[Message]] = {}
        self.active_id: Optional[str] = None
        self.messages: list[Message] = []
        self.load()

    # ---- Persistence ----

    def load(self) -> None:
        self._summaries = []
        self._messages = {}
        raw = self.storage.get_item(CONVERSATIONS_KEY)
        if raw is None:
            return
        try:
            stored = _stored_list.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Failed to load conversations, starting empty")
            return
        for conv in stored:
            if conv.id in self._messages:
                logger.warning("Skipping duplicate conversation id %s", conv.id)
                continue
            self._summaries.append(
                ConversationSummary(
                    id=conv.id,
                    title=conv.title,
                    last_message=conv.last_message,
                    timestamp=conv.timestamp,
                )
            )
            self._messages[conv.id] = list(conv.messages)

    def _persist(self) -> None:
        to_store = [
            StoredConversation(
                **summary.model_dump(),
                messages=self._messages.get(summary.id, []),
            )
            for summary in self._summaries
        ]
        try:
            self.storage.set_item(
                CONVERSATIONS_KEY,
                _stored_list.dump_json(to_store).decode("utf-8"),
            )
        except OSError as e:
            logger.error("Failed to save conversations: %s", e)

    # ---- Queries ----

    def list(self) -> list[ConversationSummary]:
        return [s.model_copy() for s in self._summaries]

    def get(self, conv_id: str) -> ConversationSummary:
        for summary in self._summaries:
            if summary.id == conv_id:
                return summary.model_copy()
        raise ConversationNotFoundError(conv_id)

    def get_messages(self, conv_id: str) -> list[Message]:
        self.get(conv_id)
        return list(self._messages.get(conv_id, []))

    def histories(self) -> dict[str, list[Message]]:
        return {conv_id: list(msgs) for conv_id, msgs in self._messages.items()}

    def _summary(self, conv_id: str) -> ConversationSummary:
        for summary in self._summaries:
            if summary.id == conv_id:
                return summary
        raise ConversationNotFoundError(conv_id)

    # ---- Mutations ----

    def _new_id(self) -> str:
        candidate = int(self._clock().timestamp() * 1000)
        taken = {s.id for s in self._summaries}
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def create(self) -> ConversationSummary:
        summary = ConversationSummary(id=self._new_id(), timestamp=self._clock())
        self._summaries.insert(0, summary)
        self._messages[summary.id] = []
        self.active_id = summary.id
        self.messages = []
        self._persist()
        return summary.model_copy()

    def select(self, conv_id: str) -> list[Message]:
        self._summary(conv_id)
        self.active_id = conv_id
        self.messages = list(self._messages.get(conv_id, []))
        return list(self.messages)

    def append_message(self, conv_id: str, message: Message) -> ConversationSummary:
        summary = self._summary(conv_id)
        history = self._messages.setdefault(conv_id, [])

        if message.role == "user" and not any(m.role == "user" for m in history):
            summary.title = derive_title(message.content)

        history.append(message)
        summary.last_message = message.content[:PREVIEW_LENGTH]
        summary.timestamp = self._clock()

        if conv_id == self.active_id:
            self.messages = list(history)
        self._persist()
        return summary.model_copy()

    def delete(self, conv_id: str) -> bool:
        before = len(self._summaries)
        self._summaries = [s for s in self._summaries if s.id != conv_id]
        self._messages.pop(conv_id, None)
        if len(self._summaries) == before:
            return False
        if self.active_id == conv_id:
            self.active_id = None
            self.messages = []
        self._persist()
        return True
