from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class ConversationSummary(BaseModel):
    """Lightweight metadata shown in the conversation list."""

    id: str
    title: str = "New Chat"
    last_message: str = "Start a conversation..."
    timestamp: datetime = Field(default_factory=_now)


class StoredConversation(ConversationSummary):
    """Summary plus message history, the unit written to storage."""

    messages: list[Message] = []
