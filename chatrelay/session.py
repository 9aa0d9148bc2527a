import logging
from typing import Iterable, Optional

import httpx

from .assembler import ChatMessage
from .config import DEFAULT_MODEL
from .conversation.attachments import Attachment, compose_message
from .conversation.models import Message
from .conversation.store import ConversationStore
from .proxy import ChatRequest
from .settings_store import ChatSettings, SettingsStore

logger = logging.getLogger(__name__)

CONNECT_FAILURE = "Error: Failed to connect to the server"
UNKNOWN_FAILURE = "Something went wrong"


class SessionBusyError(RuntimeError):
    pass


def build_request_body(
    settings: ChatSettings, history: list[Message], outgoing: str, model: str
) -> dict:
    messages = [ChatMessage(role=m.role, content=m.content) for m in history]
    messages.append(ChatMessage(role="user", content=outgoing))
    request = ChatRequest(messages=messages, model=model, **settings.model_dump())
    return request.model_dump(by_alias=True, exclude_none=True)


class ChatSession:
    """Drives one conversation view: stores on one side, the proxy on the other."""

    def __init__(
        self,
        settings_store: SettingsStore,
        conversations: ConversationStore,
        client: httpx.AsyncClient,
        model: str = DEFAULT_MODEL,
        endpoint: str = "/api/chat",
    ) -> None:
        self.settings_store = settings_store
        self.conversations = conversations
        self.client = client
        self.model = model
        self.endpoint = endpoint
        self.is_loading = False

    @property
    def messages(self) -> list[Message]:
        return list(self.conversations.messages)

    def set_model(self, model: str) -> None:
        if self.is_loading:
            raise SessionBusyError("Cannot change model while a reply is pending")
        self.model = model

    def new_conversation(self):
        return self.conversations.create()

    def select(self, conv_id: str) -> list[Message]:
        return self.conversations.select(conv_id)

    def delete(self, conv_id: str) -> bool:
        return self.conversations.delete(conv_id)

    async def submit(
        self, text: str, attachments: Iterable[Attachment] = ()
    ) -> Optional[Message]:
        """Send the user's input and record exactly one assistant reply.

        Returns None when there is nothing to send.
        """
        attachments = list(attachments)
        if not text.strip() and not attachments:
            return None
        if self.is_loading:
            raise SessionBusyError("A reply is already pending")

        if self.conversations.active_id is None:
            self.conversations.create()
        conv_id = self.conversations.active_id

        history = list(self.conversations.messages)
        outgoing = compose_message(text, attachments)
        self.conversations.append_message(
            conv_id, Message(role="user", content=text.strip())
        )
        body = build_request_body(
            self.settings_store.load(), history, outgoing, self.model
        )

        self.is_loading = True
        try:
            reply = await self._send(body)
        finally:
            self.is_loading = False

        message = Message(role="assistant", content=reply)
        self.conversations.append_message(conv_id, message)
        return message

    async def _send(self, body: dict) -> str:
        try:
            response = await self.client.post(self.endpoint, json=body)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Chat request failed: %s", e)
            return CONNECT_FAILURE

        if not isinstance(data, dict):
            logger.warning("Unexpected response body: %r", data)
            return CONNECT_FAILURE

        if response.is_success:
            return data.get("content") or ""
        return f"Error: {data.get('error') or UNKNOWN_FAILURE}"
