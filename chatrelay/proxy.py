import logging
from typing import Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .assembler import ChatMessage, assemble
from .config import AppConfig
from .settings_store import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, ChatSettings

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to process request"


class ChatRequest(BaseModel):
    """Body of ``POST /api/chat``; field names are camelCase on the wire.

    Values are only type-checked here and sampling parameters pass through
    to the upstream unchanged. A ``null`` prompt is empty, a ``null`` toggle off.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages: list[ChatMessage] = []
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    custom_instructions: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    enable_code_execution: Optional[bool] = False
    enable_file_editing: Optional[bool] = False
    memory_enabled: Optional[bool] = False
    use_snake_case: Optional[bool] = True
    no_comments: Optional[bool] = True

    def to_settings(self) -> ChatSettings:
        # model_construct skips the stored-settings range checks
        return ChatSettings.model_construct(
            system_prompt=self.system_prompt or "",
            custom_instructions=self.custom_instructions or "",
            temperature=DEFAULT_TEMPERATURE if self.temperature is None else self.temperature,
            max_tokens=DEFAULT_MAX_TOKENS if self.max_tokens is None else self.max_tokens,
            enable_code_execution=bool(self.enable_code_execution),
            enable_file_editing=bool(self.enable_file_editing),
            memory_enabled=bool(self.memory_enabled),
            use_snake_case=bool(self.use_snake_case),
            no_comments=bool(self.no_comments),
        )


class ProxyResult(BaseModel):
    status_code: int
    content: Optional[str] = None
    error: Optional[str] = None

    def body(self) -> dict:
        if self.error is not None:
            return {"error": self.error}
        return {"content": self.content}


class ChatProxy:
    """Forwards one chat request to the upstream completions API."""

    def __init__(
        self, config: AppConfig, client: Optional[httpx.AsyncClient] = None
    ) -> None:
        self.config = config
        self.client = client or httpx.AsyncClient(timeout=config.request_timeout)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    async def forward(self, request: Union[ChatRequest, dict]) -> ProxyResult:
        """Accepts a parsed request or the raw JSON body."""
        try:
            if not isinstance(request, ChatRequest):
                request = ChatRequest.model_validate(request)
            if not request.messages:
                raise ValueError("Chat request has no messages")

            assembled = assemble(
                request.to_settings(), request.messages[:-1], request.messages[-1]
            )
            model = request.model or self.config.default_model
            payload = assembled.to_payload(model)
            logger.info(
                "Forwarding chat: model=%s messages=%d memory=%s",
                model,
                len(payload["messages"]),
                request.memory_enabled,
            )

            response = await self.client.post(
                self.config.upstream_url,
                json=payload,
                headers=self._headers(),
            )
            if not response.is_success:
                logger.warning(
                    "Upstream returned %s: %s",
                    response.status_code,
                    response.text[:200],
                )
                return ProxyResult(
                    status_code=response.status_code,
                    error=f"API Error {response.status_code}: {response.text}",
                )

            data = response.json()
            content = data["choices"][0]["message"]["content"]
            return ProxyResult(status_code=200, content=content or "")
        except Exception as e:
            logger.exception("Chat API error: %s", e)
            return ProxyResult(status_code=500, error=GENERIC_FAILURE)

    async def aclose(self) -> None:
        await self.client.aclose()
