"""Builds the outbound completion request from settings and chat history."""

from typing import Sequence

from pydantic import BaseModel

from .settings_store import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, ChatSettings

FALLBACK_SYSTEM_PROMPT = "You are a helpful AI assistant."

SNAKE_CASE_RULE = "use snake_case for all variable and function names"
NO_COMMENTS_RULE = "do not include any comments in code"

CODE_EXECUTION_CLAUSE = (
    "You can suggest code snippets. When providing code, use markdown code "
    "blocks with the language specified."
)
FILE_EDITING_CLAUSE = (
    "You can suggest file modifications. When suggesting file changes, clearly "
    "indicate the file path and the changes to make."
)

CONTEXT_START = "[CONTEXT FROM PREVIOUS MESSAGES - Use this for continuity]"
CONTEXT_END = "[END OF CONTEXT]"
CONTEXT_ACK = (
    "I understand the context from our previous conversation. "
    "I'll continue from where we left off."
)


class ChatMessage(BaseModel):
    role: str  # "system" | "user" | "assistant"
    content: str


class AssembledRequest(BaseModel):
    system_prompt: str
    messages: list[ChatMessage]
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS

    def to_payload(self, model: str) -> dict:
        return {
            "model": model,
            "messages": [m.model_dump() for m in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }


def build_system_prompt(settings: ChatSettings) -> str:
    parts = [settings.system_prompt or FALLBACK_SYSTEM_PROMPT]

    code_rules = []
    if settings.use_snake_case:
        code_rules.append(SNAKE_CASE_RULE)
    if settings.no_comments:
        code_rules.append(NO_COMMENTS_RULE)
    if code_rules:
        parts.append(f"Code generation rules: {'; '.join(code_rules)}.")

    if settings.custom_instructions:
        parts.append(f"User's custom instructions:\n{settings.custom_instructions}")

    if settings.enable_code_execution:
        parts.append(CODE_EXECUTION_CLAUSE)
    if settings.enable_file_editing:
        parts.append(FILE_EDITING_CLAUSE)

    return "\n\n".join(parts)


def build_context_block(prior_messages: Sequence) -> str:
    """Flatten earlier turns into one text block."""
    summary = "\n\n".join(
        f"{'User' if m.role == 'user' else 'Assistant'}: {m.content}"
        for m in prior_messages
    )
    return f"{CONTEXT_START}\n\n{summary}\n\n{CONTEXT_END}"


def assemble(
    settings: ChatSettings,
    prior_messages: Sequence,
    new_user_message,
) -> AssembledRequest:
    """Return the system prompt, message list and sampling parameters.

    Earlier turns are only ever forwarded through the synthetic context
    pair, never replayed message by message.
    """
    system_prompt = build_system_prompt(settings)
    messages = [ChatMessage(role="system", content=system_prompt)]

    if settings.memory_enabled and prior_messages:
        messages.append(ChatMessage(role="user", content=build_context_block(prior_messages)))
        messages.append(ChatMessage(role="assistant", content=CONTEXT_ACK))

    messages.append(
        ChatMessage(role=new_user_message.role, content=new_user_message.content)
    )

    return AssembledRequest(
        system_prompt=system_prompt,
        messages=messages,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )
