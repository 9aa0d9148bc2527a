import json
import logging

from pydantic import BaseModel, Field, ValidationError

from .persistence import SETTINGS_KEY, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Be concise, friendly, and informative."
)
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 4000

PRESET_PROMPTS = {
    "Creative Writer": (
        "You are a creative writing assistant. Help users craft compelling "
        "stories, poems, and creative content. Be imaginative and inspiring."
    ),
    "Code Expert": (
        "You are an expert programmer. Help users write, debug, and optimize "
        "code. Explain concepts clearly and provide working examples."
    ),
    "Document Helper": (
        "You are a document assistant. Help users write, edit, and improve "
        "documents. Focus on clarity, grammar, and effective communication."
    ),
    "Quick Assistant": (
        "You are a fast, efficient assistant. Provide brief, direct answers. "
        "Skip unnecessary explanations unless asked for more detail."
    ),
}


class ChatSettings(BaseModel):
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    custom_instructions: str = ""
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    enable_code_execution: bool = True
    enable_file_editing: bool = True
    memory_enabled: bool = True
    use_snake_case: bool = True
    no_comments: bool = True


class SettingsStore:
    """Loads and saves the user's generation settings."""

    def __init__(self, storage: KeyValueStore) -> None:
        self.storage = storage

    def load(self) -> ChatSettings:
        """Return the stored settings, falling back to defaults."""
        raw = self.storage.get_item(SETTINGS_KEY)
        if raw is None:
            return ChatSettings()
        try:
            data = json.loads(raw)
            return ChatSettings.model_validate(data)
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Failed to load settings, using defaults")
            return ChatSettings()

    def save(self, settings: ChatSettings) -> None:
        try:
            self.storage.set_item(SETTINGS_KEY, settings.model_dump_json())
        except OSError as e:
            logger.error("Failed to save settings: %s", e)

    def update(self, **changes) -> ChatSettings:
        current = self.load()
        updated = ChatSettings.model_validate({**current.model_dump(), **changes})
        self.save(updated)
        return updated

    def reset(self) -> ChatSettings:
        settings = ChatSettings()
        self.save(settings)
        return settings

    def apply_preset(self, name: str) -> ChatSettings:
        """Replace only the system prompt with a named preset."""
        prompt = PRESET_PROMPTS[name]
        settings = self.load().model_copy(update={"system_prompt": prompt})
        self.save(settings)
        return settings
