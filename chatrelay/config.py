import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_URL = "https://diwness.cloud/v1/chat/completions"
DEFAULT_MODEL = "claude-sonnet-4-20250514"


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str = ""


AVAILABLE_MODELS: list[ModelInfo] = [
    ModelInfo(id="claude-opus-4-5-20251101", name="Claude Opus 4.5", description="Most capable"),
    ModelInfo(id="claude-sonnet-4-5-20250929", name="Claude Sonnet 4.5", description="Balanced"),
    ModelInfo(id="claude-sonnet-4-20250514", name="Claude Sonnet 4", description="Fast & capable"),
    ModelInfo(id="claude-3-7-sonnet-20250219", name="Claude 3.7 Sonnet", description="Previous gen"),
]


class AppConfig(BaseModel):
    upstream_url: str = DEFAULT_UPSTREAM_URL
    api_key: str = ""  # Sent as a bearer token only when set
    default_model: str = DEFAULT_MODEL
    request_timeout: Optional[float] = None  # None waits as long as the upstream takes
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    host: str = "127.0.0.1"
    port: int = 8765


_config_dir = Path(os.environ.get("CHATRELAY_CONFIG_DIR", Path.home() / ".chatrelay"))
_config_file = _config_dir / "config.json"


def _ensure_config_dir() -> None:
    _config_dir.mkdir(parents=True, exist_ok=True)


def get_state_dir() -> Path:
    """Directory holding client-side state (settings and conversations)."""
    return _config_dir / "state"


def load_config() -> AppConfig:
    _ensure_config_dir()
    if _config_file.exists():
        try:
            data = json.loads(_config_file.read_text(encoding="utf-8"))
            return AppConfig(**data)
        except (json.JSONDecodeError, TypeError, ValidationError, OSError):
            logger.warning("Failed to load %s, using defaults", _config_file)
    return AppConfig()


def save_config(config: AppConfig) -> None:
    _ensure_config_dir()
    _config_file.write_text(
        config.model_dump_json(indent=2),
        encoding="utf-8",
    )


_current_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    global _current_config
    if _current_config is None:
        _current_config = load_config()
    return _current_config


def update_config(config: AppConfig) -> AppConfig:
    global _current_config
    save_config(config)
    _current_config = config
    return _current_config
