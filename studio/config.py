import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


DEFAULT_MODEL = "qwen2.5-coder:1.5b"

# Offered when the inference server cannot list its models
_FALLBACK_MODELS: list[str] = [
    "qwen2.5-coder:1.5b",
    "qwen2.5-coder:7b",
    "llama3.2:latest",
]


class OllamaConfig(BaseModel):
    base_url: str = "http://localhost:11434"
    timeout: float = 300.0  # seconds, per read
    default_model: str = DEFAULT_MODEL
    fallback_models: list[str] = _FALLBACK_MODELS
    temperature: float = 0.7
    num_predict: int = 2048


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 14000
    session_ttl: int = 3600  # drop relay sessions idle longer than this
    sweep_interval: int = 300  # seconds between idle-session sweeps


class ChatConfig(BaseModel):
    title_length: int = 30


class AppConfig(BaseModel):
    ollama: OllamaConfig = OllamaConfig()
    server: ServerConfig = ServerConfig()
    chat: ChatConfig = ChatConfig()


_config_dir = Path(os.environ.get("STUDIO_CONFIG_DIR", Path.home() / ".qwen-studio"))
_config_file = _config_dir / "config.json"


def get_config_dir() -> Path:
    return _config_dir


def _ensure_config_dir() -> None:
    _config_dir.mkdir(parents=True, exist_ok=True)


def _apply_env(config: AppConfig) -> AppConfig:
    port = os.environ.get("PORT")
    if port:
        try:
            config.server.port = int(port)
        except ValueError:
            logger.warning("Ignoring invalid PORT value %r", port)
    ollama_host = os.environ.get("OLLAMA_HOST")
    if ollama_host:
        if not ollama_host.startswith(("http://", "https://")):
            ollama_host = f"http://{ollama_host}"
        config.ollama.base_url = ollama_host.rstrip("/")
    return config


def load_config() -> AppConfig:
    _ensure_config_dir()
    if _config_file.exists():
        try:
            data = json.loads(_config_file.read_text(encoding="utf-8"))
            return _apply_env(AppConfig(**data))
        except (json.JSONDecodeError, OSError, ValueError):
            logger.warning("Failed to load %s, using defaults", _config_file)
    return _apply_env(AppConfig())


def save_config(config: AppConfig) -> None:
    _ensure_config_dir()
    _config_file.write_text(config.model_dump_json(indent=2), encoding="utf-8")


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


def reset_config() -> None:
    """Forget the cached config so the next get_config() re-reads it."""
    global _current_config
    _current_config = None
