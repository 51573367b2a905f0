"""Configuration management for upkeep."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from upkeep.errors import ValidationError


# Built-in defaults
DEFAULT_CHUNK_PROMPT = """Ты — технический ассистент. Извлеки список регламентных работ по техническому
обслуживанию из предоставленного фрагмента текста. Игнорируй монтаж и первичный запуск.
Если работ нет, верни пустой массив [].
Формат ответа: строго JSON массив объектов
{ "task_name": string, "periodicity": string, "instructions": string[] }."""

DEFAULT_MERGE_PROMPT = """Ты — технический эксперт. Тебе дан список задач по ТО и правил, извлеченных
из разных частей инструкции. Твоя задача:
1. Удалить дубликаты.
2. Слить похожие задачи, выбрав наиболее безопасный (частый) интервал.
3. Выделить не более {max_rules} самых важных правил безопасности.
Формат ответа: строго JSON объект
{{ "name": string, "type": string, "maintenance_schedule": [...], "important_rules": [...] }}."""

TRANSPORT_MODES = ("in_process", "bridge")
COMPLETION_BACKENDS = ("relay", "gateway")


def _resolve_prompt(env_var_name: str, default: str) -> str:
    """
    Resolve a prompt value from environment variable.

    If env var is set to a file path that exists, read its contents.
    Otherwise use the string value directly.
    If unset, use the provided default.
    """
    value = os.getenv(env_var_name)
    if value is None:
        return default

    path = Path(value).expanduser()
    if path.exists() and path.is_file():
        return path.read_text()

    return value


def _parse_bool(value: str | None) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return False
    return value.lower() in ("true", "1", "yes", "on")


def _parse_choice(key: str, choices: tuple[str, ...], default: str) -> str:
    value = os.getenv(key)
    if value is None:
        return default
    value = value.strip().lower()
    if value not in choices:
        raise ValidationError(
            f"{key} must be one of {', '.join(choices)}, got {value!r}",
            {"key": key, "choices": list(choices)},
        )
    return value


@dataclass
class Config:
    """Configuration for upkeep."""

    relay_base_url: str = "http://localhost:3000"
    transport_mode: str = "in_process"
    request_timeout: float = 60.0
    backend_marker_header: str = "X-Upkeep-Backend"
    session_init_path: str = "/api/health"
    challenge_pause: float = 1.5
    completion_backend: str = "relay"
    gateway_model: str = "qwen3-4b"
    gateway_url: str = "http://localhost:8800/v1"
    chunk_prompt: str = DEFAULT_CHUNK_PROMPT
    merge_prompt: str = DEFAULT_MERGE_PROMPT
    chunk_temperature: float = 0.1
    merge_temperature: float = 0.2
    max_tokens: int = 2000
    max_chunk_size: int = 8000
    chunk_overlap: int = 500
    max_rules: int = 5
    store_path: str = "~/.upkeep/store.json"
    lexicon_path: str = ""
    default_interval_amount: int = 1
    default_interval_unit: str = "year"
    verbose: bool = False


def load_config() -> Config:
    """
    Load configuration from environment variables and .env file.

    Returns:
        Config instance with all settings loaded.
    """
    load_dotenv()

    config = Config(
        relay_base_url=os.getenv("RELAY_BASE_URL", "http://localhost:3000").rstrip("/"),
        transport_mode=_parse_choice("TRANSPORT_MODE", TRANSPORT_MODES, "in_process"),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "60")),
        backend_marker_header=os.getenv("BACKEND_MARKER_HEADER", "X-Upkeep-Backend"),
        session_init_path=os.getenv("SESSION_INIT_PATH", "/api/health"),
        challenge_pause=float(os.getenv("CHALLENGE_PAUSE", "1.5")),
        completion_backend=_parse_choice("COMPLETION_BACKEND", COMPLETION_BACKENDS, "relay"),
        gateway_model=os.getenv("GATEWAY_MODEL", "qwen3-4b"),
        gateway_url=os.getenv("GATEWAY_URL", "http://localhost:8800/v1"),
        max_tokens=int(os.getenv("MAX_TOKENS", "2000")),
        max_chunk_size=int(os.getenv("MAX_CHUNK_SIZE", "8000")),
        chunk_overlap=int(os.getenv("CHUNK_OVERLAP", "500")),
        max_rules=int(os.getenv("MAX_RULES", "5")),
        store_path=os.getenv("STORE_PATH", "~/.upkeep/store.json"),
        lexicon_path=os.getenv("LEXICON_PATH", ""),
        default_interval_amount=int(os.getenv("DEFAULT_INTERVAL_AMOUNT", "1")),
        default_interval_unit=os.getenv("DEFAULT_INTERVAL_UNIT", "year").lower(),
        verbose=_parse_bool(os.getenv("VERBOSE")),
    )

    # Resolve prompts (file path vs inline string)
    config.chunk_prompt = _resolve_prompt("CHUNK_PROMPT", DEFAULT_CHUNK_PROMPT)
    config.merge_prompt = _resolve_prompt("MERGE_PROMPT", DEFAULT_MERGE_PROMPT)

    return config
