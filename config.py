import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# provider -> (api key variable, base url variable, default base url)
PROVIDERS = {
    "openai": ("OPENAI_API_KEY", "OPENAI_BASE_URL", "https://api.openai.com/v1"),
    "zai": ("ZAI_API_KEY", "ZAI_BASE_URL", "https://api.z.ai/v1"),
    "ollama": (None, "OLLAMA_BASE_URL", "http://localhost:11434/v1"),
}


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


class Settings:
    """Service configuration read from the environment (and `.env`)."""

    def __init__(self):
        self.provider = os.getenv("LLM_PROVIDER", "openai")
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {self.provider}")

        key_var, url_var, default_url = PROVIDERS[self.provider]
        self.api_key: Optional[str] = os.getenv("LLM_API_KEY") or (os.getenv(key_var) if key_var else None)
        self.base_url = os.getenv("LLM_BASE_URL") or os.getenv(url_var, default_url)
        self.request_timeout = _float_env("LLM_TIMEOUT", 120.0)

        self.default_model = os.getenv("DEFAULT_MODEL", "gpt-4o")
        self.context_strategy = os.getenv("CONTEXT_STRATEGY", "sliding-window")
        self.preserve_recent_messages = _int_env("PRESERVE_RECENT_MESSAGES", 10)
        self.history_limit = _int_env("HISTORY_LIMIT", 20)
        self.memory_limit = _int_env("MEMORY_LIMIT", 3)
        self.max_output_tokens = _int_env("MAX_OUTPUT_TOKENS", 4000)
        self.temperature = _float_env("TEMPERATURE", 0.7)

        self.storage_dir = os.getenv("STORAGE_DIR", "conversations")
        self.models_cache_ttl = _float_env("MODELS_CACHE_TTL", 15 * 60)

        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_file = os.getenv("LOG_FILE") or None

    @property
    def requires_api_key(self) -> bool:
        return PROVIDERS[self.provider][0] is not None


@lru_cache()
def get_settings() -> Settings:
    return Settings()
