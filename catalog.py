import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "gpt-4o"
DEFAULT_RESERVE_TOKENS = 4000

EXCLUDED_MODEL_MARKERS = ("instruct", "davinci", "babbage", "curie", "ada")
FALLBACK_MODEL_IDS = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo")


class ModelConfig(BaseModel):
    """Context window budget for one model. Read-only reference data."""

    model_config = ConfigDict(frozen=True)

    id: str
    context_window: int
    reserve_tokens: int = DEFAULT_RESERVE_TOKENS

    @property
    def available_tokens(self) -> int:
        return self.context_window - self.reserve_tokens


class ModelMetadata(BaseModel):
    """Display information shown next to a model in the model picker."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    category: str = "standard"
    icon: str = "bot"
    capabilities: Tuple[str, ...] = ("text",)
    context_window: int = 4096
    pricing: str = "standard"


MODEL_CONFIGS: Dict[str, ModelConfig] = {
    "gpt-4o": ModelConfig(id="gpt-4o", context_window=128000, reserve_tokens=4000),
    "gpt-4o-mini": ModelConfig(id="gpt-4o-mini", context_window=128000, reserve_tokens=4000),
    "gpt-4-turbo": ModelConfig(id="gpt-4-turbo", context_window=128000, reserve_tokens=4000),
    "gpt-3.5-turbo": ModelConfig(id="gpt-3.5-turbo", context_window=16385, reserve_tokens=2000),
    "claude-3.5-sonnet": ModelConfig(id="claude-3.5-sonnet", context_window=200000, reserve_tokens=4000),
}

_VISION = ("text", "vision", "function_calling")
_TOOLS = ("text", "function_calling")

MODEL_METADATA: Dict[str, ModelMetadata] = {
    "gpt-4o": ModelMetadata(
        name="GPT-4o", description="Most capable model with vision and advanced reasoning",
        category="premium", icon="sparkles", capabilities=_VISION, context_window=128000, pricing="premium"),
    "gpt-4o-mini": ModelMetadata(
        name="GPT-4o Mini", description="Faster and more affordable version of GPT-4o",
        category="standard", icon="zap", capabilities=_VISION, context_window=128000, pricing="standard"),
    "gpt-4o-2024-11-20": ModelMetadata(
        name="GPT-4o (Latest)", description="Latest GPT-4o with enhanced capabilities",
        category="premium", icon="sparkles", capabilities=_VISION, context_window=128000, pricing="premium"),
    "gpt-4o-2024-08-06": ModelMetadata(
        name="GPT-4o (Aug 2024)", description="GPT-4o August 2024 version",
        category="premium", icon="sparkles", capabilities=_VISION, context_window=128000, pricing="premium"),
    "gpt-4o-mini-2024-07-18": ModelMetadata(
        name="GPT-4o Mini (July 2024)", description="GPT-4o Mini July 2024 version",
        category="standard", icon="zap", capabilities=_VISION, context_window=128000, pricing="standard"),
    "gpt-4-turbo": ModelMetadata(
        name="GPT-4 Turbo", description="High performance model with large context window",
        category="premium", icon="cpu", capabilities=_VISION, context_window=128000, pricing="premium"),
    "gpt-4-turbo-2024-04-09": ModelMetadata(
        name="GPT-4 Turbo (April 2024)", description="GPT-4 Turbo April 2024 version",
        category="premium", icon="cpu", capabilities=_VISION, context_window=128000, pricing="premium"),
    "gpt-4-turbo-preview": ModelMetadata(
        name="GPT-4 Turbo Preview", description="Preview version of GPT-4 Turbo",
        category="premium", icon="cpu", capabilities=_TOOLS, context_window=128000, pricing="premium"),
    "gpt-4": ModelMetadata(
        name="GPT-4", description="High-quality responses for complex tasks",
        category="premium", icon="brain", capabilities=_TOOLS, context_window=8192, pricing="premium"),
    "gpt-4-0613": ModelMetadata(
        name="GPT-4 (June 2023)", description="GPT-4 June 2023 version",
        category="premium", icon="brain", capabilities=_TOOLS, context_window=8192, pricing="premium"),
    "gpt-4-32k": ModelMetadata(
        name="GPT-4 32K", description="GPT-4 with extended context window",
        category="premium", icon="brain", capabilities=_TOOLS, context_window=32768, pricing="premium"),
    "gpt-3.5-turbo": ModelMetadata(
        name="GPT-3.5 Turbo", description="Fast and efficient for everyday tasks",
        category="standard", icon="shell", capabilities=_TOOLS, context_window=16385, pricing="budget"),
    "gpt-3.5-turbo-16k": ModelMetadata(
        name="GPT-3.5 Turbo 16K", description="GPT-3.5 Turbo with extended context",
        category="standard", icon="shell", capabilities=_TOOLS, context_window=16385, pricing="budget"),
    "gpt-3.5-turbo-1106": ModelMetadata(
        name="GPT-3.5 Turbo (Nov 2023)", description="GPT-3.5 Turbo November 2023 version",
        category="standard", icon="shell", capabilities=_TOOLS, context_window=16385, pricing="budget"),
}


class ModelCatalog:
    """Static lookup of context window capacity per model identifier."""

    def __init__(self, configs: Optional[Dict[str, ModelConfig]] = None,
                 default_model_id: str = DEFAULT_MODEL_ID):
        self._configs = dict(configs if configs is not None else MODEL_CONFIGS)
        if default_model_id not in self._configs:
            raise ValueError(f"Default model {default_model_id!r} is not in the catalog")
        self.default_model_id = default_model_id

    def get(self, model_id: str) -> ModelConfig:
        """Config for `model_id`, or the default model's config when unknown."""
        config = self._configs.get(model_id)
        if config is None:
            logger.debug("Unknown model %r, using %s budget", model_id, self.default_model_id)
            return self._configs[self.default_model_id]
        return config

    def metadata(self, model_id: str) -> ModelMetadata:
        """Display metadata; unknown ids get a generic entry."""
        known = MODEL_METADATA.get(model_id)
        if known is not None:
            return known
        return ModelMetadata(name=model_id.upper(), description="OpenAI language model")

    def describe(self, model_id: str, **extra: Any) -> Dict[str, Any]:
        entry = {"id": model_id}
        entry.update(self.metadata(model_id).model_dump())
        entry["capabilities"] = list(entry["capabilities"])
        entry.update(extra)
        return entry

    def fallback_models(self) -> List[Dict[str, Any]]:
        return [self.describe(model_id) for model_id in FALLBACK_MODEL_IDS]


default_catalog = ModelCatalog()


def get_model_config(model_id: str) -> ModelConfig:
    return default_catalog.get(model_id)


def is_chat_model(model_id: str) -> bool:
    """Provider model ids worth offering in the chat model picker."""
    lowered = model_id.lower()
    if "gpt" not in lowered:
        return False
    return not any(marker in lowered for marker in EXCLUDED_MODEL_MARKERS)


class ModelListCache:
    """Holds the provider model list for a fixed TTL.

    The owner checks `get()` before fetching and calls `set()` afterwards;
    nothing here refreshes on its own.
    """

    def __init__(self, ttl_seconds: float = 900, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: Optional[List[Dict[str, Any]]] = None
        self._timestamp: Optional[float] = None

    def get(self) -> Optional[List[Dict[str, Any]]]:
        if self._data is None or self._timestamp is None:
            return None
        if self._clock() - self._timestamp >= self.ttl_seconds:
            return None
        return self._data

    def set(self, data: List[Dict[str, Any]]) -> None:
        self._data = data
        self._timestamp = self._clock()

    def clear(self) -> None:
        self._data = None
        self._timestamp = None

    def info(self) -> Dict[str, Any]:
        return {
            "cached": self._data is not None,
            "last_update": self._timestamp,
            "expires_at": self._timestamp + self.ttl_seconds if self._timestamp is not None else None,
        }
