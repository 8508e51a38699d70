import pytest
from fastapi.testclient import TestClient

import api
from catalog import ModelListCache
from config import Settings
from storage import ConversationStorage

ENV_VARS = [
    "LLM_PROVIDER", "LLM_API_KEY", "LLM_BASE_URL", "OPENAI_API_KEY", "OPENAI_BASE_URL",
    "DEFAULT_MODEL", "CONTEXT_STRATEGY", "PRESERVE_RECENT_MESSAGES", "HISTORY_LIMIT",
    "MEMORY_LIMIT", "MAX_OUTPUT_TOKENS", "TEMPERATURE", "STORAGE_DIR", "MODELS_CACHE_TTL",
]


class FakeLLMClient:
    """Stands in for the inference adapter and records every request."""

    def __init__(self, reply="Hello from the model", error=None, models=None):
        self.reply = reply
        self.error = error
        self.models = models or []
        self.calls = []
        self.list_calls = 0

    async def chat(self, messages, model):
        self.calls.append({"messages": messages, "model": model})
        if self.error:
            raise self.error
        return {"choices": [{"message": {"role": "assistant", "content": self.reply}}]}

    async def list_models(self):
        self.list_calls += 1
        if self.error:
            raise self.error
        return self.models

    async def close(self):
        pass


@pytest.fixture
def settings(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("STORAGE_DIR", str(tmp_path / "chats"))
    return Settings()


@pytest.fixture
def storage(settings):
    return ConversationStorage(settings.storage_dir)


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def model_cache():
    return ModelListCache(ttl_seconds=900)


@pytest.fixture
def client(settings, storage, fake_llm, model_cache):
    api.app.dependency_overrides[api.get_settings] = lambda: settings
    api.app.dependency_overrides[api.get_storage] = lambda: storage
    api.app.dependency_overrides[api.get_llm_client] = lambda: fake_llm
    api.app.dependency_overrides[api.get_model_cache] = lambda: model_cache
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()
