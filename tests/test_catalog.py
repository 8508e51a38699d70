import pytest
from pydantic import ValidationError

from catalog import (
    DEFAULT_MODEL_ID,
    ModelCatalog,
    ModelConfig,
    ModelListCache,
    default_catalog,
    get_model_config,
    is_chat_model,
)


class TestModelCatalog:
    def test_known_model(self):
        config = default_catalog.get("gpt-3.5-turbo")
        assert config.context_window == 16385
        assert config.reserve_tokens == 2000
        assert config.available_tokens == 14385

    def test_unknown_model_falls_back_silently(self):
        config = default_catalog.get("some-future-model")
        assert config.id == DEFAULT_MODEL_ID
        assert config.context_window == 128000

    def test_get_model_config_helper(self):
        assert get_model_config("claude-3.5-sonnet").context_window == 200000

    def test_reserve_defaults_to_4000(self):
        assert ModelConfig(id="custom", context_window=32000).reserve_tokens == 4000

    def test_configs_are_immutable(self):
        config = default_catalog.get("gpt-4o")
        with pytest.raises(ValidationError):
            config.context_window = 1

    def test_default_must_exist(self):
        with pytest.raises(ValueError):
            ModelCatalog(configs={}, default_model_id="gpt-4o")

    def test_metadata_for_unknown_model(self):
        meta = default_catalog.metadata("gpt-9")
        assert meta.name == "GPT-9"
        assert meta.context_window == 4096
        assert meta.category == "standard"

    def test_describe_merges_extra_fields(self):
        entry = default_catalog.describe("gpt-3.5-turbo", created=123)
        assert entry["id"] == "gpt-3.5-turbo"
        assert entry["pricing"] == "budget"
        assert entry["capabilities"] == ["text", "function_calling"]
        assert entry["created"] == 123

    def test_fallback_models(self):
        ids = [m["id"] for m in default_catalog.fallback_models()]
        assert ids == ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"]


class TestIsChatModel:
    @pytest.mark.parametrize("model_id", ["gpt-4o", "gpt-3.5-turbo", "GPT-4-turbo"])
    def test_accepts_gpt_models(self, model_id):
        assert is_chat_model(model_id)

    @pytest.mark.parametrize("model_id", ["gpt-3.5-turbo-instruct", "davinci-002", "whisper-1", "text-embedding-3-small"])
    def test_rejects_other_models(self, model_id):
        assert not is_chat_model(model_id)


class TestModelListCache:
    def setup_method(self):
        self.now = 1000.0
        self.cache = ModelListCache(ttl_seconds=60, clock=lambda: self.now)

    def test_empty_cache(self):
        assert self.cache.get() is None
        assert self.cache.info() == {"cached": False, "last_update": None, "expires_at": None}

    def test_returns_data_within_ttl(self):
        self.cache.set([{"id": "gpt-4o"}])
        self.now += 59
        assert self.cache.get() == [{"id": "gpt-4o"}]
        assert self.cache.info()["expires_at"] == 1060.0

    def test_expires_after_ttl(self):
        self.cache.set([{"id": "gpt-4o"}])
        self.now += 60
        assert self.cache.get() is None

    def test_clear(self):
        self.cache.set([])
        self.cache.clear()
        assert self.cache.get() is None
