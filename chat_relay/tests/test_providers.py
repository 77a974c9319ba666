import pytest

from chat_relay.domain.exceptions import ValidationError
from chat_relay.providers import create_provider
from chat_relay.providers.gemini_client import GeminiClient
from chat_relay.providers.registry import get_provider_config


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "gemini"
        default_model = "chat"
        gemini_api_key = "g-0123456789"
        http_timeout = 1.0

    monkeypatch.setattr("chat_relay.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, GeminiClient)
    assert provider.name == "gemini"


def test_create_provider_unknown():
    with pytest.raises(ValidationError) as exc:
        create_provider("kimi")
    assert exc.value.code == "UNKNOWN_PROVIDER"


def test_registry_lookup_is_case_insensitive():
    cfg = get_provider_config("GEMINI")
    assert cfg.models["chat"].provider_model == "gemini-2.0-flash"
    assert cfg.models["chat"].max_tokens == 900
