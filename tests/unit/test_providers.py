"""Unit tests for the provider registry."""
import pytest
from pydantic import ValidationError

from luxrig.core.providers import DEFAULT_PROVIDERS, Provider, detect_provider


def test_default_providers():
    assert [(p.name, p.port, p.path) for p in DEFAULT_PROVIDERS] == [
        ("LM Studio", 1234, "/v1"),
        ("Ollama", 11434, "/api"),
    ]


def test_endpoint_and_models_url():
    lm = DEFAULT_PROVIDERS[0]
    assert lm.endpoint() == "http://localhost:1234/v1"
    assert lm.models_url() == "http://localhost:1234/v1/models"
    assert lm.endpoint("127.0.0.1") == "http://127.0.0.1:1234/v1"


def test_detect_known_port():
    assert detect_provider(1234).name == "LM Studio"
    assert detect_provider(11434).name == "Ollama"


def test_detect_unknown_port():
    provider = detect_provider(9999)
    assert provider.name == "Unknown"
    assert provider.port == 9999
    assert provider.path == "/v1"


def test_detect_uses_injected_list():
    custom = [Provider(name="vLLM", port=8001)]
    assert detect_provider(8001, custom).name == "vLLM"
    assert detect_provider(1234, custom).name == "Unknown"


def test_provider_is_immutable():
    provider = Provider(name="LM Studio", port=1234)
    with pytest.raises(ValidationError):
        provider.port = 4321
