"""Unit tests for environment-driven settings."""
from config.settings import Settings
from luxrig.core.providers import DEFAULT_PROVIDERS


def test_defaults(monkeypatch):
    for var in ("PORT", "PROXY_PORT", "LM_STUDIO_URL", "NODE_ENV", "LOCAL_PROVIDERS"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings(_env_file=None)

    assert settings.listen_port == 8000
    assert settings.lm_studio_url == "http://localhost:1234"
    assert settings.health_timeout == 2.0
    assert settings.rate_limit_max == 100
    assert settings.rate_limit_window_sec == 900
    assert (settings.ai_rate_limit_max, settings.ai_rate_limit_window_sec) == (60, 60)
    assert tuple(settings.local_providers) == DEFAULT_PROVIDERS
    assert not settings.is_development


def test_port_overrides_proxy_port(monkeypatch):
    monkeypatch.setenv("PROXY_PORT", "8100")
    monkeypatch.setenv("PORT", "3001")
    assert Settings(_env_file=None).listen_port == 3001


def test_environment_variables(monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    monkeypatch.setenv("PROXY_PORT", "8100")
    monkeypatch.setenv("LM_STUDIO_URL", "http://rig.lan:1234")
    monkeypatch.setenv("NODE_ENV", "development")
    monkeypatch.setenv("LOCAL_PROVIDERS", '[{"name": "vLLM", "port": 8001, "path": "/v1"}]')

    settings = Settings(_env_file=None)
    assert settings.listen_port == 8100
    assert settings.lm_studio_url == "http://rig.lan:1234"
    assert settings.is_development
    assert [(p.name, p.port) for p in settings.local_providers] == [("vLLM", 8001)]
