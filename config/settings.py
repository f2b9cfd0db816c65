"""Application settings via pydantic-settings (reads from .env).

All environment variables are documented here. Names match the ones the
bridge scripts have always used (PROXY_PORT, PORT, LUXRIG_PORT,
LM_STUDIO_URL, NODE_ENV) so existing launch configs keep working.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from luxrig.core.providers import DEFAULT_PROVIDERS, Provider


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Listen port: PORT wins when set, else PROXY_PORT
    proxy_port: int = 8000
    port: int | None = None
    luxrig_port: int = 3002
    bind_host: str = "0.0.0.0"

    # "development" exposes exception messages in 500 responses
    node_env: str = "production"

    # LM Studio: chat routing target and /lm-studio passthrough
    lm_studio_url: str = "http://localhost:1234"

    # Local providers probed by /providers and named in proxy logs.
    # Override with a JSON list: LOCAL_PROVIDERS='[{"name":"vLLM","port":8001,"path":"/v1"}]'
    local_providers: list[Provider] = Field(default_factory=lambda: list(DEFAULT_PROVIDERS))
    proxy_target_host: str = "localhost"

    # Health probes
    health_timeout: float = 2.0
    health_retries: int = 0
    health_cache_ttl: float = 0.0   # 0 disables memoization of /providers
    lm_studio_health_timeout: float = 3.0

    # Outbound calls (proxy relay + chat routing)
    request_timeout: float = 30.0
    connect_timeout: float = 5.0
    proxy_retries: int = 0
    chat_retries: int = 1

    # Chat defaults when the caller omits them
    chat_default_model: str = "qwen3-4b-claude-sonnet-4-reasoning-distill-safetensor"
    chat_max_tokens: int = 150
    chat_temperature: float = 0.7

    # Fixed-window rate limit on /api/* (per client IP)
    rate_limit_max: int = 100
    rate_limit_window_sec: float = 15 * 60

    # Tighter window on /api/ai/, counted on top of the /api/ one
    ai_rate_limit_max: int = 60
    ai_rate_limit_window_sec: float = 60

    # Application metadata
    app_name: str = "DLX Studios Hybrid Bridge"
    app_version: str = "1.0.0"

    @property
    def listen_port(self) -> int:
        return self.port if self.port is not None else self.proxy_port

    @property
    def is_development(self) -> bool:
        return self.node_env.lower() == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
