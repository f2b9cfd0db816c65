"""Local provider registry — static {name, port, path} records for loopback LLM runtimes."""
from pydantic import BaseModel, ConfigDict


class Provider(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    port: int
    path: str = "/v1"

    def endpoint(self, host: str = "localhost") -> str:
        return f"http://{host}:{self.port}{self.path}"

    def models_url(self, host: str = "localhost") -> str:
        return f"{self.endpoint(host)}/models"


DEFAULT_PROVIDERS: tuple[Provider, ...] = (
    Provider(name="LM Studio", port=1234, path="/v1"),
    Provider(name="Ollama", port=11434, path="/api"),
)

UNKNOWN_PROVIDER_NAME = "Unknown"


def detect_provider(port: int, providers=DEFAULT_PROVIDERS) -> Provider:
    """Return the configured provider listening on ``port``.

    Unknown ports still resolve to a provider record so the request can be
    proxied; it is simply reported as ``Unknown``.
    """
    for provider in providers:
        if provider.port == port:
            return provider
    return Provider(name=UNKNOWN_PROVIDER_NAME, port=port, path="/v1")
