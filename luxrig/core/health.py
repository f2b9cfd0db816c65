"""ProviderHealthChecker — "which local providers are reachable right now, and how fast".

Every configured provider gets a short-timeout GET against ``{endpoint}/models``.
Probes fan out concurrently and resolve independently: a provider that hangs
or refuses the connection is reported ``disconnected`` without affecting the
others.

    checker = ProviderHealthChecker(settings.local_providers)
    statuses = await checker.check_all()
"""
import asyncio
import time
from enum import Enum
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel

from luxrig.core.cache import TTLCache
from luxrig.core.errors import ProviderUnavailable
from luxrig.core.providers import Provider
from luxrig.core.retry import with_retries

log = structlog.get_logger()

CACHE_KEY = "providers"


class ProbeStatus(str, Enum):
    CONNECTED = "connected"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class ProviderStatus(BaseModel):
    name: str
    endpoint: str
    status: ProbeStatus
    latency: Optional[int] = None   # ms; absent when no response arrived

    def as_dict(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class ProviderHealthChecker:
    def __init__(
        self,
        providers,
        host: str = "localhost",
        timeout: float = 2.0,
        retries: int = 0,
        cache: TTLCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.providers: tuple[Provider, ...] = tuple(providers)
        self.host = host
        self.timeout = timeout
        self.retries = retries
        self._cache = cache
        self._transport = transport

    async def check_provider(self, provider: Provider) -> ProviderStatus:
        endpoint = provider.endpoint(self.host)
        url = provider.models_url(self.host)
        t0 = time.monotonic()

        async def _probe() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.get(url)

        try:
            resp = await with_retries(_probe, self.retries, event="health.probe")
        except httpx.HTTPError as exc:
            log.info("health.probe_failed", provider=provider.name, url=url, error=str(exc) or type(exc).__name__)
            return ProviderStatus(name=provider.name, endpoint=endpoint, status=ProbeStatus.DISCONNECTED)

        latency = int((time.monotonic() - t0) * 1000)
        status = ProbeStatus.CONNECTED if resp.status_code == 200 else ProbeStatus.ERROR
        log.debug("health.probe", provider=provider.name, status=status.value, latency_ms=latency)
        return ProviderStatus(name=provider.name, endpoint=endpoint, status=status, latency=latency)

    async def _check_all_uncached(self) -> list[ProviderStatus]:
        results = await asyncio.gather(*(self.check_provider(p) for p in self.providers))
        connected = sum(1 for r in results if r.status == ProbeStatus.CONNECTED)
        log.info("health.checked", providers=len(results), connected=connected)
        return list(results)

    async def check_all(self) -> list[ProviderStatus]:
        """Probe every provider concurrently; result order follows configuration order."""
        if self._cache is None:
            return await self._check_all_uncached()
        return await self._cache.get_or_load(CACHE_KEY, self._check_all_uncached)


async def probe_lm_studio(
    base_url: str,
    timeout: float = 3.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Confirm LM Studio is serving and list its models.

    Raises ProviderUnavailable when the server is unreachable, answers with a
    non-2xx status, or returns something that is not a model list.
    """
    base_url = base_url.rstrip("/")
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.get(f"{base_url}/v1/models")
    except httpx.HTTPError as exc:
        raise ProviderUnavailable(str(exc) or type(exc).__name__) from exc

    if not resp.is_success:
        raise ProviderUnavailable(f"LM Studio returned {resp.status_code}")

    try:
        data = resp.json().get("data") or []
    except (ValueError, AttributeError) as exc:
        raise ProviderUnavailable("LM Studio returned an unreadable model list") from exc

    model_ids = [m.get("id") for m in data if isinstance(m, dict)]
    return {
        "available": True,
        "models": len(data),
        "endpoint": base_url,
        "modelList": [{"id": mid, "name": mid} for mid in model_ids],
    }
