"""ChatRouter — complexity-based local/cloud routing for chat completions.

simple/medium prompts are served by LM Studio (local, $0) and the reply is
tagged with ``luxrig_metadata``; complex prompts are not sent anywhere and get
a canned assistant message recommending a cloud provider.

Usage::

    router = ChatRouter.from_settings(get_settings())
    reply = await router.route(ChatRequest(messages=[{"role": "user", "content": "hello"}]))
    reply["luxrig_metadata"]["routed_to"]   # "local"
"""
import asyncio
import time
from enum import Enum
from typing import Any, Callable, Optional

import httpx
import structlog
from pydantic import BaseModel, Field

from luxrig.core.complexity import ComplexityLabel, classify, last_message_content
from luxrig.core.errors import LocalProviderError, UpstreamTimeout, UpstreamUnavailable
from luxrig.core.retry import with_retries

log = structlog.get_logger()

LOCAL_COST_SAVINGS = "estimated $0.02"
CLOUD_REASON = "Task too complex for local processing"


class RoutedTo(str, Enum):
    LOCAL = "local"
    CLOUD_RECOMMENDED = "cloud_recommended"


class ChatRequest(BaseModel):
    messages: list[dict[str, Any]] = Field(min_length=1)
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None


class ChatRouter:
    def __init__(
        self,
        lm_studio_url: str = "http://localhost:1234",
        default_model: str = "qwen3-4b-claude-sonnet-4-reasoning-distill-safetensor",
        default_max_tokens: int = 150,
        default_temperature: float = 0.7,
        timeout: float = 30.0,
        retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.lm_studio_url = lm_studio_url.rstrip("/")
        self.default_model = default_model
        self.default_max_tokens = default_max_tokens
        self.default_temperature = default_temperature
        self.timeout = timeout
        self.retries = retries
        self._transport = transport
        self._clock = clock

    @classmethod
    def from_settings(cls, settings, transport: httpx.AsyncBaseTransport | None = None) -> "ChatRouter":
        return cls(
            lm_studio_url=settings.lm_studio_url,
            default_model=settings.chat_default_model,
            default_max_tokens=settings.chat_max_tokens,
            default_temperature=settings.chat_temperature,
            timeout=settings.request_timeout,
            retries=settings.chat_retries,
            transport=transport,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.lm_studio_url}/v1/chat/completions"

    async def route(self, request: ChatRequest) -> dict[str, Any]:
        prompt = last_message_content(request.messages)
        complexity = classify(prompt)

        log.info("router.dispatch", complexity=complexity.value, prompt_len=len(prompt))

        if complexity.is_local:
            return await self._complete_locally(request, complexity)
        return self._cloud_recommendation(complexity)

    # ------------------------------------------------------------------
    # Local path
    # ------------------------------------------------------------------

    async def _complete_locally(self, request: ChatRequest, complexity: ComplexityLabel) -> dict[str, Any]:
        model = request.model or self.default_model
        payload = {
            "model": model,
            "messages": request.messages,
            "max_tokens": request.max_tokens if request.max_tokens is not None else self.default_max_tokens,
            "temperature": request.temperature if request.temperature is not None else self.default_temperature,
            "stream": False,
        }

        async def _post() -> httpx.Response:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await client.post(self.completions_url, json=payload)

        try:
            resp = await asyncio.wait_for(
                with_retries(_post, self.retries, event="router.local"),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            log.warning("router.local_timeout", url=self.completions_url, timeout_sec=self.timeout)
            raise UpstreamTimeout(f"LM Studio did not respond within {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            log.warning("router.local_unreachable", url=self.completions_url, error=str(exc))
            raise UpstreamUnavailable(str(exc) or type(exc).__name__) from exc

        if not resp.is_success:
            raise LocalProviderError(f"LM Studio error: {resp.status_code}", status_code=resp.status_code)

        try:
            result = resp.json()
        except ValueError as exc:
            raise LocalProviderError("LM Studio returned a non-JSON response") from exc
        if not isinstance(result, dict):
            raise LocalProviderError("LM Studio returned an unexpected payload")

        result["luxrig_metadata"] = {
            "routed_to": RoutedTo.LOCAL.value,
            "complexity": complexity.value,
            "cost_savings": LOCAL_COST_SAVINGS,
            "response_time": int(self._clock() * 1000),
            "model_used": result.get("model") or model,
        }
        log.info("router.local_complete", model=model, complexity=complexity.value)
        return result

    # ------------------------------------------------------------------
    # Cloud recommendation
    # ------------------------------------------------------------------

    def _cloud_recommendation(self, complexity: ComplexityLabel) -> dict[str, Any]:
        log.info("router.cloud_recommended", complexity=complexity.value)
        return {
            "choices": [{
                "message": {
                    "role": "assistant",
                    "content": (
                        "This looks like a complex task. For best results, this should be "
                        f"routed to a cloud AI provider. Task complexity: {complexity.value}"
                    ),
                },
            }],
            "luxrig_metadata": {
                "routed_to": RoutedTo.CLOUD_RECOMMENDED.value,
                "complexity": complexity.value,
                "reason": CLOUD_REASON,
            },
        }
