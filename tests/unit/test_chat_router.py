"""Unit tests for ChatRouter — local forwarding, cloud recommendation, failure mapping."""
import asyncio
import json

import httpx
import pytest
from pydantic import ValidationError

from luxrig.core.errors import LocalProviderError, UpstreamTimeout, UpstreamUnavailable
from luxrig.core.router import CLOUD_REASON, ChatRequest, ChatRouter


def _completion(content: str = "Hi there!") -> dict:
    return {
        "id": "chatcmpl-1",
        "model": "qwen3-4b",
        "choices": [{"message": {"role": "assistant", "content": content}}],
    }


def _router(handler, **kwargs) -> ChatRouter:
    kwargs.setdefault("retries", 0)
    return ChatRouter(transport=httpx.MockTransport(handler), clock=lambda: 1_700_000_000.0, **kwargs)


def _ask(text: str, **extra) -> ChatRequest:
    return ChatRequest(messages=[{"role": "user", "content": text}], **extra)


# ---------------------------------------------------------------------------
# ChatRequest validation
# ---------------------------------------------------------------------------

def test_chat_request_requires_messages():
    with pytest.raises(ValidationError):
        ChatRequest.model_validate({})


def test_chat_request_rejects_empty_messages():
    with pytest.raises(ValidationError):
        ChatRequest(messages=[])


# ---------------------------------------------------------------------------
# Local path
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_simple_prompt_served_locally():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, json=_completion())

    router = _router(handler)
    result = await router.route(_ask("hello"))

    assert captured["url"] == "http://localhost:1234/v1/chat/completions"
    assert captured["payload"] == {
        "model": "qwen3-4b-claude-sonnet-4-reasoning-distill-safetensor",
        "messages": [{"role": "user", "content": "hello"}],
        "max_tokens": 150,
        "temperature": 0.7,
        "stream": False,
    }
    assert result["choices"][0]["message"]["content"] == "Hi there!"
    assert result["luxrig_metadata"] == {
        "routed_to": "local",
        "complexity": "simple",
        "cost_savings": "estimated $0.02",
        "response_time": 1_700_000_000_000,
        "model_used": "qwen3-4b",
    }


@pytest.mark.asyncio
async def test_caller_overrides_reach_provider():
    captured = {}

    def handler(request):
        captured.update(json.loads(request.content))
        return httpx.Response(200, json=_completion())

    router = _router(handler)
    await router.route(_ask("What is the capital of France?", model="gemma-3n-e4b-it", max_tokens=64, temperature=0.1))

    assert captured["model"] == "gemma-3n-e4b-it"
    assert captured["max_tokens"] == 64
    assert captured["temperature"] == 0.1


@pytest.mark.asyncio
async def test_medium_prompt_served_locally():
    router = _router(lambda request: httpx.Response(200, json=_completion()))
    result = await router.route(_ask("What is the capital of France?"))
    assert result["luxrig_metadata"]["complexity"] == "medium"
    assert result["luxrig_metadata"]["routed_to"] == "local"


@pytest.mark.asyncio
async def test_only_last_message_is_classified():
    router = _router(lambda request: httpx.Response(200, json=_completion()))
    request = ChatRequest(messages=[
        {"role": "user", "content": "Write a comprehensive, detailed research strategy"},
        {"role": "user", "content": "hello"},
    ])
    result = await router.route(request)
    assert result["luxrig_metadata"]["complexity"] == "simple"


# ---------------------------------------------------------------------------
# Cloud recommendation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_complex_prompt_skips_local_call():
    calls = 0

    def handler(request):
        nonlocal calls
        calls += 1
        return httpx.Response(200, json=_completion())

    router = _router(handler)
    result = await router.route(_ask("Please provide a comprehensive, detailed architecture analysis"))

    assert calls == 0
    assert result["choices"][0]["message"]["role"] == "assistant"
    assert "cloud AI provider" in result["choices"][0]["message"]["content"]
    assert result["luxrig_metadata"] == {
        "routed_to": "cloud_recommended",
        "complexity": "complex",
        "reason": CLOUD_REASON,
    }


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_provider_error_status_raises():
    router = _router(lambda request: httpx.Response(503, json={"error": "model not loaded"}))
    with pytest.raises(LocalProviderError, match="LM Studio error: 503") as excinfo:
        await router.route(_ask("hello"))
    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_unreachable_provider_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailable):
        await _router(handler).route(_ask("hello"))


@pytest.mark.asyncio
async def test_refused_connection_retried_once():
    attempts = 0

    def handler(request):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json=_completion())

    result = await _router(handler, retries=1).route(_ask("hello"))
    assert attempts == 2
    assert result["luxrig_metadata"]["routed_to"] == "local"


@pytest.mark.asyncio
async def test_slow_provider_times_out():
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json=_completion())

    with pytest.raises(UpstreamTimeout):
        await _router(handler, timeout=0.05).route(_ask("hello"))


@pytest.mark.asyncio
async def test_non_json_reply_raises():
    router = _router(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(LocalProviderError):
        await router.route(_ask("hello"))
